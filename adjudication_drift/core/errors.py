"""
Exception taxonomy for the drift analysis engine.

- SourceUnavailable: the issue record source could not be reached. The whole
  request fails; retries belong to the caller.
- MalformedRecord: a raw row is missing or has an invalid required field.
  Loaders catch it per row and tally it; it never aborts an analysis.
- InvalidConfiguration: bad grouping mode, window, threshold or cohort key.
  Raised before any computation begins.
- AnalysisTimedOut: the caller-imposed timeout expired before a report was
  produced.
- AnalysisCancelled: raised inside the worker thread once the timeout has
  fired, so abandoned computations stop between cohorts.

Insufficient data is deliberately not an exception: an empty recent window
is reported with ``status == "no_data"``.
"""

from typing import Any, Optional


class DriftAnalysisError(Exception):
    """Base class for all errors raised by the analysis engine."""


class SourceUnavailable(DriftAnalysisError):
    """The issue record source could not be reached or queried."""


class InvalidConfiguration(DriftAnalysisError, ValueError):
    """
    Analysis parameters were rejected before computation started.

    Attributes:
        field: Name of the offending parameter, when known.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class MalformedRecord(DriftAnalysisError, ValueError):
    """
    A raw issue row could not be turned into an IssueRecord.

    Attributes:
        field: The missing or invalid field.
        value: The offending raw value.
    """

    def __init__(self, field: str, value: Any = None, message: Optional[str] = None) -> None:
        super().__init__(message or f"Invalid or missing '{field}': {value!r}")
        self.field = field
        self.value = value


class AnalysisTimedOut(DriftAnalysisError):
    """The analysis did not finish within its timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Analysis timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class AnalysisCancelled(DriftAnalysisError):
    """The computation was abandoned because its caller stopped waiting."""
