"""
Enumeration definitions for the Adjudication Drift service.

Every closed vocabulary used by the engine (severity, prong, grouping mode,
drift direction, alert and insight types, report status) is an explicit enum
so typos fail at validation time instead of silently producing empty buckets.

All enums inherit from both `str` and `Enum` so they serialize as their plain
values in API responses and can be compared with raw strings from the store.
"""

from enum import Enum


class Severity(str, Enum):
    """
    Severity assigned to an issue by the upstream extraction process.

    Declaration order (critical first) is the canonical display order.
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Prong(str, Enum):
    """
    Evaluation criterion an issue is mapped to.

    - P1: Substantial merit and national importance of the endeavor
    - P2: Beneficiary well positioned to advance the endeavor
    - P3: On balance, beneficial to waive the job offer requirement
    - EVIDENCE: Evidentiary sufficiency problems not tied to a single prong
    - COHERENCE: Internal inconsistencies across the petition
    - PROCEDURAL: Filing or procedural defects
    """
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    EVIDENCE = "EVIDENCE"
    COHERENCE = "COHERENCE"
    PROCEDURAL = "PROCEDURAL"


class OutcomeType(str, Enum):
    """Type of adjudication document an issue was extracted from."""
    RFE = "RFE"
    NOID = "NOID"
    DENIAL = "Denial"


class PeriodKind(str, Enum):
    """
    Grouping mode used to partition issues into cohorts.

    - month: `YYYY-MM` keys
    - quarter: `YYYY-Qn` keys
    - year: `YYYY` keys
    - category: one cohort per category value (e.g. industry)
    """
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CATEGORY = "category"

    @property
    def is_calendar(self) -> bool:
        return self is not PeriodKind.CATEGORY


class Direction(str, Enum):
    """Sign of a change between two periods."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class AlertSeverity(str, Enum):
    """Alert severity. High sorts before medium."""
    HIGH = "high"
    MEDIUM = "medium"


class AlertType(str, Enum):
    """
    Alert rule that produced an alert.

    - increase: a taxonomy code's share rose significantly
    - prong_shift: a prong is drawing more scrutiny
    - severity_increase: critical issues gained share
    - new_patterns: several codes appeared that the baseline never had
    """
    INCREASE = "increase"
    PRONG_SHIFT = "prong_shift"
    SEVERITY_INCREASE = "severity_increase"
    NEW_PATTERNS = "new_patterns"


class InsightType(str, Enum):
    """Period-over-period insight rule that fired between two cohorts."""
    SIGNIFICANT_INCREASE = "significant_increase"
    REDUCTION = "reduction"
    NEW_PATTERNS = "new_patterns"
    PRONG_SCRUTINY = "prong_scrutiny"
    CRITICAL_INCREASE = "critical_increase"
    NO_DATA = "no_data"


class DriftStatus(str, Enum):
    """
    Overall status of a drift report.

    - no_data: the recent window holds no issues (not an error)
    - stable: score below 20
    - low_drift: score 20-39
    - moderate_drift: score 40-69
    - high_drift: score 70 or above
    """
    NO_DATA = "no_data"
    STABLE = "stable"
    LOW_DRIFT = "low_drift"
    MODERATE_DRIFT = "moderate_drift"
    HIGH_DRIFT = "high_drift"


class Trend(str, Enum):
    """Direction of the last period-over-period total change."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
