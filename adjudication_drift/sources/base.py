"""
Issue record source contract, raw row parsing and the in-memory source.

Every source exposes ``async list_issues(issue_filter) -> List[IssueRecord]``.
Sources that can tell when their contents change expose an integer
``revision`` and a process-unique ``cache_token``; snapshot caching is only
enabled for those.
"""

import json
import logging
from itertools import count
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from pydantic import ValidationError

from adjudication_drift.core.errors import MalformedRecord
from adjudication_drift.models import IssueFilter, IssueRecord, OutcomeType, Prong, Severity

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Taxonomy code assigned to issues extracted without a classification
UNKNOWN_TAXONOMY_CODE: str = "UNKNOWN"

# Process-unique identities for cacheable sources; never reused
_source_tokens = count(1)

# Raw prong spellings seen in extracted issues, mapped to the closed vocabulary
_PRONG_ALIASES = {
    "P1": Prong.P1,
    "PRONG1": Prong.P1,
    "PRONG 1": Prong.P1,
    "P2": Prong.P2,
    "PRONG2": Prong.P2,
    "PRONG 2": Prong.P2,
    "P3": Prong.P3,
    "PRONG3": Prong.P3,
    "PRONG 3": Prong.P3,
    "EVIDENCE": Prong.EVIDENCE,
    "COHERENCE": Prong.COHERENCE,
    "PROCEDURAL": Prong.PROCEDURAL,
}


# =============================================================================
# Source Contract
# =============================================================================


@runtime_checkable
class IssueRecordSource(Protocol):
    """Anything that can return a snapshot of issue records for a filter."""

    async def list_issues(self, issue_filter: IssueFilter) -> List[IssueRecord]:
        ...


def source_revision(source: Any) -> Optional[int]:
    """Return the source's revision counter, or None when it has none."""
    revision = getattr(source, "revision", None)
    return revision if isinstance(revision, int) else None


def source_cache_key(source: Any) -> Optional[Tuple[int, int]]:
    """
    Return ``(cache_token, revision)`` for sources whose snapshots may be cached.

    Both must be integers. The token identifies the source for the lifetime of
    the process, unlike ``id()`` which is recycled once a source is collected.
    """
    token = getattr(source, "cache_token", None)
    revision = source_revision(source)
    if not isinstance(token, int) or revision is None:
        return None
    return token, revision


# =============================================================================
# Raw Row Parsing
# =============================================================================


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and value != value:  # NaN from pandas
        return True
    return isinstance(value, str) and not value.strip()


def _parse_severity(value: Any) -> Severity:
    if _blank(value):
        raise MalformedRecord("severity", value)
    try:
        return Severity(str(value).strip().lower())
    except ValueError:
        raise MalformedRecord("severity", value) from None


def _parse_prong(value: Any) -> Optional[Prong]:
    if _blank(value):
        return None
    return _PRONG_ALIASES.get(str(value).strip().upper())


def _parse_outcome(value: Any) -> Optional[OutcomeType]:
    if _blank(value):
        return None
    normalized = str(value).strip().upper()
    for outcome in OutcomeType:
        if outcome.value.upper() == normalized:
            return outcome
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a raw timestamp into an aware UTC datetime.

    Accepts datetimes, dates (midnight UTC) and ISO-8601 strings, including a
    trailing ``Z``. Naive values are interpreted as UTC.

    Raises:
        MalformedRecord: If the value is present but cannot be parsed.
    """
    if _blank(value):
        return None
    if hasattr(value, "to_pydatetime"):  # pandas Timestamp
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise MalformedRecord("occurred_at", value) from None
    else:
        raise MalformedRecord("occurred_at", value)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _optional_text(value: Any) -> Optional[str]:
    if _blank(value):
        return None
    return str(value).strip()


def parse_issue_record(raw: Mapping[str, Any]) -> IssueRecord:
    """
    Normalize one raw issue row into an IssueRecord.

    Field handling:
    - id: required
    - taxonomy_code: falls back to ``UNKNOWN`` when missing
    - severity: required, case-insensitive
    - prong_affected: unknown spellings become None
    - occurred_at: read from ``occurred_at``, then ``document_date``, then
      ``created_at``; may be None
    - category: read from ``category``, then ``industry``

    Args:
        raw: Mapping with the row's columns.

    Returns:
        The validated, immutable IssueRecord.

    Raises:
        MalformedRecord: If a required field is missing or invalid.
    """
    record_id = raw.get("id")
    if _blank(record_id):
        raise MalformedRecord("id", record_id)

    taxonomy_code = _optional_text(raw.get("taxonomy_code")) or UNKNOWN_TAXONOMY_CODE

    occurred_raw = raw.get("occurred_at")
    if _blank(occurred_raw):
        occurred_raw = raw.get("document_date")
    if _blank(occurred_raw):
        occurred_raw = raw.get("created_at")

    category = raw.get("category")
    if _blank(category):
        category = raw.get("industry")

    try:
        return IssueRecord(
            id=str(record_id).strip(),
            taxonomy_code=taxonomy_code,
            severity=_parse_severity(raw.get("severity")),
            prong_affected=_parse_prong(raw.get("prong_affected")),
            occurred_at=parse_timestamp(occurred_raw),
            category=_optional_text(category),
            outcome_type=_parse_outcome(raw.get("outcome_type")),
            source_document_id=_optional_text(raw.get("source_document_id") or raw.get("document_id")),
            visa_category=_optional_text(raw.get("visa_category")),
            service_center=_optional_text(raw.get("service_center")),
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = str(first["loc"][0]) if first.get("loc") else "record"
        raise MalformedRecord(field, first.get("input"), message=first.get("msg")) from e


def parse_issue_records(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[IssueRecord], int]:
    """
    Parse many raw rows, skipping malformed ones.

    Returns:
        Tuple of (parsed records, number of rejected rows)
    """
    records: List[IssueRecord] = []
    rejected = 0

    for row in rows:
        try:
            records.append(parse_issue_record(row))
        except MalformedRecord as e:
            rejected += 1
            logger.debug(f"Skipping malformed issue row: {e}")

    if rejected:
        logger.warning(f"Rejected {rejected} malformed issue rows out of {len(records) + rejected}")

    return records, rejected


def decode_structured_data(structured_data: Any) -> Optional[Mapping[str, Any]]:
    """Decode a document's structured extraction (JSON text or mapping)."""
    if _blank(structured_data):
        return None
    if isinstance(structured_data, (str, bytes)):
        try:
            structured_data = json.loads(structured_data)
        except ValueError:
            logger.warning("Ignoring structured_data that is not valid JSON")
            return None
    if not isinstance(structured_data, Mapping):
        return None
    return structured_data


def load_structured_issues(structured_data: Any) -> List[Mapping[str, Any]]:
    """
    Extract the ``issues`` array from a document's structured extraction.

    Anything without an ``issues`` list yields no rows.
    """
    structured_data = decode_structured_data(structured_data)
    if structured_data is None:
        return []

    issues = structured_data.get("issues")
    if not isinstance(issues, list):
        return []
    return [issue for issue in issues if isinstance(issue, Mapping)]


# =============================================================================
# In-Memory Source
# =============================================================================


class InMemoryIssueSource:
    """
    Issue source backed by an in-process list of records.

    ``revision`` increases on every ingest so cached snapshots taken from an
    earlier revision are never served again.
    """

    def __init__(self, records: Optional[Iterable[IssueRecord]] = None) -> None:
        self._records: Tuple[IssueRecord, ...] = tuple(records or ())
        self._revision = 0
        self.cache_token = next(_source_tokens)
        self.rejected_count = 0

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "InMemoryIssueSource":
        """Build a source from raw rows, tallying the malformed ones."""
        records, rejected = parse_issue_records(rows)
        source = cls(records)
        source.rejected_count = rejected
        return source

    @property
    def revision(self) -> int:
        return self._revision

    def __len__(self) -> int:
        return len(self._records)

    def add_issues(self, records: Iterable[IssueRecord]) -> int:
        """
        Ingest new records.

        Returns:
            Number of records added.
        """
        added = tuple(records)
        self._records = self._records + added
        self._revision += 1
        logger.info(f"Ingested {len(added)} issues (revision {self._revision})")
        return len(added)

    async def list_issues(self, issue_filter: IssueFilter) -> List[IssueRecord]:
        return [record for record in self._records if issue_filter.matches(record)]
