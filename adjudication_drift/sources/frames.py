"""
Tabular snapshot loading.

Turns pandas DataFrames and CSV exports of the issue store into IssueRecords,
so offline analyses can run against the same engine as the API. Column names
are matched case-insensitively; malformed rows are tallied, never fatal.
"""

import io
import logging
from typing import BinaryIO, List, TextIO, Tuple, Union

import pandas as pd

from adjudication_drift.core.errors import SourceUnavailable
from adjudication_drift.models import IssueRecord
from adjudication_drift.sources.base import InMemoryIssueSource, parse_issue_records

logger = logging.getLogger(__name__)


# Columns without which no row can be parsed
REQUIRED_COLUMNS: Tuple[str, ...] = ("id", "severity")


def _normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Lowercase column names and replace missing values with None."""
    normalized = df.copy()
    normalized.columns = normalized.columns.astype(str).str.lower().str.strip()
    normalized = normalized.astype(object).where(pd.notna(normalized), None)
    return normalized


def records_from_frame(df: pd.DataFrame) -> Tuple[List[IssueRecord], int]:
    """
    Parse every row of a DataFrame into IssueRecords.

    Args:
        df: Frame with at least ``id`` and ``severity`` columns. Recognized
            optional columns: taxonomy_code, prong_affected, occurred_at,
            document_date, created_at, category, industry, outcome_type,
            source_document_id, visa_category, service_center.

    Returns:
        Tuple of (records, rejected row count)
    """
    if df.empty:
        return [], 0

    normalized = _normalize_frame(df)

    missing = [col for col in REQUIRED_COLUMNS if col not in normalized.columns]
    if missing:
        logger.warning(f"Issue frame is missing required columns {missing}; every row is rejected")
        return [], len(normalized)

    return parse_issue_records(normalized.to_dict(orient="records"))


def load_issues_csv(
    path_or_buffer: Union[str, BinaryIO, TextIO]
) -> Tuple[List[IssueRecord], int]:
    """
    Read a CSV export of the issue store.

    Args:
        path_or_buffer: File path or open file object (text or binary).

    Returns:
        Tuple of (records, rejected row count)

    Raises:
        SourceUnavailable: If the file cannot be read or parsed as CSV.
    """
    try:
        if hasattr(path_or_buffer, "read"):
            content = path_or_buffer.read()
            if isinstance(content, bytes):
                path_or_buffer = io.BytesIO(content)
            else:
                path_or_buffer = io.StringIO(content)
        df = pd.read_csv(path_or_buffer)
    except pd.errors.EmptyDataError:
        return [], 0
    except (pd.errors.ParserError, OSError, UnicodeDecodeError) as e:
        raise SourceUnavailable(f"Failed to read issue CSV: {e}") from e

    logger.info(f"Parsed issue CSV with {len(df)} rows and {len(df.columns)} columns")
    return records_from_frame(df)


def source_from_frame(df: pd.DataFrame) -> InMemoryIssueSource:
    """Wrap a DataFrame snapshot in an in-memory source."""
    records, rejected = records_from_frame(df)
    source = InMemoryIssueSource(records)
    source.rejected_count = rejected
    return source
