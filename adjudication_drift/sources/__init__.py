"""
Issue record sources.

- IssueRecordSource: the async contract every source satisfies
- InMemoryIssueSource: process-local records with a revision counter
- PostgresIssueSource: the document issue store over asyncpg
- records_from_frame / load_issues_csv: pandas snapshot loaders
"""

from adjudication_drift.sources.base import (
    UNKNOWN_TAXONOMY_CODE,
    InMemoryIssueSource,
    IssueRecordSource,
    parse_issue_record,
    parse_issue_records,
    parse_timestamp,
    source_cache_key,
    source_revision,
)
from adjudication_drift.sources.frames import (
    load_issues_csv,
    records_from_frame,
    source_from_frame,
)
from adjudication_drift.sources.postgres import PostgresIssueSource

__all__ = [
    "UNKNOWN_TAXONOMY_CODE",
    "InMemoryIssueSource",
    "IssueRecordSource",
    "PostgresIssueSource",
    "load_issues_csv",
    "parse_issue_record",
    "parse_issue_records",
    "parse_timestamp",
    "records_from_frame",
    "source_cache_key",
    "source_from_frame",
    "source_revision",
]
