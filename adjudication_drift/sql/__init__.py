"""
SQL query module for the issue store.

Example usage:
    from adjudication_drift.sql import DOCUMENT_ISSUES_QUERY

    rows = await conn.fetch(DOCUMENT_ISSUES_QUERY, date_from, date_to, include_undated)
"""

from adjudication_drift.sql.issue_queries import (
    CASE_DOCUMENTS_QUERY,
    DOCUMENT_ISSUES_QUERY,
)

__all__ = [
    "CASE_DOCUMENTS_QUERY",
    "DOCUMENT_ISSUES_QUERY",
]
