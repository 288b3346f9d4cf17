"""
PostgreSQL issue source.

Reads both issue stores through the shared asyncpg pool and normalizes every
row with ``parse_issue_record``. Malformed rows are tallied and skipped;
connection or query failures fail the whole request with SourceUnavailable.

The store has no change counter, so this source exposes no ``revision`` and
its snapshots are never cached.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import asyncpg
from asyncpg import Pool

from adjudication_drift.core.database import get_db_pool
from adjudication_drift.core.errors import SourceUnavailable
from adjudication_drift.models import IssueFilter, IssueRecord
from adjudication_drift.sources.base import (
    decode_structured_data,
    load_structured_issues,
    parse_issue_records,
)
from adjudication_drift.sql import CASE_DOCUMENTS_QUERY, DOCUMENT_ISSUES_QUERY

logger = logging.getLogger(__name__)


def _embedded_issue_rows(document: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """
    Expand a case document's structured extraction into raw issue rows.

    Document-level metadata in ``structured_data.document_info`` takes
    precedence over the columns of the case document and its case.
    """
    structured = decode_structured_data(document.get("structured_data"))
    issues = load_structured_issues(structured)
    if not issues:
        return []

    info = structured.get("document_info")
    if not isinstance(info, Mapping):
        info = {}

    document_id = document.get("document_id")
    rows = []
    for index, issue in enumerate(issues):
        row = dict(issue)
        row.setdefault("id", f"{document_id}:{index}")
        row["source_document_id"] = document_id
        row["outcome_type"] = info.get("outcome_type") or document.get("doc_type")
        row["visa_category"] = info.get("visa_category") or document.get("visa_category")
        row["industry"] = document.get("industry")
        row["document_date"] = info.get("document_date") or document.get("created_at")
        row.pop("occurred_at", None)
        rows.append(row)
    return rows


class PostgresIssueSource:
    """
    Issue source over the ``document_issues`` and ``case_documents`` stores.

    Args:
        pool: Optional asyncpg pool. When omitted, the module-level pool from
            ``core.database`` is used.
    """

    def __init__(self, pool: Optional[Pool] = None) -> None:
        self._pool = pool
        self.rejected_count = 0

    async def _get_pool(self) -> Pool:
        if self._pool is not None:
            return self._pool
        return await get_db_pool()

    async def list_issues(self, issue_filter: IssueFilter) -> List[IssueRecord]:
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                issue_rows = await conn.fetch(
                    DOCUMENT_ISSUES_QUERY,
                    issue_filter.date_from,
                    issue_filter.date_to,
                    issue_filter.include_undated,
                )
                document_rows = await conn.fetch(CASE_DOCUMENTS_QUERY)
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning(f"Issue store query failed: {e}")
            raise SourceUnavailable(f"Issue store query failed: {e}") from e

        raw_rows: List[Dict[str, Any]] = [dict(row) for row in issue_rows]
        for document in document_rows:
            raw_rows.extend(_embedded_issue_rows(dict(document)))

        records, rejected = parse_issue_records(raw_rows)
        self.rejected_count = rejected

        matched = [record for record in records if issue_filter.matches(record)]
        logger.info(
            f"Loaded {len(matched)} issues from store "
            f"({len(issue_rows)} document issues, {len(document_rows)} case documents)"
        )
        return matched
