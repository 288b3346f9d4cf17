"""
Pytest configuration and shared fixtures for Adjudication Drift tests.

Provides:
- Custom markers (slow, integration)
- An issue factory producing valid IssueRecords with overridable fields
- Distributions for the reference drift scenarios
- Settings and an in-memory source that never touch the environment or a
  database
"""

from datetime import datetime, timezone
from itertools import count
from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from adjudication_drift.core.config import Settings
from adjudication_drift.models import Distribution, IssueRecord, Prong, Severity
from adjudication_drift.services.distribution import distribution_from_records
from adjudication_drift.sources import InMemoryIssueSource


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: marks tests as slow (deselect with -m "not slow")
    - integration: marks tests that exercise the HTTP layer end to end
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'integration: marks tests that exercise the HTTP layer end to end'
    )


# ============================================================
# ISSUE FACTORIES
# ============================================================

_ids = count(1)


def make_issue(
    code: str = "P1.MERIT",
    severity: Severity = Severity.MEDIUM,
    prong: Optional[Prong] = Prong.P1,
    occurred_at: Optional[datetime] = datetime(2025, 3, 15, tzinfo=timezone.utc),
    category: Optional[str] = "Technology",
    **extra,
) -> IssueRecord:
    """Build a valid IssueRecord; every field can be overridden."""
    return IssueRecord(
        id=extra.pop("id", f"iss_{next(_ids)}"),
        taxonomy_code=code,
        severity=severity,
        prong_affected=prong,
        occurred_at=occurred_at,
        category=category,
        **extra,
    )


def issues_for_counts(counts: Dict[str, int], **fields) -> List[IssueRecord]:
    """Expand ``{code: n}`` into n issues per code."""
    return [make_issue(code=code, **fields) for code, n in counts.items() for _ in range(n)]


@pytest.fixture
def issue_factory() -> Callable[..., IssueRecord]:
    """Factory fixture wrapping make_issue."""
    return make_issue


# ============================================================
# DISTRIBUTION FIXTURES
# ============================================================

@pytest.fixture
def scenario_baseline() -> Distribution:
    """Baseline {A: 10, B: 5}, total 15."""
    return distribution_from_records("baseline", issues_for_counts({"A": 10, "B": 5}))


@pytest.fixture
def scenario_recent() -> Distribution:
    """Recent {A: 20, B: 2, C: 5}, total 27."""
    return distribution_from_records("recent", issues_for_counts({"A": 20, "B": 2, "C": 5}))


@pytest.fixture
def empty_distribution() -> Distribution:
    return distribution_from_records("empty", [])


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose ``acquire()`` yields a mock connection.

    Usage:
        conn = mock_db_pool.acquire.return_value.__aenter__.return_value
        conn.fetch.side_effect = [issue_rows, document_rows]
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)
    pool.close = AsyncMock(return_value=None)

    return pool


# ============================================================
# SERVICE FIXTURES
# ============================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings with documented defaults and no database."""
    return Settings(
        database_url=None,
        default_threshold_pct=20.0,
        default_absolute_pt_floor=2.0,
        default_recent_window_days=60,
        default_baseline_window_days=180,
        min_new_code_count=2,
        analysis_timeout_seconds=5.0,
        snapshot_cache_enabled=True,
    )


@pytest.fixture
def as_of() -> datetime:
    return datetime(2025, 7, 1, tzinfo=timezone.utc)


@pytest.fixture
def window_source(as_of: datetime) -> InMemoryIssueSource:
    """
    Source whose baseline window holds {A: 10, B: 5} and whose recent window
    holds {A: 20, B: 2, C: 5}, for as_of = 2025-07-01.
    """
    baseline_day = datetime(2025, 3, 1, tzinfo=timezone.utc)
    recent_day = datetime(2025, 6, 1, tzinfo=timezone.utc)
    too_old = datetime(2024, 6, 1, tzinfo=timezone.utc)
    records = (
        issues_for_counts({"A": 10, "B": 5}, occurred_at=baseline_day)
        + issues_for_counts({"A": 20, "B": 2, "C": 5}, occurred_at=recent_day)
        + issues_for_counts({"OLD": 7}, occurred_at=too_old)
    )
    return InMemoryIssueSource(records)
