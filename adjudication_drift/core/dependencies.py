"""
FastAPI dependency injection module for the Adjudication Drift service.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_issue_source / IssueSourceDep: the issue record source for a request
- get_snapshot_cache / SnapshotCacheDep: the process-wide snapshot cache, or
  None when caching is disabled

Tests replace the issue source with
``app.dependency_overrides[get_issue_source] = lambda: InMemoryIssueSource(...)``.

Usage Examples:
    @router.get("/drift")
    async def drift(
        source: IssueSourceDep,
        settings: SettingsDep,
        cache: SnapshotCacheDep,
    ) -> DriftReport:
        return await get_drift(source, settings=settings, cache=cache)
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends

from adjudication_drift.core.config import Settings, get_settings
from adjudication_drift.services.analysis import SnapshotCache
from adjudication_drift.sources import IssueRecordSource, PostgresIssueSource


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """Return the cached Settings singleton."""
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Issue Source Dependency
# =============================================================================

def get_issue_source() -> IssueRecordSource:
    """
    Return the issue record source for a request.

    The PostgreSQL source resolves the pool lazily, so a missing or
    unreachable database surfaces as SourceUnavailable when queried.
    """
    return PostgresIssueSource()


IssueSourceDep = Annotated[IssueRecordSource, Depends(get_issue_source)]


# =============================================================================
# Snapshot Cache Dependency
# =============================================================================

@lru_cache()
def _shared_snapshot_cache() -> SnapshotCache:
    return SnapshotCache()


def get_snapshot_cache(settings: SettingsDep) -> Optional[SnapshotCache]:
    """Return the shared snapshot cache, or None when caching is disabled."""
    if not settings.snapshot_cache_enabled:
        return None
    return _shared_snapshot_cache()


SnapshotCacheDep = Annotated[Optional[SnapshotCache], Depends(get_snapshot_cache)]
