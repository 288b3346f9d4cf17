"""
FastAPI router module for cohort and drift trend endpoints.

Endpoints:
- GET /trends: filtered overview of a reporting period
- GET /trends/cohorts: cohort statistics, consecutive comparisons and insights
- GET /trends/drift: recent window vs. baseline window drift report
- GET /trends/cohorts/compare: drift between two selected cohorts

Error mapping:
- InvalidConfiguration -> 400
- SourceUnavailable -> 503
- AnalysisTimedOut -> 504 with ``{"status": "timed_out", ...}``
- anything else -> 500, logged with traceback
"""

import logging
from datetime import datetime
from typing import Awaitable, Optional, TypeVar, Union

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from adjudication_drift.core.dependencies import IssueSourceDep, SettingsDep, SnapshotCacheDep
from adjudication_drift.core.errors import AnalysisTimedOut, InvalidConfiguration, SourceUnavailable
from adjudication_drift.models import AnalysisTimeoutResponse, CohortAnalysis, DriftReport, TrendsOverview
from adjudication_drift.services.analysis import get_cohort_drift, get_cohorts, get_drift, get_overview

# Configure logging
logger = logging.getLogger(__name__)

# Create router with prefix and tags for OpenAPI documentation
router = APIRouter(prefix="/trends", tags=["trends"])

T = TypeVar("T")

_TIMEOUT_RESPONSES = {
    504: {"model": AnalysisTimeoutResponse, "description": "Analysis timed out"},
}


# =============================================================================
# Helper Functions
# =============================================================================


async def _run_analysis(analysis: Awaitable[T], context: str) -> Union[T, JSONResponse]:
    """
    Await an analysis and translate engine errors into HTTP responses.

    Args:
        analysis: Awaitable returned by an analysis service function.
        context: Short description used in log messages.

    Returns:
        The analysis result, or a 504 JSONResponse when it timed out.

    Raises:
        HTTPException: 400 for invalid parameters, 503 when the issue source
            is unavailable, 500 for unexpected failures.
    """
    try:
        return await analysis
    except InvalidConfiguration as e:
        logger.info(f"Rejected {context} request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except SourceUnavailable as e:
        logger.warning(f"Issue source unavailable for {context}: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    except AnalysisTimedOut as e:
        body = AnalysisTimeoutResponse(detail=str(e), timeout_seconds=e.timeout_seconds)
        return JSONResponse(status_code=504, content=body.model_dump())
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in {context}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute {context}: {str(e)}")


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/cohorts", response_model=CohortAnalysis, responses=_TIMEOUT_RESPONSES)
async def cohorts(
    source: IssueSourceDep,
    settings: SettingsDep,
    cache: SnapshotCacheDep,
    group_by: str = Query(default="month", description="month, quarter, year or category"),
    year: Optional[int] = Query(default=None, description="Restrict to a year"),
    category: Optional[str] = Query(default=None, description="Restrict to a category"),
    threshold_pct: Optional[float] = Query(default=None, description="Drift significance threshold (%)"),
    absolute_pt_floor: Optional[float] = Query(default=None, description="Absolute change floor (points)"),
):
    """
    Cohort analysis of all issues.

    Comparisons and insights are only produced for calendar groupings.
    """
    return await _run_analysis(
        get_cohorts(
            source,
            group_by=group_by,
            year=year,
            category=category,
            threshold_pct=threshold_pct,
            absolute_pt_floor=absolute_pt_floor,
            settings=settings,
            cache=cache,
        ),
        "cohort analysis",
    )


@router.get("/drift", response_model=DriftReport, responses=_TIMEOUT_RESPONSES)
async def drift(
    source: IssueSourceDep,
    settings: SettingsDep,
    cache: SnapshotCacheDep,
    recent_window_days: Optional[int] = Query(default=None, description="Recent window length (days)"),
    baseline_window_days: Optional[int] = Query(default=None, description="Baseline window length (days)"),
    threshold_pct: Optional[float] = Query(default=None, description="Drift significance threshold (%)"),
    absolute_pt_floor: Optional[float] = Query(default=None, description="Absolute change floor (points)"),
    as_of: Optional[datetime] = Query(default=None, description="End of the recent window (default now)"),
):
    """Drift of the recent window against the preceding baseline window."""
    return await _run_analysis(
        get_drift(
            source,
            recent_window_days=recent_window_days,
            baseline_window_days=baseline_window_days,
            threshold_pct=threshold_pct,
            absolute_pt_floor=absolute_pt_floor,
            as_of=as_of,
            settings=settings,
            cache=cache,
        ),
        "drift analysis",
    )


@router.get("/cohorts/compare", response_model=DriftReport, responses=_TIMEOUT_RESPONSES)
async def compare_cohorts(
    source: IssueSourceDep,
    settings: SettingsDep,
    cache: SnapshotCacheDep,
    from_key: str = Query(..., description="Baseline cohort key, e.g. 2025-01"),
    to_key: str = Query(..., description="Recent cohort key, e.g. 2025-02"),
    group_by: str = Query(default="month", description="month, quarter, year or category"),
    year: Optional[int] = Query(default=None, description="Restrict to a year"),
    category: Optional[str] = Query(default=None, description="Restrict to a category"),
    threshold_pct: Optional[float] = Query(default=None, description="Drift significance threshold (%)"),
    absolute_pt_floor: Optional[float] = Query(default=None, description="Absolute change floor (points)"),
):
    """Drift between two explicitly selected cohorts."""
    return await _run_analysis(
        get_cohort_drift(
            source,
            group_by=group_by,
            from_key=from_key,
            to_key=to_key,
            year=year,
            category=category,
            threshold_pct=threshold_pct,
            absolute_pt_floor=absolute_pt_floor,
            settings=settings,
            cache=cache,
        ),
        "cohort comparison",
    )


@router.get("", response_model=TrendsOverview, responses=_TIMEOUT_RESPONSES)
async def overview(
    source: IssueSourceDep,
    settings: SettingsDep,
    cache: SnapshotCacheDep,
    period: str = Query(default="6months", description="3months, 6months, 1year or all"),
    date_from: Optional[datetime] = Query(default=None, description="Custom range start (overrides period)"),
    date_to: Optional[datetime] = Query(default=None, description="Custom range end (default as_of)"),
    visa_category: Optional[str] = Query(default=None, description="Restrict to a visa category"),
    service_center: Optional[str] = Query(default=None, description="Restrict to a service center"),
    outcome_type: Optional[str] = Query(default=None, description="RFE, NOID or Denial"),
    as_of: Optional[datetime] = Query(default=None, description="End of named periods (default now)"),
):
    """Top issues, monthly volume and distributions of a filtered period."""
    return await _run_analysis(
        get_overview(
            source,
            period=period,
            date_from=date_from,
            date_to=date_to,
            visa_category=visa_category,
            service_center=service_center,
            outcome_type=outcome_type,
            as_of=as_of,
            settings=settings,
            cache=cache,
        ),
        "trends overview",
    )
