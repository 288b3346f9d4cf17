"""
Analysis Service

Request-scoped orchestration behind the query surface:

1. Validate parameters (InvalidConfiguration before any source access)
2. Fetch one snapshot of issue records from the source, optionally memoized
3. Run the CPU-bound engine in a worker thread
4. Enforce the caller's timeout over steps 2-3 (AnalysisTimedOut on expiry)

The engine itself (cohort builder, distributions, drift detector, comparison
and alert generators) never performs I/O and holds no state.
"""

import asyncio
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from threading import Event
from typing import Any, Callable, List, NamedTuple, Optional, Sequence, Tuple, Union

from adjudication_drift.core.config import Settings, get_settings
from adjudication_drift.core.errors import AnalysisTimedOut, InvalidConfiguration
from adjudication_drift.models import (
    PRONG_LABELS,
    CohortAnalysis,
    DriftReport,
    IssueFilter,
    IssueRecord,
    OutcomeType,
    PeriodInfo,
    PeriodKind,
    ProngShare,
    TrendsOverview,
)
from adjudication_drift.services.cohort_builder import (
    available_categories,
    available_years,
    build_cohorts,
    resolve_group_by,
)
from adjudication_drift.services.comparison import compare_timeline, summarize_cohorts
from adjudication_drift.services.distribution import (
    compute_distribution,
    compute_distributions,
    distribution_from_records,
    round_half_up,
    summarize_cohort,
)
from adjudication_drift.services.alerts import with_alerts
from adjudication_drift.services.drift_detector import (
    DEFAULT_ABSOLUTE_PT_FLOOR,
    DEFAULT_MIN_NEW_CODE_COUNT,
    DEFAULT_THRESHOLD_PCT,
    detect_drift,
    validate_thresholds,
)
from adjudication_drift.services.overview import (
    DEFAULT_PERIOD,
    resolve_outcome_type,
    resolve_period,
    summarize_overview,
)
from adjudication_drift.sources.base import IssueRecordSource, source_cache_key

logger = logging.getLogger(__name__)


# =============================================================================
# Snapshot Cache
# =============================================================================


class Snapshot(NamedTuple):
    """Records returned by one source query and the rows it rejected."""

    records: Tuple[IssueRecord, ...]
    rejected_count: int = 0


async def _query_source(source: IssueRecordSource, issue_filter: IssueFilter) -> Snapshot:
    records = await source.list_issues(issue_filter)
    # Read before yielding again; a concurrent query may overwrite the tally
    rejected = getattr(source, "rejected_count", 0) or 0
    return Snapshot(tuple(records), rejected)


class SnapshotCache:
    """
    Memoizes issue snapshots per (source token, filter, source revision).

    Only sources exposing both ``cache_token`` and ``revision`` are cached;
    tokens are never reused within a process.
    Ingesting into a source bumps its revision, so every snapshot taken
    earlier stops matching.

    Args:
        max_entries: Number of snapshots kept; the least recently used one is
            evicted first.
    """

    def __init__(self, max_entries: int = 32) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[Tuple[int, IssueFilter, int], Snapshot]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    async def fetch(self, source: IssueRecordSource, issue_filter: IssueFilter) -> Snapshot:
        cache_key = source_cache_key(source)
        if cache_key is None:
            return await _query_source(source, issue_filter)

        token, revision = cache_key
        key = (token, issue_filter, revision)
        if key in self._entries:
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

        self.misses += 1
        snapshot = await _query_source(source, issue_filter)

        # Snapshots of older revisions of this source can never match again
        stale = [k for k in self._entries if k[0] == token and k[2] != revision]
        for k in stale:
            del self._entries[k]

        self._entries[key] = snapshot
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return snapshot


async def fetch_snapshot(
    source: IssueRecordSource,
    issue_filter: IssueFilter,
    cache: Optional[SnapshotCache] = None,
) -> Snapshot:
    if cache is None:
        return await _query_source(source, issue_filter)
    return await cache.fetch(source, issue_filter)


# =============================================================================
# Helpers
# =============================================================================


async def run_with_timeout(
    source: IssueRecordSource,
    issue_filter: IssueFilter,
    compute: Callable[[Snapshot, Event], Any],
    timeout_seconds: float,
    cache: Optional[SnapshotCache] = None,
) -> Any:
    """
    Fetch a snapshot and run ``compute`` on it in a worker thread.

    A thread cannot be interrupted, so on timeout the cancel event handed to
    ``compute`` is set; the engine checks it between cohorts and abandons
    the rest of the work.

    Raises:
        AnalysisTimedOut: If fetch and compute together exceed the timeout.
        SourceUnavailable: If the source cannot be queried.
    """
    cancel_event = Event()

    async def _analyze() -> Any:
        snapshot = await fetch_snapshot(source, issue_filter, cache)
        return await asyncio.to_thread(compute, snapshot, cancel_event)

    try:
        return await asyncio.wait_for(_analyze(), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        cancel_event.set()
        logger.warning(f"Analysis exceeded {timeout_seconds}s timeout")
        raise AnalysisTimedOut(timeout_seconds) from None


def _as_utc(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _validate_year(year: Optional[int]) -> None:
    if year is not None and year <= 0:
        raise InvalidConfiguration(f"year must be positive, got {year}", field="year")


def _validate_timeout(timeout_seconds: float) -> None:
    if timeout_seconds <= 0:
        raise InvalidConfiguration(
            f"timeout must be positive, got {timeout_seconds}", field="timeout_seconds"
        )


def validate_windows(recent_window_days: int, baseline_window_days: int) -> None:
    """
    Raises:
        InvalidConfiguration: If a window is not positive or the baseline
            window does not extend past the recent window.
    """
    if recent_window_days <= 0:
        raise InvalidConfiguration(
            f"recent_window_days must be positive, got {recent_window_days}",
            field="recent_window_days",
        )
    if baseline_window_days <= 0:
        raise InvalidConfiguration(
            f"baseline_window_days must be positive, got {baseline_window_days}",
            field="baseline_window_days",
        )
    if baseline_window_days <= recent_window_days:
        raise InvalidConfiguration(
            f"baseline_window_days ({baseline_window_days}) must be greater than "
            f"recent_window_days ({recent_window_days})",
            field="baseline_window_days",
        )


def _prong_shares(distribution) -> List[ProngShare]:
    return [
        ProngShare(
            prong=prong,
            label=PRONG_LABELS[prong],
            count=share.count,
            percentage=round_half_up(share.percentage),
        )
        for prong, share in distribution.by_prong.items()
    ]


# =============================================================================
# Cohort Analysis
# =============================================================================


def analyze_cohorts(
    records: Sequence[IssueRecord],
    group_by: Union[str, PeriodKind],
    year: Optional[int] = None,
    category: Optional[str] = None,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
    max_workers: Optional[int] = None,
    rejected_count: int = 0,
    cancel_event: Optional[Event] = None,
) -> CohortAnalysis:
    """
    Run the cohort pipeline over an in-memory snapshot.

    Comparisons and insights are produced for calendar groupings only;
    category cohorts have no chronological order.

    Raises:
        AnalysisCancelled: If ``cancel_event`` is set before every cohort is counted.
    """
    kind = resolve_group_by(group_by)
    build = build_cohorts(records, kind, year=year, category=category)
    cohorts = build.ordered()
    distributions = compute_distributions(cohorts, max_workers=max_workers, cancel_event=cancel_event)
    summaries = [summarize_cohort(cohort, distributions[cohort.key]) for cohort in cohorts]

    comparisons, insights = [], []
    if kind.is_calendar:
        timeline = [(cohort, distributions[cohort.key]) for cohort in cohorts]
        comparisons, insights = compare_timeline(
            timeline,
            threshold_pct=threshold_pct,
            absolute_pt_floor=absolute_pt_floor,
            min_new_code_count=min_new_code_count,
        )

    return CohortAnalysis(
        group_by=kind,
        year=year,
        category=category,
        total_issues=sum(summary.stats.total for summary in summaries),
        rejected_count=build.rejected_count + rejected_count,
        cohorts=summaries,
        comparisons=comparisons,
        insights=insights,
        top_codes_by_cohort={summary.key: summary.stats.top_codes for summary in summaries},
        prong_distribution_by_cohort={
            key: _prong_shares(distribution) for key, distribution in distributions.items()
        },
        available_years=available_years(records),
        available_categories=available_categories(records),
        summary=summarize_cohorts(summaries, comparisons),
    )


async def get_cohorts(
    source: IssueRecordSource,
    group_by: Union[str, PeriodKind] = PeriodKind.MONTH,
    year: Optional[int] = None,
    category: Optional[str] = None,
    threshold_pct: Optional[float] = None,
    absolute_pt_floor: Optional[float] = None,
    *,
    settings: Optional[Settings] = None,
    cache: Optional[SnapshotCache] = None,
    timeout_seconds: Optional[float] = None,
    max_workers: Optional[int] = None,
) -> CohortAnalysis:
    """
    Cohort analysis of every issue in the source.

    Args:
        source: Issue record source.
        group_by: month, quarter, year or category.
        year: Optional year restriction (pre-creates periods for month/quarter).
        category: Optional category restriction.
        threshold_pct: Drift significance threshold for pairwise comparisons.
        absolute_pt_floor: Drift absolute-change floor for pairwise comparisons.
        settings: Service settings; defaults to the cached singleton.
        cache: Optional snapshot cache.
        timeout_seconds: Overrides ``settings.analysis_timeout_seconds``.
        max_workers: Thread pool size for per-cohort distributions.

    Returns:
        CohortAnalysis

    Raises:
        InvalidConfiguration: On bad parameters, before the source is queried.
        SourceUnavailable: If the source cannot be queried.
        AnalysisTimedOut: If the analysis exceeds the timeout.
    """
    settings = settings or get_settings()
    kind = resolve_group_by(group_by)
    threshold = settings.default_threshold_pct if threshold_pct is None else threshold_pct
    floor = settings.default_absolute_pt_floor if absolute_pt_floor is None else absolute_pt_floor
    timeout = settings.analysis_timeout_seconds if timeout_seconds is None else timeout_seconds
    validate_thresholds(threshold, floor)
    _validate_year(year)
    _validate_timeout(timeout)

    logger.info(f"Cohort analysis: group_by={kind.value}, year={year}, category={category}")

    def _compute(snapshot: Snapshot, cancel_event: Event) -> CohortAnalysis:
        return analyze_cohorts(
            snapshot.records,
            kind,
            year=year,
            category=category,
            threshold_pct=threshold,
            absolute_pt_floor=floor,
            min_new_code_count=settings.min_new_code_count,
            max_workers=max_workers,
            rejected_count=snapshot.rejected_count,
            cancel_event=cancel_event,
        )

    # Unfiltered snapshot: the available years/categories span every issue
    return await run_with_timeout(source, IssueFilter(), _compute, timeout, cache)


# =============================================================================
# Window Drift
# =============================================================================


def analyze_windows(
    records: Sequence[IssueRecord],
    recent_period: PeriodInfo,
    baseline_period: PeriodInfo,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
    rejected_count: int = 0,
) -> DriftReport:
    """
    Split a snapshot at the recent window's start and compare both halves.

    Records without a date belong to neither window; they are counted into
    the report's ``rejected_count``.
    """
    recent: List[IssueRecord] = []
    baseline: List[IssueRecord] = []
    undated = 0
    for record in records:
        if record.occurred_at is None:
            undated += 1
        elif recent_period.start <= record.occurred_at < recent_period.end:
            recent.append(record)
        elif baseline_period.start <= record.occurred_at < baseline_period.end:
            baseline.append(record)

    if undated:
        logger.warning(f"Rejected {undated} issues with no date from the drift windows")

    report = detect_drift(
        distribution_from_records("baseline", baseline),
        distribution_from_records("recent", recent),
        threshold_pct=threshold_pct,
        absolute_pt_floor=absolute_pt_floor,
        baseline_period=baseline_period,
        recent_period=recent_period,
        min_new_code_count=min_new_code_count,
        rejected_count=rejected_count + undated,
    )
    return with_alerts(report)


async def get_drift(
    source: IssueRecordSource,
    recent_window_days: Optional[int] = None,
    baseline_window_days: Optional[int] = None,
    threshold_pct: Optional[float] = None,
    absolute_pt_floor: Optional[float] = None,
    as_of: Optional[datetime] = None,
    *,
    settings: Optional[Settings] = None,
    cache: Optional[SnapshotCache] = None,
    timeout_seconds: Optional[float] = None,
) -> DriftReport:
    """
    Drift of the recent window against the preceding baseline window.

    Windows are half-open and end at ``as_of`` (default now, UTC):
    recent ``[as_of - recent, as_of)``, baseline
    ``[as_of - baseline, as_of - recent)``.

    Raises:
        InvalidConfiguration: On bad parameters, before the source is queried.
        SourceUnavailable: If the source cannot be queried.
        AnalysisTimedOut: If the analysis exceeds the timeout.
    """
    settings = settings or get_settings()
    recent_days = settings.default_recent_window_days if recent_window_days is None else recent_window_days
    baseline_days = (
        settings.default_baseline_window_days if baseline_window_days is None else baseline_window_days
    )
    threshold = settings.default_threshold_pct if threshold_pct is None else threshold_pct
    floor = settings.default_absolute_pt_floor if absolute_pt_floor is None else absolute_pt_floor
    timeout = settings.analysis_timeout_seconds if timeout_seconds is None else timeout_seconds
    validate_windows(recent_days, baseline_days)
    validate_thresholds(threshold, floor)
    _validate_timeout(timeout)

    end = _as_utc(as_of)
    recent_start = end - timedelta(days=recent_days)
    baseline_start = end - timedelta(days=baseline_days)

    recent_period = PeriodInfo(key="recent", label=f"Last {recent_days} days", start=recent_start, end=end)
    baseline_period = PeriodInfo(
        key="baseline",
        label=f"Previous {baseline_days - recent_days} days",
        start=baseline_start,
        end=recent_start,
    )

    logger.info(
        f"Drift analysis: recent={recent_days}d, baseline={baseline_days}d, "
        f"threshold={threshold}%, as_of={end.isoformat()}"
    )

    def _compute(snapshot: Snapshot, cancel_event: Event) -> DriftReport:
        return analyze_windows(
            snapshot.records,
            recent_period,
            baseline_period,
            threshold_pct=threshold,
            absolute_pt_floor=floor,
            min_new_code_count=settings.min_new_code_count,
            rejected_count=snapshot.rejected_count,
        )

    # Undated issues are fetched so they can be tallied as rejected
    issue_filter = IssueFilter(date_from=baseline_start, date_to=end, include_undated=True)
    return await run_with_timeout(source, issue_filter, _compute, timeout, cache)


# =============================================================================
# Cohort Drift
# =============================================================================


def analyze_cohort_pair(
    records: Sequence[IssueRecord],
    group_by: Union[str, PeriodKind],
    from_key: str,
    to_key: str,
    year: Optional[int] = None,
    category: Optional[str] = None,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
    rejected_count: int = 0,
) -> DriftReport:
    """
    Drift between two cohorts of one grouping, ``from_key`` as the baseline.

    Raises:
        InvalidConfiguration: If either key does not name a cohort.
    """
    build = build_cohorts(records, group_by, year=year, category=category)
    missing = [key for key in (from_key, to_key) if key not in build.cohorts]
    if missing:
        raise InvalidConfiguration(
            f"Unknown cohort key(s): {', '.join(missing)}",
            field="from_key" if from_key in missing else "to_key",
        )

    baseline_cohort = build.cohorts[from_key]
    recent_cohort = build.cohorts[to_key]
    report = detect_drift(
        compute_distribution(baseline_cohort),
        compute_distribution(recent_cohort),
        threshold_pct=threshold_pct,
        absolute_pt_floor=absolute_pt_floor,
        baseline_period=PeriodInfo(key=baseline_cohort.key, label=baseline_cohort.label),
        recent_period=PeriodInfo(key=recent_cohort.key, label=recent_cohort.label),
        min_new_code_count=min_new_code_count,
        rejected_count=build.rejected_count + rejected_count,
    )
    return with_alerts(report)


async def get_cohort_drift(
    source: IssueRecordSource,
    group_by: Union[str, PeriodKind],
    from_key: str,
    to_key: str,
    year: Optional[int] = None,
    category: Optional[str] = None,
    threshold_pct: Optional[float] = None,
    absolute_pt_floor: Optional[float] = None,
    *,
    settings: Optional[Settings] = None,
    cache: Optional[SnapshotCache] = None,
    timeout_seconds: Optional[float] = None,
) -> DriftReport:
    """
    Drift between two explicitly selected cohorts.

    Raises:
        InvalidConfiguration: On bad parameters or unknown cohort keys.
        SourceUnavailable: If the source cannot be queried.
        AnalysisTimedOut: If the analysis exceeds the timeout.
    """
    settings = settings or get_settings()
    kind = resolve_group_by(group_by)
    threshold = settings.default_threshold_pct if threshold_pct is None else threshold_pct
    floor = settings.default_absolute_pt_floor if absolute_pt_floor is None else absolute_pt_floor
    timeout = settings.analysis_timeout_seconds if timeout_seconds is None else timeout_seconds
    validate_thresholds(threshold, floor)
    _validate_year(year)
    _validate_timeout(timeout)
    if not from_key or not to_key:
        raise InvalidConfiguration("Both from_key and to_key are required", field="from_key")

    logger.info(f"Cohort drift: group_by={kind.value}, {from_key} -> {to_key}")

    def _compute(snapshot: Snapshot, cancel_event: Event) -> DriftReport:
        return analyze_cohort_pair(
            snapshot.records,
            kind,
            from_key,
            to_key,
            year=year,
            category=category,
            threshold_pct=threshold,
            absolute_pt_floor=floor,
            min_new_code_count=settings.min_new_code_count,
            rejected_count=snapshot.rejected_count,
        )

    return await run_with_timeout(source, IssueFilter(), _compute, timeout, cache)


# =============================================================================
# Trends Overview
# =============================================================================


async def get_overview(
    source: IssueRecordSource,
    period: str = DEFAULT_PERIOD,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    visa_category: Optional[str] = None,
    service_center: Optional[str] = None,
    outcome_type: Union[str, OutcomeType, None] = None,
    as_of: Optional[datetime] = None,
    *,
    settings: Optional[Settings] = None,
    cache: Optional[SnapshotCache] = None,
    timeout_seconds: Optional[float] = None,
) -> TrendsOverview:
    """
    Filtered overview of the issues of a reporting period.

    The period is a named lookback ending at ``as_of`` (default now, UTC)
    unless ``date_from`` or ``date_to`` is given. Filter options list every
    visa category and service center of the period, regardless of the
    attribute filters applied.

    Raises:
        InvalidConfiguration: On bad parameters, before the source is queried.
        SourceUnavailable: If the source cannot be queried.
        AnalysisTimedOut: If the analysis exceeds the timeout.
    """
    settings = settings or get_settings()
    timeout = settings.analysis_timeout_seconds if timeout_seconds is None else timeout_seconds
    _validate_timeout(timeout)
    outcome = resolve_outcome_type(outcome_type)
    start, end = resolve_period(
        period,
        _as_utc(as_of),
        date_from=_as_utc(date_from) if date_from is not None else None,
        date_to=_as_utc(date_to) if date_to is not None else None,
    )

    logger.info(
        f"Trends overview: period={period}, visa_category={visa_category}, "
        f"service_center={service_center}, outcome_type={outcome}"
    )

    overview_filter = IssueFilter(
        date_from=start,
        date_to=end,
        visa_category=visa_category,
        service_center=service_center,
        outcome_type=outcome,
    )

    def _compute(snapshot: Snapshot, cancel_event: Event) -> TrendsOverview:
        return summarize_overview(
            snapshot.records,
            overview_filter,
            period=period,
            rejected_count=snapshot.rejected_count,
        )

    # Attribute filters are applied after the fetch so filter options cover the whole period
    issue_filter = IssueFilter(date_from=start, date_to=end, include_undated=True)
    return await run_with_timeout(source, issue_filter, _compute, timeout, cache)
