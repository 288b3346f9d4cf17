"""
Services package for the Adjudication Drift engine.

Pure engine stages, in data-flow order:
- cohort_builder: partition issue records into cohorts
- distribution: per-cohort frequency tables and cohort statistics
- drift_detector: compare two distributions, score and summarize the drift
- comparison: consecutive-cohort comparisons, insights and the overview
- alerts: templated alerts from a drift report
- overview: filtered trends overview of a reporting period

Orchestration:
- analysis: validation, snapshot fetch and caching, timeout, query surface
"""

from adjudication_drift.services.alerts import generate_alerts, with_alerts
from adjudication_drift.services.analysis import (
    Snapshot,
    SnapshotCache,
    analyze_cohort_pair,
    analyze_cohorts,
    analyze_windows,
    get_cohort_drift,
    get_cohorts,
    get_drift,
    get_overview,
    validate_windows,
)
from adjudication_drift.services.cohort_builder import (
    available_categories,
    available_years,
    build_cohorts,
    resolve_group_by,
)
from adjudication_drift.services.comparison import (
    compare_pair,
    compare_timeline,
    count_change_pct,
    summarize_cohorts,
)
from adjudication_drift.services.distribution import (
    compute_distribution,
    compute_distributions,
    distribution_from_records,
    safe_ratio,
    severity_score,
    summarize_cohort,
)
from adjudication_drift.services.drift_detector import (
    detect_drift,
    drift_score,
    relative_change,
    summarize_drift,
    validate_thresholds,
)
from adjudication_drift.services.overview import (
    resolve_outcome_type,
    resolve_period,
    summarize_overview,
)

__all__ = [
    # Engine
    "build_cohorts",
    "resolve_group_by",
    "available_years",
    "available_categories",
    "safe_ratio",
    "compute_distribution",
    "compute_distributions",
    "distribution_from_records",
    "severity_score",
    "summarize_cohort",
    "detect_drift",
    "drift_score",
    "relative_change",
    "summarize_drift",
    "validate_thresholds",
    "compare_pair",
    "compare_timeline",
    "count_change_pct",
    "summarize_cohorts",
    "generate_alerts",
    "with_alerts",
    "resolve_period",
    "resolve_outcome_type",
    "summarize_overview",
    # Orchestration
    "Snapshot",
    "SnapshotCache",
    "analyze_cohorts",
    "analyze_windows",
    "analyze_cohort_pair",
    "get_cohorts",
    "get_drift",
    "get_cohort_drift",
    "get_overview",
    "validate_windows",
]
