"""
Package initialization file for adjudication_drift models.

Re-exports the enumerations, label tables and Pydantic schemas so other
modules can import them from ``adjudication_drift.models`` directly.

Usage:
    from adjudication_drift.models import (
        IssueRecord,
        Severity,
        DriftReport,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from adjudication_drift.models.enums import (
    AlertSeverity,
    AlertType,
    Direction,
    DriftStatus,
    InsightType,
    OutcomeType,
    PeriodKind,
    Prong,
    Severity,
    Trend,
)

# =============================================================================
# Label Tables
# =============================================================================

from adjudication_drift.models.labels import (
    INSIGHT_ACTIONS,
    MONTH_NAMES,
    PRONG_LABELS,
    QUARTER_MONTHS,
    SEVERITY_LABELS,
    SEVERITY_WEIGHTS,
    STATUS_TEXT,
    TREND_LABELS,
    prong_label,
    severity_label,
)

# =============================================================================
# Schemas
# =============================================================================

from adjudication_drift.models.schemas import (
    # Input
    IssueRecord,
    IssueFilter,
    # Cohorts
    Cohort,
    CohortBuildResult,
    # Distributions
    Share,
    CodeShare,
    Distribution,
    # Drift
    DriftEntry,
    NewCode,
    DisappearedCode,
    PeriodInfo,
    Alert,
    DriftSummary,
    DriftReport,
    # Cohort analysis
    TopCode,
    ProngShare,
    CohortStats,
    CohortSummary,
    ProngChange,
    PairwiseComparison,
    Insight,
    CohortPeak,
    CohortOverview,
    CohortAnalysis,
    # Trends overview
    TopIssue,
    MonthlySeverityCount,
    SeverityShare,
    ServiceCenterShare,
    FilterOptions,
    TrendsOverview,
    AnalysisTimeoutResponse,
)


__all__ = [
    # Enums
    "AlertSeverity",
    "AlertType",
    "Direction",
    "DriftStatus",
    "InsightType",
    "OutcomeType",
    "PeriodKind",
    "Prong",
    "Severity",
    "Trend",
    # Labels
    "INSIGHT_ACTIONS",
    "MONTH_NAMES",
    "PRONG_LABELS",
    "QUARTER_MONTHS",
    "SEVERITY_LABELS",
    "SEVERITY_WEIGHTS",
    "STATUS_TEXT",
    "TREND_LABELS",
    "prong_label",
    "severity_label",
    # Schemas
    "IssueRecord",
    "IssueFilter",
    "Cohort",
    "CohortBuildResult",
    "Share",
    "CodeShare",
    "Distribution",
    "DriftEntry",
    "NewCode",
    "DisappearedCode",
    "PeriodInfo",
    "Alert",
    "DriftSummary",
    "DriftReport",
    "TopCode",
    "ProngShare",
    "CohortStats",
    "CohortSummary",
    "ProngChange",
    "PairwiseComparison",
    "Insight",
    "CohortPeak",
    "CohortOverview",
    "CohortAnalysis",
    "TopIssue",
    "MonthlySeverityCount",
    "SeverityShare",
    "ServiceCenterShare",
    "FilterOptions",
    "TrendsOverview",
    "AnalysisTimeoutResponse",
]
