"""
Pydantic models for the Adjudication Drift service.

Covers the whole analysis pipeline:
- IssueRecord / IssueFilter: normalized input events and source queries
- Cohort / CohortBuildResult: named buckets of issues
- Distribution and its share entries: per-cohort frequency tables
- DriftEntry / DriftReport: the comparison of two distributions
- Alert / Insight: templated, human-readable findings
- CohortSummary / PairwiseComparison / CohortAnalysis: the cohort query surface
- TopIssue / MonthlySeverityCount / TrendsOverview: the filtered trends overview

All models use Pydantic v2 syntax. Field names are the JSON contract of the
API responses.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

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
# Input Models
# =============================================================================


class IssueRecord(BaseModel):
    """
    A single normalized issue extracted from an adjudication document.

    Immutable once produced. ``occurred_at`` is nullable because upstream rows
    can lack a usable date; such records are rejected (and counted) when they
    are grouped by time rather than failing the whole analysis.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "id": "iss_0001",
                "taxonomy_code": "P1.MERIT.IMPACT",
                "severity": "high",
                "prong_affected": "P1",
                "occurred_at": "2025-03-14T00:00:00Z",
                "category": "Biotechnology",
                "outcome_type": "RFE",
                "source_document_id": "doc_42",
            }
        },
    )

    id: str = Field(..., min_length=1, description="Issue identifier")
    taxonomy_code: str = Field(..., min_length=1, description="Taxonomy classification code")
    severity: Severity = Field(..., description="Issue severity")
    prong_affected: Optional[Prong] = Field(default=None, description="Prong the issue maps to")
    occurred_at: Optional[datetime] = Field(
        default=None,
        description="Document date of the issue (UTC); null when unknown",
    )
    category: Optional[str] = Field(default=None, description="Category of interest, e.g. industry")
    outcome_type: Optional[OutcomeType] = Field(default=None, description="RFE, NOID or Denial")
    source_document_id: Optional[str] = Field(default=None, description="Originating document")
    visa_category: Optional[str] = Field(default=None, description="Visa category of the petition")
    service_center: Optional[str] = Field(default=None, description="Adjudicating service center")

    @field_validator("occurred_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class IssueFilter(BaseModel):
    """
    Query sent to an issue record source.

    ``date_from`` is inclusive and ``date_to`` exclusive. Undated records fail
    any date bound unless ``include_undated`` is set, which lets callers count
    them instead of losing them. Frozen so it can be used as a cache key.
    """
    model_config = ConfigDict(frozen=True)

    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    category: Optional[str] = None
    visa_category: Optional[str] = None
    service_center: Optional[str] = None
    outcome_type: Optional[OutcomeType] = None
    include_undated: bool = False

    @field_validator("date_from", "date_to")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def matches(self, record: IssueRecord) -> bool:
        """Return True when ``record`` satisfies every set criterion."""
        if self.date_from is not None or self.date_to is not None:
            if record.occurred_at is None:
                if not self.include_undated:
                    return False
            elif self.date_from is not None and record.occurred_at < self.date_from:
                return False
            elif self.date_to is not None and record.occurred_at >= self.date_to:
                return False
        if self.category is not None and record.category != self.category:
            return False
        if self.visa_category is not None and record.visa_category != self.visa_category:
            return False
        if self.service_center is not None and record.service_center != self.service_center:
            return False
        if self.outcome_type is not None and record.outcome_type != self.outcome_type:
            return False
        return True


# =============================================================================
# Cohort Models
# =============================================================================


class Cohort(BaseModel):
    """A named bucket of issues sharing a time period or category."""

    key: str = Field(..., description="Sortable cohort key, e.g. 2025-03 or 2025-Q1")
    label: str = Field(..., description="Display label, e.g. March 2025")
    short_label: str = Field(..., description="Compact label for charts")
    period_kind: PeriodKind
    year: Optional[int] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    quarter: Optional[int] = Field(default=None, ge=1, le=4)
    members: List[IssueRecord] = Field(default_factory=list)


class CohortBuildResult(BaseModel):
    """Output of the cohort builder: ordered cohorts plus the rejected tally."""

    cohorts: Dict[str, Cohort] = Field(default_factory=dict)
    rejected_count: int = Field(default=0, ge=0)

    def ordered(self) -> List[Cohort]:
        return [self.cohorts[key] for key in sorted(self.cohorts)]


# =============================================================================
# Distribution Models
# =============================================================================


class Share(BaseModel):
    """Count and percentage of a bucket within a cohort."""

    count: int = Field(default=0, ge=0)
    percentage: float = Field(default=0.0, ge=0.0, le=100.0)


class CodeShare(Share):
    """Share of one taxonomy code with its severity and prong breakdowns."""

    severity_breakdown: Dict[Severity, int] = Field(default_factory=dict)
    prong_breakdown: Dict[Prong, int] = Field(default_factory=dict)


class Distribution(BaseModel):
    """
    Frequency table of a cohort.

    ``by_severity`` always holds all four severities and ``by_prong`` all six
    prongs, with zero entries where nothing was observed. Every percentage is
    exactly 0 when ``total == 0``.
    """

    cohort_key: str
    total: int = Field(default=0, ge=0)
    by_code: Dict[str, CodeShare] = Field(default_factory=dict)
    by_severity: Dict[Severity, Share] = Field(default_factory=dict)
    by_prong: Dict[Prong, Share] = Field(default_factory=dict)


# =============================================================================
# Drift Models
# =============================================================================


class DriftEntry(BaseModel):
    """
    Change of one bucket's share between the baseline and recent periods.

    For prong and severity drifts ``code`` carries the prong or severity value
    and ``label`` its display name.
    """

    code: str
    label: Optional[str] = None
    recent_count: int = Field(default=0, ge=0)
    baseline_count: int = Field(default=0, ge=0)
    recent_pct: float = 0.0
    baseline_pct: float = 0.0
    absolute_change: float = Field(default=0.0, description="recent_pct - baseline_pct, in points")
    relative_change_pct: float = Field(default=0.0, description="Change relative to baseline_pct, in %")
    direction: Direction = Direction.STABLE
    significant: bool = False


class NewCode(BaseModel):
    """A code present in the recent period but absent from the baseline."""

    code: str
    count: int = Field(..., ge=1)
    percentage: float = 0.0
    severity_breakdown: Dict[Severity, int] = Field(default_factory=dict)
    prong_breakdown: Dict[Prong, int] = Field(default_factory=dict)
    material: bool = Field(
        default=False,
        description="True when the code occurred often enough to be a pattern",
    )


class DisappearedCode(BaseModel):
    """A code present in the baseline but absent from the recent period."""

    code: str
    previous_count: int = Field(..., ge=1)
    previous_percentage: float = 0.0


class PeriodInfo(BaseModel):
    """Description of one side of a comparison."""

    key: Optional[str] = None
    label: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    total_issues: int = 0
    unique_codes: int = 0


class Alert(BaseModel):
    """Templated alert derived from a drift report."""

    type: AlertType
    severity: AlertSeverity
    message: str
    recommendation: str
    code: Optional[str] = None
    prong: Optional[Prong] = None


class DriftSummary(BaseModel):
    """Headline status of a drift report."""

    status: DriftStatus
    status_label: str
    description: str
    significant_increases: int = 0
    significant_decreases: int = 0
    prong_shifts: int = 0
    new_codes: int = 0


class DriftReport(BaseModel):
    """
    Structured comparison of a recent distribution against a baseline.

    ``code_drifts`` is sorted by |relative change| desc, then |absolute
    change| desc, then code. ``new_codes`` and ``disappeared_codes`` are
    cross-sections of the same comparison and may repeat codes found in
    ``code_drifts``.
    """

    recent_period: PeriodInfo
    baseline_period: PeriodInfo
    code_drifts: List[DriftEntry] = Field(default_factory=list)
    prong_drifts: List[DriftEntry] = Field(default_factory=list)
    severity_drifts: List[DriftEntry] = Field(default_factory=list)
    new_codes: List[NewCode] = Field(default_factory=list)
    disappeared_codes: List[DisappearedCode] = Field(default_factory=list)
    overall_drift_score: int = Field(default=0, ge=0, le=100)
    alerts: List[Alert] = Field(default_factory=list)
    summary: Optional[DriftSummary] = None
    threshold_pct: float = 20.0
    absolute_pt_floor: float = 2.0
    rejected_count: int = Field(default=0, ge=0)


# =============================================================================
# Cohort Analysis Models
# =============================================================================


class TopCode(BaseModel):
    """Most frequent code of a cohort."""

    code: str
    count: int
    percentage: int = 0


class ProngShare(BaseModel):
    """Prong share of a cohort, rounded for display."""

    prong: Prong
    label: str
    count: int
    percentage: int = 0


class CohortStats(BaseModel):
    """Per-cohort statistics shown in the cohort table."""

    total: int = 0
    by_severity: Dict[Severity, int] = Field(default_factory=dict)
    by_prong: Dict[Prong, int] = Field(default_factory=dict)
    top_codes: List[TopCode] = Field(default_factory=list)
    severity_score: int = Field(default=0, ge=0, le=100, description="Weighted severity, 100 = all critical")


class CohortSummary(BaseModel):
    """Cohort without its members, plus statistics."""

    key: str
    label: str
    short_label: str
    period_kind: PeriodKind
    year: Optional[int] = None
    month: Optional[int] = None
    quarter: Optional[int] = None
    stats: CohortStats


class ProngChange(BaseModel):
    """Count-based change of one prong between consecutive cohorts."""

    previous: int
    current: int
    change_pct: int
    direction: Direction


class PairwiseComparison(BaseModel):
    """Comparison of cohort ``from_key`` (previous) against ``to_key`` (current)."""

    from_key: str
    to_key: str
    from_label: str
    to_label: str
    total_change_pct: int
    total_direction: Direction
    severity_score_change: int
    severity_direction: Direction
    prong_changes: Dict[Prong, ProngChange] = Field(default_factory=dict)
    drift: DriftReport


class Insight(BaseModel):
    """Templated period-over-period finding."""

    type: InsightType
    title: str
    text: str
    action: str
    cohort_key: Optional[str] = None


class CohortPeak(BaseModel):
    label: str
    value: int


class CohortOverview(BaseModel):
    """Headline numbers across all cohorts of an analysis."""

    total_issues: int = 0
    avg_per_cohort: int = 0
    cohorts_analyzed: int = 0
    peak_cohort: Optional[CohortPeak] = None
    highest_severity: Optional[CohortPeak] = None
    trend: Optional[Trend] = None
    trend_label: Optional[str] = None
    message: Optional[str] = None


class CohortAnalysis(BaseModel):
    """Response of the cohort query surface."""

    group_by: PeriodKind
    year: Optional[int] = None
    category: Optional[str] = None
    total_issues: int = 0
    rejected_count: int = 0
    cohorts: List[CohortSummary] = Field(default_factory=list)
    comparisons: List[PairwiseComparison] = Field(default_factory=list)
    insights: List[Insight] = Field(default_factory=list)
    top_codes_by_cohort: Dict[str, List[TopCode]] = Field(default_factory=dict)
    prong_distribution_by_cohort: Dict[str, List[ProngShare]] = Field(default_factory=dict)
    available_years: List[int] = Field(default_factory=list)
    available_categories: List[str] = Field(default_factory=list)
    summary: CohortOverview = Field(default_factory=CohortOverview)


# =============================================================================
# Trends Overview Models
# =============================================================================


class TopIssue(BaseModel):
    """A frequent taxonomy code with its breakdowns."""

    code: str
    count: int
    percentage: int = 0
    severity_breakdown: Dict[Severity, int] = Field(default_factory=dict)
    prong_breakdown: Dict[Prong, int] = Field(default_factory=dict)
    outcome_breakdown: Dict[OutcomeType, int] = Field(default_factory=dict)
    service_center_breakdown: Dict[str, int] = Field(default_factory=dict)


class MonthlySeverityCount(BaseModel):
    """Issue counts of one calendar month, split by severity."""

    month: str = Field(..., description="YYYY-MM")
    total: int = 0
    by_severity: Dict[Severity, int] = Field(default_factory=dict)


class SeverityShare(BaseModel):
    severity: Severity
    label: str
    count: int
    percentage: int = 0


class ServiceCenterShare(BaseModel):
    service_center: str
    count: int


class FilterOptions(BaseModel):
    """Distinct values available for the overview filters."""

    visa_categories: List[str] = Field(default_factory=list)
    service_centers: List[str] = Field(default_factory=list)
    outcome_types: List[OutcomeType] = Field(default_factory=lambda: list(OutcomeType))


class TrendsOverview(BaseModel):
    """
    Response of the trends overview.

    Distributions drop empty buckets and are ordered by count, most frequent
    first. ``documents_by_outcome`` counts distinct source documents.
    """

    period: str
    date_from: Optional[datetime] = None
    date_to: datetime
    filters: IssueFilter
    total_issues: int = 0
    total_documents: int = 0
    rejected_count: int = 0
    top_issues: List[TopIssue] = Field(default_factory=list)
    issues_by_month: List[MonthlySeverityCount] = Field(default_factory=list)
    prong_distribution: List[ProngShare] = Field(default_factory=list)
    severity_distribution: List[SeverityShare] = Field(default_factory=list)
    documents_by_outcome: Dict[OutcomeType, int] = Field(default_factory=dict)
    service_center_distribution: List[ServiceCenterShare] = Field(default_factory=list)
    filter_options: FilterOptions = Field(default_factory=FilterOptions)


class AnalysisTimeoutResponse(BaseModel):
    """Explicit body returned when an analysis exceeds its timeout."""

    status: str = "timed_out"
    detail: str
    timeout_seconds: float
