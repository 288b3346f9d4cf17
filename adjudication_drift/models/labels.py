"""
Static display tables.

These are read-only mappings (``MappingProxyType``) so no caller can mutate
them at runtime.
"""

from types import MappingProxyType
from typing import Mapping, Tuple

from adjudication_drift.models.enums import (
    DriftStatus,
    InsightType,
    Prong,
    Severity,
    Trend,
)


MONTH_NAMES: Tuple[str, ...] = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

QUARTER_MONTHS: Mapping[int, str] = MappingProxyType({
    1: "Jan-Mar",
    2: "Apr-Jun",
    3: "Jul-Sep",
    4: "Oct-Dec",
})

PRONG_LABELS: Mapping[Prong, str] = MappingProxyType({
    Prong.P1: "Prong 1 - Merit and National Importance",
    Prong.P2: "Prong 2 - Well Positioned",
    Prong.P3: "Prong 3 - Balance of Factors",
    Prong.EVIDENCE: "Evidence",
    Prong.COHERENCE: "Coherence",
    Prong.PROCEDURAL: "Procedural",
})

SEVERITY_LABELS: Mapping[Severity, str] = MappingProxyType({
    Severity.CRITICAL: "Critical",
    Severity.HIGH: "High",
    Severity.MEDIUM: "Medium",
    Severity.LOW: "Low",
})

# Weights for the 0-100 cohort severity score
SEVERITY_WEIGHTS: Mapping[Severity, int] = MappingProxyType({
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
})

STATUS_TEXT: Mapping[DriftStatus, Tuple[str, str]] = MappingProxyType({
    DriftStatus.NO_DATA: (
        "No Recent Data",
        "No issues were recorded in the recent window; drift cannot be assessed.",
    ),
    DriftStatus.STABLE: (
        "Stable",
        "No significant changes detected in adjudication criteria.",
    ),
    DriftStatus.LOW_DRIFT: (
        "Minor Changes",
        "Small variations in issue patterns. Situation is relatively stable.",
    ),
    DriftStatus.MODERATE_DRIFT: (
        "Moderate Changes",
        "Some changes detected in the criteria. Monitor the trend.",
    ),
    DriftStatus.HIGH_DRIFT: (
        "Major Changes",
        "Significant changes in RFE/NOID patterns. Review petition strategy.",
    ),
})

TREND_LABELS: Mapping[Trend, str] = MappingProxyType({
    Trend.INCREASING: "Increasing",
    Trend.DECREASING: "Decreasing",
    Trend.STABLE: "Stable",
})

INSIGHT_ACTIONS: Mapping[InsightType, str] = MappingProxyType({
    InsightType.SIGNIFICANT_INCREASE: (
        "Review recent petitions for common weaknesses and reinforce the affected evidence."
    ),
    InsightType.REDUCTION: (
        "Identify what changed in recent filings and keep applying those practices."
    ),
    InsightType.NEW_PATTERNS: (
        "Investigate the new issue types and add them to the pre-filing checklist."
    ),
    InsightType.PRONG_SCRUTINY: (
        "Strengthen the argumentation for this prong in upcoming petitions."
    ),
    InsightType.CRITICAL_INCREASE: (
        "Prioritize a review of critical issues before filing new petitions."
    ),
    InsightType.NO_DATA: (
        "Confirm that recent documents have been ingested before drawing conclusions."
    ),
})


def prong_label(prong: Prong) -> str:
    return PRONG_LABELS[prong]


def severity_label(severity: Severity) -> str:
    return SEVERITY_LABELS[severity]
