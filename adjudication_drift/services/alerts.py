"""
Alert Generator Service

Derives templated alerts from a drift report. Rules run in a fixed order and
their alerts are concatenated, then stable-sorted so every ``high`` alert
precedes every ``medium`` one:

1. Up to 5 code drifts going up, significant, with relative change at or
   above the threshold (high at 50% or more)
2. Every significant prong drift going up (high at 30% or more)
3. Critical severity share up by 5 points or more (one high alert)
4. Three or more new codes (one medium alert)
"""

import logging
from typing import List, Optional

from adjudication_drift.models import (
    Alert,
    AlertSeverity,
    AlertType,
    Direction,
    DriftReport,
    Prong,
    Severity,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MAX_CODE_ALERTS: int = 5
CODE_HIGH_RELATIVE_CHANGE: float = 50.0
PRONG_HIGH_RELATIVE_CHANGE: float = 30.0
CRITICAL_ABSOLUTE_CHANGE: float = 5.0
NEW_PATTERN_ALERT_MIN: int = 3

_SEVERITY_RANK = {AlertSeverity.HIGH: 0, AlertSeverity.MEDIUM: 1}

RECOMMENDATIONS = {
    AlertType.INCREASE: (
        "The adjudicator may be placing more emphasis on this issue. "
        "Reinforce the related evidence."
    ),
    AlertType.SEVERITY_INCREASE: (
        "Adjudication may be getting stricter. Review petitions carefully before filing."
    ),
    AlertType.NEW_PATTERNS: (
        "Possible new criteria or emphasis. Investigate these patterns."
    ),
}


def _fmt(value: float) -> str:
    return f"{value:.1f}"


# =============================================================================
# Generator
# =============================================================================


def generate_alerts(report: DriftReport, threshold_pct: Optional[float] = None) -> List[Alert]:
    """
    Build the ranked alert list of a drift report.

    Args:
        report: Drift report to inspect.
        threshold_pct: Relative change required for code alerts; defaults to
            the threshold the report was computed with.

    Returns:
        Alerts with high severity first, rule order preserved within a severity.
    """
    threshold = report.threshold_pct if threshold_pct is None else threshold_pct
    alerts: List[Alert] = []

    rising_codes = [
        entry for entry in report.code_drifts
        if entry.direction is Direction.UP
        and entry.significant
        and entry.relative_change_pct >= threshold
    ]
    for entry in rising_codes[:MAX_CODE_ALERTS]:
        alerts.append(Alert(
            type=AlertType.INCREASE,
            severity=(
                AlertSeverity.HIGH if entry.relative_change_pct >= CODE_HIGH_RELATIVE_CHANGE
                else AlertSeverity.MEDIUM
            ),
            code=entry.code,
            message=(
                f'"{entry.code}" increased {entry.relative_change_pct:.0f}% '
                f"(from {_fmt(entry.baseline_pct)}% to {_fmt(entry.recent_pct)}%)"
            ),
            recommendation=RECOMMENDATIONS[AlertType.INCREASE],
        ))

    for entry in report.prong_drifts:
        if not (entry.significant and entry.direction is Direction.UP):
            continue
        alerts.append(Alert(
            type=AlertType.PRONG_SHIFT,
            severity=(
                AlertSeverity.HIGH if entry.relative_change_pct >= PRONG_HIGH_RELATIVE_CHANGE
                else AlertSeverity.MEDIUM
            ),
            prong=Prong(entry.code),
            message=f"{entry.label or entry.code} under more scrutiny: +{_fmt(entry.absolute_change)} points",
            recommendation=f"Strengthen the {entry.code} argumentation in future petitions.",
        ))

    critical = next((e for e in report.severity_drifts if e.code == Severity.CRITICAL.value), None)
    if (
        critical is not None
        and critical.direction is Direction.UP
        and critical.absolute_change >= CRITICAL_ABSOLUTE_CHANGE
    ):
        alerts.append(Alert(
            type=AlertType.SEVERITY_INCREASE,
            severity=AlertSeverity.HIGH,
            message=(
                f"Critical issues increased from {_fmt(critical.baseline_pct)}% "
                f"to {_fmt(critical.recent_pct)}%"
            ),
            recommendation=RECOMMENDATIONS[AlertType.SEVERITY_INCREASE],
        ))

    if len(report.new_codes) >= NEW_PATTERN_ALERT_MIN:
        alerts.append(Alert(
            type=AlertType.NEW_PATTERNS,
            severity=AlertSeverity.MEDIUM,
            message=f"{len(report.new_codes)} new issue types detected that did not appear before",
            recommendation=RECOMMENDATIONS[AlertType.NEW_PATTERNS],
        ))

    # sorted() is stable
    return sorted(alerts, key=lambda alert: _SEVERITY_RANK[alert.severity])


def with_alerts(report: DriftReport, threshold_pct: Optional[float] = None) -> DriftReport:
    """Return a copy of ``report`` with its alerts filled in."""
    alerts = generate_alerts(report, threshold_pct)
    if alerts:
        logger.info(f"Generated {len(alerts)} drift alerts")
    return report.model_copy(update={"alerts": alerts})
