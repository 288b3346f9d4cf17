"""
Drift Detector Service

Compares a recent distribution against a baseline distribution and reports
which taxonomy codes, prongs and severities changed share.

Per bucket:
- absolute_change = recent_pct - baseline_pct (percentage points)
- relative_change = absolute_change / baseline_pct * 100 when the baseline is
  non-zero, 100 when the bucket is new, 0 when it is absent from both
- significant when |absolute_change| >= absolute_pt_floor
  OR |relative_change| >= threshold_pct

Overall drift score (0-100):
    min(5 * significant codes, 40)
  + min(10 * significant prongs, 30)
  + min(5 * new codes, 20)
  + min(mean |relative_change| over code drifts / 10, 10)

An empty recent window is not an error: the report is still complete, the
score is 0 and the summary status is ``no_data``.
"""

import logging
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from adjudication_drift.core.errors import InvalidConfiguration
from adjudication_drift.models import (
    STATUS_TEXT,
    Direction,
    DisappearedCode,
    Distribution,
    DriftEntry,
    DriftReport,
    DriftStatus,
    DriftSummary,
    NewCode,
    PeriodInfo,
    Prong,
    Severity,
    Share,
    prong_label,
    severity_label,
)
from adjudication_drift.services.distribution import round_half_up

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

DEFAULT_THRESHOLD_PCT: float = 20.0
DEFAULT_ABSOLUTE_PT_FLOOR: float = 2.0

# Minimum recent occurrences for a new code to count as a pattern
DEFAULT_MIN_NEW_CODE_COUNT: int = 2

# Relative change reported for buckets absent from the baseline
NEW_BUCKET_RELATIVE_CHANGE: float = 100.0

# Score components: (points per item, cap)
SCORE_CODE_WEIGHT: Tuple[int, int] = (5, 40)
SCORE_PRONG_WEIGHT: Tuple[int, int] = (10, 30)
SCORE_NEW_CODE_WEIGHT: Tuple[int, int] = (5, 20)
SCORE_MAGNITUDE_CAP: float = 10.0

# Status bands, checked from the top
STATUS_BANDS: Tuple[Tuple[int, DriftStatus], ...] = (
    (70, DriftStatus.HIGH_DRIFT),
    (40, DriftStatus.MODERATE_DRIFT),
    (20, DriftStatus.LOW_DRIFT),
)


# =============================================================================
# Validation
# =============================================================================


def validate_thresholds(threshold_pct: float, absolute_pt_floor: float) -> None:
    """
    Reject non-positive or non-finite significance thresholds.

    Raises:
        InvalidConfiguration: If either value is not a positive finite number.
    """
    if not np.isfinite(threshold_pct) or threshold_pct <= 0:
        raise InvalidConfiguration(
            f"threshold_pct must be a positive number, got {threshold_pct}",
            field="threshold_pct",
        )
    if not np.isfinite(absolute_pt_floor) or absolute_pt_floor <= 0:
        raise InvalidConfiguration(
            f"absolute_pt_floor must be a positive number, got {absolute_pt_floor}",
            field="absolute_pt_floor",
        )


# =============================================================================
# Per-Bucket Comparison
# =============================================================================


def relative_change(recent: float, baseline: float) -> float:
    """Change of ``recent`` relative to ``baseline``, in percent."""
    if baseline > 0:
        return (recent - baseline) / baseline * 100
    if recent > 0:
        return NEW_BUCKET_RELATIVE_CHANGE
    return 0.0


def direction_of(change: float) -> Direction:
    if change > 0:
        return Direction.UP
    if change < 0:
        return Direction.DOWN
    return Direction.STABLE


def _compare_shares(
    key: str,
    recent: Optional[Share],
    baseline: Optional[Share],
    threshold_pct: float,
    absolute_pt_floor: float,
    label: Optional[str] = None,
) -> DriftEntry:
    recent_pct = recent.percentage if recent is not None else 0.0
    baseline_pct = baseline.percentage if baseline is not None else 0.0
    absolute = recent_pct - baseline_pct
    relative = relative_change(recent_pct, baseline_pct)

    return DriftEntry(
        code=key,
        label=label,
        recent_count=recent.count if recent is not None else 0,
        baseline_count=baseline.count if baseline is not None else 0,
        recent_pct=recent_pct,
        baseline_pct=baseline_pct,
        absolute_change=absolute,
        relative_change_pct=relative,
        direction=direction_of(absolute),
        significant=abs(absolute) >= absolute_pt_floor or abs(relative) >= threshold_pct,
    )


def _drift_sort_key(entry: DriftEntry) -> Tuple[float, float, str]:
    return (-abs(entry.relative_change_pct), -abs(entry.absolute_change), entry.code)


def _compare_tables(
    recent: Mapping,
    baseline: Mapping,
    keys: Iterable,
    threshold_pct: float,
    absolute_pt_floor: float,
    labels: Optional[Dict] = None,
) -> List[DriftEntry]:
    entries = [
        _compare_shares(
            key.value if isinstance(key, Enum) else key,
            recent.get(key),
            baseline.get(key),
            threshold_pct,
            absolute_pt_floor,
            label=labels.get(key) if labels else None,
        )
        for key in keys
    ]
    return sorted(entries, key=_drift_sort_key)


# =============================================================================
# Score and Summary
# =============================================================================


def drift_score(
    code_drifts: List[DriftEntry],
    prong_drifts: List[DriftEntry],
    new_code_count: int,
) -> int:
    """Bounded overall drift score; see the module docstring for the formula."""
    significant_codes = sum(1 for entry in code_drifts if entry.significant)
    significant_prongs = sum(1 for entry in prong_drifts if entry.significant)

    magnitude = 0.0
    if code_drifts:
        magnitude = float(np.mean([abs(entry.relative_change_pct) for entry in code_drifts]))

    raw = (
        min(SCORE_CODE_WEIGHT[0] * significant_codes, SCORE_CODE_WEIGHT[1])
        + min(SCORE_PRONG_WEIGHT[0] * significant_prongs, SCORE_PRONG_WEIGHT[1])
        + min(SCORE_NEW_CODE_WEIGHT[0] * new_code_count, SCORE_NEW_CODE_WEIGHT[1])
        + min(magnitude / 10, SCORE_MAGNITUDE_CAP)
    )
    return int(np.clip(round_half_up(raw), 0, 100))


def drift_status(report: DriftReport) -> DriftStatus:
    if report.recent_period.total_issues == 0:
        return DriftStatus.NO_DATA
    for floor, status in STATUS_BANDS:
        if report.overall_drift_score >= floor:
            return status
    return DriftStatus.STABLE


def summarize_drift(report: DriftReport) -> DriftSummary:
    """
    Build the headline summary of a drift report.

    Returns:
        DriftSummary with the status band and significant-change counts.
    """
    status = drift_status(report)
    status_label, description = STATUS_TEXT[status]

    return DriftSummary(
        status=status,
        status_label=status_label,
        description=description,
        significant_increases=sum(
            1 for e in report.code_drifts if e.significant and e.direction is Direction.UP
        ),
        significant_decreases=sum(
            1 for e in report.code_drifts if e.significant and e.direction is Direction.DOWN
        ),
        prong_shifts=sum(1 for e in report.prong_drifts if e.significant),
        new_codes=len(report.new_codes),
    )


# =============================================================================
# Detector
# =============================================================================


def _period_info(distribution: Distribution, period: Optional[PeriodInfo]) -> PeriodInfo:
    counts = {"total_issues": distribution.total, "unique_codes": len(distribution.by_code)}
    if period is None:
        return PeriodInfo(key=distribution.cohort_key, label=distribution.cohort_key, **counts)
    return period.model_copy(update=counts)


def detect_drift(
    baseline: Distribution,
    recent: Distribution,
    threshold_pct: float = DEFAULT_THRESHOLD_PCT,
    absolute_pt_floor: float = DEFAULT_ABSOLUTE_PT_FLOOR,
    baseline_period: Optional[PeriodInfo] = None,
    recent_period: Optional[PeriodInfo] = None,
    min_new_code_count: int = DEFAULT_MIN_NEW_CODE_COUNT,
    rejected_count: int = 0,
) -> DriftReport:
    """
    Compare a recent distribution against a baseline.

    Args:
        baseline: Distribution of the earlier period.
        recent: Distribution of the later period.
        threshold_pct: Minimum |relative change| (%) to flag a bucket.
        absolute_pt_floor: Minimum |absolute change| (points) to flag a bucket.
        baseline_period: Optional description of the baseline period.
        recent_period: Optional description of the recent period.
        min_new_code_count: Recent count at which a new code is material.
        rejected_count: Malformed records dropped upstream, carried through.

    Returns:
        DriftReport with summary filled and alerts empty.

    Raises:
        InvalidConfiguration: If a threshold is not positive.
    """
    validate_thresholds(threshold_pct, absolute_pt_floor)

    codes = sorted(set(baseline.by_code) | set(recent.by_code))
    code_drifts = _compare_tables(recent.by_code, baseline.by_code, codes, threshold_pct, absolute_pt_floor)
    prong_drifts = _compare_tables(
        recent.by_prong, baseline.by_prong, list(Prong), threshold_pct, absolute_pt_floor,
        labels={prong: prong_label(prong) for prong in Prong},
    )
    severity_drifts = _compare_tables(
        recent.by_severity, baseline.by_severity, list(Severity), threshold_pct, absolute_pt_floor,
        labels={severity: severity_label(severity) for severity in Severity},
    )

    new_codes = sorted(
        (
            NewCode(
                code=code,
                count=share.count,
                percentage=share.percentage,
                severity_breakdown=share.severity_breakdown,
                prong_breakdown=share.prong_breakdown,
                material=share.count >= min_new_code_count,
            )
            for code, share in recent.by_code.items()
            if share.count > 0 and (code not in baseline.by_code or baseline.by_code[code].count == 0)
        ),
        key=lambda item: (-item.count, item.code),
    )
    disappeared_codes = sorted(
        (
            DisappearedCode(code=code, previous_count=share.count, previous_percentage=share.percentage)
            for code, share in baseline.by_code.items()
            if share.count > 0 and (code not in recent.by_code or recent.by_code[code].count == 0)
        ),
        key=lambda item: (-item.previous_count, item.code),
    )

    if recent.total == 0:
        score = 0
    else:
        score = drift_score(code_drifts, prong_drifts, len(new_codes))

    report = DriftReport(
        recent_period=_period_info(recent, recent_period),
        baseline_period=_period_info(baseline, baseline_period),
        code_drifts=code_drifts,
        prong_drifts=prong_drifts,
        severity_drifts=severity_drifts,
        new_codes=new_codes,
        disappeared_codes=disappeared_codes,
        overall_drift_score=score,
        threshold_pct=threshold_pct,
        absolute_pt_floor=absolute_pt_floor,
        rejected_count=rejected_count,
    )
    summary = summarize_drift(report)

    logger.debug(
        f"Drift {report.baseline_period.label} -> {report.recent_period.label}: "
        f"score={score}, status={summary.status.value}, codes={len(code_drifts)}"
    )
    return report.model_copy(update={"summary": summary})
