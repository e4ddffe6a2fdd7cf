from __future__ import annotations

from packages.shared.models import ClaimStrength, DoseComparison, DoseConfidence

MIN_COVERAGE_FOR_CLAIM = 0.5
MIN_CONFIDENCE_FOR_CLAIM = 0.6
MIN_RELEVANT_DELTA = 0.05
UNCONFIRMED_CONFIDENCE_CEILING = 0.6


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def min_window_coverage(comparisons: list[DoseComparison]) -> float:
    """Lower of the average pre-window and average post-window coverage."""
    if not comparisons:
        return 0.0
    return min(
        _avg([c.pre.coverage for c in comparisons]),
        _avg([c.post.coverage for c in comparisons]),
    )


def has_unconfirmed_events(worst_confidence: DoseConfidence | None) -> bool:
    return worst_confidence is not None and worst_confidence.value <= UNCONFIRMED_CONFIDENCE_CEILING


def has_limited_coverage(comparisons: list[DoseComparison]) -> bool:
    return bool(comparisons) and min_window_coverage(comparisons) < MIN_COVERAGE_FOR_CLAIM


def assess_headache_claim(
    delta: float | None,
    coverage: float,
    best_confidence: DoseConfidence | None,
) -> ClaimStrength:
    """
    Decide how strongly a headache-rate change may be stated.

    Direction is only claimed with enough coverage and confidence and a change
    beyond MIN_RELEVANT_DELTA. Below those thresholds only a possible
    improvement is mentioned; a weak worsening signal is never reported.
    """
    if delta is None:
        return ClaimStrength.WITHHELD
    improved = delta < -MIN_RELEVANT_DELTA
    worsened = delta > MIN_RELEVANT_DELTA
    trusted = (
        coverage >= MIN_COVERAGE_FOR_CLAIM
        and best_confidence is not None
        and best_confidence.value >= MIN_CONFIDENCE_FOR_CLAIM
    )
    if trusted:
        if improved:
            return ClaimStrength.IMPROVED
        if worsened:
            return ClaimStrength.WORSENED
        return ClaimStrength.NO_CLEAR_CHANGE
    if improved:
        return ClaimStrength.POSSIBLE_IMPROVEMENT
    return ClaimStrength.WITHHELD
