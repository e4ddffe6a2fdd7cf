"""
Step 4 — Pre/post window analysis.
For every DoseEvent compare the days immediately before and after the dose day
(dose day itself excluded) and aggregate the deltas across events.

Rates divide by documented days, never by the nominal window length, so sparse
logging is not read as "no headache".
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from statistics import median

from packages.shared.models import (
    AggregateDelta,
    DayFeature,
    DoseComparison,
    DoseDelta,
    DoseEvent,
    EvidenceSummary,
    ProphylaxisAnalysis,
    ProphylaxisDrug,
    WindowConfig,
    WindowStats,
)
from packages.shared.utils.date_keys import add_berlin_days, iter_date_keys

from apps.prophylaxis.steps.step03_day_features import SEVERE_PAIN_THRESHOLD

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_CONFIG = WindowConfig()


def round_half_up(value: float, places: int) -> float:
    """Halves round toward +inf, for negative deltas too."""
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def compute_window_stats(
    day_features: dict[str, DayFeature],
    start_date_key: str,
    end_date_key: str,
    window_days: int,
) -> WindowStats:
    documented = [
        f for f in (day_features.get(k) for k in iter_date_keys(start_date_key, end_date_key))
        if f is not None and f.documented
    ]
    documented_days = len(documented)
    headache_days = sum(1 for f in documented if f.had_headache)
    acute_med_days = sum(1 for f in documented if f.acute_med_taken)
    acute_med_count_sum = sum(f.acute_med_count for f in documented)
    severe_days = sum(1 for f in documented if f.pain_max is not None and f.pain_max >= SEVERE_PAIN_THRESHOLD)

    # Intensity only over days with pain; pain-free days lower the rate, not the intensity.
    pains = [f.pain_max for f in documented if f.pain_max is not None and f.pain_max > 0]
    intensity_mean = round_half_up(sum(pains) / len(pains), 1) if pains else None
    intensity_median = round_half_up(median(pains), 1) if pains else None
    intensity_max = max(pains) if pains else None

    return WindowStats(
        window_days=window_days,
        documented_days=documented_days,
        coverage=round_half_up(_safe_ratio(documented_days, window_days), 2),
        headache_days=headache_days,
        headache_rate=round_half_up(_safe_ratio(headache_days, documented_days), 2),
        intensity_mean=intensity_mean,
        intensity_median=intensity_median,
        intensity_max=intensity_max,
        acute_med_days=acute_med_days,
        acute_med_rate=round_half_up(_safe_ratio(acute_med_days, documented_days), 2),
        acute_med_count_sum=acute_med_count_sum,
        severe_days=severe_days,
    )


def compare_dose_event(
    dose_event: DoseEvent,
    day_features: dict[str, DayFeature],
    config: WindowConfig = DEFAULT_WINDOW_CONFIG,
) -> DoseComparison:
    day = dose_event.date_key_berlin
    pre = compute_window_stats(
        day_features,
        add_berlin_days(day, -config.pre_window_days),
        add_berlin_days(day, -1),
        config.pre_window_days,
    )
    post = compute_window_stats(
        day_features,
        add_berlin_days(day, 1),
        add_berlin_days(day, config.post_window_days),
        config.post_window_days,
    )

    intensity_delta = None
    if pre.intensity_mean is not None and post.intensity_mean is not None:
        intensity_delta = round_half_up(post.intensity_mean - pre.intensity_mean, 1)

    return DoseComparison(
        dose_event=dose_event,
        pre=pre,
        post=post,
        delta=DoseDelta(
            headache_rate=round_half_up(post.headache_rate - pre.headache_rate, 2),
            intensity_mean=intensity_delta,
            acute_med_rate=round_half_up(post.acute_med_rate - pre.acute_med_rate, 2),
        ),
    )


def _mean_or_none(values: list[float], places: int) -> float | None:
    if not values:
        return None
    return round_half_up(sum(values) / len(values), places)


def aggregate_comparisons(comparisons: list[DoseComparison]) -> AggregateDelta | None:
    if not comparisons:
        return None
    return AggregateDelta(
        avg_delta_headache_rate=_mean_or_none([c.delta.headache_rate for c in comparisons], 2),
        avg_delta_intensity_mean=_mean_or_none(
            [c.delta.intensity_mean for c in comparisons if c.delta.intensity_mean is not None], 1
        ),
        avg_delta_acute_med_rate=_mean_or_none([c.delta.acute_med_rate for c in comparisons], 2),
    )


def summarize_evidence(dose_events: list[DoseEvent]) -> EvidenceSummary:
    if not dose_events:
        return EvidenceSummary()
    confidences = [de.confidence for de in dose_events]
    distribution = Counter(de.primary_source for de in dose_events)
    return EvidenceSummary(
        count_dose_events=len(dose_events),
        primary_sources_distribution=dict(distribution),
        best_confidence=max(confidences, key=lambda c: c.value),
        worst_confidence=min(confidences, key=lambda c: c.value),
    )


def compute_prophylaxis_analysis(
    drug: ProphylaxisDrug,
    dose_events: list[DoseEvent],
    day_features: dict[str, DayFeature],
    config: WindowConfig = DEFAULT_WINDOW_CONFIG,
) -> ProphylaxisAnalysis:
    comparisons = [compare_dose_event(de, day_features, config) for de in dose_events]
    analysis = ProphylaxisAnalysis(
        drug=drug,
        dose_events=dose_events,
        comparisons=comparisons,
        aggregate=aggregate_comparisons(comparisons),
        evidence_summary=summarize_evidence(dose_events),
    )
    logger.info(
        f"[{drug.value}] Analysis: {len(dose_events)} dose events, "
        f"{len(comparisons)} comparisons, documented days={len(day_features)}"
    )
    return analysis
