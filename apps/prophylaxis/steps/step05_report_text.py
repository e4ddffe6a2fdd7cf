"""
Step 5 — Report text.
Turn a ProphylaxisAnalysis into hedged report text and a tabular payload.

Rules:
- no dose events: a single "no documented doses" paragraph, nothing else;
- documentation basis (sources, confidence range) is always stated first;
- only computed numbers are quoted;
- directional claims pass through claim_guard.assess_headache_claim().
"""
from __future__ import annotations

from packages.shared.models import (
    SOURCE_PRIORITY,
    ClaimStrength,
    DoseComparison,
    DoseConfidence,
    EvidenceSource,
    InjectionRow,
    InjectionSummaryLine,
    PrePostRow,
    ProphylaxisAnalysis,
    ProphylaxisReportData,
    ProphylaxisTextBlock,
    WindowStats,
)
from packages.shared.utils.date_keys import parse_date_key

from apps.prophylaxis.lib.claim_guard import (
    assess_headache_claim,
    has_limited_coverage,
    has_unconfirmed_events,
    min_window_coverage,
)
from apps.prophylaxis.lib.drug_registry import display_name_for

DEFAULT_MAX_INJECTION_SUMMARIES = 3

SOURCE_LABELS: dict[EvidenceSource, str] = {
    EvidenceSource.DIARY_MEDICATION_ENTRY: "diary",
    EvidenceSource.REMINDER_COMPLETED: "reminder (completed)",
    EvidenceSource.DIARY_FREE_TEXT: "free-text note",
    EvidenceSource.REMINDER_SCHEDULED: "reminder (scheduled)",
    EvidenceSource.INFERRED_FROM_PATTERN: "pattern",
}

UNCONFIRMED_WARNING = "At least one injection date was estimated from a scheduled reminder (not confirmed)."
LIMITED_COVERAGE_WARNING = "Limited evidential strength: documentation in the pre/post windows is below 50%."
UNCONFIRMED_NOTE = "Date estimated from reminder (not confirmed)."
LIMITED_COVERAGE_NOTE = "Limited evidential strength: documentation below 50%."
EMPTY = "–"


def confidence_label(confidence: DoseConfidence | float) -> str:
    value = confidence.value if isinstance(confidence, DoseConfidence) else confidence
    if value >= 0.9:
        return "high"
    if value >= 0.6:
        return "medium"
    return "low"


def pct(rate: float) -> str:
    return f"{int(rate * 100 + 0.5)}%" if rate >= 0 else f"-{int(-rate * 100 + 0.5)}%"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_date_key(date_key: str) -> str:
    y, m, d = parse_date_key(date_key)
    return f"{d:02d}.{m:02d}.{y:04d}"


def format_window_summary(stats: WindowStats) -> str:
    text = (
        f"{stats.headache_days}/{stats.documented_days} documented days with headache "
        f"({pct(stats.headache_rate)})"
    )
    if stats.intensity_median is not None:
        text += f", median {stats.intensity_median:g}"
    return f"{text}. Documented: {stats.documented_days}/{stats.window_days}"


def _source_distribution_text(distribution: dict[EvidenceSource, int]) -> str:
    parts = [
        f"{SOURCE_LABELS[source]} ({count}×)"
        for source, count in sorted(distribution.items(), key=lambda kv: SOURCE_PRIORITY[kv[0]])
        if count > 0
    ]
    return ", ".join(parts)


def _confidence_range_text(best: DoseConfidence, worst: DoseConfidence) -> str:
    low, high = confidence_label(worst), confidence_label(best)
    return high if low == high else f"{low}–{high}"


def _headache_claim_paragraph(
    strength: ClaimStrength,
    delta: float,
    coverage: float,
    comparisons: int,
    drug_label: str,
) -> str | None:
    if strength == ClaimStrength.IMPROVED:
        return (
            f"Indication of improvement after {drug_label}: the headache rate decreased by "
            f"{pct(abs(delta))} on average (based on {_plural(comparisons, 'injection')})."
        )
    if strength == ClaimStrength.WORSENED:
        return (
            f"Tendency towards more headache after {drug_label}: the headache rate increased by "
            f"{pct(abs(delta))} on average (based on {_plural(comparisons, 'injection')})."
        )
    if strength == ClaimStrength.NO_CLEAR_CHANGE:
        return f"No clear change in headache rate after {drug_label}."
    if strength == ClaimStrength.POSSIBLE_IMPROVEMENT:
        return (
            f"Possible indication of improvement after {drug_label}, "
            f"but of limited evidential strength (documentation: {pct(coverage)})."
        )
    return None


def generate_prophylaxis_text_block(
    analysis: ProphylaxisAnalysis,
    drug_label: str | None = None,
    max_injection_summaries: int = DEFAULT_MAX_INJECTION_SUMMARIES,
) -> ProphylaxisTextBlock:
    label = drug_label or display_name_for(analysis.drug)
    title = f"Prophylaxis ({label})"
    summary = analysis.evidence_summary

    if summary.count_dose_events == 0:
        return ProphylaxisTextBlock(
            title=title,
            paragraphs=[f"No documented {label} doses in the selected period."],
        )

    paragraphs = [
        f"{_plural(summary.count_dose_events, 'injection')} identified. "
        f"Source: {_source_distribution_text(summary.primary_sources_distribution)}. "
        f"Confidence: {_confidence_range_text(summary.best_confidence, summary.worst_confidence)}."
    ]
    warnings: list[str] = []

    if has_unconfirmed_events(summary.worst_confidence):
        warnings.append(UNCONFIRMED_WARNING)

    comparisons = analysis.comparisons
    if analysis.aggregate is not None and comparisons:
        coverage = min_window_coverage(comparisons)
        if has_limited_coverage(comparisons):
            warnings.append(LIMITED_COVERAGE_WARNING)
        delta = analysis.aggregate.avg_delta_headache_rate
        strength = assess_headache_claim(delta, coverage, summary.best_confidence)
        claim = _headache_claim_paragraph(strength, delta or 0.0, coverage, len(comparisons), label)
        if claim:
            paragraphs.append(claim)

    latest = comparisons[-max_injection_summaries:] if max_injection_summaries > 0 else []
    injection_summaries = [
        InjectionSummaryLine(
            date_key=c.dose_event.date_key_berlin,
            source_label=SOURCE_LABELS[c.dose_event.primary_source],
            confidence_label=confidence_label(c.dose_event.confidence),
            pre_summary=format_window_summary(c.pre),
            post_summary=format_window_summary(c.post),
        )
        for c in latest
    ]

    return ProphylaxisTextBlock(
        title=title,
        paragraphs=paragraphs,
        warnings=warnings,
        injection_summaries=injection_summaries,
    )


# ── Tabular payload ──────────────────────────────────────────────────────


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _average_windows(windows: list[WindowStats]) -> dict[str, float | None]:
    medians = [w.intensity_median for w in windows if w.intensity_median is not None]
    return {
        "headache_days": _avg([w.headache_days for w in windows]),
        "headache_rate": _avg([w.headache_rate for w in windows]),
        "intensity_median": _avg(medians) if medians else None,
        "acute_med_days": _avg([w.acute_med_days for w in windows]),
        "acute_med_rate": _avg([w.acute_med_rate for w in windows]),
        "documented_days": _avg([w.documented_days for w in windows]),
        "window_days": _avg([w.window_days for w in windows]),
    }


def _pre_post_rows(comparisons: list[DoseComparison]) -> list[PrePostRow]:
    pre = _average_windows([c.pre for c in comparisons])
    post = _average_windows([c.post for c in comparisons])

    def _median(w: dict) -> str:
        return f"{w['intensity_median']:.1f}" if w["intensity_median"] is not None else EMPTY

    return [
        PrePostRow(
            label="Headache days",
            pre=f"{pre['headache_days']:.1f} ({pct(pre['headache_rate'])})",
            post=f"{post['headache_days']:.1f} ({pct(post['headache_rate'])})",
        ),
        PrePostRow(label="Intensity (median)", pre=_median(pre), post=_median(post)),
        PrePostRow(
            label="Acute medication",
            pre=f"{pre['acute_med_days']:.1f} days ({pct(pre['acute_med_rate'])})",
            post=f"{post['acute_med_days']:.1f} days ({pct(post['acute_med_rate'])})",
        ),
        PrePostRow(
            label="Documented",
            pre=f"{pre['documented_days']:.0f}/{pre['window_days']:.0f} days",
            post=f"{post['documented_days']:.0f}/{post['window_days']:.0f} days",
        ),
    ]


def build_prophylaxis_report_data(
    analysis: ProphylaxisAnalysis,
    drug_label: str | None = None,
) -> ProphylaxisReportData | None:
    """Rows for the document renderer; None when there is nothing to report."""
    if analysis.evidence_summary.count_dose_events == 0:
        return None
    label = drug_label or display_name_for(analysis.drug)

    injection_rows = [
        InjectionRow(
            date=format_date_key(de.date_key_berlin),
            source=SOURCE_LABELS[de.primary_source],
            confidence=confidence_label(de.confidence),
        )
        for de in analysis.dose_events
    ]
    pre_post_rows = _pre_post_rows(analysis.comparisons) if analysis.comparisons else []

    notes: list[str] = []
    if has_unconfirmed_events(analysis.evidence_summary.worst_confidence):
        notes.append(UNCONFIRMED_NOTE)
    if has_limited_coverage(analysis.comparisons):
        notes.append(LIMITED_COVERAGE_NOTE)

    return ProphylaxisReportData(
        section_title=f"PROPHYLAXIS ({label.upper()})",
        injection_rows=injection_rows,
        pre_post_rows=pre_post_rows,
        notes=notes,
    )
