"""
Step 2 — Dose event resolution.

Collect weighted evidence for one drug from every source, cluster evidence that
describes the same administration, and derive one DoseEvent per cluster.

Guarantees:
- if any evidence exists, at least one DoseEvent is returned;
- evidence within ±2 calendar days collapses into one event;
- an explicit diary/intake record always fixes the event day;
- confidence is always a band from score_to_confidence().
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from packages.shared.models import (
    SOURCE_PRIORITY,
    DoseConfidence,
    DoseEvent,
    DoseEvidence,
    EvidenceSource,
    ResolverInput,
)
from packages.shared.utils.date_keys import (
    DateKeyError,
    berlin_time_label_from_utc,
    diff_berlin_days,
    is_in_range,
    parse_utc_timestamp,
)

from apps.prophylaxis.lib.drug_registry import (
    find_drug_profile,
    name_matches_drug,
    text_contains_context,
    text_contains_drug,
)

logger = logging.getLogger(__name__)

# ── Score constants ──────────────────────────────────────────────────────

BASE_SCORES: dict[EvidenceSource, int] = {
    EvidenceSource.DIARY_MEDICATION_ENTRY: 100,
    EvidenceSource.REMINDER_COMPLETED: 85,
    EvidenceSource.DIARY_FREE_TEXT: 70,
    EvidenceSource.REMINDER_SCHEDULED: 50,
    EvidenceSource.INFERRED_FROM_PATTERN: 30,
}

MODIFIER_TIMESTAMP_PRESENT = 10
MODIFIER_COMPLETION_NEAR_SCHEDULE = 10
MODIFIER_COMPLETION_FAR_FROM_SCHEDULE = -15
MODIFIER_FREE_TEXT_NO_CONTEXT = -20
MODIFIER_SAME_DAY_ACTIVITY = 5

NEAR_SCHEDULE_DAYS = 1
FAR_FROM_SCHEDULE_DAYS = 3
CLUSTER_RADIUS_DAYS = 2

MIN_PLAUSIBLE_YEAR = 2000
MAX_FUTURE_SKEW = timedelta(days=1)

_CONFIDENCE_BANDS: list[tuple[int, DoseConfidence]] = [
    (95, DoseConfidence.CERTAIN),
    (85, DoseConfidence.HIGH),
    (75, DoseConfidence.GOOD),
    (60, DoseConfidence.MODERATE),
    (50, DoseConfidence.WEAK),
]


def score_to_confidence(score: int) -> DoseConfidence:
    for floor, band in _CONFIDENCE_BANDS:
        if score >= floor:
            return band
    return DoseConfidence.MINIMAL


def is_valid_timestamp(ts: str | None, now_utc: datetime) -> bool:
    """Parsable, not a placeholder epoch value and not far in the future."""
    if not ts:
        return False
    try:
        parsed = parse_utc_timestamp(ts)
    except DateKeyError:
        return False
    if parsed.year < MIN_PLAUSIBLE_YEAR:
        return False
    reference = parse_utc_timestamp(now_utc)
    return parsed <= reference + MAX_FUTURE_SKEW


def _mentions_drug(names: list[str], drug_names: list[str]) -> bool:
    return any(name_matches_drug(n, drug_names) for n in names)


# ── Evidence collection ──────────────────────────────────────────────────


def collect_evidences(input: ResolverInput) -> list[DoseEvidence]:
    start = input.time_range_start_berlin
    end = input.time_range_end_berlin
    now_utc = input.now_utc
    drug_names = [n.lower() for n in input.drug_names if n and n.strip()]
    profile = find_drug_profile(input.drug)
    context_keywords = profile.context_keywords if profile else ()

    evidences: list[DoseEvidence] = []
    diary_activity_days = {e.date_key_berlin for e in input.diary_entries}

    # Explicit diary medication entries
    for entry in input.diary_entries:
        if not is_in_range(entry.date_key_berlin, start, end):
            continue
        if not _mentions_drug(entry.medication_names, drug_names):
            continue
        score = BASE_SCORES[EvidenceSource.DIARY_MEDICATION_ENTRY]
        if is_valid_timestamp(entry.timestamp_utc, now_utc):
            score += MODIFIER_TIMESTAMP_PRESENT
        evidences.append(DoseEvidence(
            source=EvidenceSource.DIARY_MEDICATION_ENTRY,
            raw_id=str(entry.entry_id),
            timestamp_utc=entry.timestamp_utc,
            date_key_berlin=entry.date_key_berlin,
            score=score,
        ))

    # Explicit intake records rank with diary entries
    for intake in input.medication_intakes:
        if not is_in_range(intake.date_key_berlin, start, end):
            continue
        if not name_matches_drug(intake.medication_name, drug_names):
            continue
        score = BASE_SCORES[EvidenceSource.DIARY_MEDICATION_ENTRY]
        if is_valid_timestamp(intake.timestamp_utc, now_utc):
            score += MODIFIER_TIMESTAMP_PRESENT
        evidences.append(DoseEvidence(
            source=EvidenceSource.DIARY_MEDICATION_ENTRY,
            raw_id=intake.id,
            timestamp_utc=intake.timestamp_utc,
            date_key_berlin=intake.date_key_berlin,
            score=score,
        ))

    reminders_by_id = {r.id: r for r in input.reminders}

    def _reminder_is_for_drug(reminder) -> bool:
        return text_contains_drug(reminder.title, drug_names) or _mentions_drug(reminder.medications, drug_names)

    # Completed reminders
    for completion in input.reminder_completions:
        if not is_in_range(completion.completed_date_key_berlin, start, end):
            continue
        reminder = reminders_by_id.get(completion.reminder_id)
        if reminder is None or not _reminder_is_for_drug(reminder):
            continue
        score = BASE_SCORES[EvidenceSource.REMINDER_COMPLETED]
        if is_valid_timestamp(completion.completed_timestamp_utc, now_utc):
            score += MODIFIER_TIMESTAMP_PRESENT
        if reminder.scheduled_date_key_berlin:
            days_off = abs(diff_berlin_days(reminder.scheduled_date_key_berlin, completion.completed_date_key_berlin))
            if days_off <= NEAR_SCHEDULE_DAYS:
                score += MODIFIER_COMPLETION_NEAR_SCHEDULE
            elif days_off > FAR_FROM_SCHEDULE_DAYS:
                score += MODIFIER_COMPLETION_FAR_FROM_SCHEDULE
        if completion.completed_date_key_berlin in diary_activity_days:
            score += MODIFIER_SAME_DAY_ACTIVITY
        evidences.append(DoseEvidence(
            source=EvidenceSource.REMINDER_COMPLETED,
            raw_id=completion.reminder_id,
            timestamp_utc=completion.completed_timestamp_utc,
            date_key_berlin=completion.completed_date_key_berlin,
            score=score,
        ))

    # Free-text mentions in diary notes
    for entry in input.diary_entries:
        if not is_in_range(entry.date_key_berlin, start, end):
            continue
        if not entry.notes or not text_contains_drug(entry.notes, drug_names):
            continue
        already_explicit = any(
            e.source == EvidenceSource.DIARY_MEDICATION_ENTRY and e.date_key_berlin == entry.date_key_berlin
            for e in evidences
        )
        if already_explicit:
            continue
        score = BASE_SCORES[EvidenceSource.DIARY_FREE_TEXT]
        if not text_contains_context(entry.notes, context_keywords):
            score += MODIFIER_FREE_TEXT_NO_CONTEXT
        if is_valid_timestamp(entry.timestamp_utc, now_utc):
            score += MODIFIER_TIMESTAMP_PRESENT
        evidences.append(DoseEvidence(
            source=EvidenceSource.DIARY_FREE_TEXT,
            raw_id=str(entry.entry_id),
            timestamp_utc=entry.timestamp_utc,
            date_key_berlin=entry.date_key_berlin,
            score=score,
            notes="Free text match in notes",
        ))

    # Scheduled reminders without any completion
    completed_ids = {c.reminder_id for c in input.reminder_completions}
    for reminder in input.reminders:
        if not is_in_range(reminder.scheduled_date_key_berlin, start, end):
            continue
        if not _reminder_is_for_drug(reminder):
            continue
        if reminder.id in completed_ids:
            continue
        score = BASE_SCORES[EvidenceSource.REMINDER_SCHEDULED]
        if is_valid_timestamp(reminder.scheduled_timestamp_utc, now_utc):
            score += MODIFIER_TIMESTAMP_PRESENT
        evidences.append(DoseEvidence(
            source=EvidenceSource.REMINDER_SCHEDULED,
            raw_id=reminder.id,
            timestamp_utc=reminder.scheduled_timestamp_utc,
            date_key_berlin=reminder.scheduled_date_key_berlin,
            score=score,
            notes="Scheduled only, not confirmed",
        ))

    return evidences


# ── Clustering ───────────────────────────────────────────────────────────


def cluster_evidences(evidences: list[DoseEvidence]) -> list[list[DoseEvidence]]:
    """
    Greedy single pass over evidence sorted by (day, -score).
    Each unclustered evidence seeds a cluster and absorbs every later
    unclustered evidence within CLUSTER_RADIUS_DAYS of the seed.
    """
    if not evidences:
        return []

    ordered = sorted(evidences, key=lambda e: (e.date_key_berlin, -e.score))
    used = [False] * len(ordered)
    clusters: list[list[DoseEvidence]] = []

    for i, seed in enumerate(ordered):
        if used[i]:
            continue
        used[i] = True
        cluster = [seed]
        for j in range(i + 1, len(ordered)):
            if used[j]:
                continue
            if abs(diff_berlin_days(seed.date_key_berlin, ordered[j].date_key_berlin)) <= CLUSTER_RADIUS_DAYS:
                cluster.append(ordered[j])
                used[j] = True
        clusters.append(cluster)

    return clusters


def _canonical_date_key(cluster: list[DoseEvidence]) -> str:
    for e in cluster:
        if e.source == EvidenceSource.DIARY_MEDICATION_ENTRY:
            return e.date_key_berlin
    best = cluster[0]
    for e in cluster[1:]:
        if e.score > best.score:
            best = e
    return best.date_key_berlin


def _primary_evidence(cluster: list[DoseEvidence]) -> DoseEvidence:
    best = cluster[0]
    for e in cluster[1:]:
        if e.score > best.score:
            best = e
        elif e.score == best.score and SOURCE_PRIORITY[e.source] < SOURCE_PRIORITY[best.source]:
            best = e
    return best


def _time_label(cluster: list[DoseEvidence], now_utc: datetime) -> str | None:
    for e in cluster:
        if is_valid_timestamp(e.timestamp_utc, now_utc):
            return berlin_time_label_from_utc(e.timestamp_utc)
    return None


# ── Resolver ─────────────────────────────────────────────────────────────


def resolve_dose_events(input: ResolverInput) -> list[DoseEvent]:
    """Resolve date-ordered DoseEvents for input.drug. No evidence -> []."""
    evidences = collect_evidences(input)
    if not evidences:
        logger.debug(f"[{input.drug.value}] No dose evidence in range")
        return []

    for e in evidences:
        logger.debug(f"[{input.drug.value}] Evidence {e.source.value} {e.date_key_berlin} score={e.score}")

    clusters = cluster_evidences(evidences)

    if not clusters:
        best = _primary_evidence(evidences)
        logger.warning(f"[{input.drug.value}] Clustering produced no clusters; falling back to best evidence")
        return [DoseEvent(
            drug=input.drug,
            date_key_berlin=best.date_key_berlin,
            time_label_berlin=_time_label([best], input.now_utc),
            confidence=score_to_confidence(best.score),
            primary_source=best.source,
            evidences=[best],
        )]

    events = [
        DoseEvent(
            drug=input.drug,
            date_key_berlin=_canonical_date_key(cluster),
            time_label_berlin=_time_label(cluster, input.now_utc),
            confidence=score_to_confidence(max(e.score for e in cluster)),
            primary_source=_primary_evidence(cluster).source,
            evidences=cluster,
        )
        for cluster in clusters
    ]
    events.sort(key=lambda ev: ev.date_key_berlin)

    logger.info(f"[{input.drug.value}] Resolved {len(events)} dose events from {len(evidences)} evidences")
    return events
