"""
Step 1 — Record mapping.
Convert raw diary / intake / reminder rows into normalized evidence-source records.
No scoring here: rows are only reshaped, and rows without a resolvable Berlin day are dropped.
"""
from __future__ import annotations

import logging

from packages.shared.models import (
    DiaryMedicationRecord,
    MapperInput,
    MedicationIntakeRecord,
    RawMedicationIntake,
    RawPainEntry,
    ReminderCompletionRecord,
    ReminderRecord,
    ResolverInput,
)
from packages.shared.utils.date_keys import berlin_date_key_from_utc, parse_date_key

from apps.prophylaxis.lib.drug_registry import drug_names_for

logger = logging.getLogger(__name__)

MEDICATION_REMINDER_TYPE = "medication"


def resolve_entry_date_key(entry: RawPainEntry) -> str | None:
    """selected_date is the authoritative calendar day; fall back to the creation instant."""
    if entry.selected_date:
        parse_date_key(entry.selected_date)
        return entry.selected_date
    if entry.timestamp_created:
        return berlin_date_key_from_utc(entry.timestamp_created)
    return None


def _resolve_intake_date_key(intake: RawMedicationIntake) -> str | None:
    if intake.taken_date:
        parse_date_key(intake.taken_date)
        return intake.taken_date
    if intake.taken_at:
        return berlin_date_key_from_utc(intake.taken_at)
    return None


def map_diary_entries(entries: list[RawPainEntry]) -> list[DiaryMedicationRecord]:
    records: list[DiaryMedicationRecord] = []
    for e in entries:
        meds = [m for m in (e.medications or []) if m and m.strip()]
        if not meds:
            continue
        date_key = resolve_entry_date_key(e)
        if not date_key:
            continue
        records.append(DiaryMedicationRecord(
            entry_id=e.id,
            date_key_berlin=date_key,
            timestamp_utc=e.timestamp_created or None,
            medication_names=meds,
            notes=e.notes or None,
        ))
    return records


def map_medication_intakes(intakes: list[RawMedicationIntake]) -> list[MedicationIntakeRecord]:
    records: list[MedicationIntakeRecord] = []
    for i in intakes:
        date_key = _resolve_intake_date_key(i)
        if not date_key:
            continue
        records.append(MedicationIntakeRecord(
            id=i.id,
            medication_name=i.medication_name,
            date_key_berlin=date_key,
            timestamp_utc=i.taken_at or None,
        ))
    return records


def map_to_resolver_input(input: MapperInput) -> ResolverInput:
    """Map raw upstream rows to the resolver's normalized input."""
    diary_entries = map_diary_entries(input.pain_entries)

    reminders = [
        ReminderRecord(
            id=r.id,
            title=r.title,
            medications=list(r.medications or []),
            scheduled_date_key_berlin=berlin_date_key_from_utc(r.date_time),
            scheduled_timestamp_utc=r.date_time,
        )
        for r in input.reminders
        if r.type == MEDICATION_REMINDER_TYPE
    ]

    completions = [
        ReminderCompletionRecord(
            reminder_id=c.reminder_id,
            completed_date_key_berlin=berlin_date_key_from_utc(c.taken_at),
            completed_timestamp_utc=c.taken_at,
        )
        for c in input.reminder_completions
    ]

    intakes = map_medication_intakes(input.medication_intakes)

    logger.debug(
        f"Mapped {len(diary_entries)} diary, {len(intakes)} intake, "
        f"{len(reminders)} reminder, {len(completions)} completion records"
    )

    return ResolverInput(
        drug=input.drug,
        drug_names=drug_names_for(input.drug),
        diary_entries=diary_entries,
        medication_intakes=intakes,
        reminders=reminders,
        reminder_completions=completions,
        time_range_start_berlin=input.time_range_start_berlin,
        time_range_end_berlin=input.time_range_end_berlin,
        now_utc=input.now_utc,
    )
