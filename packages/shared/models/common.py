from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import ProphylaxisDrug


# ── Raw upstream rows (mirror the diary / reminder tables) ──────────────────


class RawPainEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str
    medications: Optional[list[str]] = None
    selected_date: Optional[str] = None  # Berlin calendar day, authoritative
    selected_time: Optional[str] = None
    timestamp_created: Optional[str] = None  # UTC ISO
    notes: Optional[str] = None
    pain_level: str = "none"


class RawMedicationIntake(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    medication_name: str
    taken_date: Optional[str] = None
    taken_at: Optional[str] = None
    entry_id: Optional[int | str] = None


class RawReminder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    medications: Optional[list[str]] = None
    date_time: str  # scheduled, UTC ISO
    status: Optional[str] = None
    type: str = ""  # only "medication" rows are mapped


class RawReminderCompletion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    reminder_id: str
    medication_name: Optional[str] = None
    scheduled_at: Optional[str] = None
    taken_at: str  # completion, UTC ISO


# ── Normalized evidence-source records ──────────────────────────────────────


class DiaryMedicationRecord(BaseModel):
    entry_id: int | str
    date_key_berlin: str
    timestamp_utc: Optional[str] = None
    medication_names: list[str] = Field(default_factory=list)
    notes: Optional[str] = None


class MedicationIntakeRecord(BaseModel):
    id: str
    medication_name: str
    date_key_berlin: str
    timestamp_utc: Optional[str] = None


class ReminderRecord(BaseModel):
    id: str
    title: str
    medications: list[str] = Field(default_factory=list)
    scheduled_date_key_berlin: str
    scheduled_timestamp_utc: Optional[str] = None


class ReminderCompletionRecord(BaseModel):
    reminder_id: str
    completed_date_key_berlin: str
    completed_timestamp_utc: Optional[str] = None


class ResolverInput(BaseModel):
    drug: ProphylaxisDrug
    drug_names: list[str]  # all aliases used for matching
    diary_entries: list[DiaryMedicationRecord] = Field(default_factory=list)
    medication_intakes: list[MedicationIntakeRecord] = Field(default_factory=list)
    reminders: list[ReminderRecord] = Field(default_factory=list)
    reminder_completions: list[ReminderCompletionRecord] = Field(default_factory=list)
    time_range_start_berlin: str
    time_range_end_berlin: str
    now_utc: datetime  # reference clock for timestamp plausibility


class MapperInput(BaseModel):
    drug: ProphylaxisDrug
    pain_entries: list[RawPainEntry] = Field(default_factory=list)
    medication_intakes: list[RawMedicationIntake] = Field(default_factory=list)
    reminders: list[RawReminder] = Field(default_factory=list)
    reminder_completions: list[RawReminderCompletion] = Field(default_factory=list)
    time_range_start_berlin: str
    time_range_end_berlin: str
    now_utc: datetime
