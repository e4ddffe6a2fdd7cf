from typing import Optional

from pydantic import BaseModel, Field

from .common import RawMedicationIntake, RawPainEntry, RawReminder, RawReminderCompletion
from .domain import ProphylaxisAnalysis
from .enums import ProphylaxisDrug


class InjectionSummaryLine(BaseModel):
    date_key: str
    source_label: str
    confidence_label: str
    pre_summary: str
    post_summary: str


class ProphylaxisTextBlock(BaseModel):
    title: str
    paragraphs: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    injection_summaries: list[InjectionSummaryLine] = Field(default_factory=list)


class InjectionRow(BaseModel):
    date: str  # DD.MM.YYYY
    source: str
    confidence: str


class PrePostRow(BaseModel):
    label: str
    pre: str
    post: str


class ProphylaxisReportData(BaseModel):
    """Tabular payload handed to the document renderer."""
    section_title: str
    injection_rows: list[InjectionRow] = Field(default_factory=list)
    pre_post_rows: list[PrePostRow] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)


class PipelineInputs(BaseModel):
    """Raw rows fetched upstream for one user, scoped to the analysis range."""
    pain_entries: list[RawPainEntry] = Field(default_factory=list)
    medication_intakes: list[RawMedicationIntake] = Field(default_factory=list)
    reminders: list[RawReminder] = Field(default_factory=list)
    reminder_completions: list[RawReminderCompletion] = Field(default_factory=list)


class ProphylaxisResult(BaseModel):
    drug: ProphylaxisDrug
    range_start_berlin: str
    range_end_berlin: str
    analysis: ProphylaxisAnalysis
    text_block: ProphylaxisTextBlock
    report_data: Optional[ProphylaxisReportData] = None
    schema_errors: list[str] = Field(default_factory=list)
