from .common import (
    DiaryMedicationRecord,
    MapperInput,
    MedicationIntakeRecord,
    RawMedicationIntake,
    RawPainEntry,
    RawReminder,
    RawReminderCompletion,
    ReminderCompletionRecord,
    ReminderRecord,
    ResolverInput,
)
from .domain import (
    DEFAULT_LOOKBACK_DAYS,
    AggregateDelta,
    AnalysisConfig,
    DayFeature,
    DoseComparison,
    DoseDelta,
    DoseEvent,
    DoseEvidence,
    EvidenceSummary,
    ProphylaxisAnalysis,
    WindowConfig,
    WindowStats,
)
from .enums import (
    SOURCE_PRIORITY,
    ClaimStrength,
    DoseConfidence,
    EvidenceSource,
    ProphylaxisDrug,
)
from .report import (
    InjectionRow,
    InjectionSummaryLine,
    PipelineInputs,
    PrePostRow,
    ProphylaxisReportData,
    ProphylaxisResult,
    ProphylaxisTextBlock,
)
