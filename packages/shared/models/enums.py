from enum import Enum


class ProphylaxisDrug(str, Enum):
    AJOVY = "ajovy"
    EMGALITY = "emgality"
    AIMOVIG = "aimovig"
    VYEPTI = "vyepti"
    OTHER = "other"


class EvidenceSource(str, Enum):
    DIARY_MEDICATION_ENTRY = "diary_medication_entry"  # Explicit diary / intake record
    REMINDER_COMPLETED = "reminder_completed"
    DIARY_FREE_TEXT = "diary_free_text"  # Drug named in diary notes
    REMINDER_SCHEDULED = "reminder_scheduled"  # Planned, never confirmed
    INFERRED_FROM_PATTERN = "inferred_from_pattern"  # Reserved, not emitted


# Lower = more reliable. Used as tie-break when scores are equal.
SOURCE_PRIORITY: dict[EvidenceSource, int] = {
    EvidenceSource.DIARY_MEDICATION_ENTRY: 0,
    EvidenceSource.REMINDER_COMPLETED: 1,
    EvidenceSource.DIARY_FREE_TEXT: 2,
    EvidenceSource.REMINDER_SCHEDULED: 3,
    EvidenceSource.INFERRED_FROM_PATTERN: 4,
}


class DoseConfidence(float, Enum):
    CERTAIN = 1.0
    HIGH = 0.9
    GOOD = 0.8
    MODERATE = 0.6
    WEAK = 0.5
    MINIMAL = 0.4


class ClaimStrength(str, Enum):
    IMPROVED = "improved"
    WORSENED = "worsened"
    NO_CLEAR_CHANGE = "no_clear_change"
    POSSIBLE_IMPROVEMENT = "possible_improvement"  # hedged, below thresholds
    WITHHELD = "withheld"
