import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import DoseConfidence, EvidenceSource, ProphylaxisDrug

DEFAULT_LOOKBACK_DAYS = 180


class AnalysisConfig(BaseModel):
    """Configuration for a prophylaxis analysis run."""
    drug: ProphylaxisDrug = ProphylaxisDrug.AJOVY
    drug_label: Optional[str] = None  # defaults to the registry display name
    lookback_days: int = Field(
        default_factory=lambda: int(os.environ.get("PROPHYLAXIS_LOOKBACK_DAYS", DEFAULT_LOOKBACK_DAYS)),
        ge=1,
    )
    pre_window_days: int = Field(default=7, ge=1)
    post_window_days: int = Field(default=7, ge=1)
    max_injection_summaries: int = Field(default=3, ge=0)


class WindowConfig(BaseModel):
    pre_window_days: int = Field(default=7, ge=1)
    post_window_days: int = Field(default=7, ge=1)


class DoseEvidence(BaseModel):
    """One observed signal that a dose may have been given."""
    model_config = ConfigDict(frozen=True)

    source: EvidenceSource
    raw_id: Optional[str] = None
    timestamp_utc: Optional[str] = None
    date_key_berlin: str
    score: int
    notes: Optional[str] = None  # debug annotation, not user facing


class DoseEvent(BaseModel):
    """A resolved, deduplicated administration."""
    model_config = ConfigDict(frozen=True)

    drug: ProphylaxisDrug
    date_key_berlin: str
    time_label_berlin: Optional[str] = None  # 'HH:MM'
    confidence: DoseConfidence
    primary_source: EvidenceSource
    evidences: list[DoseEvidence] = Field(min_length=1)


class DayFeature(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_key_berlin: str
    documented: bool = True  # any diary entry, including symptom-free ones
    had_headache: bool = False
    pain_max: Optional[int] = None  # None when no pain > 0 was recorded
    acute_med_taken: bool = False
    acute_med_count: int = 0

    def merge(self, other: "DayFeature") -> "DayFeature":
        """Combine two records of the same day: OR flags, max pain, sum counts."""
        pains = [p for p in (self.pain_max, other.pain_max) if p is not None]
        return DayFeature(
            date_key_berlin=self.date_key_berlin,
            documented=self.documented or other.documented,
            had_headache=self.had_headache or other.had_headache,
            pain_max=max(pains) if pains else None,
            acute_med_taken=self.acute_med_taken or other.acute_med_taken,
            acute_med_count=self.acute_med_count + other.acute_med_count,
        )


class WindowStats(BaseModel):
    window_days: int
    documented_days: int
    coverage: float  # documented_days / window_days
    headache_days: int
    headache_rate: float  # headache_days / documented_days
    intensity_mean: Optional[float] = None
    intensity_median: Optional[float] = None
    intensity_max: Optional[int] = None
    acute_med_days: int
    acute_med_rate: float  # acute_med_days / documented_days
    acute_med_count_sum: int
    severe_days: int  # pain_max >= 7


class DoseDelta(BaseModel):
    """post - pre; negative means improvement."""
    headache_rate: float
    intensity_mean: Optional[float] = None
    acute_med_rate: float


class DoseComparison(BaseModel):
    dose_event: DoseEvent
    pre: WindowStats
    post: WindowStats
    delta: DoseDelta


class AggregateDelta(BaseModel):
    avg_delta_headache_rate: Optional[float] = None
    avg_delta_intensity_mean: Optional[float] = None
    avg_delta_acute_med_rate: Optional[float] = None


class EvidenceSummary(BaseModel):
    count_dose_events: int = 0
    primary_sources_distribution: dict[EvidenceSource, int] = Field(default_factory=dict)
    best_confidence: Optional[DoseConfidence] = None
    worst_confidence: Optional[DoseConfidence] = None


class ProphylaxisAnalysis(BaseModel):
    drug: ProphylaxisDrug
    dose_events: list[DoseEvent] = Field(default_factory=list)
    comparisons: list[DoseComparison] = Field(default_factory=list)
    aggregate: Optional[AggregateDelta] = None
    evidence_summary: EvidenceSummary = Field(default_factory=EvidenceSummary)
