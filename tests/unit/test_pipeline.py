"""
Unit tests for the prophylaxis pipeline orchestrator.
"""
from datetime import datetime, timezone

import pytest

from packages.shared.models import (
    AnalysisConfig,
    DoseConfidence,
    EvidenceSource,
    PipelineInputs,
    ProphylaxisDrug,
    RawMedicationIntake,
    RawPainEntry,
    RawReminder,
    RawReminderCompletion,
)
from packages.shared.schema_validator import validate_report
from packages.shared.utils.date_keys import add_berlin_days
from apps.prophylaxis.pipeline import (
    analysis_range,
    cache_key,
    detect_drugs,
    run_prophylaxis_pipeline,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_inputs() -> PipelineInputs:
    """Two Ajovy injections with a full diary around each."""
    entries: list[RawPainEntry] = []
    next_id = 1
    for dose_day, pre_pain, post_pain in (("2026-01-15", "strong", "light"), ("2026-02-15", "moderate", "none")):
        for offset in range(-7, 8):
            day = add_berlin_days(dose_day, offset)
            if offset == 0:
                entries.append(RawPainEntry(
                    id=next_id, selected_date=day, timestamp_created=f"{day}T09:00:00Z",
                    medications=["Ajovy 225mg"], pain_level="none",
                ))
            else:
                in_pre = offset < 0
                headache = offset % 2 == 0 if in_pre else offset in (3,)
                entries.append(RawPainEntry(
                    id=next_id, selected_date=day, timestamp_created=f"{day}T18:00:00Z",
                    medications=["Ibuprofen 400"] if headache else [],
                    pain_level=(pre_pain if in_pre else post_pain) if headache else "none",
                ))
            next_id += 1
    return PipelineInputs(
        pain_entries=entries,
        medication_intakes=[
            RawMedicationIntake(id="i1", medication_name="Ajovy", taken_at="2026-02-15T09:00:00Z"),
        ],
        reminders=[
            RawReminder(id="r1", title="Ajovy spritzen", date_time="2026-01-15T07:00:00Z", type="medication"),
            RawReminder(id="r2", title="Zahnarzt", date_time="2026-01-20T07:00:00Z", type="appointment"),
        ],
        reminder_completions=[
            RawReminderCompletion(reminder_id="r1", taken_at="2026-01-15T08:30:00Z"),
        ],
    )


class TestRange:
    def test_analysis_range(self):
        assert analysis_range(NOW, 180) == ("2025-09-02", "2026-03-01")

    def test_range_uses_berlin_today(self):
        late = datetime(2026, 2, 28, 23, 30, tzinfo=timezone.utc)
        assert analysis_range(late, 0) == ("2026-03-01", "2026-03-01")

    def test_negative_lookback_rejected(self):
        with pytest.raises(ValueError):
            analysis_range(NOW, -1)

    def test_cache_key(self):
        assert cache_key(ProphylaxisDrug.AJOVY, "2025-09-02", "2026-03-01") == "prophylaxis:ajovy:2025-09-02:2026-03-01"
        assert cache_key("vyepti", "2025-09-02", "2026-03-01") == "prophylaxis:vyepti:2025-09-02:2026-03-01"


class TestConfig:
    def test_lookback_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROPHYLAXIS_LOOKBACK_DAYS", "90")
        assert AnalysisConfig().lookback_days == 90

    def test_default_lookback(self, monkeypatch):
        monkeypatch.delenv("PROPHYLAXIS_LOOKBACK_DAYS", raising=False)
        config = AnalysisConfig()
        assert config.lookback_days == 180
        assert config.drug == ProphylaxisDrug.AJOVY
        assert config.pre_window_days == config.post_window_days == 7


class TestPipeline:
    def test_end_to_end(self):
        result = run_prophylaxis_pipeline(_make_inputs(), AnalysisConfig(lookback_days=180), NOW)
        events = result.analysis.dose_events
        assert [e.date_key_berlin for e in events] == ["2026-01-15", "2026-02-15"]
        assert all(e.confidence == DoseConfidence.CERTAIN for e in events)
        assert all(e.primary_source == EvidenceSource.DIARY_MEDICATION_ENTRY for e in events)
        # diary + completion cluster on the first dose, diary + intake on the second
        assert len(events[0].evidences) == 2
        assert len(events[1].evidences) == 2
        assert result.analysis.aggregate.avg_delta_headache_rate < 0
        assert result.text_block.paragraphs[0].startswith("2 injections identified.")
        assert result.report_data is not None
        assert len(result.report_data.injection_rows) == 2
        assert result.schema_errors == []

    def test_payload_validates(self):
        result = run_prophylaxis_pipeline(_make_inputs(), AnalysisConfig(), NOW)
        is_valid, errors = validate_report(result.model_dump(mode="json"))
        assert is_valid, errors

    def test_idempotent(self):
        inputs = _make_inputs()
        config = AnalysisConfig(lookback_days=180)
        first = run_prophylaxis_pipeline(inputs, config, NOW)
        second = run_prophylaxis_pipeline(inputs, config, NOW)
        assert first.model_dump_json() == second.model_dump_json()

    def test_no_doses_for_other_drug(self):
        result = run_prophylaxis_pipeline(_make_inputs(), AnalysisConfig(drug=ProphylaxisDrug.EMGALITY), NOW)
        assert result.analysis.dose_events == []
        assert result.analysis.drug == ProphylaxisDrug.EMGALITY
        assert result.text_block.paragraphs == ["No documented Emgality doses in the selected period."]
        assert result.report_data is None
        assert result.schema_errors == []

    def test_short_lookback_excludes_old_doses(self):
        result = run_prophylaxis_pipeline(_make_inputs(), AnalysisConfig(lookback_days=20), NOW)
        assert [e.date_key_berlin for e in result.analysis.dose_events] == ["2026-02-15"]
        assert result.range_start_berlin == "2026-02-09"

    def test_drug_label_override(self):
        config = AnalysisConfig(drug_label="Fremanezumab")
        result = run_prophylaxis_pipeline(_make_inputs(), config, NOW)
        assert result.text_block.title == "Prophylaxis (Fremanezumab)"

    def test_now_required(self):
        with pytest.raises(ValueError):
            run_prophylaxis_pipeline(_make_inputs(), AnalysisConfig())

    def test_empty_inputs(self):
        result = run_prophylaxis_pipeline(PipelineInputs(), AnalysisConfig(), NOW)
        assert result.analysis.dose_events == []
        assert result.analysis.aggregate is None
        assert len(result.text_block.paragraphs) == 1


class TestDetection:
    def test_detects_from_all_sources(self):
        inputs = PipelineInputs(
            pain_entries=[RawPainEntry(id=1, selected_date="2026-01-01", medications=["Aimovig"])],
            reminders=[RawReminder(id="r1", title="Vyepti Infusion", date_time="2026-01-10T08:00:00Z", type="medication")],
        )
        assert detect_drugs(inputs) == [ProphylaxisDrug.AIMOVIG, ProphylaxisDrug.VYEPTI]

    def test_nothing_detected(self):
        assert detect_drugs(PipelineInputs()) == []
