"""
Unit tests for schema validator.
"""
from __future__ import annotations

from packages.shared.models import ProphylaxisResult
from packages.shared.schema_validator import validate_report, validate_result


def _minimal_report() -> dict:
    return {
        "drug": "ajovy",
        "range_start_berlin": "2025-09-02",
        "range_end_berlin": "2026-03-01",
        "analysis": {
            "drug": "ajovy",
            "dose_events": [],
            "comparisons": [],
            "aggregate": None,
            "evidence_summary": {
                "count_dose_events": 0,
                "primary_sources_distribution": {},
                "best_confidence": None,
                "worst_confidence": None,
            },
        },
        "text_block": {
            "title": "Prophylaxis (Ajovy)",
            "paragraphs": ["No documented Ajovy doses in the selected period."],
            "warnings": [],
            "injection_summaries": [],
        },
        "report_data": None,
        "schema_errors": [],
    }


def test_validate_report_valid():
    """Test validation with a minimal valid report."""
    is_valid, errors = validate_report(_minimal_report())
    assert is_valid, errors
    assert errors == []


def test_validate_report_with_event():
    data = _minimal_report()
    event = {
        "drug": "ajovy",
        "date_key_berlin": "2026-02-15",
        "time_label_berlin": "10:00",
        "confidence": 1.0,
        "primary_source": "diary_medication_entry",
        "evidences": [{
            "source": "diary_medication_entry",
            "raw_id": "1",
            "timestamp_utc": "2026-02-15T09:00:00Z",
            "date_key_berlin": "2026-02-15",
            "score": 110,
            "notes": None,
        }],
    }
    data["analysis"]["dose_events"] = [event]
    data["analysis"]["evidence_summary"] = {
        "count_dose_events": 1,
        "primary_sources_distribution": {"diary_medication_entry": 1},
        "best_confidence": 1.0,
        "worst_confidence": 1.0,
    }
    data["report_data"] = {
        "section_title": "PROPHYLAXIS (AJOVY)",
        "injection_rows": [{"date": "15.02.2026", "source": "diary", "confidence": "high"}],
        "pre_post_rows": [],
        "notes": [],
    }
    is_valid, errors = validate_report(data)
    assert is_valid, errors


def test_validate_report_invalid():
    """Test validation with invalid data."""
    data = _minimal_report()
    data["drug"] = "aspirin"
    data["range_end_berlin"] = "01.03.2026"
    del data["text_block"]
    is_valid, errors = validate_report(data)
    assert not is_valid
    assert len(errors) >= 3


def test_event_without_evidence_rejected():
    data = _minimal_report()
    data["analysis"]["dose_events"] = [{
        "drug": "ajovy",
        "date_key_berlin": "2026-02-15",
        "confidence": 0.7,
        "primary_source": "diary_medication_entry",
        "evidences": [],
    }]
    is_valid, errors = validate_report(data)
    assert not is_valid
    assert any("evidences" in e for e in errors)
    assert any("confidence" in e for e in errors)


def test_error_paths_point_into_payload():
    data = _minimal_report()
    data["analysis"]["dose_events"] = [{
        "drug": "ajovy",
        "date_key_berlin": "2026-02-15\n",
        "confidence": 1.0,
        "primary_source": "diary_medication_entry",
        "evidences": [],
    }]
    del data["text_block"]
    is_valid, errors = validate_report(data)
    assert not is_valid
    assert any(e.startswith("$: ") and "text_block" in e for e in errors)
    assert any(e.startswith("$.analysis.dose_events[0].evidences: ") for e in errors)
    assert any(e.startswith("$.analysis.dose_events[0].date_key_berlin: ") for e in errors)


def test_validate_result_ignores_recorded_errors():
    result = ProphylaxisResult.model_validate({**_minimal_report(), "schema_errors": ["stale"]})
    is_valid, errors = validate_result(result)
    assert is_valid, errors
