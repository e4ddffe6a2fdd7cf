"""
Pipeline orchestrator — runs the prophylaxis report steps in sequence.
"""
from __future__ import annotations

import logging
from datetime import datetime

from packages.shared.models import (
    AnalysisConfig,
    MapperInput,
    PipelineInputs,
    ProphylaxisDrug,
    ProphylaxisResult,
    WindowConfig,
)
from packages.shared.schema_validator import validate_result
from packages.shared.utils.date_keys import add_berlin_days, berlin_date_key_from_utc

from apps.prophylaxis.lib.drug_registry import detect_prophylaxis_drugs, display_name_for
from apps.prophylaxis.steps.step01_map_records import map_to_resolver_input
from apps.prophylaxis.steps.step02_resolve_doses import resolve_dose_events
from apps.prophylaxis.steps.step03_day_features import build_day_features
from apps.prophylaxis.steps.step04_window_analysis import compute_prophylaxis_analysis
from apps.prophylaxis.steps.step05_report_text import (
    build_prophylaxis_report_data,
    generate_prophylaxis_text_block,
)

logger = logging.getLogger(__name__)

MAX_LOGGED_SCHEMA_ERRORS = 10


def analysis_range(now_utc: datetime | str, lookback_days: int) -> tuple[str, str]:
    """Inclusive Berlin day range [today - lookback_days, today]."""
    if lookback_days < 0:
        raise ValueError(f"lookback_days must be >= 0, got {lookback_days}")
    today = berlin_date_key_from_utc(now_utc)
    return add_berlin_days(today, -lookback_days), today


def cache_key(drug: ProphylaxisDrug | str, range_start_berlin: str, range_end_berlin: str) -> str:
    drug_id = drug.value if isinstance(drug, ProphylaxisDrug) else drug
    return f"prophylaxis:{drug_id}:{range_start_berlin}:{range_end_berlin}"


def detect_drugs(inputs: PipelineInputs) -> list[ProphylaxisDrug]:
    """Registered CGRP drugs named anywhere in the user's diary, intakes or reminders."""
    names: list[str] = []
    for entry in inputs.pain_entries:
        names.extend(entry.medications or [])
    names.extend(i.medication_name for i in inputs.medication_intakes)
    for reminder in inputs.reminders:
        names.append(reminder.title)
        names.extend(reminder.medications or [])
    return detect_prophylaxis_drugs(names)


def run_prophylaxis_pipeline(
    inputs: PipelineInputs,
    config: AnalysisConfig | None = None,
    now_utc: datetime | None = None,
) -> ProphylaxisResult:
    """
    Build the prophylaxis section for one drug.
    Pure apart from logging: now_utc is the only clock.
    """
    if now_utc is None:
        raise ValueError("now_utc is required")
    config = config or AnalysisConfig()
    drug = config.drug
    tag = drug.value
    drug_label = config.drug_label or display_name_for(drug)

    range_start, range_end = analysis_range(now_utc, config.lookback_days)
    logger.info(f"[{tag}] Range {range_start}..{range_end} ({config.lookback_days} days)")

    # ── Step 1: Map records ───────────────────────────────────────────
    logger.info(f"[{tag}] Step 1: Record mapping")
    resolver_input = map_to_resolver_input(MapperInput(
        drug=drug,
        pain_entries=inputs.pain_entries,
        medication_intakes=inputs.medication_intakes,
        reminders=inputs.reminders,
        reminder_completions=inputs.reminder_completions,
        time_range_start_berlin=range_start,
        time_range_end_berlin=range_end,
        now_utc=now_utc,
    ))

    # ── Step 2: Resolve dose events ───────────────────────────────────
    logger.info(f"[{tag}] Step 2: Dose resolution")
    dose_events = resolve_dose_events(resolver_input)

    # ── Step 3: Day features ──────────────────────────────────────────
    logger.info(f"[{tag}] Step 3: Day features")
    day_features = build_day_features(inputs.pain_entries, range_start, range_end)

    # ── Step 4: Window analysis ───────────────────────────────────────
    logger.info(f"[{tag}] Step 4: Pre/post window analysis")
    window_config = WindowConfig(
        pre_window_days=config.pre_window_days,
        post_window_days=config.post_window_days,
    )
    analysis = compute_prophylaxis_analysis(drug, dose_events, day_features, window_config)

    # ── Step 5: Report text ───────────────────────────────────────────
    logger.info(f"[{tag}] Step 5: Report text")
    text_block = generate_prophylaxis_text_block(analysis, drug_label, config.max_injection_summaries)
    report_data = build_prophylaxis_report_data(analysis, drug_label)

    result = ProphylaxisResult(
        drug=drug,
        range_start_berlin=range_start,
        range_end_berlin=range_end,
        analysis=analysis,
        text_block=text_block,
        report_data=report_data,
    )

    # Validate against schema
    is_valid, errors = validate_result(result)
    if not is_valid:
        for err in errors[:MAX_LOGGED_SCHEMA_ERRORS]:
            logger.warning(f"[{tag}] Schema: {err[:500]}")
        logger.warning(f"[{tag}] Schema validation failed with {len(errors)} errors")
        result = result.model_copy(update={"schema_errors": errors})

    logger.info(
        f"[{tag}] Pipeline completed: dose_events={len(dose_events)}, "
        f"documented_days={len(day_features)}, schema_valid={is_valid}"
    )
    return result
