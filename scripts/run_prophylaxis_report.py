from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from packages.shared.models import AnalysisConfig, PipelineInputs, ProphylaxisDrug
from packages.shared.utils.date_keys import parse_utc_timestamp

from apps.prophylaxis.pipeline import detect_drugs, run_prophylaxis_pipeline

logger = logging.getLogger("prophylaxis.report")


def load_inputs(path: Path) -> PipelineInputs:
    """Read a JSON export with pain_entries / medication_intakes / reminders / reminder_completions."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object in {path}, got {type(payload).__name__}")
    return PipelineInputs.model_validate(payload)


def _pick_drug(requested: str | None, inputs: PipelineInputs) -> ProphylaxisDrug:
    if requested:
        return ProphylaxisDrug(requested)
    detected = detect_drugs(inputs)
    if detected:
        logger.info(f"Detected prophylaxis drugs: {', '.join(d.value for d in detected)}")
        return detected[0]
    logger.info("No registered prophylaxis drug found in the data, defaulting to ajovy")
    return ProphylaxisDrug.AJOVY


def main() -> int:
    parser = argparse.ArgumentParser(description="Build the prophylaxis efficacy report for one user export.")
    parser.add_argument("--input", required=True, help="Path to the JSON row export.")
    parser.add_argument(
        "--drug",
        choices=[d.value for d in ProphylaxisDrug],
        help="Drug to analyse. Detected from the medication names when omitted.",
    )
    parser.add_argument("--now", help="Reference instant (UTC ISO-8601), e.g. 2026-03-01T12:00:00Z. Defaults to the current time.")
    parser.add_argument("--lookback-days", type=int, help="Days before --now to include (default 180).")
    parser.add_argument("--out", help="Write the result JSON here instead of stdout.")
    parser.add_argument("--verbose", action="store_true", help="Log per-evidence detail.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    inputs = load_inputs(Path(args.input))
    config_kwargs: dict = {"drug": _pick_drug(args.drug, inputs)}
    if args.lookback_days is not None:
        config_kwargs["lookback_days"] = args.lookback_days
    config = AnalysisConfig(**config_kwargs)

    now_utc = parse_utc_timestamp(args.now) if args.now else datetime.now(timezone.utc)
    result = run_prophylaxis_pipeline(inputs, config, now_utc)
    output = result.model_dump_json(indent=2)

    if args.out:
        Path(args.out).write_text(output, encoding="utf-8")
        logger.info(f"Wrote {args.out}")
    else:
        print(output)
    return 0 if not result.schema_errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
