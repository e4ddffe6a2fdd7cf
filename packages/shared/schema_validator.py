"""
Check a finished prophylaxis result against schemas/prophylaxis-report.schema.json.

The schema pins what rendering depends on: drug ids, Berlin day keys
(YYYY-MM-DD), confidence bands, rates in [0, 1], at least one evidence per
dose event and DD.MM.YYYY dates in the report rows. Failures are reported as
"path: message" strings, with "$" standing for the payload root.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema

from packages.shared.models import ProphylaxisResult

_SCHEMA_PATH = Path(__file__).resolve().parent.parent.parent / "schemas" / "prophylaxis-report.schema.json"
_validator: jsonschema.Draft202012Validator | None = None


def _get_validator() -> jsonschema.Draft202012Validator:
    global _validator
    if _validator is None:
        with open(_SCHEMA_PATH, "r", encoding="utf-8") as f:
            schema = json.load(f)
        jsonschema.Draft202012Validator.check_schema(schema)
        _validator = jsonschema.Draft202012Validator(schema)
    return _validator


def _format_error(error: jsonschema.ValidationError) -> str:
    path = "$" + "".join(f"[{p}]" if isinstance(p, int) else f".{p}" for p in error.absolute_path)
    return f"{path}: {error.message}"


def validate_report(data: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate a ProphylaxisResult dumped in JSON mode.
    Returns (is_valid, list_of_error_messages), errors ordered by payload path.
    """
    errors = sorted(_get_validator().iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path])
    messages = [_format_error(e) for e in errors]
    return (len(messages) == 0, messages)


def validate_result(result: ProphylaxisResult) -> tuple[bool, list[str]]:
    """Validate the payload as it will be serialized, ignoring errors already recorded on it."""
    data = result.model_dump(mode="json")
    data["schema_errors"] = []
    return validate_report(data)
