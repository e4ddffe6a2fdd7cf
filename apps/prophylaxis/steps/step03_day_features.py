"""
Step 3 — Day features.
Collapse all diary rows of a Berlin calendar day into one DayFeature.

A day is documented as soon as any row exists, including "no symptoms" rows.
"""
from __future__ import annotations

import logging
import re

from packages.shared.models import DayFeature, RawPainEntry
from packages.shared.utils.date_keys import is_in_range

from apps.prophylaxis.steps.step01_map_records import resolve_entry_date_key

logger = logging.getLogger(__name__)

SEVERE_PAIN_THRESHOLD = 7

_PAIN_WORDS: dict[str, int] = {
    "none": 0,
    "very_light": 1,
    "light": 2,
    "moderate": 4,
    "strong": 6,
    "very_strong": 8,
    "extreme": 10,
}

_NUMERIC_PAIN_RE = re.compile(r"^\d{1,2}$")

# Prophylactic agents never count as acute medication.
PROPHYLAXIS_KEYWORDS = (
    "ajovy", "fremanezumab",
    "emgality", "galcanezumab",
    "aimovig", "erenumab",
    "vyepti", "eptinezumab",
    "topiramat", "topamax",
    "amitriptylin",
    "propranolol", "metoprolol",
    "flunarizin",
    "valproat", "valproinsäure", "valproic",
    "botox", "botulinum",
    "candesartan",
)


def pain_level_to_score(pain_level: str | None) -> int:
    """Pain descriptor -> 0..10. Unrecognized descriptors score 0."""
    raw = (pain_level or "").strip().lower()
    if _NUMERIC_PAIN_RE.match(raw):
        value = int(raw)
        return value if value <= 10 else 0
    key = re.sub(r"[\s\-]+", "_", raw)
    return _PAIN_WORDS.get(key, 0)


def is_acute_medication(med_name: str) -> bool:
    low = (med_name or "").lower()
    return not any(kw in low for kw in PROPHYLAXIS_KEYWORDS)


def feature_from_entry(date_key: str, entry: RawPainEntry) -> DayFeature:
    pain = pain_level_to_score(entry.pain_level)
    acute = [m for m in (entry.medications or []) if m and m.strip() and is_acute_medication(m)]
    return DayFeature(
        date_key_berlin=date_key,
        documented=True,
        had_headache=pain > 0,
        pain_max=pain if pain > 0 else None,
        acute_med_taken=len(acute) > 0,
        acute_med_count=len(acute),
    )


def build_day_features(
    pain_entries: list[RawPainEntry],
    range_start_berlin: str,
    range_end_berlin: str,
) -> dict[str, DayFeature]:
    """Map of Berlin day key -> merged DayFeature for every in-range diary row."""
    features: dict[str, DayFeature] = {}
    for entry in pain_entries:
        date_key = resolve_entry_date_key(entry)
        if not date_key:
            continue
        if not is_in_range(date_key, range_start_berlin, range_end_berlin):
            continue
        feature = feature_from_entry(date_key, entry)
        existing = features.get(date_key)
        features[date_key] = existing.merge(feature) if existing else feature

    logger.debug(f"Built {len(features)} documented days from {len(pain_entries)} diary rows")
    return features
