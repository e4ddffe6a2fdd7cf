from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from packages.shared.models import ProphylaxisDrug

# Verbs that mark a genuine administration rather than an incidental mention
# ("Ajovy Termin war heute").
_INJECTION_CONTEXT = (
    "gespritzt",
    "spritze",
    "injiziert",
    "injektion",
    "verabreicht",
    "injected",
    "injection",
    "administered",
)


@dataclass(frozen=True)
class DrugProfile:
    drug: ProphylaxisDrug
    display_name: str
    names: tuple[str, ...]  # lower-case aliases
    typical_interval_days: int  # informational only
    context_keywords: tuple[str, ...] = _INJECTION_CONTEXT


CGRP_DRUG_REGISTRY: tuple[DrugProfile, ...] = (
    DrugProfile(ProphylaxisDrug.AJOVY, "Ajovy", ("ajovy", "fremanezumab"), 28),
    DrugProfile(ProphylaxisDrug.EMGALITY, "Emgality", ("emgality", "galcanezumab"), 28),
    DrugProfile(ProphylaxisDrug.AIMOVIG, "Aimovig", ("aimovig", "erenumab"), 28),
    DrugProfile(
        ProphylaxisDrug.VYEPTI,
        "Vyepti",
        ("vyepti", "eptinezumab"),
        90,
        context_keywords=_INJECTION_CONTEXT + ("infusion", "infundiert"),
    ),
)


def find_drug_profile(drug: ProphylaxisDrug | str) -> DrugProfile | None:
    for profile in CGRP_DRUG_REGISTRY:
        if profile.drug == drug:
            return profile
    return None


def drug_names_for(drug: ProphylaxisDrug | str) -> list[str]:
    """Aliases used for matching; unknown drugs match on their own id."""
    profile = find_drug_profile(drug)
    if profile:
        return list(profile.names)
    value = drug.value if isinstance(drug, ProphylaxisDrug) else str(drug)
    return [value.lower()]


def display_name_for(drug: ProphylaxisDrug | str) -> str:
    profile = find_drug_profile(drug)
    if profile:
        return profile.display_name
    value = drug.value if isinstance(drug, ProphylaxisDrug) else str(drug)
    return value.capitalize()


def name_matches_drug(name: str | None, drug_names: Iterable[str]) -> bool:
    """Case-insensitive substring match in either direction. Blank names never match."""
    low = (name or "").strip().lower()
    if not low:
        return False
    for alias in drug_names:
        alias_low = (alias or "").strip().lower()
        if alias_low and (alias_low in low or low in alias_low):
            return True
    return False


def text_contains_drug(text: str | None, drug_names: Iterable[str]) -> bool:
    low = (text or "").lower()
    if not low:
        return False
    return any(alias and alias.lower() in low for alias in drug_names)


def text_contains_context(text: str | None, keywords: Iterable[str]) -> bool:
    low = (text or "").lower()
    if not low:
        return False
    return any(kw in low for kw in keywords)


def detect_prophylaxis_drugs(medication_names: Iterable[str]) -> list[ProphylaxisDrug]:
    """Registered drugs that appear in a user's medication list, registry order."""
    found: set[ProphylaxisDrug] = set()
    names = [n for n in medication_names if n and n.strip()]
    for profile in CGRP_DRUG_REGISTRY:
        if any(name_matches_drug(n, profile.names) for n in names):
            found.add(profile.drug)
    return [p.drug for p in CGRP_DRUG_REGISTRY if p.drug in found]
