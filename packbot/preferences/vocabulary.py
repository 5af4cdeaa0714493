"""Closed vocabulary of stable hiking preferences.

Every key has a fixed set of allowed values and a default used until the
user says otherwise.
"""

from __future__ import annotations

from enum import StrEnum


class Confidence(StrEnum):
    DEFAULT = "default"  # never stated by the user
    INFERRED = "inferred"  # implied by phrasing
    CONFIRMED = "confirmed"  # explicitly stated


_CONFIDENCE_VALUES = frozenset(c.value for c in Confidence)

PREFERENCE_OPTIONS: dict[str, tuple[str, ...]] = {
    "pack_style": ("ultralight", "balanced", "comfort_first"),
    "rain_tolerance": ("avoid_rain", "light_rain_ok", "steady_rain_ok"),
    "snow_ice_comfort": ("none", "microspikes_ok", "crampons_ok", "glacier_ok"),
    "exposure_tolerance": ("low", "medium", "high"),
    "scrambling_comfort": ("hiking_only", "hands_on", "technical_rope"),
    "shelter_preference": ("tent", "tarp", "hammock", "hut"),
    "cooking_preference": ("no_cook", "canister", "alcohol", "liquid_fuel"),
    "nav_confidence": ("high", "medium", "low"),
    "remoteness_tolerance": ("frontcountry", "moderate", "remote"),
    "offline_maps_preference": ("always", "sometimes", "never"),
    "sat_messenger_preference": ("yes", "no"),
    "water_treatment_preference": ("filter", "tabs", "uv", "none"),
    "dry_stretch_tolerance": ("avoid", "some_ok", "long_ok"),
    "carry_system_preference": ("bottles", "bladder", "mixed"),
    "footwear_preference": ("trail_runners", "mid_boots", "high_boots"),
    "feet_strategy": ("keep_dry", "drain_fast"),
    "bug_tolerance": ("low", "medium", "high"),
    "sun_tolerance": ("low", "medium", "high"),
}

PREFERENCE_KEYS: tuple[str, ...] = tuple(PREFERENCE_OPTIONS)

DEFAULT_PREFERENCES: dict[str, str] = {
    "pack_style": "balanced",
    "rain_tolerance": "light_rain_ok",
    "snow_ice_comfort": "none",
    "exposure_tolerance": "medium",
    "scrambling_comfort": "hiking_only",
    "shelter_preference": "tent",
    "cooking_preference": "canister",
    "nav_confidence": "medium",
    "remoteness_tolerance": "moderate",
    "offline_maps_preference": "sometimes",
    "sat_messenger_preference": "no",
    "water_treatment_preference": "filter",
    "dry_stretch_tolerance": "some_ok",
    "carry_system_preference": "mixed",
    "footwear_preference": "trail_runners",
    "feet_strategy": "drain_fast",
    "bug_tolerance": "medium",
    "sun_tolerance": "medium",
}

# Keys worth interrupting the user for, most important first.
HIGH_IMPACT_PRIORITY: tuple[str, ...] = (
    "pack_style",
    "rain_tolerance",
    "snow_ice_comfort",
    "exposure_tolerance",
    "water_treatment_preference",
    "nav_confidence",
    "footwear_preference",
    "bug_tolerance",
)


def is_preference_key(key: object) -> bool:
    return isinstance(key, str) and key in PREFERENCE_OPTIONS


def is_value_allowed(key: str, value: object) -> bool:
    return isinstance(value, str) and value in PREFERENCE_OPTIONS.get(key, ())


def is_confidence(value: object) -> bool:
    return isinstance(value, str) and value in _CONFIDENCE_VALUES
