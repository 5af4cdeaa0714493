"""Deterministic extraction of preference updates from a user message.

No LLM calls: lexical heuristics only. Two paths:

- direct answer: the message answers the single-choice question we just
  asked (e.g. "balanced"), producing one confirmed update;
- free text: first-person phrasing plus explicit ("I prefer", "I always")
  or implicit ("I avoid", "... because ...") preference language, run
  through one independent detector per key.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from functools import lru_cache

from packbot.preferences.store import PreferenceUpdate
from packbot.preferences.vocabulary import PREFERENCE_OPTIONS, Confidence, is_value_allowed

EVIDENCE_MAX_LEN = 160

_RE_FIRST_PERSON = re.compile(r"\b(i|im|i'm|i've|ive|my|me)\b")
_RE_EXPLICIT = re.compile(
    r"\b(i|im|i'm)\s+(really\s+)?"
    r"(prefer|like|love|hate|always|never|usually|tend to|don't mind|do not mind)\b"
)
_RE_IMPLICIT = re.compile(r"\b(i|im|i'm)\s+(avoid|only|won't|dont|don't|do not|can't|cannot)\b")
_RE_BECAUSE = re.compile(r"\bbecause\b")
_RE_TRIP_OVERRIDE = re.compile(
    r"\b(for this trip|on this trip|this trip|for this hike|for this trek|this time)\b"
)
_RE_STABLE = re.compile(r"\b(always|never|usually|tend to|in general|generally)\b")
_RE_YES = re.compile(r"^(yes|yeah|yep|sure)\b", re.IGNORECASE)
_RE_NO = re.compile(r"^(no|nope|nah)\b", re.IGNORECASE)


@lru_cache(maxsize=256)
def _needle_pattern(needles: tuple[str, ...]) -> re.Pattern[str]:
    # Anchor at a word start so "tent" does not fire inside "intent".
    return re.compile("|".join(r"(?<![a-z0-9])" + re.escape(n) for n in needles))


def contains_any(text: str, needles: Iterable[str]) -> bool:
    return _needle_pattern(tuple(needles)).search(text) is not None


def _normalize_text(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", text.lower()).strip()


def _normalize_token(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", text.lower())


def truncate_evidence(text: str, max_len: int = EVIDENCE_MAX_LEN) -> str:
    trimmed = text.strip()
    if len(trimmed) <= max_len:
        return trimmed
    return trimmed[: max(0, max_len - 1)].rstrip() + "…"


def match_choice_answer(message: str, options: Iterable[str]) -> str | None:
    """Match a short reply against a closed option set."""
    options = tuple(options)
    text = message.strip()
    if not text:
        return None

    if "yes" in options or "no" in options:
        if _RE_YES.match(text):
            return "yes"
        if _RE_NO.match(text):
            return "no"

    token = _normalize_token(text)
    for option in options:
        if token == _normalize_token(option):
            return option

    # Longer replies may still contain a single-word option ("balanced for most trips").
    words = _normalize_text(text).split(" ")
    for option in options:
        option_words = _normalize_text(option).split(" ")
        if len(option_words) == 1 and option_words[0] in words:
            return option
    return None


def match_direct_answer(message: str, key: str | None) -> str | None:
    if not key or key not in PREFERENCE_OPTIONS:
        return None
    return match_choice_answer(message, PREFERENCE_OPTIONS[key])


# --- Per-key detectors. Each takes the lower-cased message. ---


def detect_pack_style(text: str) -> str | None:
    if contains_any(text, ("ultralight", "ultra light", "lightweight", "baseweight", "base weight", "minimal")):
        return "ultralight"
    if contains_any(text, ("comfort first", "comfort-first", "comfort", "luxury", "cozy")):
        return "comfort_first"
    if contains_any(text, ("balanced", "middle ground", "in between", "somewhere in between")):
        return "balanced"
    return None


def detect_rain_tolerance(text: str) -> str | None:
    if contains_any(text, ("avoid rain", "hate rain", "don't like rain", "do not like rain")):
        return "avoid_rain"
    if re.search(r"\bonly\s+hike\b.*\b(dry|sunny)\b", text) or re.search(r"\bif\s+it'?s\s+dry\b", text):
        return "avoid_rain"
    if contains_any(text, ("steady rain", "heavy rain", "pouring", "downpour", "any weather", "rain doesn't bother")):
        return "steady_rain_ok"
    if contains_any(text, ("light rain", "drizzle", "some rain", "a bit of rain")):
        return "light_rain_ok"
    return None


def detect_snow_ice_comfort(text: str) -> str | None:
    if contains_any(text, ("glacier", "crevasse", "rope team")):
        return "glacier_ok"
    if contains_any(text, ("crampon", "frontpoint", "ice axe")):
        return "crampons_ok"
    if contains_any(text, ("microspike", "yaktrax", "traction")):
        return "microspikes_ok"
    if contains_any(text, ("avoid snow", "no snow", "skip snow", "don't do snow", "do not do snow", "avoid ice", "no ice")):
        return "none"
    return None


def detect_exposure_tolerance(text: str) -> str | None:
    if contains_any(text, ("afraid of heights", "scared of heights", "vertigo", "hate exposure", "no exposure")):
        return "low"
    if contains_any(text, ("love exposure", "exposure is fine", "okay with exposure", "ok with exposure", "love ridges")):
        return "high"
    if contains_any(text, ("some exposure", "moderate exposure")):
        return "medium"
    return None


def detect_scrambling_comfort(text: str) -> str | None:
    if contains_any(text, ("rope", "roped", "belay", "technical climb", "lead climb")):
        return "technical_rope"
    if contains_any(text, ("scramble", "hands-on", "hands on")):
        return "hands_on"
    if contains_any(text, ("hiking only", "no scrambling", "avoid scrambling")):
        return "hiking_only"
    return None


def detect_shelter_preference(text: str) -> str | None:
    if contains_any(text, ("hammock",)):
        return "hammock"
    if contains_any(text, ("tarp",)):
        return "tarp"
    if contains_any(text, ("hut", "refuge")):
        return "hut"
    if contains_any(text, ("tent",)):
        return "tent"
    return None


def detect_cooking_preference(text: str) -> str | None:
    if contains_any(text, ("no cook", "nocook", "cold soak", "cold-soak")):
        return "no_cook"
    if contains_any(text, ("canister", "isobutane", "jetboil")):
        return "canister"
    if contains_any(text, ("alcohol stove", "alcohol")):
        return "alcohol"
    if contains_any(text, ("white gas", "liquid fuel", "msr whisperlite")):
        return "liquid_fuel"
    return None


def detect_nav_confidence(text: str) -> str | None:
    if contains_any(text, ("not good at navigation", "bad at navigation", "navigation is hard", "get lost", "not confident navigating")):
        return "low"
    if contains_any(text, ("good at navigation", "confident navigating", "map and compass", "strong navigator")):
        return "high"
    if contains_any(text, ("somewhat confident", "ok at navigation", "okay at navigation")):
        return "medium"
    return None


def detect_remoteness_tolerance(text: str) -> str | None:
    if contains_any(text, ("frontcountry", "close to the car", "near the car", "near trailhead", "day-use")):
        return "frontcountry"
    if contains_any(text, ("somewhat remote",)):
        return "moderate"
    if contains_any(text, ("remote", "off-grid", "off grid", "deep backcountry")):
        return "remote"
    if contains_any(text, ("moderate",)):
        return "moderate"
    return None


def detect_offline_maps_preference(text: str) -> str | None:
    if contains_any(text, ("always download maps", "always offline maps", "always have offline maps")):
        return "always"
    if contains_any(text, ("never download maps", "never offline maps")):
        return "never"
    if contains_any(text, ("sometimes download maps", "sometimes offline maps")):
        return "sometimes"
    return None


def detect_sat_messenger_preference(text: str) -> str | None:
    if not contains_any(text, ("inreach", "sat messenger", "satellite messenger", "plb")):
        return None
    if contains_any(text, ("don't", "do not", "never")) and contains_any(text, ("carry", "bring", "use")):
        return "no"
    if contains_any(text, ("carry", "bring", "use", "always")):
        return "yes"
    return None


def detect_water_treatment_preference(text: str) -> str | None:
    if contains_any(text, ("sawyer", "katadyn", "filter")):
        return "filter"
    if contains_any(text, ("tabs", "tablet", "aquamira", "chlorine dioxide")):
        return "tabs"
    if contains_any(text, ("steripen", "uv")):
        return "uv"
    if contains_any(text, ("untreated", "no treatment", "drink straight")):
        return "none"
    return None


def detect_dry_stretch_tolerance(text: str) -> str | None:
    if contains_any(text, ("avoid dry", "hate dry carries", "no long water carries")):
        return "avoid"
    if contains_any(text, ("long dry", "long carries are ok", "big water carries are ok")):
        return "long_ok"
    if contains_any(text, ("some dry", "some water carries are ok")):
        return "some_ok"
    return None


def detect_carry_system_preference(text: str) -> str | None:
    if contains_any(text, ("bladder", "camelbak")):
        return "bladder"
    if contains_any(text, ("bottles", "smartwater", "water bottle")):
        return "bottles"
    if contains_any(text, ("mixed",)):
        return "mixed"
    return None


def detect_footwear_preference(text: str) -> str | None:
    if contains_any(text, ("trail runners", "trailrunners")):
        return "trail_runners"
    if contains_any(text, ("high boots", "high-top boots", "high top boots")):
        return "high_boots"
    if contains_any(text, ("mid boots", "mid-height boots", "mid height boots", "midcut boots", "boots")):
        return "mid_boots"
    return None


def detect_feet_strategy(text: str) -> str | None:
    if contains_any(text, ("keep my feet dry", "keep feet dry", "dry feet")):
        return "keep_dry"
    if contains_any(text, ("drain fast", "drain quickly", "wet is fine", "quick dry")):
        return "drain_fast"
    return None


def detect_bug_tolerance(text: str) -> str | None:
    if contains_any(text, ("hate bugs", "bugs ruin", "mosquitoes ruin", "can't stand mosquitoes", "buggy")):
        return "low"
    if contains_any(text, ("bugs don't bother", "mosquitoes don't bother", "fine with bugs")):
        return "high"
    if contains_any(text, ("some bugs are ok", "bug spray is enough")):
        return "medium"
    return None


def detect_sun_tolerance(text: str) -> str | None:
    if contains_any(text, ("burn easily", "hate sun", "avoid sun")):
        return "low"
    if contains_any(text, ("love sun", "fine in sun", "sun is fine")):
        return "high"
    if contains_any(text, ("some sun is ok",)):
        return "medium"
    return None


# Order matters only for the order of emitted updates.
DETECTORS: list[tuple[str, Callable[[str], str | None]]] = [
    ("pack_style", detect_pack_style),
    ("rain_tolerance", detect_rain_tolerance),
    ("snow_ice_comfort", detect_snow_ice_comfort),
    ("exposure_tolerance", detect_exposure_tolerance),
    ("scrambling_comfort", detect_scrambling_comfort),
    ("shelter_preference", detect_shelter_preference),
    ("cooking_preference", detect_cooking_preference),
    ("nav_confidence", detect_nav_confidence),
    ("remoteness_tolerance", detect_remoteness_tolerance),
    ("offline_maps_preference", detect_offline_maps_preference),
    ("sat_messenger_preference", detect_sat_messenger_preference),
    ("water_treatment_preference", detect_water_treatment_preference),
    ("dry_stretch_tolerance", detect_dry_stretch_tolerance),
    ("carry_system_preference", detect_carry_system_preference),
    ("footwear_preference", detect_footwear_preference),
    ("feet_strategy", detect_feet_strategy),
    ("bug_tolerance", detect_bug_tolerance),
    ("sun_tolerance", detect_sun_tolerance),
]


def extract_preference_updates(
    message: str,
    last_asked_key: str | None = None,
    last_asked_key_is_default: bool = False,
) -> list[PreferenceUpdate]:
    """Return candidate updates for ``message``. Pure and deterministic."""
    trimmed = message.strip()
    if not trimmed:
        return []

    evidence = truncate_evidence(trimmed)
    updates: list[PreferenceUpdate] = []
    answered_key: str | None = None

    if last_asked_key and last_asked_key_is_default:
        choice = match_direct_answer(trimmed, last_asked_key)
        if choice:
            answered_key = last_asked_key
            updates.append(
                PreferenceUpdate(
                    key=last_asked_key,
                    value=choice,
                    confidence=Confidence.CONFIRMED.value,
                    evidence=evidence,
                )
            )

    lower = trimmed.lower().replace("’", "'")
    explicit = _RE_EXPLICIT.search(lower) is not None
    implicit = _RE_IMPLICIT.search(lower) is not None or _RE_BECAUSE.search(lower) is not None
    if not _RE_FIRST_PERSON.search(lower) or not (explicit or implicit):
        return updates

    # One-off statements must not overwrite a standing preference.
    if _RE_TRIP_OVERRIDE.search(lower) and not _RE_STABLE.search(lower):
        return updates

    confidence = Confidence.CONFIRMED.value if explicit else Confidence.INFERRED.value
    for key, detector in DETECTORS:
        if key == answered_key:
            continue
        value = detector(lower)
        if value is None or not is_value_allowed(key, value):
            continue
        updates.append(PreferenceUpdate(key=key, value=value, confidence=confidence, evidence=evidence))

    return updates
