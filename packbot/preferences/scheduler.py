from __future__ import annotations

import logging
from dataclasses import dataclass

from packbot.preferences.extractor import contains_any
from packbot.preferences.store import PreferenceStore
from packbot.preferences.vocabulary import HIGH_IMPACT_PRIORITY, PREFERENCE_OPTIONS, Confidence

logger = logging.getLogger(__name__)

MIN_TURNS_BETWEEN_QUESTIONS = 10

_TOPIC_KEYWORDS = (
    "gear", "pack", "packing", "base weight", "backpack", "backpacking", "camping", "camp",
    "trail", "trailhead", "alltrails", "hike", "hiking", "trek", "trip", "itinerary", "route",
    "overnight", "multi day", "multiday", "thru", "thru-hike", "thruhike", "climb", "climbing",
    "scramble", "scrambling", "summit", "peak", "ridge", "mountain", "mount ", "mt ", "mt.",
    "mont ", "recommend",
)

_ADVICE_KEYWORDS = (
    "what should i bring", "what do i need", "packing list", "pack list", "gear list",
    "gear analysis", "plan a trip", "plan my trip", "plan a weekend", "weekend trip",
    "overnight", "multi day", "multiday", "thru hike", "recommend", "suggest",
    "find a trail", "find a hike", "trail recommendations", "which trail", "which hike",
)


@dataclass(frozen=True)
class PreferenceQuestion:
    key: str
    options: tuple[str, ...]
    text: str


def is_domain_topic(message: str) -> bool:
    """Hiking / gear / trip keyword match."""
    return contains_any(message.lower(), _TOPIC_KEYWORDS)


def is_preference_dependent_advice(message: str) -> bool:
    """Packing-list or trip-planning request whose answer depends on preferences."""
    return contains_any(message.lower(), _ADVICE_KEYWORDS)


def pick_missing_high_impact_key(store: PreferenceStore) -> str | None:
    asked = set(store.question_state.asked_keys)
    for key in HIGH_IMPACT_PRIORITY:
        entry = store.profile.get(key)
        if entry is None or entry.confidence != Confidence.DEFAULT.value:
            continue
        if key in asked:
            continue
        return key
    return None


def build_single_choice_question(key: str) -> PreferenceQuestion:
    options = PREFERENCE_OPTIONS[key]
    return PreferenceQuestion(
        key=key,
        options=options,
        text=f"Quick preference check: choose one `{key}` value ({', '.join(options)}).",
    )


class QuestionScheduler:
    """Decides whether the next outbound prompt carries one clarifying question.

    Rate-limited by user turns: at least ``min_turn_gap`` turns must separate
    two questions, and each key is asked at most once per account.
    """

    def __init__(self, min_turn_gap: int = MIN_TURNS_BETWEEN_QUESTIONS):
        self._min_turn_gap = min_turn_gap

    def maybe_ask(self, store: PreferenceStore, message: str) -> PreferenceQuestion | None:
        """Return a question and record it in ``store.question_state``, or None.

        Mutates the passed store; callers hand in the turn's working copy.
        """
        qs = store.question_state
        if qs.user_turn - qs.last_question_turn < self._min_turn_gap:
            return None
        if not is_domain_topic(message) or not is_preference_dependent_advice(message):
            return None

        key = pick_missing_high_impact_key(store)
        if key is None:
            return None

        qs.last_question_turn = qs.user_turn
        qs.last_question_key = key
        qs.asked_keys.append(key)
        logger.info("Scheduling preference question for %s at turn %d", key, qs.user_turn)
        return build_single_choice_question(key)
