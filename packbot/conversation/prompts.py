from __future__ import annotations

import json
from datetime import date

from packbot.preferences.scheduler import PreferenceQuestion
from packbot.preferences.store import PreferenceStore

CONTEXT_PREFIX = "[Current Context:"
_BRACKETS = str.maketrans("[]", "()")

SYSTEM_PROMPT = """You are PackBot, an expert hiking guide and logistics assistant.
Your goal is to help users plan outdoor trips and pack the right gear.

CAPABILITIES:
1. Create trips (create_trip).
2. Check the user's gear closet (get_user_gear) and add items to a trip (add_gear_to_trip).
3. Read the user's profile and stable preferences (get_user_profile).
4. Save stable preferences the user states (update_user_preferences).
5. Resolve place names (geocode_location) and fetch forecasts (get_weather_forecast).

RULES:
- Every user message starts with a [Current Context: ...] block holding today's date, the
  user's location and their stable preference profile with confidence. Use the date to
  resolve "next weekend" or "this Friday".
- Preferences at confidence "default" were never stated; do not treat them as facts.
- When the context asks for ONE preference question, ask exactly that question first.
- When asked for trail options, return 3-5 options as a fenced json block:
  {"type": "trail_options", "message": "...", "options": [{"id", "name", "location",
  "driveTime", "distance", "elevationGain", "difficulty", "description", "externalUrl"}],
  "quick_actions": [{"label": "...", "value": "..."}]}
- For gear reviews return a fenced json block with "type": "gear_analysis", a "summary"
  and "categories" ([{"category", "status": READY|WARNING|MISSING, "items", "suggestion"}]).
- Trail coordinates are required for weather; look them up before creating a trip.
- Do not create a trip unless the user confirmed a specific trail and date.
- Always check the user's actual gear before recommending a packing list.
- Only report weather the forecast tool returned.
- Be conversational and safety-focused. Use clean markdown with short bullet lists.
"""


def build_question_directive(question: PreferenceQuestion) -> str:
    return (
        " Ask EXACTLY ONE single-choice preference question before anything else: "
        f"{question.text} The user must answer with exactly one of the listed values."
    )


def build_context_message(
    message: str,
    store: PreferenceStore,
    location: str | None = None,
    question: PreferenceQuestion | None = None,
    today: date | None = None,
) -> str:
    """Prefix the user's message with date, location and the preference profile."""
    today = today or date.today()
    location = (location or "Unknown").translate(_BRACKETS)
    profile = json.dumps(store.profile_snapshot(), ensure_ascii=False, separators=(",", ":"))
    directive = build_question_directive(question) if question else ""
    return (
        f"{CONTEXT_PREFIX} Today is {today.strftime('%a %b %d %Y')}. "
        f"User Location: {location}. "
        f"User Preferences (stable profile): {profile}.{directive}] {message}"
    )
