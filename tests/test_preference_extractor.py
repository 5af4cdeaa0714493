from packbot.preferences.extractor import (
    EVIDENCE_MAX_LEN,
    detect_nav_confidence,
    detect_remoteness_tolerance,
    detect_shelter_preference,
    extract_preference_updates,
    match_choice_answer,
    match_direct_answer,
)
from packbot.preferences.store import PreferenceUpdate


def _pairs(updates: list[PreferenceUpdate]) -> list[tuple[str, str, str]]:
    return [(u.key, u.value, u.confidence) for u in updates]


# --- Direct answers ---


def test_direct_answer_to_pending_question():
    updates = extract_preference_updates("balanced", last_asked_key="pack_style", last_asked_key_is_default=True)
    assert _pairs(updates) == [("pack_style", "balanced", "confirmed")]
    assert updates[0].evidence == "balanced"


def test_direct_answer_ignored_when_key_already_set():
    updates = extract_preference_updates("balanced", last_asked_key="pack_style", last_asked_key_is_default=False)
    assert updates == []


def test_direct_answer_yes_no():
    assert match_direct_answer("yes please", "sat_messenger_preference") == "yes"
    assert match_direct_answer("Nope", "sat_messenger_preference") == "no"


def test_direct_answer_matches_normalized_option():
    assert match_direct_answer("Comfort First!", "pack_style") == "comfort_first"
    assert match_direct_answer("trail-runners", "footwear_preference") == "trail_runners"


def test_direct_answer_single_word_inside_longer_reply():
    assert match_choice_answer("filter for most trips", ("filter", "tabs", "uv", "none")) == "filter"


def test_direct_answer_no_match():
    assert match_direct_answer("what do you mean?", "pack_style") is None
    assert match_direct_answer("balanced", None) is None
    assert match_direct_answer("balanced", "not_a_key") is None
    assert match_direct_answer("   ", "pack_style") is None


def test_direct_answer_key_not_repeated_by_free_text():
    updates = extract_preference_updates(
        "I prefer ultralight", last_asked_key="pack_style", last_asked_key_is_default=True
    )
    assert _pairs(updates) == [("pack_style", "ultralight", "confirmed")]


# --- Free text ---


def test_trip_specific_statement_is_ignored():
    assert extract_preference_updates("I only want light rain for this trip") == []


def test_stable_marker_beats_trip_override():
    updates = extract_preference_updates("I always avoid rain, even for this trip")
    assert _pairs(updates) == [("rain_tolerance", "avoid_rain", "confirmed")]


def test_explicit_statement_yields_confirmed_updates_in_detector_order():
    updates = extract_preference_updates("I prefer trail runners and I don't mind light rain")
    assert _pairs(updates) == [
        ("rain_tolerance", "light_rain_ok", "confirmed"),
        ("footwear_preference", "trail_runners", "confirmed"),
    ]


def test_implicit_statement_yields_inferred_update():
    updates = extract_preference_updates("I avoid scrambling because of my knees")
    assert _pairs(updates) == [("scrambling_comfort", "hiking_only", "inferred")]


def test_curly_apostrophe_is_normalized():
    updates = extract_preference_updates("I don’t mind steady rain")
    assert _pairs(updates) == [("rain_tolerance", "steady_rain_ok", "confirmed")]


def test_third_person_statement_is_ignored():
    assert extract_preference_updates("My friend prefers boots") == []


def test_statement_without_first_person_is_ignored():
    assert extract_preference_updates("Trail runners are great in the desert") == []


def test_empty_message():
    assert extract_preference_updates("   ") == []


def test_evidence_is_truncated():
    message = "I prefer ultralight gear. " + "a" * 300
    updates = extract_preference_updates(message)
    assert _pairs(updates) == [("pack_style", "ultralight", "confirmed")]
    evidence = updates[0].evidence
    assert len(evidence) == EVIDENCE_MAX_LEN
    assert evidence.endswith("…")


# --- Detectors ---


def test_needles_match_at_word_start_only():
    assert detect_shelter_preference("my intent is to hike fast") is None
    assert detect_shelter_preference("i sleep in a tent") == "tent"


def test_negated_navigation_phrase_wins():
    assert detect_nav_confidence("i'm not good at navigation") == "low"
    assert detect_nav_confidence("i'm good at navigation") == "high"


def test_somewhat_remote_is_moderate():
    assert detect_remoteness_tolerance("somewhat remote places") == "moderate"
    assert detect_remoteness_tolerance("deep backcountry") == "remote"
