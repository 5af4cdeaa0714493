"""Confidence-tiered preference store: document codec and merge algorithm.

The persisted shape is a single JSON document per user:

    {
        "profile": {<key>: {"value", "confidence", "updated_at", "evidence"?}},
        "conflicts": [{"key", "old_value", "new_value", "evidence"?, "timestamp"}],
        "question_state": {"thread_id", "user_turn", "last_question_turn",
                           "last_question_key", "asked_keys"},
    }

Loading never raises: anything missing or invalid is replaced by defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from packbot.preferences.vocabulary import (
    DEFAULT_PREFERENCES,
    PREFERENCE_KEYS,
    Confidence,
    is_confidence,
    is_preference_key,
    is_value_allowed,
)

logger = logging.getLogger(__name__)

NEVER_ASKED = -9999


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class PreferenceEntry:
    value: str
    confidence: str
    updated_at: str
    evidence: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "value": self.value,
            "confidence": self.confidence,
            "updated_at": self.updated_at,
        }
        if self.evidence is not None:
            data["evidence"] = self.evidence
        return data


@dataclass(frozen=True)
class PreferenceConflict:
    key: str
    old_value: str
    new_value: str
    timestamp: str
    evidence: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "timestamp": self.timestamp,
        }
        if self.evidence is not None:
            data["evidence"] = self.evidence
        return data


@dataclass(frozen=True)
class PreferenceUpdate:
    key: str
    value: str
    confidence: str
    evidence: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "key": self.key,
            "value": self.value,
            "confidence": self.confidence,
        }
        if self.evidence is not None:
            data["evidence"] = self.evidence
        return data


@dataclass
class QuestionState:
    thread_id: str | None = None
    user_turn: int = 0
    last_question_turn: int = NEVER_ASKED
    last_question_key: str | None = None
    asked_keys: list[str] = field(default_factory=list)

    def for_thread(self, thread_id: str) -> QuestionState:
        """Return a fresh state for a new thread.

        Turn counters restart, but asked keys are account-wide: a key is
        never asked twice, even across threads.
        """
        return QuestionState(thread_id=thread_id, asked_keys=list(self.asked_keys))

    def to_dict(self) -> dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "user_turn": self.user_turn,
            "last_question_turn": self.last_question_turn,
            "last_question_key": self.last_question_key,
            "asked_keys": list(self.asked_keys),
        }


@dataclass
class PreferenceStore:
    profile: dict[str, PreferenceEntry]
    conflicts: list[PreferenceConflict] = field(default_factory=list)
    question_state: QuestionState = field(default_factory=QuestionState)

    def copy(self) -> PreferenceStore:
        return PreferenceStore(
            profile={k: replace(v) for k, v in self.profile.items()},
            conflicts=list(self.conflicts),
            question_state=replace(
                self.question_state, asked_keys=list(self.question_state.asked_keys)
            ),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "profile": {key: self.profile[key].to_dict() for key in PREFERENCE_KEYS},
            "conflicts": [c.to_dict() for c in self.conflicts],
            "question_state": self.question_state.to_dict(),
        }

    def profile_snapshot(self) -> dict[str, dict[str, Any]]:
        """Compact {key: {value, confidence}} view used in prompts and tool output."""
        return {
            key: {"value": entry.value, "confidence": entry.confidence}
            for key, entry in self.profile.items()
        }


@dataclass
class MergeResult:
    store: PreferenceStore
    applied: list[PreferenceUpdate]
    conflicts_added: list[PreferenceConflict]


def create_default_store(timestamp: str | None = None) -> PreferenceStore:
    ts = timestamp or now_iso()
    profile = {
        key: PreferenceEntry(
            value=DEFAULT_PREFERENCES[key],
            confidence=Confidence.DEFAULT.value,
            updated_at=ts,
        )
        for key in PREFERENCE_KEYS
    }
    return PreferenceStore(profile=profile)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


def normalize_store(raw: object, timestamp: str | None = None) -> tuple[PreferenceStore, bool]:
    """Coerce a persisted document into a complete PreferenceStore.

    Returns (store, changed). ``changed`` is True when anything had to be
    repaired, meaning the document should be rewritten.
    """
    store = create_default_store(timestamp)
    if not isinstance(raw, dict):
        return store, True

    changed = False

    raw_profile = raw.get("profile")
    if not isinstance(raw_profile, dict):
        changed = True
    else:
        for key in PREFERENCE_KEYS:
            entry = raw_profile.get(key)
            if not isinstance(entry, dict):
                changed = True
                continue
            value = entry.get("value")
            confidence = entry.get("confidence")
            updated_at = entry.get("updated_at")
            if (
                not is_value_allowed(key, value)
                or not is_confidence(confidence)
                or not isinstance(updated_at, str)
            ):
                changed = True
                continue
            store.profile[key] = PreferenceEntry(
                value=value,
                confidence=confidence,
                updated_at=updated_at,
                evidence=_optional_str(entry.get("evidence")),
            )

    raw_conflicts = raw.get("conflicts")
    if isinstance(raw_conflicts, list):
        for item in raw_conflicts:
            if (
                isinstance(item, dict)
                and is_preference_key(item.get("key"))
                and isinstance(item.get("old_value"), str)
                and isinstance(item.get("new_value"), str)
                and isinstance(item.get("timestamp"), str)
            ):
                store.conflicts.append(
                    PreferenceConflict(
                        key=item["key"],
                        old_value=item["old_value"],
                        new_value=item["new_value"],
                        timestamp=item["timestamp"],
                        evidence=_optional_str(item.get("evidence")),
                    )
                )
            else:
                changed = True
    else:
        changed = True

    raw_qs = raw.get("question_state")
    if isinstance(raw_qs, dict):
        asked = raw_qs.get("asked_keys")
        asked_keys = (
            [k for k in asked if is_preference_key(k)] if isinstance(asked, list) else []
        )
        last_key = raw_qs.get("last_question_key")
        store.question_state = QuestionState(
            thread_id=_optional_str(raw_qs.get("thread_id")),
            user_turn=raw_qs["user_turn"] if _is_int(raw_qs.get("user_turn")) else 0,
            last_question_turn=(
                raw_qs["last_question_turn"]
                if _is_int(raw_qs.get("last_question_turn"))
                else NEVER_ASKED
            ),
            last_question_key=last_key if is_preference_key(last_key) else None,
            asked_keys=list(dict.fromkeys(asked_keys)),
        )
    else:
        changed = True

    if changed:
        logger.debug("Preference document needed normalization")
    return store, changed


def updates_from_payload(items: object) -> list[PreferenceUpdate]:
    """Build updates from loosely-typed input (tool arguments).

    Items that are not mappings, or lack a key/value, are skipped. Missing
    confidence defaults to ``inferred``; validity is checked later by
    apply_updates.
    """
    if not isinstance(items, list):
        return []
    updates: list[PreferenceUpdate] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        key = item.get("key")
        value = item.get("value")
        if not isinstance(key, str) or not isinstance(value, str):
            continue
        confidence = item.get("confidence") or Confidence.INFERRED.value
        updates.append(
            PreferenceUpdate(
                key=key.strip(),
                value=value.strip(),
                confidence=str(confidence).strip().lower(),
                evidence=_optional_str(item.get("evidence")),
            )
        )
    return updates


def _is_logged(conflicts: list[PreferenceConflict], key: str, old: str, new: str) -> bool:
    """True if the latest conflict for `key` already records this exact disagreement."""
    for conflict in reversed(conflicts):
        if conflict.key == key:
            return conflict.old_value == old and conflict.new_value == new
    return False


def apply_updates(
    store: PreferenceStore,
    updates: list[PreferenceUpdate],
    timestamp: str | None = None,
) -> MergeResult:
    """Merge updates into a copy of ``store``, in input order.

    - Invalid key/value/confidence: skipped silently. Updates never carry
      `default`, which is reserved for values the user has not supplied.
    - A confirmed entry that disagrees with the update logs a conflict; only
      a confirmed update may then overwrite it. The same unresolved
      disagreement is logged once, so re-applying an update is idempotent.
    - Re-stating a confirmed value never downgrades its confidence.
    """
    ts = timestamp or now_iso()
    next_store = store.copy()
    applied: list[PreferenceUpdate] = []
    conflicts_added: list[PreferenceConflict] = []

    for update in updates:
        if not is_preference_key(update.key):
            continue
        if not is_value_allowed(update.key, update.value):
            continue
        if not is_confidence(update.confidence) or update.confidence == Confidence.DEFAULT:
            continue

        current = next_store.profile[update.key]
        confirmed = Confidence.CONFIRMED.value

        if current.confidence == confirmed and current.value != update.value:
            if not _is_logged(next_store.conflicts, update.key, current.value, update.value):
                conflict = PreferenceConflict(
                    key=update.key,
                    old_value=current.value,
                    new_value=update.value,
                    timestamp=ts,
                    evidence=update.evidence,
                )
                next_store.conflicts.append(conflict)
                conflicts_added.append(conflict)
            if update.confidence != confirmed:
                continue

        if current.confidence == confirmed and current.value == update.value:
            confidence = confirmed
        else:
            confidence = update.confidence

        next_store.profile[update.key] = PreferenceEntry(
            value=update.value,
            confidence=confidence,
            updated_at=ts,
            evidence=update.evidence if update.evidence is not None else current.evidence,
        )
        applied.append(update)

    if conflicts_added:
        logger.info(
            "Preference conflicts recorded: %s",
            [(c.key, c.old_value, c.new_value) for c in conflicts_added],
        )
    return MergeResult(store=next_store, applied=applied, conflicts_added=conflicts_added)
