"""Top-level handling of one inbound chat message.

Flow per turn: scope gate, preference extraction and merge, question
scheduling, a single preference write, then the backend run loop and
response shaping. Turns for the same user are serialized.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import TYPE_CHECKING

from packbot.conversation.history import build_history
from packbot.conversation.prompts import build_context_message
from packbot.conversation.response import apology_reply, out_of_scope_reply, shape_reply
from packbot.errors import BackendError, UnknownUserError
from packbot.models import ChatReply, User
from packbot.preferences.extractor import extract_preference_updates, match_direct_answer
from packbot.preferences.scheduler import QuestionScheduler
from packbot.preferences.store import PreferenceStore, apply_updates, normalize_store, now_iso
from packbot.preferences.vocabulary import Confidence
from packbot.tools.models import ToolContext

if TYPE_CHECKING:
    from packbot.backend.client import BackendClient
    from packbot.database.repository import Repository
    from packbot.runloop.loop import RunLoop
    from packbot.scope.gate import ScopeGate

logger = logging.getLogger(__name__)


def _pending_question_key(store: PreferenceStore, thread_id: str | None) -> str | None:
    """Key of the question asked on this thread, if it is still unanswered."""
    qs = store.question_state
    if thread_id is None or qs.thread_id != thread_id or not qs.last_question_key:
        return None
    entry = store.profile.get(qs.last_question_key)
    if entry is None or entry.confidence != Confidence.DEFAULT.value:
        return None
    return qs.last_question_key


class ConversationOrchestrator:
    def __init__(
        self,
        repository: Repository,
        backend: BackendClient,
        scope_gate: ScopeGate,
        run_loop: RunLoop,
        scheduler: QuestionScheduler | None = None,
    ):
        self._repository = repository
        self._backend = backend
        self._scope_gate = scope_gate
        self._run_loop = run_loop
        self._scheduler = scheduler or QuestionScheduler()
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def handle_message(self, user_id: str, message: str) -> ChatReply:
        """Process one user message and return the reply.

        Only UnknownUserError propagates; every other failure becomes an
        apology reply.
        """
        async with self._user_lock(user_id):
            user = await self._repository.get_user(user_id)
            if user is None:
                raise UnknownUserError(user_id)
            try:
                return await self._handle_turn(user, message)
            except Exception:
                logger.exception("Chat turn failed for user %s", user_id)
                return apology_reply()

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        # Entries vanish once no turn for the user holds or waits on the lock.
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def _handle_turn(self, user: User, message: str) -> ChatReply:
        timestamp = now_iso()
        store, _ = normalize_store(user.preferences, timestamp)

        pending_key = _pending_question_key(store, user.thread_id)
        is_direct_answer = match_direct_answer(message, pending_key) is not None

        decision = self._scope_gate.precheck(message, is_direct_answer)
        if decision is None:
            prior = await self._prior_assistant_message(user.thread_id)
            decision = await self._scope_gate.classify_remote(message, prior)
        logger.info(
            "Scope decision for %s: allow=%s tier=%s (%.0fms)",
            user.id, decision.allow, decision.tier, decision.latency_ms,
        )
        if not decision.allow:
            store.question_state.user_turn += 1
            await self._repository.save_preferences(user.id, store.to_document())
            return out_of_scope_reply()

        thread_id = user.thread_id
        if not thread_id:
            thread_id = await self._backend.create_thread()
            await self._repository.set_thread_id(user.id, thread_id)

        if store.question_state.thread_id != thread_id:
            store.question_state = store.question_state.for_thread(thread_id)
        store.question_state.user_turn += 1

        updates = extract_preference_updates(
            message,
            last_asked_key=pending_key,
            last_asked_key_is_default=pending_key is not None,
        )
        merge = apply_updates(store, updates, timestamp)
        store = merge.store
        if merge.applied:
            logger.info("Preference updates for %s: %s", user.id, [u.key for u in merge.applied])

        question = self._scheduler.maybe_ask(store, message)
        await self._repository.save_preferences(user.id, store.to_document())

        content = build_context_message(message, store, location=user.location, question=question)
        text = await self._run_loop.run(thread_id, content, ToolContext(user_id=user.id))
        return shape_reply(text)

    async def _prior_assistant_message(self, thread_id: str | None) -> str | None:
        if not thread_id:
            return None
        try:
            return await self._backend.get_latest_response(thread_id) or None
        except BackendError as e:
            logger.warning("Could not load prior assistant message: %s", e)
            return None

    async def get_history(self, user_id: str) -> list[ChatReply]:
        user = await self._repository.get_user(user_id)
        if user is None:
            raise UnknownUserError(user_id)
        if not user.thread_id:
            return []
        messages = await self._backend.get_thread_messages(user.thread_id)
        return build_history(messages)
