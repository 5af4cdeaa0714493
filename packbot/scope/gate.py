"""Two-tier scope gate: local deny-list, then an ephemeral classifier thread.

The classifier tier fails open: a timeout, a transport error or an
unparseable reply all let the message through.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from packbot.formatting.payload import extract_json_payload
from packbot.scope.checks import check_deny_list
from packbot.scope.models import ScopeDecision

if TYPE_CHECKING:
    from packbot.backend.client import BackendClient

logger = logging.getLogger(__name__)

SCOPE_POLL_INTERVAL = 0.4
SCOPE_TIMEOUT = 8.0

SCOPE_INSTRUCTIONS = (
    "You classify whether a message belongs in a hiking assistant conversation. "
    "You have no tools. Reply only with the JSON object the message asks for."
)

_SCOPE_PROMPT = (
    "You are a scope classifier for PackBot, a hiking assistant. PackBot only handles "
    "hiking and trail planning, trip logistics, weather for outdoor trips, outdoor gear "
    "and packing, and the user's outdoor preferences.\n"
    "Decide whether the user's message is in scope. Short follow-ups that continue an "
    "in-scope conversation are in scope.\n"
    'Reply ONLY with a JSON object: {{"in_scope": true|false, "reason": "<short reason>"}}\n\n'
    "{prior}"
    "User message: {message}"
)


def build_scope_prompt(message: str, prior_assistant_message: str | None = None) -> str:
    prior = ""
    if prior_assistant_message:
        prior = f"Previous assistant message: {prior_assistant_message[:500]}\n"
    return _SCOPE_PROMPT.format(prior=prior, message=message[:1000])


def parse_scope_reply(text: str) -> tuple[bool, str] | None:
    payload = extract_json_payload(text)
    if not isinstance(payload, dict) or not isinstance(payload.get("in_scope"), bool):
        return None
    reason = payload.get("reason")
    return payload["in_scope"], reason if isinstance(reason, str) else ""


class ScopeGate:
    def __init__(
        self,
        backend: BackendClient | None = None,
        classifier_enabled: bool = True,
        assistant_id: str | None = None,
        poll_interval: float = SCOPE_POLL_INTERVAL,
        timeout: float = SCOPE_TIMEOUT,
        deny_categories: list[str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._backend = backend
        self._classifier_enabled = classifier_enabled
        self._assistant_id = assistant_id or None
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._deny_categories = deny_categories
        self._sleep = sleep
        self._clock = clock

    @property
    def uses_classifier(self) -> bool:
        return self._classifier_enabled and self._backend is not None

    def precheck(self, message: str, is_direct_answer: bool = False) -> ScopeDecision | None:
        """Decide without any I/O, or return None when the classifier must be asked."""
        start = time.monotonic()
        category = check_deny_list(message, self._deny_categories)
        if category:
            logger.info("Scope gate: deny-list match (%s)", category)
            return ScopeDecision(
                allow=False,
                reason=f"deny_list:{category}",
                tier="deny_list",
                latency_ms=(time.monotonic() - start) * 1000,
            )
        if is_direct_answer:
            return ScopeDecision(allow=True, reason="answer to preference question", tier="direct_answer")
        if not self.uses_classifier:
            return ScopeDecision(allow=True, tier="deny_list")
        return None

    async def classify(
        self,
        message: str,
        prior_assistant_message: str | None = None,
        is_direct_answer: bool = False,
    ) -> ScopeDecision:
        decision = self.precheck(message, is_direct_answer)
        if decision is not None:
            return decision
        return await self.classify_remote(message, prior_assistant_message)

    async def classify_remote(
        self, message: str, prior_assistant_message: str | None = None
    ) -> ScopeDecision:
        """Ask the classifier thread; any failure lets the message through."""
        backend = self._backend
        if backend is None or not self._classifier_enabled:
            return ScopeDecision(allow=True, tier="deny_list")
        start = time.monotonic()
        try:
            decision = await asyncio.wait_for(
                self._classify_remote(backend, message, prior_assistant_message),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.warning("Scope classifier timed out (>%.1fs), failing open", self._timeout)
            decision = ScopeDecision(allow=True, reason="classifier timeout", tier="fail_open")
        except Exception as e:
            logger.warning("Scope classifier raised: %s, failing open", e)
            decision = ScopeDecision(allow=True, reason=f"classifier error: {e}", tier="fail_open")

        decision.latency_ms = (time.monotonic() - start) * 1000
        return decision

    async def _classify_remote(
        self, backend: BackendClient, message: str, prior_assistant_message: str | None
    ) -> ScopeDecision:
        thread_id = await backend.create_thread(self._assistant_id)
        await backend.add_message(
            thread_id, "user", build_scope_prompt(message, prior_assistant_message)
        )

        deadline = self._clock() + self._timeout
        while True:
            text = await backend.get_latest_response(thread_id)
            if text:
                parsed = parse_scope_reply(text)
                if parsed is None:
                    logger.warning("Scope classifier reply is not valid JSON: %r", text[:200])
                    return ScopeDecision(allow=True, reason="malformed classifier reply", tier="fail_open")
                in_scope, reason = parsed
                logger.info("Scope classifier: in_scope=%s (%s)", in_scope, reason)
                return ScopeDecision(allow=in_scope, reason=reason, tier="classifier")

            if self._clock() >= deadline:
                logger.warning("Scope classifier produced no reply within %.1fs, failing open", self._timeout)
                return ScopeDecision(allow=True, reason="classifier timeout", tier="fail_open")
            await self._sleep(self._poll_interval)
