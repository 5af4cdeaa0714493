import asyncio
import gc
import json

import pytest

from packbot.backend.models import Run, RunState, ThreadMessage
from packbot.conversation.orchestrator import ConversationOrchestrator
from packbot.conversation.response import APOLOGY_MESSAGE, OUT_OF_SCOPE_MESSAGE
from packbot.errors import UnknownUserError
from packbot.preferences.scheduler import QuestionScheduler
from packbot.preferences.store import normalize_store
from packbot.runloop.loop import RunLoop
from packbot.scope.gate import ScopeGate
from tests.conftest import FakeBackend, no_sleep

ADVICE_MESSAGE = "Can you recommend a packing list for an overnight hike?"


async def _store(repository, user_id="hiker"):
    store, _ = normalize_store((await repository.get_user(user_id)).preferences)
    return store


async def test_unknown_user(orchestrator):
    with pytest.raises(UnknownUserError):
        await orchestrator.handle_message("ghost", "hello")


async def test_first_turn_creates_thread_and_sends_context(orchestrator, repository, fake_backend):
    await repository.create_user("hiker", location="Denver, CO")
    fake_backend.replies = ["Try the Mesa Trail."]

    reply = await orchestrator.handle_message("hiker", "Plan a hike near Denver")

    assert reply.message == "Try the Mesa Trail."
    assert reply.is_json is False
    user = await repository.get_user("hiker")
    assert user.thread_id == "thread-1"

    sent = fake_backend.threads["thread-1"][0].content
    assert sent.startswith("[Current Context: Today is ")
    assert "User Location: Denver, CO." in sent
    assert sent.endswith("] Plan a hike near Denver")

    qs = (await _store(repository)).question_state
    assert qs.thread_id == "thread-1"
    assert qs.user_turn == 1


async def test_second_turn_reuses_thread(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    fake_backend.replies = ["One.", "Two."]

    await orchestrator.handle_message("hiker", "Plan a hike near Denver")
    reply = await orchestrator.handle_message("hiker", "How long is it?")

    assert reply.message == "Two."
    assert fake_backend.created_threads == ["thread-1"]
    assert (await _store(repository)).question_state.user_turn == 2


async def test_user_lock_released_after_turns(orchestrator, repository):
    await repository.create_user("hiker")

    await asyncio.gather(
        orchestrator.handle_message("hiker", "Plan a hike near Denver"),
        orchestrator.handle_message("hiker", "Plan a hike near Boulder"),
    )
    gc.collect()

    assert "hiker" not in orchestrator._locks


async def test_out_of_scope_turn(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")

    reply = await orchestrator.handle_message("hiker", "can you solve this derivative for me")

    assert reply.message == OUT_OF_SCOPE_MESSAGE
    assert len(reply.quick_actions) == 3
    assert fake_backend.created_threads == []
    assert (await repository.get_user("hiker")).thread_id is None
    assert (await _store(repository)).question_state.user_turn == 1


async def test_question_then_direct_answer(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    fake_backend.replies = ["Quick check: ultralight, balanced or comfort_first?", "Great, noted."]

    await orchestrator.handle_message("hiker", ADVICE_MESSAGE)

    sent = fake_backend.threads["thread-1"][0].content
    assert "Ask EXACTLY ONE single-choice preference question" in sent
    assert "`pack_style`" in sent
    qs = (await _store(repository)).question_state
    assert qs.last_question_key == "pack_style"
    assert qs.asked_keys == ["pack_style"]

    reply = await orchestrator.handle_message("hiker", "ultralight")

    assert reply.message == "Great, noted."
    store = await _store(repository)
    assert store.profile["pack_style"].value == "ultralight"
    assert store.profile["pack_style"].confidence == "confirmed"
    # Rate limit: no second question right after the first.
    assert "Ask EXACTLY ONE" not in fake_backend.threads["thread-1"][2].content


async def test_free_text_preferences_are_saved(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    fake_backend.replies = ["Noted."]

    await orchestrator.handle_message("hiker", "I prefer trail runners and I don't mind light rain")

    store = await _store(repository)
    assert store.profile["footwear_preference"].value == "trail_runners"
    assert store.profile["footwear_preference"].confidence == "confirmed"
    assert store.profile["rain_tolerance"].confidence == "confirmed"
    sent = fake_backend.threads["thread-1"][0].content
    assert '"footwear_preference":{"value":"trail_runners","confidence":"confirmed"}' in sent


async def test_card_reply(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    card = {"type": "trail_options", "message": "Pick one:", "options": [], "quick_actions": ["Mesa"]}
    fake_backend.replies = ["```json\n" + json.dumps(card) + "\n```"]

    reply = await orchestrator.handle_message("hiker", "Find trails near Boulder")

    assert reply.is_json is True
    assert reply.data == card
    assert reply.quick_actions[0].value == "Mesa"


async def test_run_failure_becomes_apology(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    fake_backend.add_runs = [Run(run_id="run-1", status=RunState.FAILED)]

    reply = await orchestrator.handle_message("hiker", "Plan a hike near Denver")

    assert reply.message == APOLOGY_MESSAGE
    # The turn's preference write happened before the run.
    assert (await _store(repository)).question_state.user_turn == 1


async def test_tool_round_trip(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    await repository.add_gear("hiker", "Stove", category="Cooking")
    fake_backend.add_runs = [
        Run.from_payload(
            {
                "id": "run-1",
                "status": "requires_action",
                "tool_calls": [{"id": "c1", "function": {"name": "get_user_gear", "arguments": "{}"}}],
            }
        )
    ]
    fake_backend.replies = ["You have a stove."]

    reply = await orchestrator.handle_message("hiker", "What gear do I have?")

    assert reply.message == "You have a stove."
    output = json.loads(fake_backend.submitted[0][0].output)
    assert output[0].startswith("Stove (Cooking")


async def test_new_thread_resets_question_state(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    await orchestrator.handle_message("hiker", ADVICE_MESSAGE)
    await repository.clear_thread_ids("hiker")

    await orchestrator.handle_message("hiker", "Plan a hike near Denver")

    assert fake_backend.created_threads == ["thread-1", "thread-2"]
    qs = (await _store(repository)).question_state
    assert qs.thread_id == "thread-2"
    assert qs.user_turn == 1
    assert qs.last_question_key is None
    assert qs.asked_keys == ["pack_style"]


async def test_turns_for_one_user_are_serialized(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")

    await asyncio.gather(
        orchestrator.handle_message("hiker", "Plan a hike near Denver"),
        orchestrator.handle_message("hiker", "Plan a hike near Boulder"),
    )

    assert fake_backend.created_threads == ["thread-1"]
    assert (await _store(repository)).question_state.user_turn == 2


async def test_classifier_sees_prior_assistant_message(repository, fake_backend, tool_registry):
    scope_backend = FakeBackend()
    scope_backend.replies = ['{"in_scope": false, "reason": "baking"}']
    orchestrator = ConversationOrchestrator(
        repository=repository,
        backend=fake_backend,
        scope_gate=ScopeGate(backend=scope_backend, sleep=no_sleep),
        run_loop=RunLoop(fake_backend, tool_registry, sleep=no_sleep),
        scheduler=QuestionScheduler(),
    )
    await repository.create_user("hiker")
    await repository.set_thread_id("hiker", "thread-main")
    fake_backend.threads["thread-main"] = [ThreadMessage(role="assistant", content="Want trail ideas?")]

    reply = await orchestrator.handle_message("hiker", "How do I bake bread?")

    assert reply.message == OUT_OF_SCOPE_MESSAGE
    prompt = scope_backend.threads["thread-1"][0].content
    assert "Previous assistant message: Want trail ideas?" in prompt
    assert len(fake_backend.threads["thread-main"]) == 1


async def test_history(orchestrator, repository, fake_backend):
    await repository.create_user("hiker")
    assert await orchestrator.get_history("hiker") == []

    fake_backend.replies = ["Try the Mesa Trail."]
    await orchestrator.handle_message("hiker", "Plan a hike near Denver")

    history = await orchestrator.get_history("hiker")
    assert [(h.role, h.message) for h in history] == [
        ("user", "Plan a hike near Denver"),
        ("assistant", "Try the Mesa Trail."),
    ]

    with pytest.raises(UnknownUserError):
        await orchestrator.get_history("ghost")
