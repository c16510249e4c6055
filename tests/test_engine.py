import asyncio
import random

import pytest

from core.config import BotSettings, GuildConfig
from core.types import DispatchOutcome
from responders.engine import CatchphraseEngine

from fakes import BOT_ID, CHANNEL_ID, GUILD_ID, FakeChannel, make_message, scores_payload


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__()
        self.value = value

    def randint(self, a, b):
        return self.value


async def _setup(store, make_oracle, clock, *, config=None, payload=None, rng=None, **session_kwargs):
    state = await store.ensure(GUILD_ID)
    state.config = config or GuildConfig(minimum_score=20, trigger_chance_percent=100, cooldown_seconds=60)
    state.add_phrase("hello world")
    state.add_phrase("goodbye")
    state.allow_channel(CHANNEL_ID)
    oracle, session = make_oracle(payload or scores_payload((0, 15), (1, 30)), **session_kwargs)
    engine = CatchphraseEngine(
        store,
        oracle,
        bot_user_id=BOT_ID,
        clock=clock,
        rng=rng or random.Random(7),
    )
    return engine, state, session


@pytest.mark.asyncio
async def test_best_phrase_is_sent(store, make_oracle, clock):
    engine, state, session = await _setup(store, make_oracle, clock)
    channel = FakeChannel(history=["well", "time to go"])

    outcome = await engine.handle_message(make_message("see you all", channel))

    assert outcome is DispatchOutcome.RESPONDED
    assert channel.sent == ["goodbye"]
    assert session.requests[0]["json"]["query"] == "well time to go see you all"
    assert state.last_response_at == clock.now
    assert state.cooldown_ledger == {"goodbye": clock.now}


@pytest.mark.asyncio
async def test_nothing_sent_below_minimum_score(store, make_oracle, clock):
    config = GuildConfig(minimum_score=35, trigger_chance_percent=100, cooldown_seconds=60)
    engine, state, _ = await _setup(store, make_oracle, clock, config=config)
    channel = FakeChannel()

    outcome = await engine.handle_message(make_message("bye", channel))

    assert outcome is DispatchOutcome.NO_MATCH
    assert channel.sent == []
    assert state.last_response_at is None


@pytest.mark.asyncio
async def test_zero_chance_never_scores(store, make_oracle, clock):
    config = GuildConfig(trigger_chance_percent=0, cooldown_seconds=0)
    engine, _, session = await _setup(store, make_oracle, clock, config=config, rng=FixedRandom(0))
    channel = FakeChannel()

    for i in range(50):
        outcome = await engine.handle_message(make_message(f"message {i}", channel, message_id=i))
        assert outcome is DispatchOutcome.NOT_TRIGGERED
        assert not outcome.scored
    assert session.requests == []


@pytest.mark.asyncio
async def test_full_chance_always_scores(store, make_oracle, clock):
    config = GuildConfig(minimum_score=100, trigger_chance_percent=100, cooldown_seconds=0)
    engine, _, session = await _setup(store, make_oracle, clock, config=config, rng=FixedRandom(100))
    channel = FakeChannel()

    for i in range(20):
        outcome = await engine.handle_message(make_message(f"message {i}", channel, message_id=i))
        assert outcome.scored
    assert len(session.requests) == 20


@pytest.mark.asyncio
async def test_draw_above_chance_does_not_trigger(store, make_oracle, clock):
    config = GuildConfig(trigger_chance_percent=25, cooldown_seconds=0)
    engine, _, session = await _setup(store, make_oracle, clock, config=config, rng=FixedRandom(26))

    outcome = await engine.handle_message(make_message("hi", FakeChannel()))

    assert outcome is DispatchOutcome.NOT_TRIGGERED
    assert session.requests == []


@pytest.mark.asyncio
async def test_draw_equal_to_chance_triggers(store, make_oracle, clock):
    config = GuildConfig(trigger_chance_percent=25, cooldown_seconds=0)
    engine, _, _ = await _setup(store, make_oracle, clock, config=config, rng=FixedRandom(25))

    outcome = await engine.handle_message(make_message("hi", FakeChannel()))

    assert outcome is DispatchOutcome.RESPONDED


@pytest.mark.asyncio
async def test_second_message_within_cooldown_hits_guild_gate(store, make_oracle, clock):
    engine, _, session = await _setup(store, make_oracle, clock)
    channel = FakeChannel()

    first = await engine.handle_message(make_message("bye", channel, message_id=1))
    clock.advance(1)
    second = await engine.handle_message(make_message("bye again", channel, message_id=2))

    assert first is DispatchOutcome.RESPONDED
    assert second is DispatchOutcome.COOLDOWN
    assert len(session.requests) == 1
    assert channel.sent == ["goodbye"]


@pytest.mark.asyncio
async def test_phrase_cooldown_suppresses_after_guild_gate_opens(store, make_oracle, clock):
    engine, state, _ = await _setup(store, make_oracle, clock)
    channel = FakeChannel()
    state.cooldown_ledger["goodbye"] = clock.now
    state.last_response_at = clock.now - 120

    outcome = await engine.handle_message(make_message("bye", channel))

    assert outcome is DispatchOutcome.SUPPRESSED
    assert channel.sent == []
    assert state.last_response_at == clock.now - 120


@pytest.mark.asyncio
async def test_unregistered_guild_is_ignored(store, make_oracle, clock):
    engine, _, session = await _setup(store, make_oracle, clock)

    outcome = await engine.handle_message(make_message("bye", FakeChannel(), guild_id=999))

    assert outcome is DispatchOutcome.IGNORED
    assert session.requests == []


@pytest.mark.asyncio
async def test_direct_messages_are_ignored(store, make_oracle, clock):
    engine, _, _ = await _setup(store, make_oracle, clock)
    outcome = await engine.handle_message(make_message("bye", FakeChannel(), guild_id=None))
    assert outcome is DispatchOutcome.IGNORED


@pytest.mark.asyncio
async def test_own_messages_are_ignored(store, make_oracle, clock):
    engine, _, _ = await _setup(store, make_oracle, clock)
    outcome = await engine.handle_message(make_message("goodbye", FakeChannel(), author_id=BOT_ID))
    assert outcome is DispatchOutcome.IGNORED


@pytest.mark.asyncio
async def test_channel_outside_allow_list_is_ignored(store, make_oracle, clock):
    engine, _, session = await _setup(store, make_oracle, clock)
    outcome = await engine.handle_message(make_message("bye", FakeChannel(channel_id=CHANNEL_ID + 1)))
    assert outcome is DispatchOutcome.IGNORED
    assert session.requests == []


@pytest.mark.asyncio
async def test_empty_allow_list_enables_nothing(store, make_oracle, clock):
    engine, state, _ = await _setup(store, make_oracle, clock)
    state.disallow_channel(CHANNEL_ID)
    outcome = await engine.handle_message(make_message("bye", FakeChannel()))
    assert outcome is DispatchOutcome.IGNORED


@pytest.mark.asyncio
async def test_oracle_failure_aborts_without_state_change(store, make_oracle, clock):
    engine, state, _ = await _setup(store, make_oracle, clock, status=503)
    channel = FakeChannel()

    outcome = await engine.handle_message(make_message("bye", channel))

    assert outcome is DispatchOutcome.FAILED
    assert channel.sent == []
    assert state.last_response_at is None
    assert state.cooldown_ledger == {}


@pytest.mark.asyncio
async def test_guild_without_phrases_skips_oracle(store, make_oracle, clock):
    engine, state, session = await _setup(store, make_oracle, clock)
    state.remove_phrase("hello world")
    state.remove_phrase("goodbye")

    outcome = await engine.handle_message(make_message("bye", FakeChannel()))

    assert outcome is DispatchOutcome.NO_MATCH
    assert session.requests == []


@pytest.mark.asyncio
async def test_history_limit_and_context_length_apply(store, make_oracle, clock):
    config = GuildConfig(minimum_score=0, max_context_chars=11, trigger_chance_percent=100, cooldown_seconds=0)
    engine, _, session = await _setup(store, make_oracle, clock, config=config)
    engine.history_limit = 2
    channel = FakeChannel(history=["one", "two", "three"])

    await engine.handle_message(make_message("four", channel))

    assert session.requests[0]["json"]["query"] == "three four"


@pytest.mark.asyncio
async def test_concurrent_messages_respond_once(store, make_oracle, clock):
    engine, _, session = await _setup(store, make_oracle, clock, delay=0.01)
    channel = FakeChannel()

    outcomes = await asyncio.gather(
        *(engine.handle_message(make_message(f"bye {i}", channel, message_id=i)) for i in range(5))
    )

    assert outcomes.count(DispatchOutcome.RESPONDED) == 1
    assert outcomes.count(DispatchOutcome.COOLDOWN) == 4
    assert channel.sent == ["goodbye"]
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_guilds_do_not_share_cooldowns(store, make_oracle, clock):
    engine, _, _ = await _setup(store, make_oracle, clock)
    other = await store.ensure(GUILD_ID + 1)
    other.config = GuildConfig(minimum_score=20, trigger_chance_percent=100, cooldown_seconds=60)
    other.add_phrase("hello world")
    other.add_phrase("goodbye")
    other.allow_channel(CHANNEL_ID)

    first = await engine.handle_message(make_message("bye", FakeChannel()))
    second = await engine.handle_message(make_message("bye", FakeChannel(), guild_id=GUILD_ID + 1))

    assert first is DispatchOutcome.RESPONDED
    assert second is DispatchOutcome.RESPONDED


@pytest.mark.asyncio
async def test_disallowed_channel_does_not_wait_for_the_guild_lock(store, make_oracle, clock):
    engine, state, _ = await _setup(store, make_oracle, clock)
    message = make_message("bye", FakeChannel(channel_id=CHANNEL_ID + 1))

    async with state.lock.write():
        outcome = await asyncio.wait_for(engine.handle_message(message), timeout=0.5)

    assert outcome is DispatchOutcome.IGNORED


@pytest.mark.asyncio
async def test_history_limit_defaults_to_settings_default(store, make_oracle):
    oracle, _ = make_oracle()
    assert CatchphraseEngine(store, oracle).history_limit == BotSettings().history_limit
