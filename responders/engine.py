"""
Catchphrase responder engine - per-message orchestration.

A message passes through eligibility checks, the guild cooldown, a random
trigger draw, context building, oracle scoring and finally the per-phrase
cooldown commit before the phrase is sent. Nothing is kept between messages
except what the commit writes into the guild state.
"""
from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional

import discord

from core.config import DEFAULT_HISTORY_LIMIT
from core.constants import TRIGGER_DRAW_MAX
from core.types import DispatchOutcome
from services.oracle import OracleUnavailable, RelevanceOracleClient

from . import cooldown
from .context_window import build_context_window

if TYPE_CHECKING:
    from bot.guild_state import GuildState, GuildStateStore

logger = logging.getLogger("catchphrase.responder")


async def fetch_history(channel: Any, limit: int) -> List[str]:
    """Text of the last ``limit`` messages, newest first."""
    return [message.content or "" async for message in channel.history(limit=limit)]


class CatchphraseEngine:
    """
    Decides whether and with which phrase to answer a guild message.

    ``clock`` must be monotonic; ``rng`` drives the trigger draw. Both are
    injectable for tests.
    """

    def __init__(
        self,
        store: "GuildStateStore",
        oracle: RelevanceOracleClient,
        *,
        bot_user_id: Optional[int] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.bot_user_id = bot_user_id
        self.history_limit = history_limit
        self.clock = clock
        self.rng = rng or random.Random()

    def roll_trigger(self, chance_percent: int) -> bool:
        """Independent draw per message; 0 never fires, 100 always does."""
        if chance_percent <= 0:
            return False
        return self.rng.randint(0, TRIGGER_DRAW_MAX) <= chance_percent

    def _is_eligible(self, message: "discord.Message") -> Optional["GuildState"]:
        guild = message.guild
        if guild is None:
            return None
        if self.bot_user_id is not None and message.author.id == self.bot_user_id:
            return None
        state = self.store.get(guild.id)
        if state is None or not state.is_channel_allowed(message.channel.id):
            return None
        return state

    async def handle_message(self, message: "discord.Message") -> DispatchOutcome:
        state = self._is_eligible(message)
        if state is None:
            return DispatchOutcome.IGNORED

        # One write-lock acquisition covers pre-check through commit
        async with state.lock.write():
            # the allow-list may have changed while we waited
            if not state.is_channel_allowed(message.channel.id):
                return DispatchOutcome.IGNORED

            config = state.config
            if cooldown.guild_on_cooldown(state, self.clock()):
                return DispatchOutcome.COOLDOWN

            if not self.roll_trigger(config.trigger_chance_percent):
                return DispatchOutcome.NOT_TRIGGERED
            logger.debug("message chance occurred in guild %s", state.guild_id)

            entries = state.phrase_entries()
            if not entries:
                logger.debug("Guild %s has no phrases registered", state.guild_id)
                return DispatchOutcome.NO_MATCH

            try:
                history = await fetch_history(message.channel, self.history_limit)
            except discord.HTTPException as exc:
                logger.warning("Could not read history of channel %s: %s", message.channel.id, exc)
                return DispatchOutcome.FAILED
            query = build_context_window(history, config.max_context_chars)
            if not query:
                return DispatchOutcome.NO_MATCH

            try:
                phrase = await self.oracle.rank(query, entries, config.minimum_score)
            except OracleUnavailable as exc:
                logger.warning("Oracle unavailable for guild %s: %s", state.guild_id, exc)
                return DispatchOutcome.FAILED

            if phrase is None:
                return DispatchOutcome.NO_MATCH

            if not cooldown.try_commit(state, phrase, self.clock()):
                logger.debug("Phrase %r still cooling down in guild %s", phrase, state.guild_id)
                return DispatchOutcome.SUPPRESSED

            logger.info("found catchphrase: %s", phrase)
            await message.channel.send(phrase, allowed_mentions=discord.AllowedMentions.none())
            return DispatchOutcome.RESPONDED
