"""
Cooldown arbitration.

Two gates share one ``cooldown_seconds`` value: a cheap guild-wide check run
before the oracle is called, and a per-phrase check run on the winner. The
caller must hold the guild's write lock across both so that two messages
can't pass the first gate and both commit.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bot.guild_state import GuildState


def guild_on_cooldown(state: "GuildState", now: float) -> bool:
    last = state.last_response_at
    return last is not None and now - last < state.config.cooldown_seconds


def phrase_ready(state: "GuildState", phrase: str, now: float) -> bool:
    last = state.cooldown_ledger.get(phrase)
    return last is None or now - last >= state.config.cooldown_seconds


def try_commit(state: "GuildState", phrase: str, now: float) -> bool:
    """
    Record ``phrase`` as used at ``now`` if it is off cooldown.

    Returns False, changing nothing, when the phrase is still cooling down or
    was removed from the catalog meanwhile.
    """
    if phrase not in state.phrases:
        return False
    if not phrase_ready(state, phrase, now):
        return False
    state.last_response_at = now
    state.cooldown_ledger[phrase] = now
    return True
