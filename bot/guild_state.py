"""
Guild state management.

Each guild the bot has seen owns one GuildState: its phrase catalog, the
channels it may answer in, its tunables and the transient cooldown ledger.
GuildStateStore is the process-wide registry of those states.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from core.config import GuildConfig, GuildSnapshot
from core.locks import ReadWriteLock
from core.types import PhraseEntry

logger = logging.getLogger("catchphrase.guild")


class NotRegistered(LookupError):
    """Raised when an operation names a guild the store doesn't know."""

    def __init__(self, guild_id: int) -> None:
        super().__init__(f"guild {guild_id} is not registered")
        self.guild_id = guild_id


class GuildState:
    """
    Mutable state for a single guild.

    All reads must hold ``lock.read()`` and all mutations ``lock.write()``.
    The methods below don't take the lock themselves so that callers can
    group several steps into one critical section.
    """

    def __init__(self, guild_id: int, config: Optional[GuildConfig] = None) -> None:
        self.guild_id = guild_id
        self.config = config or GuildConfig()

        # phrase text -> keywords; empty tuple means "match on the text itself"
        self.phrases: Dict[str, tuple[str, ...]] = {}
        self.allowed_channels: set[int] = set()

        # Transient, never persisted
        self.cooldown_ledger: Dict[str, float] = {}
        self.last_response_at: Optional[float] = None

        self.lock = ReadWriteLock()

    # ─── Phrases ──────────────────────────────────────────────────────────────

    def add_phrase(self, text: str, keywords: Iterable[str] = ()) -> bool:
        """Register a phrase, replacing its keywords if it exists. True if new."""
        is_new = text not in self.phrases
        self.phrases[text] = tuple(keywords)
        return is_new

    def remove_phrase(self, text: str) -> bool:
        if text not in self.phrases:
            return False
        del self.phrases[text]
        self.cooldown_ledger.pop(text, None)
        return True

    def phrase_entries(self) -> List[PhraseEntry]:
        return [PhraseEntry(text, keywords) for text, keywords in self.phrases.items()]

    # ─── Channels ─────────────────────────────────────────────────────────────

    def allow_channel(self, channel_id: int) -> bool:
        if channel_id in self.allowed_channels:
            return False
        self.allowed_channels.add(channel_id)
        return True

    def disallow_channel(self, channel_id: int) -> bool:
        if channel_id not in self.allowed_channels:
            return False
        self.allowed_channels.discard(channel_id)
        return True

    def is_channel_allowed(self, channel_id: int) -> bool:
        # An empty allow-list enables nothing
        return channel_id in self.allowed_channels

    # ─── Snapshots ────────────────────────────────────────────────────────────

    def to_snapshot(self) -> GuildSnapshot:
        return GuildSnapshot(
            phrases=dict(self.phrases),
            allowed_channels=sorted(self.allowed_channels),
            config=self.config,
        )

    def apply_snapshot(self, snapshot: GuildSnapshot) -> None:
        """Replace catalog, channels and config; cooldowns start over."""
        self.phrases = dict(snapshot.phrases)
        self.allowed_channels = set(snapshot.allowed_channels)
        self.config = snapshot.config
        self.cooldown_ledger = {}
        self.last_response_at = None

    @classmethod
    def from_snapshot(cls, guild_id: int, snapshot: GuildSnapshot) -> GuildState:
        state = cls(guild_id)
        state.apply_snapshot(snapshot)
        return state


class GuildStateStore:
    """
    Registry of guild states.

    The registry lock only guards inserting and removing handles; it is never
    held while a guild's own lock is awaited.
    """

    def __init__(self) -> None:
        self._states: Dict[int, GuildState] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def get(self, guild_id: int) -> Optional[GuildState]:
        """Get state for a guild if it exists."""
        return self._states.get(guild_id)

    def require(self, guild_id: int) -> GuildState:
        state = self._states.get(guild_id)
        if state is None:
            raise NotRegistered(guild_id)
        return state

    def guild_ids(self) -> List[int]:
        return list(self._states)

    async def ensure(self, guild_id: int) -> GuildState:
        """Get or create state with defaults for a guild."""
        state = self._states.get(guild_id)
        if state is not None:
            return state
        async with self._lock:
            state = self._states.get(guild_id)
            if state is None:
                state = GuildState(guild_id)
                self._states[guild_id] = state
                logger.info("Registered guild %s", guild_id)
            return state

    async def restore(self, guild_id: int, snapshot: GuildSnapshot) -> GuildState:
        """Register a guild from a persisted snapshot, or apply it to the live one."""
        async with self._lock:
            state = self._states.get(guild_id)
            if state is None:
                state = GuildState.from_snapshot(guild_id, snapshot)
                self._states[guild_id] = state
                return state
        async with state.lock.write():
            state.apply_snapshot(snapshot)
        return state

    async def remove(self, guild_id: int) -> bool:
        async with self._lock:
            state = self._states.pop(guild_id, None)
        if state is not None:
            logger.info("Removed guild %s", guild_id)
        return state is not None

    async def snapshots(self) -> Dict[int, GuildSnapshot]:
        """Consistent per-guild snapshots of every registered guild."""
        result: Dict[int, GuildSnapshot] = {}
        for guild_id, state in list(self._states.items()):
            async with state.lock.read():
                result[guild_id] = state.to_snapshot()
        return result
