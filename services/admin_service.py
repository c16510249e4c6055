"""
Admin service - catalog, channel and config management for guilds.

Every operation returns an AdminResult instead of raising, so command
handlers can report failures without the gateway ever seeing an exception.
Successful mutations are persisted right away when a snapshot store is set.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from core.config import (
    ConfigError,
    GuildConfig,
    SnapshotError,
    parse_config_text,
    parse_snapshot_text,
    snapshot_to_text,
)
from core.storage import PersistenceFailure, SnapshotStore
from core.types import AdminResult, PersistenceReport

if TYPE_CHECKING:
    from bot.guild_state import GuildState, GuildStateStore

logger = logging.getLogger("catchphrase.admin")

NOT_REGISTERED = "This server is not registered."


class AdminService:
    """Administrative operations on guild state."""

    def __init__(
        self,
        store: "GuildStateStore",
        snapshot_store: Optional[SnapshotStore] = None,
    ) -> None:
        self.store = store
        self.snapshot_store = snapshot_store

    async def _persist(self, state: "GuildState") -> Optional[str]:
        """Save one guild; returns a warning instead of raising."""
        if self.snapshot_store is None:
            return None
        async with state.lock.read():
            snapshot = state.to_snapshot()
        try:
            await self.snapshot_store.save(state.guild_id, snapshot)
        except PersistenceFailure as exc:
            logger.error("Failed to persist guild %s: %s", state.guild_id, exc)
            return f"Change applied but not saved: {exc}"
        return None

    # ─── Phrases ──────────────────────────────────────────────────────────────

    async def add_phrase(
        self,
        guild_id: int,
        text: str,
        keywords: Optional[Iterable[str]] = None,
    ) -> AdminResult:
        """Register a phrase. ``value`` is True if it wasn't registered before."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        text = (text or "").strip()
        if not text:
            return AdminResult.failure("Catchphrase cannot be empty.")
        cleaned = tuple(k.strip() for k in (keywords or ()) if k and k.strip())

        async with state.lock.write():
            is_new = state.add_phrase(text, cleaned)
        logger.info("Guild %s %s phrase %r", guild_id, "added" if is_new else "updated", text)
        return AdminResult.success(is_new, warning=await self._persist(state))

    async def remove_phrase(self, guild_id: int, text: str) -> AdminResult:
        """``value`` tells whether the phrase existed."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.write():
            existed = state.remove_phrase((text or "").strip())
        if not existed:
            return AdminResult.success(False)
        logger.info("Guild %s removed phrase %r", guild_id, text)
        return AdminResult.success(True, warning=await self._persist(state))

    async def list_phrases(self, guild_id: int) -> AdminResult:
        """``value`` is the list of PhraseEntry in registration order."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.read():
            return AdminResult.success(state.phrase_entries())

    # ─── Config ───────────────────────────────────────────────────────────────

    async def get_config(self, guild_id: int) -> AdminResult:
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.read():
            return AdminResult.success(state.config)

    async def set_config(self, guild_id: int, config: Union[str, dict[str, Any], GuildConfig]) -> AdminResult:
        """Replace the guild's tunables; invalid input leaves them untouched."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        try:
            if isinstance(config, GuildConfig):
                parsed = config
            elif isinstance(config, str):
                parsed = parse_config_text(config)
            else:
                parsed = GuildConfig.from_dict(config)
        except ConfigError as exc:
            return AdminResult.failure(f"invalid format: {exc}")

        async with state.lock.write():
            state.config = parsed
        logger.info("Guild %s config set to %s", guild_id, parsed.to_dict())
        return AdminResult.success(parsed, warning=await self._persist(state))

    # ─── Channels ─────────────────────────────────────────────────────────────

    async def add_allowed_channel(self, guild_id: int, channel_id: int) -> AdminResult:
        """``value`` is False when the channel was already allowed."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.write():
            added = state.allow_channel(channel_id)
        if not added:
            return AdminResult.success(False)
        return AdminResult.success(True, warning=await self._persist(state))

    async def remove_allowed_channel(self, guild_id: int, channel_id: int) -> AdminResult:
        """``value`` is False when the channel wasn't allowed."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.write():
            removed = state.disallow_channel(channel_id)
        if not removed:
            return AdminResult.success(False)
        return AdminResult.success(True, warning=await self._persist(state))

    async def list_allowed_channels(self, guild_id: int) -> AdminResult:
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.read():
            return AdminResult.success(sorted(state.allowed_channels))

    # ─── Snapshots ────────────────────────────────────────────────────────────

    async def dump_state(self, guild_id: int) -> AdminResult:
        """``value`` is the guild snapshot as JSON text."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        async with state.lock.read():
            snapshot = state.to_snapshot()
        return AdminResult.success(snapshot_to_text(snapshot))

    async def load_state(self, guild_id: int, text: str) -> AdminResult:
        """Replace catalog, channels and config from snapshot text."""
        state = self.store.get(guild_id)
        if state is None:
            return AdminResult.failure(NOT_REGISTERED)
        try:
            snapshot = parse_snapshot_text(text)
        except SnapshotError as exc:
            return AdminResult.failure(f"invalid format: {exc}")

        async with state.lock.write():
            state.apply_snapshot(snapshot)
        logger.info(
            "Guild %s loaded snapshot: %d phrases, %d channels",
            guild_id, len(snapshot.phrases), len(snapshot.allowed_channels),
        )
        return AdminResult.success(snapshot, warning=await self._persist(state))

    async def remove_guild(self, guild_id: int) -> AdminResult:
        """Drop a guild's state and its persisted snapshot."""
        if not await self.store.remove(guild_id):
            return AdminResult.failure(NOT_REGISTERED)
        warning = None
        if self.snapshot_store is not None:
            try:
                await self.snapshot_store.delete(guild_id)
            except PersistenceFailure as exc:
                logger.error("Failed to delete snapshot of guild %s: %s", guild_id, exc)
                warning = f"State removed but snapshot file remains: {exc}"
        return AdminResult.success(True, warning=warning)

    async def persist_all(self) -> PersistenceReport:
        """Save every guild; failures are collected, never raised."""
        if self.snapshot_store is None:
            return PersistenceReport()
        snapshots = await self.store.snapshots()
        report = await self.snapshot_store.save_all(snapshots)
        logger.info("Persisted %d guilds (%d failed)", len(report.saved), len(report.failed))
        return report
