"""
Guild snapshot persistence.

One JSON file per guild, named after the guild id. Each guild is read and
written on its own so a bad file or a failed write never affects the others.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Dict, Mapping, Tuple

from .config import GuildSnapshot, SnapshotError
from .io_utils import delete_file, list_json_files, read_json, write_json_atomic
from .paths import guild_snapshot_path
from .types import PersistenceReport
from .utils import safe_int

logger = logging.getLogger("catchphrase.storage")


class PersistenceFailure(RuntimeError):
    def __init__(self, guild_id: int, message: str) -> None:
        super().__init__(f"guild {guild_id}: {message}")
        self.guild_id = guild_id


class SnapshotStore:
    def __init__(self, root: Path) -> None:
        self.root = root
        self._write_locks: Dict[int, asyncio.Lock] = {}

    def path_for(self, guild_id: int) -> Path:
        return guild_snapshot_path(self.root, guild_id)

    def _get_write_lock(self, guild_id: int) -> asyncio.Lock:
        if guild_id not in self._write_locks:
            self._write_locks[guild_id] = asyncio.Lock()
        return self._write_locks[guild_id]

    async def load(self, guild_id: int) -> GuildSnapshot:
        """Read one guild; raises PersistenceFailure on I/O or format errors."""
        path = self.path_for(guild_id)
        try:
            data = await read_json(path, default=None)
        except (OSError, ValueError) as exc:
            raise PersistenceFailure(guild_id, f"unreadable snapshot: {exc}") from exc
        if data is None:
            raise PersistenceFailure(guild_id, f"missing snapshot: {path}")
        try:
            return GuildSnapshot.from_dict(data)
        except SnapshotError as exc:
            raise PersistenceFailure(guild_id, f"invalid snapshot: {exc}") from exc

    async def load_all(self) -> Tuple[Dict[int, GuildSnapshot], Dict[int, str]]:
        """
        Read every guild snapshot under the root.

        Returns the loaded snapshots and a map of guild id -> error for files
        that could not be used. Files whose name isn't a guild id are skipped.
        """
        snapshots: Dict[int, GuildSnapshot] = {}
        failures: Dict[int, str] = {}
        for path in await list_json_files(self.root):
            guild_id = safe_int(path.stem)
            if guild_id is None:
                logger.debug("Skipping non-guild file %s", path.name)
                continue
            try:
                snapshots[guild_id] = await self.load(guild_id)
            except PersistenceFailure as exc:
                logger.error("Failed to load snapshot for guild %s: %s", guild_id, exc)
                failures[guild_id] = str(exc)
        logger.info("Loaded %d guild snapshots (%d failed)", len(snapshots), len(failures))
        return snapshots, failures

    async def save(self, guild_id: int, snapshot: GuildSnapshot) -> None:
        async with self._get_write_lock(guild_id):
            try:
                await write_json_atomic(self.path_for(guild_id), snapshot.to_dict())
            except (OSError, TypeError, ValueError) as exc:
                raise PersistenceFailure(guild_id, f"write failed: {exc}") from exc

    async def save_all(self, snapshots: Mapping[int, GuildSnapshot]) -> PersistenceReport:
        report = PersistenceReport()
        for guild_id, snapshot in snapshots.items():
            try:
                await self.save(guild_id, snapshot)
            except PersistenceFailure as exc:
                logger.error("Failed to persist guild %s: %s", guild_id, exc)
                report.failed[guild_id] = str(exc)
            else:
                report.saved.append(guild_id)
        return report

    async def delete(self, guild_id: int) -> bool:
        async with self._get_write_lock(guild_id):
            try:
                return await delete_file(self.path_for(guild_id))
            except OSError as exc:
                raise PersistenceFailure(guild_id, f"delete failed: {exc}") from exc
