"""
Blocking file helpers run off the event loop.

Snapshot files are small, so each call does its whole job in one worker
thread.
"""
from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any, List


async def read_json(path: Path, default: Any = None) -> Any:
    """Parsed JSON of ``path``, or ``default`` if it doesn't exist."""
    def _read() -> Any:
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except FileNotFoundError:
            return default

    return await asyncio.to_thread(_read)


async def write_json_atomic(path: Path, data: Any) -> None:
    """Write beside the target and swap it in; readers never see half a file."""
    def _write() -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    await asyncio.to_thread(_write)


async def list_json_files(root: Path) -> List[Path]:
    """``*.json`` files directly under ``root``, sorted by name."""
    def _list() -> List[Path]:
        if not root.is_dir():
            return []
        return sorted(p for p in root.iterdir() if p.is_file() and p.suffix == ".json")

    return await asyncio.to_thread(_list)


async def delete_file(path: Path) -> bool:
    def _delete() -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    return await asyncio.to_thread(_delete)
