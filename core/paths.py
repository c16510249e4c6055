"""
Path resolution utilities.

Provides base directory and path resolution for the project.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_DATA_DIR = "servers"


def resolve_repo_path(path: Union[str, Path]) -> Path:
    candidate = Path(path)
    if candidate.is_absolute() or candidate.drive:
        return candidate
    return BASE_DIR / candidate


def guild_snapshot_path(root: Path, guild_id: int) -> Path:
    """File name is the guild id."""
    return root / f"{guild_id}.json"
