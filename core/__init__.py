"""
Core utilities and infrastructure for the catchphrase bot.

This package contains:
- config: Guild config/snapshot validation and process settings
- constants: Configuration keys
- io_utils: File I/O helpers
- locks: Asyncio read/write lock
- paths: Path resolution
- storage: Guild snapshot persistence
- types: Dataclasses and type definitions
- utils: General utilities
"""
from .constants import ConfigKey, K, SnapshotKey
from .types import (
    AdminResult,
    DispatchOutcome,
    PersistenceReport,
    PhraseEntry,
    ScoredDocument,
)

__all__ = [
    # Constants
    "ConfigKey",
    "K",
    "SnapshotKey",
    # Types
    "AdminResult",
    "DispatchOutcome",
    "PersistenceReport",
    "PhraseEntry",
    "ScoredDocument",
]
