"""
Catchphrase responder - split into focused modules.

This package decides when a guild message gets a catchphrase reply.
"""
from .context_window import build_context_window
from .cooldown import guild_on_cooldown, phrase_ready, try_commit
from .engine import CatchphraseEngine, fetch_history

__all__ = [
    "CatchphraseEngine",
    "build_context_window",
    "fetch_history",
    "guild_on_cooldown",
    "phrase_ready",
    "try_commit",
]
