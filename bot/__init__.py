"""Bot package - Discord client and guild state management."""
from .guild_state import GuildState, GuildStateStore, NotRegistered
from .client import CatchphraseBot

__all__ = ["GuildState", "GuildStateStore", "NotRegistered", "CatchphraseBot"]
