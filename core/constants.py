"""
Configuration key constants.

Using constants instead of string literals keeps the guild config, the
snapshot format and the admin commands agreeing on key names.
"""
from __future__ import annotations


class ConfigKey:
    """Keys of the per-guild tunable parameters."""

    MINIMUM_SCORE = "minimum_score"
    MAX_CONTEXT_CHARS = "max_context_chars"
    TRIGGER_CHANCE_PERCENT = "trigger_chance_percent"
    COOLDOWN_SECONDS = "cooldown_seconds"


class SnapshotKey:
    """Keys of a persisted guild snapshot."""

    PHRASES = "phrases"
    ALLOWED_CHANNELS = "allowed_channels"
    CONFIG = "config"


class EnvKey:
    """Environment variables read at startup."""

    BOT_TOKEN = "DISCORD_BOT_TOKEN"
    BOT_TOKEN_FALLBACK = "BOT_TOKEN"
    ORACLE_API_KEY = "ORACLE_API_KEY"
    ORACLE_API_KEY_FALLBACK = "OPENAI_API_KEY"
    ORACLE_BASE_URL = "ORACLE_BASE_URL"
    ORACLE_MODEL = "ORACLE_MODEL"
    ORACLE_TIMEOUT_SECONDS = "ORACLE_TIMEOUT_SECONDS"
    HISTORY_LIMIT = "HISTORY_LIMIT"
    OWNER_IDS = "OWNER_IDS"
    DATA_PATH = "DATA_PATH"
    LOG_LEVEL = "LOG_LEVEL"


# Embed colour used by every admin command reply
EMBED_COLOR = 0x2F3136

# Upper bound of the trigger draw; a draw lands in [0, TRIGGER_DRAW_MAX]
TRIGGER_DRAW_MAX = 100

# Short alias
K = ConfigKey
