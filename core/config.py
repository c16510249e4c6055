"""
Guild configuration and snapshot validation.

Handles validating and normalizing per-guild tunables and persisted guild
snapshots, plus the process-wide settings read from the environment.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .constants import EnvKey, K, SnapshotKey
from .paths import DEFAULT_DATA_DIR, resolve_repo_path
from .utils import is_int, is_number, is_valid_id, parse_id_list

logger = logging.getLogger("catchphrase.config")

DEFAULT_CONFIG: Dict[str, Any] = {
    "minimum_score": 20,
    "max_context_chars": 512,
    "trigger_chance_percent": 25,
    "cooldown_seconds": 20,
}

CONFIG_SCHEMA: Dict[str, Tuple[str, bool]] = {
    "minimum_score": ("number", True),
    "max_context_chars": ("pos_int", True),
    "trigger_chance_percent": ("percent", True),
    "cooldown_seconds": ("nonneg_int", True),
}

DEFAULT_ORACLE_BASE_URL = "https://api.openai.com/v1"
DEFAULT_ORACLE_MODEL = "babbage"
DEFAULT_ORACLE_TIMEOUT_SECONDS = 10.0
DEFAULT_HISTORY_LIMIT = 10


class ConfigError(RuntimeError):
    pass


class SnapshotError(RuntimeError):
    pass


def validate_and_normalize_config(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ConfigError("Config must be a JSON object")

    errors: List[str] = []
    normalized: Dict[str, Any] = {}

    unknown = sorted(str(key) for key in data if key not in CONFIG_SCHEMA)
    if unknown:
        errors.append(f"Unknown config keys: {', '.join(unknown)}")

    for key, (type_name, required) in CONFIG_SCHEMA.items():
        if key not in data:
            if required:
                errors.append(f"Missing required config key: {key}")
            else:
                normalized[key] = DEFAULT_CONFIG.get(key)
            continue
        value = data[key]
        if type_name == "number":
            if not is_number(value):
                errors.append(f"{key} must be a number")
            else:
                normalized[key] = value
        elif type_name == "pos_int":
            if not is_int(value) or value <= 0:
                errors.append(f"{key} must be a positive integer")
            else:
                normalized[key] = int(value)
        elif type_name == "nonneg_int":
            if not is_int(value) or value < 0:
                errors.append(f"{key} must be a non-negative integer")
            else:
                normalized[key] = int(value)
        elif type_name == "percent":
            if not is_int(value) or not 0 <= value <= 100:
                errors.append(f"{key} must be an integer between 0 and 100")
            else:
                normalized[key] = int(value)
        else:
            errors.append(f"Unknown config type for {key}")

    if errors:
        raise ConfigError("; ".join(errors))
    return normalized


@dataclass(frozen=True)
class GuildConfig:
    """Tunable parameters of a single guild."""
    minimum_score: float = DEFAULT_CONFIG["minimum_score"]
    max_context_chars: int = DEFAULT_CONFIG["max_context_chars"]
    trigger_chance_percent: int = DEFAULT_CONFIG["trigger_chance_percent"]
    cooldown_seconds: int = DEFAULT_CONFIG["cooldown_seconds"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            K.MINIMUM_SCORE: self.minimum_score,
            K.MAX_CONTEXT_CHARS: self.max_context_chars,
            K.TRIGGER_CHANCE_PERCENT: self.trigger_chance_percent,
            K.COOLDOWN_SECONDS: self.cooldown_seconds,
        }

    @classmethod
    def from_dict(cls, data: Any) -> GuildConfig:
        """Build from untrusted data; raises ConfigError."""
        normalized = validate_and_normalize_config(data)
        return cls(
            minimum_score=normalized[K.MINIMUM_SCORE],
            max_context_chars=normalized[K.MAX_CONTEXT_CHARS],
            trigger_chance_percent=normalized[K.TRIGGER_CHANCE_PERCENT],
            cooldown_seconds=normalized[K.COOLDOWN_SECONDS],
        )


def parse_config_text(text: str) -> GuildConfig:
    """Parse a JSON config as typed by an administrator."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Config is not valid JSON: {exc}") from exc
    return GuildConfig.from_dict(data)


def config_to_text(config: GuildConfig) -> str:
    return json.dumps(config.to_dict(), indent=2)


@dataclass
class GuildSnapshot:
    """Persisted part of a guild's state. Cooldowns are never included."""
    phrases: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    allowed_channels: List[int] = field(default_factory=list)
    config: GuildConfig = field(default_factory=GuildConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            SnapshotKey.PHRASES: {
                text: list(keywords) if keywords else None
                for text, keywords in self.phrases.items()
            },
            SnapshotKey.ALLOWED_CHANNELS: sorted(self.allowed_channels),
            SnapshotKey.CONFIG: self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Any) -> GuildSnapshot:
        """Build from untrusted data; raises SnapshotError."""
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot must be a JSON object")

        errors: List[str] = []

        raw_phrases = data.get(SnapshotKey.PHRASES, {})
        phrases: Dict[str, Tuple[str, ...]] = {}
        if not isinstance(raw_phrases, dict):
            errors.append("phrases must be an object of phrase -> keyword list")
        else:
            for text, keywords in raw_phrases.items():
                if not isinstance(text, str) or not text.strip():
                    errors.append("phrases must not contain empty phrase text")
                    break
                if keywords is None:
                    phrases[text.strip()] = ()
                elif isinstance(keywords, list) and all(isinstance(k, str) for k in keywords):
                    phrases[text.strip()] = tuple(k.strip() for k in keywords if k.strip())
                else:
                    errors.append(f"keywords of {text!r} must be a list of strings or null")
                    break

        raw_channels = data.get(SnapshotKey.ALLOWED_CHANNELS, [])
        channels: List[int] = []
        if not isinstance(raw_channels, list) or any(not is_valid_id(c) for c in raw_channels):
            errors.append("allowed_channels must be a list of integer IDs")
        else:
            channels = sorted(set(int(c) for c in raw_channels))

        config = GuildConfig()
        if SnapshotKey.CONFIG in data:
            try:
                config = GuildConfig.from_dict(data[SnapshotKey.CONFIG])
            except ConfigError as exc:
                errors.append(f"config: {exc}")

        if errors:
            raise SnapshotError("; ".join(errors))
        return cls(phrases=phrases, allowed_channels=channels, config=config)


def parse_snapshot_text(text: str) -> GuildSnapshot:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"Snapshot is not valid JSON: {exc}") from exc
    return GuildSnapshot.from_dict(data)


def snapshot_to_text(snapshot: GuildSnapshot) -> str:
    return json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False)


# ─── Process settings ─────────────────────────────────────────────────────────


def _env_float(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, using %s", key, default)
        return default
    return value


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %s", key, raw, default)
        return default
    if value <= 0:
        logger.warning("%s must be positive, using %s", key, default)
        return default
    return value


@dataclass
class BotSettings:
    """Process-wide settings, read once at startup."""
    bot_token: Optional[str] = None
    oracle_api_key: Optional[str] = None
    oracle_base_url: str = DEFAULT_ORACLE_BASE_URL
    oracle_model: str = DEFAULT_ORACLE_MODEL
    oracle_timeout_seconds: float = DEFAULT_ORACLE_TIMEOUT_SECONDS
    history_limit: int = DEFAULT_HISTORY_LIMIT
    owner_ids: frozenset[int] = frozenset()
    data_dir: Path = field(default_factory=lambda: resolve_repo_path(DEFAULT_DATA_DIR))
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> BotSettings:
        env = os.environ if environ is None else environ
        return cls(
            bot_token=env.get(EnvKey.BOT_TOKEN) or env.get(EnvKey.BOT_TOKEN_FALLBACK),
            oracle_api_key=env.get(EnvKey.ORACLE_API_KEY) or env.get(EnvKey.ORACLE_API_KEY_FALLBACK),
            oracle_base_url=(env.get(EnvKey.ORACLE_BASE_URL) or DEFAULT_ORACLE_BASE_URL).rstrip("/"),
            oracle_model=env.get(EnvKey.ORACLE_MODEL) or DEFAULT_ORACLE_MODEL,
            oracle_timeout_seconds=_env_float(env, EnvKey.ORACLE_TIMEOUT_SECONDS, DEFAULT_ORACLE_TIMEOUT_SECONDS),
            history_limit=_env_int(env, EnvKey.HISTORY_LIMIT, DEFAULT_HISTORY_LIMIT),
            owner_ids=frozenset(parse_id_list(env.get(EnvKey.OWNER_IDS))),
            data_dir=resolve_repo_path(env.get(EnvKey.DATA_PATH) or DEFAULT_DATA_DIR),
            log_level=(env.get(EnvKey.LOG_LEVEL) or "INFO").upper(),
        )
