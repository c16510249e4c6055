"""
Type definitions and dataclasses shared across the bot.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class ScoredDocument:
    """One entry of a relevance oracle response."""
    index: int
    score: float


@dataclass(frozen=True)
class PhraseEntry:
    """A registered phrase and the keywords it is matched by."""
    text: str
    keywords: Tuple[str, ...] = ()

    @property
    def document(self) -> str:
        """Text handed to the oracle; keywords win over the phrase itself."""
        if self.keywords:
            return " ".join(self.keywords)
        return self.text


@dataclass
class AdminResult:
    """
    Outcome of an administrative operation.

    ``value`` carries the operation's payload (removed/added flags, listings,
    snapshot text). ``warning`` is set when the change applied but could not
    be persisted.
    """
    ok: bool
    value: Any = None
    error: Optional[str] = None
    warning: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None, warning: Optional[str] = None) -> AdminResult:
        return cls(ok=True, value=value, warning=warning)

    @classmethod
    def failure(cls, error: str) -> AdminResult:
        return cls(ok=False, error=error)


class DispatchOutcome(str, Enum):
    """Where a single message's pass through the responder ended."""
    IGNORED = "ignored"
    COOLDOWN = "cooldown"
    NOT_TRIGGERED = "not_triggered"
    FAILED = "failed"
    NO_MATCH = "no_match"
    SUPPRESSED = "suppressed"
    RESPONDED = "responded"

    @property
    def scored(self) -> bool:
        return self in (DispatchOutcome.NO_MATCH, DispatchOutcome.SUPPRESSED, DispatchOutcome.RESPONDED)


@dataclass
class PersistenceReport:
    """Aggregate result of persisting several guilds."""
    saved: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed
