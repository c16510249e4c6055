"""
Context window construction.

Turns recent channel history into a bounded query string for the relevance
oracle. The newest text is kept and older text is cut at a word boundary.
"""
from __future__ import annotations

from typing import Iterable, List

SEPARATOR = " "


def merge_history(newest_first: Iterable[str]) -> str:
    """Join message texts in chronological order, skipping blank ones."""
    texts: List[str] = [text.strip() for text in newest_first if text and text.strip()]
    texts.reverse()
    return SEPARATOR.join(texts)


def tail_at_word_boundary(text: str, max_chars: int) -> str:
    """
    Longest suffix of ``text`` no longer than ``max_chars`` that starts on a
    word boundary.

    When even the last word doesn't fit, the raw character suffix is used so
    the result is only empty if ``max_chars`` is.
    """
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text

    start = len(text) - max_chars
    tail = text[start:]
    if text[start - 1].isspace():
        return tail.lstrip()

    # We landed inside a word; drop it
    for index, char in enumerate(tail):
        if char.isspace():
            trimmed = tail[index:].lstrip()
            if trimmed:
                return trimmed
            break
    return tail


def build_context_window(newest_first: Iterable[str], max_chars: int) -> str:
    return tail_at_word_boundary(merge_history(newest_first), max_chars)
