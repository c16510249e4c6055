"""
General utility functions.

Provides text sanitization, validation functions and code block parsing.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, List, Optional

CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
CODE_FENCE = "```"
# Optional language tag on the first line of a fenced block
CODE_LANG_RE = re.compile(r"^[A-Za-z0-9_+-]*\n")


def sanitize_text(text: Any, max_len: int = 1500) -> str:
    if text is None:
        return ""
    text = str(text)
    text = CONTROL_RE.sub("", text)
    text = text.replace("@", "@\u200b")
    if len(text) > max_len:
        text = text[: max_len - 3] + "..."
    return text


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def is_valid_id(value: Any) -> bool:
    return is_int(value) and 1 <= value <= 2**63 - 1


def safe_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            try:
                return int(stripped)
            except Exception:
                return default
    return default


def parse_id_list(text: Optional[str]) -> List[int]:
    """Parse a comma separated list of ids, skipping anything that isn't one."""
    if not text:
        return []
    ids: List[int] = []
    for part in text.split(","):
        value = safe_int(part)
        if value is not None and is_valid_id(value):
            ids.append(value)
    return ids


def parse_keywords(text: Optional[str]) -> List[str]:
    """Split comma separated keywords, dropping blanks and duplicates."""
    if not text:
        return []
    seen: List[str] = []
    for part in text.split(","):
        word = part.strip()
        if word and word not in seen:
            seen.append(word)
    return seen


def extract_code_block(content: str) -> Optional[str]:
    """
    Return the body of a message that is a single fenced code block.

    A leading language tag (```json) is dropped. Returns None when the
    message isn't wrapped in fences.
    """
    content = (content or "").strip()
    if len(content) < 2 * len(CODE_FENCE):
        return None
    if not (content.startswith(CODE_FENCE) and content.endswith(CODE_FENCE)):
        return None
    body = content[len(CODE_FENCE):-len(CODE_FENCE)]
    body = CODE_LANG_RE.sub("", body, count=1)
    return body.strip()


def code_block(text: str, lang: str = "json") -> str:
    return f"{CODE_FENCE}{lang}\n{text}\n{CODE_FENCE}"


def chunk_lines(lines: Iterable[str], limit: int = 1024) -> List[str]:
    """Group lines into chunks no longer than ``limit`` characters."""
    chunks: List[str] = []
    current: List[str] = []
    current_len = 0
    for line in lines:
        line = line[:limit]
        line_len = len(line) + (1 if current else 0)
        if current and current_len + line_len > limit:
            chunks.append("\n".join(current))
            current = [line]
            current_len = len(line)
        else:
            current.append(line)
            current_len += line_len
    if current:
        chunks.append("\n".join(current))
    return chunks
