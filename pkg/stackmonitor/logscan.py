"""Error line detection in container log output."""

from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass
from typing import Iterable

DEFAULT_ERROR_PATTERNS = ("error",)
DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class ErrorLine:
    """A log line that matched one of the error patterns."""

    container: str
    message: str
    signature: str
    matched_pattern: str


def _normalize_signature(text: str) -> str:
    normalized = " ".join((text or "").split()).lower()
    normalized = re.sub(r"\b0x[0-9a-f]+\b", "0x<id>", normalized)
    normalized = re.sub(r"\b[0-9a-f]{8,}\b", "<id>", normalized)
    normalized = re.sub(r"\b\d+\b", "<num>", normalized)
    return normalized.strip() or "error"


class ErrorLineScanner:
    """Finds the most recent error lines in a log dump."""

    def __init__(self, patterns: Iterable[str] = DEFAULT_ERROR_PATTERNS, limit: int = DEFAULT_LIMIT) -> None:
        if limit <= 0:
            raise ValueError("limit must be greater than zero")
        self._pattern_regex = tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)
        if not self._pattern_regex:
            raise ValueError("patterns cannot be empty")
        self._limit = limit

    def _match(self, text: str) -> str | None:
        for regex in self._pattern_regex:
            if regex.search(text):
                return regex.pattern
        return None

    def scan(self, container: str, text: str) -> list[ErrorLine]:
        """Return the last ``limit`` matching lines, oldest first."""
        found: deque[ErrorLine] = deque(maxlen=self._limit)
        for line in text.splitlines():
            if not line.strip():
                continue
            matched = self._match(line)
            if matched is None:
                continue
            found.append(
                ErrorLine(
                    container=container,
                    message=line.strip(),
                    signature=_normalize_signature(line),
                    matched_pattern=matched,
                )
            )
        return list(found)


def distinct_signatures(lines: Iterable[ErrorLine]) -> list[str]:
    """Signatures in first-seen order, duplicates dropped."""
    return list(dict.fromkeys(line.signature for line in lines))
