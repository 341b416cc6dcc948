"""Glob matching for route ignore lists.

Patterns support ``*`` (any run of characters, including ``/``) and ``?``
(exactly one character). Every other character, ``.`` included, matches
literally, and a pattern must match the whole path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from urllib.parse import urlsplit


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob pattern into an anchored regular expression.

    Example:
        >>> bool(compile_glob("file?.txt").match("file1.txt"))
        True
        >>> bool(compile_glob("file?.txt").match("file12.txt"))
        False
    """
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL)


def matches_any(value: str, patterns: Iterable[str]) -> bool:
    """Return True if ``value`` matches at least one glob pattern."""
    return any(compile_glob(pattern).match(value) for pattern in patterns)


def should_ignore_path(path: str | None, patterns: Iterable[str]) -> bool:
    """Check an inbound request path against an ignore list.

    Example:
        >>> should_ignore_path("/api/orders", ["/health", "/api/*"])
        True
    """
    if not path:
        return False
    return matches_any(path, patterns)


def should_ignore_url(url: str | None, patterns: Iterable[str]) -> bool:
    """Check an outbound URL against an ignore list.

    The full URL is tried first, then its path component, so both
    ``https://metrics.internal/*`` and ``/health`` style patterns work.
    """
    if not url:
        return False
    patterns = tuple(patterns)
    if not patterns:
        return False
    if matches_any(url, patterns):
        return True
    path = urlsplit(url).path
    return bool(path) and path != url and matches_any(path, patterns)
