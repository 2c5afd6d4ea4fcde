"""Path glob matching for repository listings.

Patterns use `/` separators. `*`, `?` and `[...]` match within one path
segment (via fnmatch); a `**` segment matches any number of segments,
including none. A pattern without `/` matches the final segment at any depth,
the way manifest names like `Cargo.toml` are listed.
"""

from __future__ import annotations

import fnmatch
from functools import lru_cache

__all__ = ["glob_match", "is_literal", "match_dir"]


def is_literal(pattern: str) -> bool:
    return not any(ch in pattern for ch in "*?[")


@lru_cache(maxsize=256)
def _segments(pattern: str) -> tuple[str, ...]:
    pattern = pattern.strip("/")
    if "/" not in pattern and pattern != "**":
        return ("**", pattern)
    return tuple(seg for seg in pattern.split("/") if seg and seg != ".")


def _match(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match(rest, parts[i:]) for i in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match(rest, parts[1:])


def glob_match(pattern: str, path: str) -> bool:
    """Return True if the repository-relative `path` matches `pattern`."""
    parts = tuple(seg for seg in path.strip("/").split("/") if seg)
    return _match(_segments(pattern), parts)


def match_dir(pattern: str, directory: str) -> bool:
    """Match a directory against a workspace member pattern.

    Unlike `glob_match`, a pattern without `/` is anchored at the root
    (`"crates"` only matches the top-level `crates` directory).
    """
    pattern = pattern.strip("/")
    if pattern in ("", "."):
        return directory.strip("/") == ""
    parts = tuple(seg for seg in directory.strip("/").split("/") if seg)
    segments = tuple(seg for seg in pattern.split("/") if seg and seg != ".")
    return _match(segments, parts)
