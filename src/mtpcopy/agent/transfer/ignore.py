"""Device files that are never transferred.

This module provides:
- IgnorePatterns: Matches device-relative paths against fnmatch patterns
- DEFAULT_IGNORE_PATTERNS: Android housekeeping files never worth copying

A pattern without a slash matches any single path component, so
".thumbnails" skips that folder wherever it appears. A pattern with a
slash matches the whole relative path.
"""

from __future__ import annotations

import fnmatch

# Android writes these while capturing or trashing media, or to hide folders from the gallery
DEFAULT_IGNORE_PATTERNS = [
    ".thumbnails",
    ".thumbnails/**",
    ".pending-*",
    ".trashed-*",
    ".nomedia",
    "*.tmp",
]


class IgnorePatterns:
    """The default patterns plus the configured ``ignore_patterns``."""

    def __init__(self, patterns: list[str] | None = None) -> None:
        self._name_patterns: list[str] = []
        self._path_patterns: list[str] = []
        for pattern in [*DEFAULT_IGNORE_PATTERNS, *(patterns or [])]:
            pattern = pattern.strip().strip("/")
            if not pattern:
                continue
            if "/" in pattern:
                self._path_patterns.append(pattern)
            else:
                self._name_patterns.append(pattern)

    def should_ignore(self, rel_path: str) -> bool:
        """Check if a device path should be skipped.

        Args:
            rel_path: Path relative to the source root, forward slashes.

        Returns:
            True if the path or any of its components matches a pattern.
        """
        parts = rel_path.split("/")
        if any(fnmatch.fnmatch(part, p) for part in parts for p in self._name_patterns):
            return True
        return any(fnmatch.fnmatch(rel_path, p) for p in self._path_patterns)
