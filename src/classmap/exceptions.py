"""classmap exception hierarchy.

All exceptions inherit from ClassmapError so callers can catch the base
class when they want to handle any classmap-specific failure uniformly.
"""

from __future__ import annotations

from pathlib import Path


class ClassmapError(Exception):
    """Base exception for all classmap errors."""


class ConfigError(ClassmapError):
    """Configuration errors (invalid mask, missing directory, unset cache dir, etc.)."""


class ScanError(ClassmapError):
    """A source file could not be read or tokenized."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = path


class AmbiguousSymbolError(ClassmapError):
    """Two distinct files declare the same symbol."""

    def __init__(self, symbol: str, first: str, second: str) -> None:
        super().__init__(
            f"Ambiguous symbol {symbol} resolution; defined in {first} and in {second}."
        )
        self.symbol = symbol
        self.files = (first, second)


class FileAccessError(ClassmapError, OSError):
    """A directory could not be listed during traversal."""


class CacheIOError(ClassmapError, OSError):
    """The cache, temporary or lock artifact could not be created, locked or renamed."""
