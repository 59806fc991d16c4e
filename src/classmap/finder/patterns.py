"""Glob mask compilation.

Masks use ``*`` (run of non-separator characters), ``?`` (one
non-separator character), ``[...]`` / ``[!...]`` character classes and
``**/`` for zero or more whole path segments. Compiled matchers are
evaluated against forward-slash relative paths.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Literal

from classmap.exceptions import ConfigError

Mode = Literal["file", "dir"]

_ABSOLUTE_RE = re.compile(r"([a-z]:)?[/\\]|[a-z][a-z0-9+.-]*://", re.IGNORECASE)

# Sequences produced by re.escape() for the wildcard syntax, longest first.
_WILDCARDS: dict[str, str] = {
    r"\*\*/": "(?:.+/)?",
    r"\*": "[^/]*",
    r"\?": "[^/]",
    r"\[!": "[^",
    r"\[": "[",
    r"\]": "]",
    r"\-": "-",
}
_WILDCARD_RE = re.compile("|".join(re.escape(k) for k in _WILDCARDS))


def normalize_slash(path: str) -> str:
    """Replace backslashes with forward slashes."""
    return path.replace("\\", "/")


def is_absolute(path: str) -> bool:
    """Return True for rooted paths, drive-letter paths and URLs."""
    return _ABSOLUTE_RE.match(path) is not None


@dataclass(frozen=True, slots=True)
class PathMatcher:
    """Compiled mask. A matcher without a regex accepts every path."""

    mask: str
    regex: re.Pattern[str] | None

    def matches(self, relative_path: str) -> bool:
        if self.regex is None:
            return True
        return self.regex.search(normalize_slash(relative_path)) is not None

    __call__ = matches


@dataclass(frozen=True, slots=True)
class Mask:
    """A compiled search request rooted at one base directory."""

    matcher: PathMatcher
    mode: Mode
    recursive: bool


def compile_mask(mask: str) -> PathMatcher:
    """Compile a glob mask into an end-anchored matcher.

    A mask of exactly ``*`` matches everything. A mask starting with ``./``
    is anchored at the start of the relative path; any other mask may
    start at a segment boundary, so ``Foo.php`` matches ``a/b/Foo.php``.

    Raises:
        ConfigError: If the mask has an unbalanced character class.
    """
    original = mask
    mask = normalize_slash(mask)

    if mask == "*":
        return PathMatcher(original, None)
    if mask.startswith("./"):
        anchor = "^"
        mask = mask[2:]
    else:
        anchor = "(?:^|/)"

    body = _WILDCARD_RE.sub(lambda m: _WILDCARDS[m.group(0)], re.escape(mask))
    flags = re.IGNORECASE if os.name == "nt" else 0
    try:
        regex = re.compile(anchor + body + r"\Z", flags)
    except re.error as exc:
        raise ConfigError(f"Invalid mask '{original}'") from exc
    return PathMatcher(original, regex)
