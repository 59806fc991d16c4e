"""Resolution of roots and masks into per-directory search plans."""

from __future__ import annotations

import glob
import os
import re
from collections.abc import Iterable, Sequence

from classmap.exceptions import ConfigError
from classmap.finder.patterns import Mask, Mode, compile_mask, is_absolute, normalize_slash
from classmap.finder.walker import FileRecord, Predicate

SearchPlan = dict[str, list[Mask]]

_DIR_SPLIT_RE = re.compile(r"(.*[\\/])(.*)\Z", re.DOTALL)
_RECURSIVE_SEGMENT_RE = re.compile(r"(?:^|(?<=[\\/]))\*\*(?:$|[\\/])")
_EXCLUDE_RE = re.compile(r"/?(\*\*/)?(.+?)(/\*\*|/\*|/|)\Z", re.DOTALL)
_GLOB_CHARS = frozenset("*?[")


def split_recursive_part(path: str) -> tuple[str, str, bool]:
    """Split a path at its first ``**`` segment.

    glob() has no recursive wildcard, so the fixed prefix is expanded by
    glob and the remainder is matched during manual traversal.

    Returns:
        (base directory, remainder mask, recursive flag)
    """
    match = _DIR_SPLIT_RE.match(path)
    if match is None:
        return "", path, False
    directory, filename = match.group(1), match.group(2)
    parts = _RECURSIVE_SEGMENT_RE.split(directory, maxsplit=1)
    if len(parts) == 2:
        return parts[0], parts[1] + filename, True
    return parts[0], filename, False


def escape_brackets(path: str) -> str:
    """Escape [ and ] so glob() treats them literally."""
    return re.sub(r"[\[\]]", lambda m: f"[{m.group(0)}]", path)


def unescape_brackets(path: str) -> str:
    return re.sub(r"\[([\[\]])\]", r"\1", path)


def build_exclude_filter(mask: str) -> tuple[Predicate, bool]:
    """Compile an exclusion mask into a keep-predicate.

    The suffix selects the scope:

    ========  =================================  ======================
    suffix    excludes                           also filters results
    ========  =================================  ======================
    ``/**``   the directory and its subtree      yes
    ``/*``    the directory's contents           no
    ``/``     directories only                   no
    (none)    files and directories              yes
    ========  =================================  ======================

    Returns:
        (predicate returning False for excluded records, whether the
        predicate also applies to yielded entries)

    Raises:
        ConfigError: If the mask is malformed.
    """
    normalized = normalize_slash(mask)
    match = _EXCLUDE_RE.match(normalized)
    if match is None:
        raise ConfigError(f"Invalid mask '{mask}'")

    suffix = match.group(3)
    matcher = compile_mask(match.group(2))

    def keep(record: FileRecord) -> bool:
        if suffix and not record.is_dir:
            return True
        return not matcher.matches(record.relative_path)

    return keep, suffix in ("/**", "")


class SearchPlanBuilder:
    """Turns (mask, mode) requests and search locations into a SearchPlan.

    Locations carry their own recursion marker: ``src/**`` searches the
    whole subtree, ``src`` only its direct children.
    """

    def __init__(self, locations: Sequence[str] = ()) -> None:
        self._locations = list(locations)

    def build(self, requests: Iterable[tuple[str, Mode]]) -> SearchPlan:
        """Resolve every request against the locations.

        Raises:
            ConfigError: On an absolute mask combined with locations, or when
                a base directory does not exist.
        """
        plan: SearchPlan = {}
        expanded: dict[str, list[str]] = {}

        for mask, mode in requests:
            splits: list[tuple[str, str, bool]] = []
            if is_absolute(mask):
                if self._locations:
                    raise ConfigError(
                        f"You cannot combine the absolute path in the mask '{mask}' "
                        f"and the directory to search '{self._locations[0]}'."
                    )
                splits.append(split_recursive_part(mask))
            else:
                for location in self._locations or ["."]:
                    splits.append(
                        split_recursive_part(f"{escape_brackets(location)}{os.sep}{mask}")
                    )

            for base, rest, recursive in splits:
                base = base or "."
                if base not in expanded:
                    expanded[base] = self._expand(base)
                search = Mask(compile_mask(rest), mode, recursive)
                for directory in expanded[base]:
                    plan.setdefault(directory, []).append(search)

        return plan

    @staticmethod
    def _expand(base: str) -> list[str]:
        if _GLOB_CHARS.intersection(base):
            directories = sorted(d for d in glob.glob(base) if os.path.isdir(d))
        else:
            literal = unescape_brackets(base)
            directories = [literal] if os.path.isdir(literal) else []

        if not directories:
            raise ConfigError(f"Directory '{base.rstrip('/' + os.sep)}' does not exist.")
        return directories
