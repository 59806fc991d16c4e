"""Fluent file search built on SearchPlanBuilder and DirectoryWalker."""

from __future__ import annotations

import os
import re
import stat
from collections.abc import Callable, Iterator
from typing import Any

from classmap.exceptions import ConfigError
from classmap.finder.patterns import Mode
from classmap.finder.plan import SearchPlan, SearchPlanBuilder, build_exclude_filter
from classmap.finder.walker import DirectoryWalker, FileRecord, Predicate

_LEADING_RECURSIVE_RE = re.compile(r"\A\*\*[/\\]")


class Finder:
    """Finds files and directories matching masks.

    Usage::

        for record in Finder.find_files("*.php").from_dirs("src").exclude("tests/**"):
            print(record.path)

    Nothing touches the filesystem until the finder is iterated, and each
    iteration starts a fresh walk.
    """

    def __init__(self) -> None:
        self._find: list[tuple[str, Mode]] = []
        self._locations: list[str] = []
        self._filters: list[Predicate] = []
        self._content_filters: list[int] = []
        self._descent_filters: list[int] = []
        self._appends: list[str | Finder] = []
        self._child_first = False
        self._sort_key: Callable[[FileRecord], Any] | None = None
        self._max_depth = -1
        self._ignore_unreadable_dirs = True

    @classmethod
    def find(cls, *masks: str) -> Finder:
        """Find files and directories matching the masks."""
        masks = masks or ("*",)
        return cls().files(*masks).directories(*masks)

    @classmethod
    def find_files(cls, *masks: str) -> Finder:
        return cls().files(*(masks or ("*",)))

    @classmethod
    def find_directories(cls, *masks: str) -> Finder:
        return cls().directories(*(masks or ("*",)))

    def files(self, *masks: str) -> Finder:
        return self._add_masks(masks, "file")

    def directories(self, *masks: str) -> Finder:
        return self._add_masks(masks, "dir")

    def _add_masks(self, masks: tuple[str, ...], mode: Mode) -> Finder:
        for mask in masks:
            stripped = mask.rstrip("/\\")
            if not stripped or (mode == "file" and stripped != mask):
                raise ConfigError(f"Invalid mask '{mask}'")
            self._find.append((_LEADING_RECURSIVE_RE.sub("", stripped, count=1), mode))
        return self

    def in_dirs(self, *paths: str) -> Finder:
        """Search directly inside the directories, without recursion."""
        self._add_locations(paths, "")
        return self

    def from_dirs(self, *paths: str) -> Finder:
        """Search the directories and all their subdirectories."""
        self._add_locations(paths, os.sep + "**")
        return self

    def _add_locations(self, paths: tuple[str, ...], suffix: str) -> None:
        for path in paths:
            if not path:
                raise ConfigError(f"Invalid directory '{path}'")
            self._locations.append(path.rstrip("/\\") + suffix)

    def filter(self, callback: Predicate) -> Finder:
        """Keep only entries for which the callback returns True."""
        self._content_filters.append(self._register(callback))
        return self

    def descent_filter(self, callback: Predicate) -> Finder:
        """Descend only into directories for which the callback returns True."""
        self._descent_filters.append(self._register(callback))
        return self

    def _register(self, callback: Predicate) -> int:
        self._filters.append(callback)
        return len(self._filters) - 1

    def exclude(self, *masks: str) -> Finder:
        """Exclude entries and subtrees; see build_exclude_filter for suffixes."""
        for mask in masks:
            keep, filters_results = build_exclude_filter(mask)
            index = self._register(keep)
            self._descent_filters.append(index)
            if filters_results:
                self._content_filters.append(index)
        return self

    def sort_by(self, key: Callable[[FileRecord], Any]) -> Finder:
        """Sort the entries of each directory level by key."""
        self._sort_key = key
        return self

    def sort_by_name(self) -> Finder:
        return self.sort_by(lambda record: record.name)

    def child_first(self, on: bool = True) -> Finder:
        """Yield a directory's descendants before the directory itself."""
        self._child_first = on
        return self

    def limit_depth(self, depth: int | None) -> Finder:
        """Limit recursion depth; None or a negative value means unlimited."""
        self._max_depth = -1 if depth is None else depth
        return self

    def ignore_unreadable_dirs(self, on: bool = True) -> Finder:
        self._ignore_unreadable_dirs = on
        return self

    def append(self, *items: str | Finder) -> Finder:
        """Append explicit paths or whole finders to the results."""
        self._appends.extend(items)
        return self

    def build_plan(self) -> SearchPlan:
        return SearchPlanBuilder(self._locations).build(self._find)

    def collect(self) -> list[FileRecord]:
        return list(self)

    def __iter__(self) -> Iterator[FileRecord]:
        plan = self.build_plan()
        walker = DirectoryWalker(
            self._filters,
            self._content_filters,
            self._descent_filters,
            sort_key=self._sort_key,
            child_first=self._child_first,
            max_depth=self._max_depth,
            ignore_unreadable_dirs=self._ignore_unreadable_dirs,
        )
        for directory, masks in plan.items():
            yield from walker.walk(directory, masks)

        for item in self._appends:
            if isinstance(item, Finder):
                yield from item
            else:
                yield _record_for(item)


def _record_for(path: str) -> FileRecord:
    name = os.path.basename(path.rstrip("/\\"))
    try:
        info = os.stat(path)
    except OSError:
        return FileRecord(path, name, "other", 0)
    kind = "dir" if stat.S_ISDIR(info.st_mode) else "file"
    return FileRecord(path, name, kind, info.st_mtime_ns)
