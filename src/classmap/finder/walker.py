"""Lazy depth-first directory traversal."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from classmap.exceptions import FileAccessError
from classmap.finder.patterns import Mask, is_absolute

Kind = Literal["file", "dir", "other"]
Predicate = Callable[["FileRecord"], bool]


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Snapshot of one directory entry taken at traversal time.

    Attributes:
        path: Path of the entry as reachable from the working directory.
        relative_path: Forward-slash path relative to the search base.
        kind: "file", "dir" or "other" (broken links, sockets, ...).
        mtime: Modification time in nanoseconds.
    """

    path: str
    relative_path: str
    kind: Kind
    mtime: int

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"

    @property
    def is_file(self) -> bool:
        return self.kind == "file"


class DirectoryWalker:
    """Walks a directory yielding FileRecords that match a list of masks.

    Filters are stored once in ``filters``; ``content_filters`` and
    ``descent_filters`` hold indexes into it, so a predicate registered for
    both purposes is evaluated at most once per entry.
    """

    def __init__(
        self,
        filters: Sequence[Predicate] = (),
        content_filters: Sequence[int] = (),
        descent_filters: Sequence[int] = (),
        *,
        sort_key: Callable[[FileRecord], Any] | None = None,
        child_first: bool = False,
        max_depth: int = -1,
        ignore_unreadable_dirs: bool = True,
    ) -> None:
        self._filters = list(filters)
        self._content_filters = list(content_filters)
        self._descent_filters = list(descent_filters)
        self._sort_key = sort_key
        self._child_first = child_first
        self._max_depth = max_depth
        self._ignore_unreadable_dirs = ignore_unreadable_dirs

    def walk(self, directory: str, masks: Sequence[Mask]) -> Iterator[FileRecord]:
        """Yield matching entries under ``directory``, depth first."""
        yield from self._traverse(directory, list(masks), [])

    def _traverse(
        self, directory: str, masks: list[Mask], subdirs: list[str]
    ) -> Iterator[FileRecord]:
        if self._max_depth >= 0 and len(subdirs) > self._max_depth:
            return

        try:
            records = self._list(directory, "/".join(subdirs))
        except OSError as exc:
            if self._ignore_unreadable_dirs:
                return
            raise FileAccessError(f"Unable to read directory '{directory}': {exc}") from exc

        if self._sort_key is not None:
            records.sort(key=self._sort_key)

        for record in records:
            memo: dict[int, bool] = {}
            descend: list[Mask] = []
            if record.is_dir:
                descend = [
                    mask
                    for mask in masks
                    if mask.recursive and self._prove(self._descent_filters, record, memo)
                ]

            if self._child_first and descend:
                yield from self._traverse(record.path, descend, [*subdirs, record.name])

            for mask in masks:
                if (
                    record.kind == mask.mode
                    and mask.matcher.matches(record.relative_path)
                    and self._prove(self._content_filters, record, memo)
                ):
                    yield record
                    break

            if not self._child_first and descend:
                yield from self._traverse(record.path, descend, [*subdirs, record.name])

    @staticmethod
    def _list(directory: str, relative_dir: str) -> list[FileRecord]:
        strip_dot = not is_absolute(directory)
        records: list[FileRecord] = []
        with os.scandir(directory) as entries:
            for entry in entries:
                path = os.path.join(directory, entry.name)
                if strip_dot:
                    path = _strip_leading_dot(path)
                relative = f"{relative_dir}/{entry.name}" if relative_dir else entry.name
                try:
                    if entry.is_dir():
                        kind: Kind = "dir"
                    elif entry.is_file():
                        kind = "file"
                    else:
                        records.append(FileRecord(path, relative, "other", 0))
                        continue
                    mtime = entry.stat().st_mtime_ns
                except OSError:
                    # Removed between listing and stat.
                    continue
                records.append(FileRecord(path, relative, kind, mtime))
        return records

    def _prove(self, indexes: list[int], record: FileRecord, memo: dict[int, bool]) -> bool:
        """Evaluate filters by index, memoizing each result for this entry."""
        for index in indexes:
            result = memo.get(index)
            if result is None:
                result = memo[index] = bool(self._filters[index](record))
            if not result:
                return False
        return True


def _strip_leading_dot(path: str) -> str:
    if path.startswith(("./", ".\\")):
        return path[2:]
    return path
