"""Incremental symbol -> file index."""

from __future__ import annotations

import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from classmap.config import LoaderConfig
from classmap.exceptions import AmbiguousSymbolError, ConfigError
from classmap.finder import FileRecord, Finder
from classmap.indexer.models import CacheSnapshot, SymbolEntry
from classmap.indexer.scanner import SymbolScanner

console = Console(stderr=True)

RETRY_LIMIT = 3


@dataclass
class IndexSession:
    """Per-process state of an index consumer.

    Attributes:
        cache_loaded: The persisted snapshot has been loaded (or replaced).
        refreshed: A full rescan already ran; later lookups never rescan.
        dirty: In-memory state differs from the persisted snapshot.
        walks: Number of full rescans performed.
    """

    cache_loaded: bool = False
    refreshed: bool = False
    dirty: bool = False
    walks: int = 0


@dataclass
class _Source:
    path: str
    mtime: int
    single_file: bool = False


def _mtime(path: str) -> int | None:
    try:
        return os.stat(path).st_mtime_ns
    except OSError:
        return None


@dataclass
class SymbolIndex:
    """Maps symbol names to the files declaring them.

    Attributes:
        config: Roots, masks and flags driving the scan.
        scanner: Extracts symbols from one file.
        symbols: Symbol name -> declaring file and its scan-time mtime.
        missing: Symbol name -> consecutive failed lookups (capped).
        empty_files: File -> mtime for scanned files declaring nothing.
    """

    config: LoaderConfig
    scanner: SymbolScanner
    symbols: dict[str, SymbolEntry] = field(default_factory=dict)
    missing: dict[str, int] = field(default_factory=dict)
    empty_files: dict[str, int] = field(default_factory=dict)

    def clear(self) -> None:
        self.symbols = {}
        self.missing = {}
        self.empty_files = {}

    def rebuild(self, session: IndexSession) -> None:
        """Rescan all roots and standalone files.

        Files whose path and mtime are unchanged since the previous state
        are not scanned again. Files no longer found drop out of the index.

        Raises:
            AmbiguousSymbolError: If two files declare the same symbol.
            ConfigError: If a root does not exist.
        """
        session.refreshed = True
        session.walks += 1

        known = dict(self.empty_files)
        known_symbols: dict[str, list[str]] = {}
        for name, entry in self.symbols.items():
            known[entry.file] = entry.mtime
            known_symbols.setdefault(entry.file, []).append(name)

        self.symbols = {}
        self.empty_files = {}
        seen: set[str] = set()

        for source in self._iter_sources():
            if source.path in seen:
                continue
            seen.add(source.path)

            if known.get(source.path) == source.mtime:
                found = known_symbols.get(source.path, [])
            else:
                found = self.scanner.scan(Path(source.path), single_file=source.single_file)

            if not found:
                self.empty_files[source.path] = source.mtime

            for name in found:
                previous = self.symbols.get(name)
                if previous is not None:
                    raise AmbiguousSymbolError(name, previous.file, source.path)
                self.symbols[name] = SymbolEntry(source.path, source.mtime)
                self.missing.pop(name, None)

        console.print(
            f"[green]Indexer[/green] indexed [bold]{len(self.symbols)}[/bold] "
            f"symbols across [bold]{len(seen)}[/bold] files"
        )

    def refresh(self, session: IndexSession) -> None:
        """Rebuild unless this session already did."""
        if not session.refreshed:
            self.rebuild(session)

    def update_file(self, file: str) -> None:
        """Rescan a single file whose mtime no longer matches the index.

        A symbol also claimed by another file that changed on disk triggers an
        update of that file first, so two files swapping a declaration do not
        report a false conflict.

        Raises:
            AmbiguousSymbolError: If another, unchanged file declares a symbol
                found in ``file``.
        """
        self.symbols = {
            name: entry for name, entry in self.symbols.items() if entry.file != file
        }
        self.empty_files.pop(file, None)

        mtime = _mtime(file)
        if mtime is None or not os.path.isfile(file):
            return

        found = self.scanner.scan(Path(file), single_file=self._is_standalone(file))
        if not found:
            self.empty_files[file] = mtime

        for name in found:
            previous = self.symbols.get(name)
            if previous is not None and _mtime(previous.file) != previous.mtime:
                self.update_file(previous.file)
                previous = self.symbols.get(name)
            if previous is not None:
                raise AmbiguousSymbolError(name, previous.file, file)
            self.symbols[name] = SymbolEntry(file, mtime)
            self.missing.pop(name, None)

        if self.config.debug:
            console.print(f"[dim]Indexer updated {file} ({len(found)} symbols)[/dim]")

    def resolve(self, name: str, session: IndexSession) -> Path | None:
        """Return the file declaring ``name``, rescanning as needed.

        Lookups of a name that failed RETRY_LIMIT times in a row return None
        without touching the filesystem.
        """
        misses = self.missing.get(name, 0)
        if misses >= RETRY_LIMIT:
            return None

        entry = self.symbols.get(name)
        if self.config.auto_rebuild:
            if entry is None or not os.path.isfile(entry.file):
                if not session.refreshed:
                    self.refresh(session)
                    session.dirty = True
                    entry = self.symbols.get(name)
            elif _mtime(entry.file) != entry.mtime:
                self.update_file(entry.file)
                session.dirty = True
                entry = self.symbols.get(name)

            if entry is None or not os.path.isfile(entry.file):
                self.missing[name] = min(misses + 1, RETRY_LIMIT)
                self.symbols.pop(name, None)
                session.dirty = True
                return None

        if entry is None:
            return None
        if self.missing.pop(name, None) is not None:
            session.dirty = True
        return Path(entry.file)

    def indexed(self) -> dict[str, Path]:
        return {name: Path(entry.file) for name, entry in sorted(self.symbols.items())}

    def _is_standalone(self, file: str) -> bool:
        return file in {str(self.config.resolve_path(f)) for f in self.config.files}

    def _iter_sources(self) -> Iterator[_Source]:
        for root in self.config.roots:
            path = self.config.resolve_path(root)
            if path.is_file():
                yield _Source(str(path), path.stat().st_mtime_ns)
                continue
            if not path.is_dir():
                raise ConfigError(f"File or directory '{root}' not found.")
            for record in self._create_finder(path):
                yield _Source(record.path, record.mtime)

        for file in self.config.files:
            path = self.config.resolve_path(file)
            if not path.is_file():
                continue
            yield _Source(str(path), path.stat().st_mtime_ns, single_file=True)

    def _create_finder(self, directory: Path) -> Finder:
        disallowed = {
            self.config.resolve_path(item)
            for item in [*self.config.ignore, *self.config.exclude]
            if self.config.resolve_path(item).exists()
        }

        def allowed(record: FileRecord) -> bool:
            return Path(record.path).resolve() not in disallowed

        finder = (
            Finder.find_files(*self.config.accept)
            .from_dirs(str(directory))
            .exclude(*self.config.ignore)
            .ignore_unreadable_dirs(self.config.ignore_unreadable_dirs)
            .sort_by_name()
        )
        if disallowed:
            finder.filter(allowed).descent_filter(allowed)
        return finder

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(dict(self.symbols), dict(self.missing), dict(self.empty_files))

    def restore(self, snapshot: CacheSnapshot) -> None:
        self.symbols = dict(snapshot.symbols)
        self.missing = dict(snapshot.missing)
        self.empty_files = dict(snapshot.empty_files)
