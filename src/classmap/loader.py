"""Symbol loader: a persistent, self-refreshing symbol -> file index.

The loader plugs into a host's ordered chain of resolution callbacks. For
each requested name it locates the declaring file (rescanning when the
index is stale) and hands it to the host's ``load_file`` callback.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from rich.console import Console

from classmap.config import LoaderConfig, ensure_directory
from classmap.exceptions import ConfigError
from classmap.indexer.cache import CacheStore, cache_key
from classmap.indexer.index import IndexSession, SymbolIndex
from classmap.indexer.models import CacheSnapshot
from classmap.indexer.scanner import SymbolScanner

console = Console(stderr=True)

ResolutionHook = Callable[[str], None]


class Loader:
    """Resolves symbol names to source files and loads them on demand.

    Usage::

        loader = Loader(config, load_file=host.execute)
        loader.register(host.resolvers)
        ...
        loader.close()
    """

    def __init__(
        self,
        config: LoaderConfig,
        load_file: Callable[[Path], None] | None = None,
        scanner: SymbolScanner | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            config: Roots, masks, cache location and flags.
            load_file: Called with the declaring file when a symbol resolves.
            scanner: Symbol extractor; built from the config when omitted.

        Raises:
            ConfigError: If the cache directory cannot be created.
        """
        self.config = config
        self.session = IndexSession()
        self.index = SymbolIndex(
            config, scanner or SymbolScanner(strict=config.report_parse_errors)
        )
        self._load_file = load_file
        if config.cache_dir is not None:
            ensure_directory(config.cache_dir)

    def __enter__(self) -> Loader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @property
    def store(self) -> CacheStore:
        """Cache store for the current configuration.

        Raises:
            ConfigError: If no cache directory is configured.
        """
        if self.config.cache_dir is None:
            raise ConfigError(
                "Set the cache directory (cache_dir or CLASSMAP_CACHE_DIR) first."
            )
        return CacheStore(self.config.cache_dir, cache_key(self.config), self.config.debug)

    def register(self, chain: list[ResolutionHook], prepend: bool = False) -> Loader:
        """Add ``autoload`` to a host's resolution chain.

        Standalone files are loaded first, each under its base name.
        """
        for file in self.config.files:
            path = self.config.resolve_path(file)
            if path.is_file():
                self.autoload(path.stem)

        if prepend:
            chain.insert(0, self.autoload)
        else:
            chain.append(self.autoload)
        return self

    def autoload(self, name: str) -> None:
        """Resolution hook: load the file declaring ``name``, if any."""
        path = self.resolve(name)
        if path is not None and self._load_file is not None:
            self._load_file(path)

    def resolve(self, name: str) -> Path | None:
        """Return the file declaring ``name``, or None if unresolvable."""
        self._load_cache()
        return self.index.resolve(name, self.session)

    def indexed_symbols(self) -> dict[str, Path]:
        """Return every indexed symbol and its file."""
        self._load_cache()
        return self.index.indexed()

    def rebuild(self) -> None:
        """Discard all state and rescan everything."""
        self.session.cache_loaded = True
        self.index.clear()
        self.index.rebuild(self.session)
        if self.config.cache_dir is not None:
            self.store.save(self.index.snapshot())
            self.session.dirty = False

    def refresh(self) -> None:
        """Rescan changed files, at most once per session."""
        self._load_cache()
        if not self.session.refreshed:
            self.index.rebuild(self.session)
            self.store.save(self.index.snapshot())
            self.session.dirty = False

    def close(self) -> None:
        """Persist the index if lookups changed it."""
        if self.session.dirty and self.config.cache_dir is not None:
            self.store.save(self.index.snapshot())
        self.session.dirty = False

    def _load_cache(self) -> None:
        if self.session.cache_loaded:
            return
        self.index.restore(self.store.load(self._build_snapshot))
        self.session.cache_loaded = True

    def _build_snapshot(self) -> CacheSnapshot:
        self.index.clear()
        self.index.rebuild(self.session)
        return self.index.snapshot()
