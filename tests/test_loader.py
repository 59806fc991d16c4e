"""Tests for the Loader: lazy cache loading, persistence and host hooks."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from classmap.config import LoaderConfig
from classmap.exceptions import AmbiguousSymbolError, ConfigError
from classmap.indexer import RETRY_LIMIT
from classmap.loader import Loader


class TestResolve:
    def test_resolves_and_persists(self, loader_config: LoaderConfig, php_project: Path) -> None:
        with Loader(loader_config) as loader:
            path = loader.resolve("App\\Models\\User")
            assert path == (php_project / "src" / "Models" / "User.php").resolve()
            assert loader.store.path.is_file()

    def test_deleted_file_counts_a_miss(
        self, tmp_path: Path, write_file: Callable[[Path, str], Path]
    ) -> None:
        source = write_file(tmp_path / "root" / "a" / "Foo.php", "<?php\nclass Foo {}\n")
        config = LoaderConfig(project_dir=tmp_path, roots=["root"], cache_dir=tmp_path / "cache")

        with Loader(config) as loader:
            assert loader.resolve("Foo") == source.resolve()

        source.unlink()
        with Loader(config) as loader:
            assert loader.resolve("Foo") is None
            assert loader.index.missing["Foo"] == 1

    def test_new_file_is_found_without_rebuild(
        self,
        loader_config: LoaderConfig,
        php_project: Path,
        write_file: Callable[[Path, str], Path],
    ) -> None:
        with Loader(loader_config) as loader:
            loader.rebuild()

        added = write_file(php_project / "src" / "Added.php", "<?php\nclass Added {}\n")
        with Loader(loader_config) as loader:
            assert loader.resolve("Added") == added.resolve()
            assert loader.session.walks == 1

    def test_warm_cache_skips_walk(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            loader.rebuild()

        with Loader(loader_config) as loader:
            assert loader.resolve("App\\Models\\Post") is not None
            assert loader.session.walks == 0

    def test_exhausted_retries_survive_restart(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            for _ in range(RETRY_LIMIT):
                assert loader.resolve("Missing") is None

        with Loader(loader_config) as loader:
            assert loader.resolve("Missing") is None
            assert loader.index.missing["Missing"] == RETRY_LIMIT
            assert loader.session.walks == 0

    def test_missing_cache_dir(self, loader_config: LoaderConfig) -> None:
        loader_config.cache_dir = None
        loader = Loader(loader_config)
        with pytest.raises(ConfigError, match="cache directory"):
            loader.resolve("App\\Models\\User")

    def test_uncreatable_cache_dir(
        self, loader_config: LoaderConfig, php_project: Path, write_file: Callable[[Path, str], Path]
    ) -> None:
        blocker = write_file(php_project / "blocker", "")
        loader_config.cache_dir = blocker / "cache"
        with pytest.raises(ConfigError, match="Unable to create directory"):
            Loader(loader_config)

    def test_rebuild_without_cache_dir(self, loader_config: LoaderConfig) -> None:
        loader_config.cache_dir = None
        loader = Loader(loader_config)
        loader.rebuild()
        assert "App\\Models\\User" in loader.index.symbols
        loader.close()


class TestPersistence:
    def test_refresh_is_byte_identical(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            loader.refresh()
            first = loader.store.path.read_bytes()

        with Loader(loader_config) as loader:
            loader.refresh()
            loader.refresh()
            second = loader.store.path.read_bytes()
            assert loader.session.walks == 1

        assert first == second

    def test_rebuild_is_byte_identical(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            loader.rebuild()
            first = loader.store.path.read_bytes()
            loader.store.path.unlink()
            loader.rebuild()
            assert loader.store.path.read_bytes() == first

    def test_close_flushes_dirty_session(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            loader.rebuild()
            loader.resolve("Nope")
            assert loader.session.dirty
        assert not loader.session.dirty
        assert loader.store.read().missing == {"Nope": 1}

    def test_corrupt_cache_is_rebuilt(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            loader.store.path.write_text("{not json", encoding="utf-8")
            assert loader.resolve("App\\Models\\User") is not None
            assert loader.session.walks == 1

    def test_failed_build_is_retried(
        self,
        loader_config: LoaderConfig,
        php_project: Path,
        write_file: Callable[[Path, str], Path],
    ) -> None:
        copy = write_file(
            php_project / "src" / "Copy.php", "<?php\nnamespace App\\Models;\nclass User {}\n"
        )
        with Loader(loader_config) as loader:
            with pytest.raises(AmbiguousSymbolError):
                loader.resolve("App\\Models\\User")
            assert not loader.session.cache_loaded

            copy.unlink()
            user = php_project / "src" / "Models" / "User.php"
            assert loader.resolve("App\\Models\\User") == user.resolve()
            assert loader.store.path.is_file()
            assert loader.store.read() is not None

    def test_indexed_symbols(self, loader_config: LoaderConfig) -> None:
        with Loader(loader_config) as loader:
            assert list(loader.indexed_symbols()) == ["App\\Models\\Post", "App\\Models\\User"]


class TestHooks:
    def test_autoload_calls_load_file(
        self, loader_config: LoaderConfig, php_project: Path
    ) -> None:
        loaded: list[Path] = []
        with Loader(loader_config, load_file=loaded.append) as loader:
            loader.autoload("App\\Models\\User")
            loader.autoload("App\\Models\\Nope")
        assert loaded == [(php_project / "src" / "Models" / "User.php").resolve()]

    def test_register_appends_and_loads_standalone_files(
        self, loader_config: LoaderConfig, php_project: Path
    ) -> None:
        loader_config.files = ["lib/helpers.php"]
        loaded: list[Path] = []
        chain: list[Callable[[str], None]] = [lambda name: None]

        with Loader(loader_config, load_file=loaded.append) as loader:
            loader.register(chain)
            assert chain[-1] == loader.autoload

        assert loaded == [(php_project / "lib" / "helpers.php").resolve()]

    def test_register_prepend(self, loader_config: LoaderConfig) -> None:
        chain: list[Callable[[str], None]] = [lambda name: None]
        with Loader(loader_config) as loader:
            loader.register(chain, prepend=True)
            assert chain[0] == loader.autoload
            assert len(chain) == 2
