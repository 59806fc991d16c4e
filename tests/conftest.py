"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from classmap.config import LoaderConfig

_ENV_VARS = (
    "CLASSMAP_ROOTS",
    "CLASSMAP_CACHE_DIR",
    "CLASSMAP_AUTO_REBUILD",
    "CLASSMAP_REPORT_PARSE_ERRORS",
    "CLASSMAP_LOG_LEVEL",
)

USER_PHP = """<?php
namespace App\\Models;

class User
{
    public function name(): string
    {
        return 'user';
    }
}
"""

POST_PHP = """<?php
namespace App\\Models;

final class Post extends Model implements \\JsonSerializable
{
    public function jsonSerialize(): mixed
    {
        return [];
    }
}
"""

HELPERS_PHP = """<?php
function helper(): string
{
    return 'helped';
}
"""


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Keep the user's global config and CLASSMAP_* variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr("classmap.config._GLOBAL_CONFIG_PATH", home / "config.toml")
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_file() -> Callable[[Path, str], Path]:
    """Write a file, creating parent directories."""

    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def php_project(tmp_path: Path, write_file: Callable[[Path, str], Path]) -> Path:
    """Create a small PHP project under tmp_path/src."""
    write_file(tmp_path / "src" / "Models" / "User.php", USER_PHP)
    write_file(tmp_path / "src" / "Models" / "Post.php", POST_PHP)
    write_file(tmp_path / "src" / "README.md", "# not php\n")
    write_file(tmp_path / "lib" / "helpers.php", HELPERS_PHP)
    return tmp_path


@pytest.fixture
def loader_config(php_project: Path) -> LoaderConfig:
    """Create a LoaderConfig indexing php_project/src with a local cache."""
    return LoaderConfig(
        project_dir=php_project,
        roots=["src"],
        cache_dir=php_project / ".classmap" / "cache",
    )
