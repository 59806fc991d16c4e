"""Configuration management for classmap.

Settings are loaded from three sources in order of priority:
1. Environment variables (highest priority)
2. Project-level config: .classmap/config.toml
3. Global config: ~/.config/classmap/config.toml (lowest priority)
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rich.console import Console

from classmap.exceptions import ConfigError

console = Console(stderr=True)

_GLOBAL_CONFIG_DIR = Path.home() / ".config" / "classmap"
_GLOBAL_CONFIG_PATH = _GLOBAL_CONFIG_DIR / "config.toml"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


@dataclass
class LoaderConfig:
    """classmap configuration.

    Attributes:
        project_dir: Directory relative paths are resolved against.
        roots: Directories (or single files) scanned for declarations.
        files: Standalone files indexed in single-file mode, so they also
            resolve by their base name.
        accept: File masks a source file must match.
        ignore: Masks excluded from traversal (see Finder.exclude).
        exclude: Paths whose real path is never indexed.
        cache_dir: Directory holding the cache artifacts (None = unset).
        auto_rebuild: Rescan on lookups of unknown or stale symbols.
        report_parse_errors: Raise ScanError for malformed sources instead
            of treating them as empty.
        ignore_unreadable_dirs: Skip directories that cannot be listed.
        log_level: Console verbosity (DEBUG, INFO, WARNING, ERROR).
    """

    project_dir: Path = field(default_factory=Path.cwd)
    roots: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    accept: list[str] = field(default_factory=lambda: ["*.php"])
    ignore: list[str] = field(
        default_factory=lambda: [".*", "*.old", "*.bak", "*.tmp", "temp"]
    )
    exclude: list[str] = field(default_factory=list)
    cache_dir: Path | None = None
    auto_rebuild: bool = True
    report_parse_errors: bool = True
    ignore_unreadable_dirs: bool = True
    log_level: str = "INFO"

    @property
    def debug(self) -> bool:
        """Whether debug-level console output is enabled."""
        return self.log_level == "DEBUG"

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a configured path against project_dir."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.project_dir / candidate
        return candidate.resolve()


def load_config(project_dir: Path) -> LoaderConfig:
    """Load configuration from env vars, project config, and global config.

    Priority: env vars > .classmap/config.toml > ~/.config/classmap/config.toml

    Args:
        project_dir: Root directory of the project.

    Returns:
        A fully resolved LoaderConfig instance.

    Raises:
        ConfigError: If a setting has the wrong type.
    """
    config = LoaderConfig(project_dir=project_dir.resolve())

    # Layer 1: Global config (lowest priority)
    _apply_toml(config, _load_toml(_GLOBAL_CONFIG_PATH))

    # Layer 2: Project config
    _apply_toml(config, _load_toml(project_dir / ".classmap" / "config.toml"))

    # Layer 3: Environment variables (highest priority)
    _apply_env(config)

    return config


def ensure_directory(path: Path, mode: int = 0o777) -> Path:
    """Create a directory (and parents) unless it already exists.

    Raises:
        ConfigError: If the directory cannot be created.
    """
    try:
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(
            f"Unable to create directory '{path}' with mode {mode:o}. {exc.strerror or exc}"
        ) from exc
    return path


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file, returning an empty dict if missing or invalid."""
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as exc:
        console.print(f"[yellow]Warning:[/yellow] Could not parse {path}: {exc}")
        return {}


def _string_list(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"Setting '{key}' must be a string or a list of strings.")
    return list(value)


def _boolean(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ConfigError(f"Setting '{key}' must be a boolean, got {value!r}.")


def _apply_toml(config: LoaderConfig, settings: dict[str, Any]) -> None:
    """Merge TOML settings into a LoaderConfig."""
    for key in ("roots", "files", "accept", "ignore", "exclude"):
        if key in settings:
            setattr(config, key, _string_list(key, settings[key]))
    if "cache_dir" in settings:
        config.cache_dir = config.resolve_path(str(settings["cache_dir"]))
    if "auto_rebuild" in settings:
        config.auto_rebuild = _boolean("auto_rebuild", settings["auto_rebuild"])
    if "report_parse_errors" in settings:
        config.report_parse_errors = _boolean(
            "report_parse_errors", settings["report_parse_errors"]
        )
    if "ignore_unreadable_dirs" in settings:
        config.ignore_unreadable_dirs = _boolean(
            "ignore_unreadable_dirs", settings["ignore_unreadable_dirs"]
        )
    if "log_level" in settings:
        config.log_level = str(settings["log_level"]).upper()


def _apply_env(config: LoaderConfig) -> None:
    """Override config with environment variables where set."""
    if roots := os.environ.get("CLASSMAP_ROOTS"):
        config.roots = [r for r in roots.split(os.pathsep) if r]
    if cache_dir := os.environ.get("CLASSMAP_CACHE_DIR"):
        config.cache_dir = config.resolve_path(cache_dir)
    if auto_rebuild := os.environ.get("CLASSMAP_AUTO_REBUILD"):
        config.auto_rebuild = _boolean("CLASSMAP_AUTO_REBUILD", auto_rebuild)
    if report := os.environ.get("CLASSMAP_REPORT_PARSE_ERRORS"):
        config.report_parse_errors = _boolean("CLASSMAP_REPORT_PARSE_ERRORS", report)
    if log_level := os.environ.get("CLASSMAP_LOG_LEVEL"):
        config.log_level = log_level.upper()
