"""Index data model shared by the index and its cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

FORMAT_VERSION = "v2"


@dataclass(frozen=True, slots=True)
class SymbolEntry:
    """Location of a declared symbol.

    Attributes:
        file: Absolute path of the declaring file.
        mtime: Modification time (ns) of the file when it was scanned.
    """

    file: str
    mtime: int


@dataclass
class CacheSnapshot:
    """Persistable index state.

    Attributes:
        symbols: Symbol name -> declaring file and its scan-time mtime.
        missing: Symbol name -> consecutive failed lookups.
        empty_files: File -> mtime for scanned files declaring nothing.
    """

    symbols: dict[str, SymbolEntry] = field(default_factory=dict)
    missing: dict[str, int] = field(default_factory=dict)
    empty_files: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": FORMAT_VERSION,
            "symbols": {name: [e.file, e.mtime] for name, e in self.symbols.items()},
            "missing": dict(self.missing),
            "empty_files": dict(self.empty_files),
        }

    @classmethod
    def from_dict(cls, data: Any) -> CacheSnapshot:
        """Rebuild a snapshot from ``to_dict`` output.

        Raises:
            ValueError: If the data does not have the expected shape.
        """
        if not isinstance(data, dict) or data.get("format") != FORMAT_VERSION:
            raise ValueError("not a classmap snapshot")
        try:
            symbols = {
                str(name): SymbolEntry(str(file), int(mtime))
                for name, (file, mtime) in data["symbols"].items()
            }
            missing = {str(k): int(v) for k, v in data["missing"].items()}
            empty_files = {str(k): int(v) for k, v in data["empty_files"].items()}
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ValueError(f"malformed classmap snapshot: {exc}") from exc
        return cls(symbols=symbols, missing=missing, empty_files=empty_files)
