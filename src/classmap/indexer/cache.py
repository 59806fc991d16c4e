"""Cross-process persistence of index snapshots.

The cache file is always replaced atomically (write to a sibling temp
file, then rename), so readers can load it without a lock while it is
warm. Building a missing cache is serialized through an advisory lock on
a sidecar ``.lock`` file, which is never deleted: removing it while
another process holds or opens it would let two builders run at once.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import IO, Literal

from rich.console import Console

from classmap.config import LoaderConfig
from classmap.exceptions import CacheIOError
from classmap.indexer.models import FORMAT_VERSION, CacheSnapshot

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

console = Console(stderr=True)

LockMode = Literal["shared", "exclusive"]


def cache_key(config: LoaderConfig) -> str:
    """Hash every setting that changes what ends up in the index."""
    payload = [
        config.ignore,
        config.accept,
        [str(config.resolve_path(root)) for root in config.roots],
        [str(config.resolve_path(item)) for item in config.exclude],
        [str(config.resolve_path(file)) for file in config.files],
        FORMAT_VERSION,
    ]
    encoded = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return hashlib.md5(encoded, usedforsecurity=False).hexdigest()


class CacheLock:
    """Advisory lock on a lock file: fcntl.flock on POSIX, msvcrt on Windows.

    msvcrt has no shared locks, so "shared" is exclusive on Windows.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.mode: LockMode | None = None
        self._handle: IO[str] | None = None

    def __enter__(self) -> CacheLock:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    def acquire(self, mode: LockMode) -> None:
        """Block until the lock is held in ``mode``.

        Raises:
            CacheIOError: If the lock file cannot be opened or locked.
        """
        if self._handle is None:
            try:
                self._handle = open(self.path, "a", encoding="utf-8")
            except OSError as exc:
                raise CacheIOError(f"Unable to create file '{self.path}'. {exc}") from exc

        try:
            if sys.platform == "win32":
                self._handle.seek(0)
                msvcrt.locking(self._handle.fileno(), msvcrt.LK_LOCK, 1)
            else:
                flag = fcntl.LOCK_SH if mode == "shared" else fcntl.LOCK_EX
                fcntl.flock(self._handle.fileno(), flag)
        except OSError as exc:
            raise CacheIOError(
                f"Unable to acquire {mode} lock on file '{self.path}'. {exc}"
            ) from exc
        self.mode = mode

    def release(self) -> None:
        if self._handle is None or self.mode is None:
            return
        if sys.platform == "win32":
            self._handle.seek(0)
            msvcrt.locking(self._handle.fileno(), msvcrt.LK_UNLCK, 1)
        else:
            fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self.mode = None

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self.release()
        finally:
            self._handle.close()
            self._handle = None


class CacheStore:
    """Loads and saves snapshots under ``<directory>/<key>.json``.

    Usage::

        store = CacheStore(Path(".classmap/cache"), cache_key(config))
        snapshot = store.load(build=lambda: rebuild_everything())
        store.save(snapshot)
    """

    def __init__(self, directory: Path, key: str, debug: bool = False) -> None:
        self._directory = directory
        self._key = key
        self._debug = debug

    @property
    def path(self) -> Path:
        """Path to the cache artifact."""
        return self._directory / f"{self._key}.json"

    @property
    def lock_path(self) -> Path:
        return self._directory / f"{self._key}.json.lock"

    @property
    def temp_path(self) -> Path:
        return self._directory / f"{self._key}.json.tmp"

    def read(self) -> CacheSnapshot | None:
        """Return the persisted snapshot, or None if absent or unreadable."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return CacheSnapshot.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError; a corrupt cache is rebuilt.
            if self._debug:
                console.print(f"[dim]Cache {self.path} unusable: {exc}[/dim]")
            return None

    def load(self, build: Callable[[], CacheSnapshot]) -> CacheSnapshot:
        """Return the persisted snapshot, building and saving it if absent.

        Only one process builds: the others wait for the exclusive lock and
        then find the finished cache.

        Raises:
            CacheIOError: If locking or persisting fails.
        """
        snapshot = self.read()
        if snapshot is not None:
            if self._debug:
                console.print(f"[dim]Cache hit {self.path}[/dim]")
            return snapshot

        if self._debug:
            console.print(f"[dim]Waiting for lock {self.lock_path}[/dim]")
        with CacheLock(self.lock_path) as lock:
            # A writer may be between its temp write and rename.
            lock.acquire("shared")
            snapshot = self.read()
            if snapshot is not None:
                return snapshot

            lock.release()
            lock.acquire("exclusive")
            # Another process may have built it while this one waited.
            snapshot = self.read()
            if snapshot is not None:
                return snapshot

            if self._debug:
                console.print(f"[dim]Cache {self.path} missing, building[/dim]")
            snapshot = build()
            self.save(snapshot, lock)
            return snapshot

    def save(self, snapshot: CacheSnapshot, lock: CacheLock | None = None) -> None:
        """Atomically replace the cache file with ``snapshot``.

        Args:
            snapshot: State to persist.
            lock: An exclusive lock already held by the caller; acquired
                here when omitted.

        Raises:
            CacheIOError: If the file cannot be written or renamed.
        """
        if lock is not None and lock.mode == "exclusive":
            self._write(snapshot)
            return
        with CacheLock(self.lock_path) as own:
            own.acquire("exclusive")
            self._write(snapshot)

    def _write(self, snapshot: CacheSnapshot) -> None:
        content = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True) + "\n"
        try:
            self.temp_path.write_text(content, encoding="utf-8")
            os.replace(self.temp_path, self.path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                self.temp_path.unlink()
            raise CacheIOError(f"Unable to create '{self.path}'. {exc}") from exc
