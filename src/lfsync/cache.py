"""
Content-addressed local cache shared by every repository on the machine.

Layout:

    $root/<oid[:2]>/<oid>          cached objects
    $root/locks/<oid[:2]>/<oid>.lock  per-object lock files

Objects are immutable: the same oid always maps to the same bytes, so we
only ever create entries, never update them in place. Writes go through
a private temporary directory and a single `os.replace()`, therefore a
reader either sees no file or a complete file.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Final

from filelock import BaseFileLock, FileLock, Timeout

from .errors import ContentMismatchError, LocalIOError
from .pointer import hash_chunks, iter_file

CACHE_DIR_ENV: Final[str] = "LFSYNC_CACHE_DIR"
LOCKS_DIRNAME: Final[str] = "locks"
_TMP_PREFIX: Final[str] = ".tmp-"

log = logging.getLogger("lfsync/cache")


def cache_dir_or_default(cache_dir: str | Path | None) -> Path:
    """
    Return cache_dir as a Path if not empty. Otherwise return the default
    shared cache location: `$LFSYNC_CACHE_DIR`, else `$XDG_CACHE_HOME/lfsync`,
    else `~/.cache/lfsync`.
    """
    if cache_dir is not None:
        return Path(cache_dir)
    if env := os.environ.get(CACHE_DIR_ENV):
        return Path(env)
    if xdg := os.environ.get("XDG_CACHE_HOME"):
        return Path(xdg) / "lfsync"
    return Path.home() / ".cache" / "lfsync"


@dataclass(frozen=True, kw_only=True)
class CacheStats:
    count: int
    size: int


@dataclass(kw_only=True)
class PruneResult:
    """Outcome of LocalCache.prune."""

    removed: list[str] = field(default_factory=list)
    freed: int = 0
    skipped_locked: list[str] = field(default_factory=list)
    removed_tmp_dirs: int = 0


class LocalCache:
    """On-disk content-addressed store keyed by SHA-256 oid."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def object_path(self, oid: str) -> Path:
        """Return where the object for oid lives (it may not exist)."""
        return self.root / oid[:2] / oid

    def lock_path(self, oid: str) -> Path:
        return self.root / LOCKS_DIRNAME / oid[:2] / f"{oid}.lock"

    def lock(self, oid: str) -> BaseFileLock:
        """Return a FileLock serializing the fetch of oid across processes."""
        lock_path = self.lock_path(oid)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        return FileLock(lock_path)

    def get(self, oid: str) -> Path | None:
        """Return the path of the cached object, or None on a miss."""
        path = self.object_path(oid)
        return path if path.is_file() else None

    def contains(self, oid: str) -> bool:
        return self.get(oid) is not None

    def touch(self, oid: str) -> None:
        """Record that oid was just used, so that prune keeps it."""
        try:
            os.utime(self.object_path(oid))
        except OSError as exc:
            log.debug("touching %s... failure: %s", oid, exc)

    def put(self, oid: str, chunks: Iterable[bytes]) -> Path:
        """
        Store the given chunks under oid and return the cached path.

        The SHA-256 of the written bytes is verified before the object
        becomes visible.

        Raises:
            ContentMismatchError: if the bytes do not hash to oid.
            LocalIOError: on filesystem errors.
        """
        dest = self.object_path(oid)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with TemporaryDirectory(dir=dest.parent, prefix=_TMP_PREFIX) as tmp_dir:
                tmp_file = Path(tmp_dir) / oid
                with open(tmp_file, "wb") as filep:

                    def written() -> Iterable[bytes]:
                        for chunk in chunks:
                            filep.write(chunk)
                            yield chunk

                    got, _ = hash_chunks(written())
                if got != oid:
                    raise ContentMismatchError(f"SHA256 mismatch: expected {oid}, got {got}")
                os.replace(tmp_file, dest)
        except OSError as exc:
            raise LocalIOError(f"cannot cache object {oid}: {exc}") from exc
        log.debug("caching %s... ok", oid)
        return dest

    def put_file(self, oid: str, source: Path) -> Path:
        """Copy source into the cache under oid, unless already present."""
        if (cached := self.get(oid)) is not None:
            self.touch(oid)
            return cached
        return self.put(oid, iter_file(source))

    def materialize(self, oid: str, dest: Path) -> None:
        """
        Atomically replace dest with a copy of the cached object.

        Raises:
            LocalIOError: if the object is not cached or the copy fails.
        """
        source = self.get(oid)
        if source is None:
            raise LocalIOError(f"object {oid} is not in the local cache")
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with TemporaryDirectory(dir=dest.parent, prefix=".lfsync-") as tmp_dir:
                tmp_file = Path(tmp_dir) / dest.name
                shutil.copyfile(source, tmp_file)
                if dest.exists():
                    shutil.copymode(dest, tmp_file)
                os.replace(tmp_file, dest)
        except OSError as exc:
            raise LocalIOError(f"cannot write {dest}: {exc}") from exc
        self.touch(oid)

    def _iter_objects(self) -> Iterable[Path]:
        if not self.root.exists():
            return
        for shard in sorted(self.root.iterdir()):
            if not shard.is_dir() or shard.name == LOCKS_DIRNAME:
                continue
            for path in sorted(shard.iterdir()):
                if path.is_file():
                    yield path

    def stats(self) -> CacheStats:
        """Return the number of cached objects and their total size."""
        count = 0
        size = 0
        for path in self._iter_objects():
            count += 1
            size += path.stat().st_size
        return CacheStats(count=count, size=size)

    def prune(
        self,
        max_age: timedelta,
        *,
        dry_run: bool = False,
        now: float | None = None,
    ) -> PruneResult:
        """
        Remove objects not used for longer than max_age.

        An object is "used" when it is written, fetched or materialized
        (see touch). Objects whose lock is held by a concurrent pull are
        skipped. Temporary directories left behind by interrupted writes
        and older than max_age are removed as well.
        """
        cutoff = (time.time() if now is None else now) - max_age.total_seconds()
        result = PruneResult()
        for path in list(self._iter_objects()):
            try:
                stat = path.stat()
            except FileNotFoundError:
                continue
            if stat.st_mtime >= cutoff:
                continue
            oid = path.name
            if dry_run:
                result.removed.append(oid)
                result.freed += stat.st_size
                continue
            try:
                with self.lock(oid).acquire(timeout=0):
                    path.unlink(missing_ok=True)
                    # Waiters on the unlinked lock may refetch; put() is idempotent.
                    self.lock_path(oid).unlink(missing_ok=True)
            except Timeout:
                result.skipped_locked.append(oid)
                continue
            log.info("pruning %s... ok", oid)
            result.removed.append(oid)
            result.freed += stat.st_size

        if self.root.exists():
            for shard in self.root.iterdir():
                if not shard.is_dir() or shard.name == LOCKS_DIRNAME:
                    continue
                for tmp_dir in shard.glob(f"{_TMP_PREFIX}*"):
                    if tmp_dir.is_dir() and tmp_dir.stat().st_mtime < cutoff:
                        if not dry_run:
                            shutil.rmtree(tmp_dir, ignore_errors=True)
                        result.removed_tmp_dirs += 1
        return result
