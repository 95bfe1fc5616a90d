"""Shared pytest fixtures for lfsync tests."""

from __future__ import annotations

import hashlib
import threading
from collections import Counter
from collections.abc import Iterator
from pathlib import Path

import pytest

from lfsync.cache import LocalCache
from lfsync.engine import SyncEngine
from lfsync.errors import LFSyncError, ObjectNotFoundError, VersionControlError
from lfsync.scanner import Scanner


class FakeStore:
    """In-memory ContentStore with call counters and failure injection."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.calls: Counter[str] = Counter()
        self.failures: dict[str, LFSyncError] = {}
        self.chunk_size = 4
        self._mu = threading.Lock()

    def _record(self, op: str, oid: str) -> None:
        with self._mu:
            self.calls[op] += 1
        if oid in self.failures:
            raise self.failures[oid]

    def exists(self, oid: str) -> bool:
        with self._mu:
            self.calls["exists"] += 1
            return oid in self.objects

    def put(self, oid: str, size: int, source: Path) -> None:
        self._record("put", oid)
        data = Path(source).read_bytes()
        assert len(data) == size
        assert hashlib.sha256(data).hexdigest() == oid
        with self._mu:
            self.objects[oid] = data

    def get(self, oid: str) -> Iterator[bytes]:
        self._record("get", oid)
        with self._mu:
            data = self.objects.get(oid)
        if data is None:
            raise ObjectNotFoundError(f"no such object: {oid}")
        for idx in range(0, len(data), self.chunk_size):
            yield data[idx : idx + self.chunk_size]

    def describe(self) -> str:
        return "memory://test"


class FakeVersionControl:
    """VersionControl double recording staged paths."""

    def __init__(self, staged: list[str] | None = None, root: Path | None = None) -> None:
        self.staged = list(staged or [])
        self.stage_calls: list[list[str]] = []
        self.root = root

    def stage(self, paths) -> None:
        self.stage_calls.append(list(paths))

    def staged_files(self) -> list[str]:
        return list(self.staged)

    def toplevel(self) -> Path:
        if self.root is None:
            raise VersionControlError("not a git repository")
        return self.root


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def vcs() -> FakeVersionControl:
    return FakeVersionControl()


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def work_tree(tmp_path: Path) -> Path:
    """Return a working tree tracking `*.psd` files."""
    root = tmp_path / "repo"
    root.mkdir()
    (root / ".gitattributes").write_text("*.psd filter=lfsync diff=lfsync merge=lfsync -text\n")
    return root


@pytest.fixture
def make_engine(store: FakeStore, vcs: FakeVersionControl, cache_root: Path):
    """Return a factory creating engines sharing the store and the cache."""

    def factory(root: Path, *, jobs: int = 4, patterns: tuple[str, ...] = ("*.psd",)) -> SyncEngine:
        return SyncEngine(
            root,
            store=store,
            cache=LocalCache(cache_root),
            scanner=Scanner(root, patterns),
            vcs=vcs,
            jobs=jobs,
        )

    return factory
