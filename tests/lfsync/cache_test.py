"""Tests for the lfsync.cache module."""

import hashlib
import os
import time
from datetime import timedelta
from pathlib import Path

import pytest

from lfsync.cache import CACHE_DIR_ENV, LocalCache, cache_dir_or_default
from lfsync.errors import ContentMismatchError, LocalIOError

_CONTENT = b"aaaaaaaaaa"
_OID = hashlib.sha256(_CONTENT).hexdigest()


def _age(path: Path, days: float) -> None:
    stamp = time.time() - days * 86400
    os.utime(path, (stamp, stamp))


class TestCacheDirOrDefault:
    """cache_dir_or_default() resolves the shared cache location."""

    def test_explicit(self, tmp_path: Path):
        assert cache_dir_or_default(str(tmp_path)) == tmp_path

    def test_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(CACHE_DIR_ENV, str(tmp_path / "env"))
        assert cache_dir_or_default(None) == tmp_path / "env"

    def test_xdg(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(CACHE_DIR_ENV, raising=False)
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert cache_dir_or_default(None) == tmp_path / "lfsync"

    def test_home(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv(CACHE_DIR_ENV, raising=False)
        monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path))
        assert cache_dir_or_default(None) == tmp_path / ".cache" / "lfsync"


class TestLocalCachePut:
    """put() stores verified objects atomically."""

    def test_put_and_get(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [b"aaaa", b"aaaaaa"])
        assert path == tmp_path / _OID[:2] / _OID
        assert path.read_bytes() == _CONTENT
        assert cache.get(_OID) == path
        assert cache.contains(_OID)

    def test_miss(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        assert cache.get(_OID) is None
        assert not cache.contains(_OID)

    def test_mismatch_leaves_nothing_behind(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        with pytest.raises(ContentMismatchError):
            cache.put(_OID, [b"bbbbbbbbbb"])
        assert not cache.contains(_OID)
        assert list((tmp_path / _OID[:2]).iterdir()) == []

    def test_failing_source_leaves_nothing_behind(self, tmp_path: Path):
        def chunks():
            yield b"aaaa"
            raise RuntimeError("connection dropped")

        cache = LocalCache(tmp_path)
        with pytest.raises(RuntimeError):
            cache.put(_OID, chunks())
        assert not cache.contains(_OID)
        assert list((tmp_path / _OID[:2]).iterdir()) == []

    def test_put_file(self, tmp_path: Path):
        source = tmp_path / "a.psd"
        source.write_bytes(_CONTENT)
        cache = LocalCache(tmp_path / "cache")
        cached = cache.put_file(_OID, source)
        assert cached.read_bytes() == _CONTENT

    def test_put_file_existing_entry_is_not_rewritten(self, tmp_path: Path):
        cache = LocalCache(tmp_path / "cache")
        cached = cache.put(_OID, [_CONTENT])
        inode = cached.stat().st_ino
        source = tmp_path / "a.psd"
        source.write_bytes(_CONTENT)
        assert cache.put_file(_OID, source).stat().st_ino == inode

    def test_put_unwritable_root(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")
        with pytest.raises(LocalIOError):
            LocalCache(blocker).put(_OID, [_CONTENT])


class TestLocalCacheMaterialize:
    """materialize() copies cached objects into the working tree."""

    def test_materialize_replaces_pointer(self, tmp_path: Path):
        cache = LocalCache(tmp_path / "cache")
        cache.put(_OID, [_CONTENT])
        dest = tmp_path / "repo" / "a.psd"
        dest.parent.mkdir()
        dest.write_bytes(b"pointer")
        dest.chmod(0o600)
        cache.materialize(_OID, dest)
        assert dest.read_bytes() == _CONTENT
        assert dest.stat().st_mode & 0o777 == 0o600
        assert [p.name for p in dest.parent.iterdir()] == ["a.psd"]

    def test_materialize_does_not_alias_cache(self, tmp_path: Path):
        cache = LocalCache(tmp_path / "cache")
        cached = cache.put(_OID, [_CONTENT])
        dest = tmp_path / "a.psd"
        cache.materialize(_OID, dest)
        dest.write_bytes(b"edited")
        assert cached.read_bytes() == _CONTENT

    def test_materialize_missing_object(self, tmp_path: Path):
        cache = LocalCache(tmp_path / "cache")
        with pytest.raises(LocalIOError):
            cache.materialize(_OID, tmp_path / "a.psd")


class TestLocalCachePrune:
    """prune() removes objects not used recently."""

    def test_prune_old_objects(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [_CONTENT])
        _age(path, 40)
        result = cache.prune(timedelta(days=30))
        assert result.removed == [_OID]
        assert result.freed == len(_CONTENT)
        assert not cache.contains(_OID)

    def test_removes_lock_file(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [_CONTENT])
        with cache.lock(_OID):
            pass
        assert cache.lock_path(_OID).exists()
        _age(path, 40)
        cache.prune(timedelta(days=30))
        assert not cache.lock_path(_OID).exists()

    def test_keeps_recent_objects(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        cache.put(_OID, [_CONTENT])
        result = cache.prune(timedelta(days=30))
        assert result.removed == []
        assert cache.contains(_OID)

    def test_touch_refreshes_age(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [_CONTENT])
        _age(path, 40)
        cache.touch(_OID)
        assert cache.prune(timedelta(days=30)).removed == []

    def test_dry_run(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [_CONTENT])
        _age(path, 40)
        result = cache.prune(timedelta(days=30), dry_run=True)
        assert result.removed == [_OID]
        assert cache.contains(_OID)

    def test_skips_locked_objects(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        path = cache.put(_OID, [_CONTENT])
        _age(path, 40)
        lock = cache.lock(_OID)
        with lock:
            result = cache.prune(timedelta(days=30))
        assert result.removed == []
        assert result.skipped_locked == [_OID]
        assert cache.contains(_OID)

    def test_removes_stale_tmp_dirs(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        stale = tmp_path / "ab" / ".tmp-interrupted"
        stale.mkdir(parents=True)
        _age(stale, 40)
        result = cache.prune(timedelta(days=30))
        assert result.removed_tmp_dirs == 1
        assert not stale.exists()

    def test_empty_cache(self, tmp_path: Path):
        result = LocalCache(tmp_path / "missing").prune(timedelta(days=1))
        assert result.removed == []

    def test_stats(self, tmp_path: Path):
        cache = LocalCache(tmp_path)
        cache.put(_OID, [_CONTENT])
        stats = cache.stats()
        assert (stats.count, stats.size) == (1, len(_CONTENT))
