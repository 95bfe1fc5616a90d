"""
Push and pull orchestration.

Push replaces tracked real content with pointers after making sure the
content is in the local cache and in the remote store. Pull does the
opposite: it materializes the content referenced by pointer stubs,
fetching it from the remote store when the local cache misses.

Every file goes through the same state machine:

    SCANNED -> HASH_KNOWN -> {CACHE_HIT | TRANSFERRING} -> PERSISTED

with FAILED reachable from every non-terminal state and PLANNED used as
the terminal state of dry runs. Files are processed independently by a
bounded thread pool and a failure only affects the file it belongs to.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .attributes import load_tracked_patterns
from .cache import LocalCache
from .config import LFSyncConfig
from .errors import (
    ContentMismatchError,
    ErrorKind,
    LFSyncError,
    LocalIOError,
    ObjectNotFoundError,
    VersionControlError,
)
from .pointer import PointerRecord, read_pointer, write_pointer
from .scanner import FileState, PathFilter, ScanEntry, ScanMode, Scanner, walk_working_tree
from .store import ContentStore, create_store
from .vcs import VersionControl

log = logging.getLogger("lfsync/engine")

DEFAULT_JOBS = 8


class FileStatus(str, Enum):
    """State of a single file while a command processes it."""

    SCANNED = "scanned"
    HASH_KNOWN = "hash_known"
    CACHE_HIT = "cache_hit"
    TRANSFERRING = "transferring"
    PERSISTED = "persisted"
    FAILED = "failed"
    PLANNED = "planned"


_TRANSITIONS: dict[FileStatus, frozenset[FileStatus]] = {
    FileStatus.SCANNED: frozenset({FileStatus.HASH_KNOWN, FileStatus.FAILED}),
    FileStatus.HASH_KNOWN: frozenset(
        {FileStatus.CACHE_HIT, FileStatus.TRANSFERRING, FileStatus.PLANNED, FileStatus.FAILED}
    ),
    FileStatus.CACHE_HIT: frozenset({FileStatus.PERSISTED, FileStatus.FAILED}),
    FileStatus.TRANSFERRING: frozenset({FileStatus.PERSISTED, FileStatus.FAILED}),
    FileStatus.PERSISTED: frozenset(),
    FileStatus.FAILED: frozenset(),
    FileStatus.PLANNED: frozenset(),
}


class IllegalTransitionError(RuntimeError):
    """A file was moved to a state not reachable from its current one."""


class Action(str, Enum):
    """What a command did (or would do) for a file."""

    UPLOAD = "upload"
    ALREADY_REMOTE = "already_remote"
    REUPLOAD = "reupload"
    VERIFIED = "verified"
    DOWNLOAD = "download"
    FROM_CACHE = "from_cache"


@dataclass(kw_only=True)
class FileResult:
    """Outcome of processing a single file."""

    path: str
    state: FileStatus = FileStatus.SCANNED
    oid: str | None = None
    size: int | None = None
    action: Action | None = None
    error: LFSyncError | None = None
    history: list[FileStatus] = field(default_factory=lambda: [FileStatus.SCANNED])

    def advance(self, state: FileStatus) -> None:
        """Move to the given state, enforcing the state machine."""
        if state not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(f"{self.path}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    @property
    def terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def fail(self, error: LFSyncError) -> None:
        self.advance(FileStatus.FAILED)
        self.error = error

    @property
    def error_kind(self) -> ErrorKind | None:
        return None if self.error is None else self.error.kind


@dataclass(kw_only=True)
class SyncReport:
    """Per-command report aggregating the per-file results."""

    command: str
    dry_run: bool = False
    results: list[FileResult] = field(default_factory=list)
    stage_error: LFSyncError | None = None
    elapsed: float = 0.0

    @property
    def failed(self) -> list[FileResult]:
        return [r for r in self.results if r.state == FileStatus.FAILED]

    @property
    def persisted(self) -> list[FileResult]:
        return [r for r in self.results if r.state == FileStatus.PERSISTED]

    @property
    def planned(self) -> list[FileResult]:
        return [r for r in self.results if r.state == FileStatus.PLANNED]

    @property
    def ok(self) -> bool:
        """True when every targeted file reached its terminal success state."""
        return not self.failed and self.stage_error is None

    def count(self, action: Action) -> int:
        return sum(1 for r in self.results if r.action == action and r.state != FileStatus.FAILED)

    def exitcode(self) -> int:
        """Zero on success, 1 when at least one file failed."""
        return 0 if self.ok else 1

    def diagnostics(self) -> list[str]:
        """Return a human readable line for each failure."""
        lines = [f"{r.path}: [{r.error_kind.value}] {r.error}" for r in self.failed if r.error]
        if self.stage_error is not None:
            lines.append(f"(staging): [{self.stage_error.kind.value}] {self.stage_error}")
        return lines


@dataclass(frozen=True, kw_only=True)
class StatusEntry:
    """Read-only view of a tracked file."""

    path: str
    state: FileState
    oid: str | None
    size: int | None
    cached: bool


class SyncEngine:
    """
    Drive push and pull over the tracked files of a working tree.

    The local cache root is resolved by the caller once and passed in;
    the engine never looks it up on its own.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        store: ContentStore,
        cache: LocalCache,
        scanner: Scanner,
        vcs: VersionControl | None = None,
        jobs: int = DEFAULT_JOBS,
    ) -> None:
        if jobs < 1:
            raise ValueError(f"jobs must be positive, got {jobs}")
        self.root = Path(root)
        self.store = store
        self.cache = cache
        self.scanner = scanner
        self.vcs = vcs
        self.jobs = jobs

    @classmethod
    def from_config(
        cls,
        root: str | Path,
        config: LFSyncConfig,
        *,
        cache_root: str | Path,
        vcs: VersionControl | None = None,
        store: ContentStore | None = None,
        jobs: int | None = None,
    ) -> SyncEngine:
        """
        Build an engine from a configuration.

        Raises:
            ConfigurationError: before any scan or network call when the
                configuration is incomplete.
        """
        config.validate()
        if store is None:
            store = create_store(config)
        return cls(
            root,
            store=store,
            cache=LocalCache(cache_root),
            scanner=Scanner(root, load_tracked_patterns(root)),
            vcs=vcs,
            jobs=jobs if jobs is not None else config.transfer.jobs,
        )

    def _candidates(self, mode: ScanMode) -> Iterable[str]:
        if mode == ScanMode.ALL:
            return walk_working_tree(self.root)
        if self.vcs is None:
            raise VersionControlError("listing staged files requires version control")
        return self.vcs.staged_files()

    # push

    def push(
        self,
        *,
        mode: ScanMode = ScanMode.STAGED,
        dry_run: bool = False,
        path_filter: PathFilter | None = None,
        on_result: Callable[[FileResult], None] | None = None,
    ) -> SyncReport:
        """
        Upload tracked real content and replace it with pointers.

        With dry_run, files are scanned and hashed, and the report lists
        the planned actions, but nothing is uploaded, cached, rewritten
        or staged.
        """
        entries = self.scanner.scan(self._candidates(mode), path_filter=path_filter)
        worklist = [e for e in entries if e.state != FileState.ABSENT]
        report = self._run("push", worklist, self._push_one, dry_run=dry_run, on_result=on_result)

        converted = [
            r.path for r in report.persisted if r.action in (Action.UPLOAD, Action.ALREADY_REMOTE)
        ]
        if converted and self.vcs is not None:
            try:
                self.vcs.stage(converted)
            except VersionControlError as exc:
                log.error("staging %d pointer(s)... failure: %s", len(converted), exc)
                report.stage_error = exc
        return report

    def _push_one(self, entry: ScanEntry, result: FileResult, dry_run: bool) -> None:
        if entry.state == FileState.POINTER_STUB:
            self._push_stub(entry, result, dry_run)
            return

        try:
            before = entry.abs_path.stat()
            oid, size = entry.content_hash()
        except OSError as exc:
            raise LocalIOError(f"cannot hash {entry.path}: {exc}") from exc
        result.oid, result.size = oid, size
        result.advance(FileStatus.HASH_KNOWN)

        if dry_run:
            result.action = Action.UPLOAD
            result.advance(FileStatus.PLANNED)
            return

        # Upload from the verified cache copy so the remote bytes always
        # match the oid even if the working tree file changes meanwhile.
        try:
            cached = self.cache.put_file(oid, entry.abs_path)
        except ContentMismatchError as exc:
            raise LocalIOError(f"{entry.path} changed while pushing") from exc

        if self.store.exists(oid):
            result.action = Action.ALREADY_REMOTE
            result.advance(FileStatus.CACHE_HIT)
        else:
            result.advance(FileStatus.TRANSFERRING)
            self.store.put(oid, size, cached)
            result.action = Action.UPLOAD

        try:
            after = entry.abs_path.stat()
        except OSError as exc:
            raise LocalIOError(f"cannot stat {entry.path}: {exc}") from exc
        if (after.st_size, after.st_mtime_ns) != (before.st_size, before.st_mtime_ns):
            raise LocalIOError(f"{entry.path} changed while pushing")
        try:
            write_pointer(entry.abs_path, PointerRecord(oid=oid, size=size))
        except OSError as exc:
            raise LocalIOError(f"cannot write pointer to {entry.path}: {exc}") from exc
        result.advance(FileStatus.PERSISTED)

    def _push_stub(self, entry: ScanEntry, result: FileResult, dry_run: bool) -> None:
        # A pointer whose object never reached the store (e.g. an earlier
        # push was interrupted) can still be uploaded from the cache.
        oid, size = entry.content_hash()
        result.oid, result.size = oid, size
        result.advance(FileStatus.HASH_KNOWN)

        if dry_run:
            result.action = Action.VERIFIED
            result.advance(FileStatus.PLANNED)
            return

        if self.store.exists(oid):
            result.action = Action.VERIFIED
            result.advance(FileStatus.CACHE_HIT)
            result.advance(FileStatus.PERSISTED)
            return

        cached = self.cache.get(oid)
        if cached is None:
            raise ObjectNotFoundError(
                f"object {oid} is neither in {self.store.describe()} nor in the local cache"
            )
        result.advance(FileStatus.TRANSFERRING)
        self.store.put(oid, size, cached)
        result.action = Action.REUPLOAD
        result.advance(FileStatus.PERSISTED)

    # pull

    def pull(
        self,
        *,
        dry_run: bool = False,
        path_filter: PathFilter | None = None,
        on_result: Callable[[FileResult], None] | None = None,
    ) -> SyncReport:
        """
        Materialize the content of every tracked pointer stub.

        Files that already hold real content are not pointer stubs, so
        pulling twice does not transfer anything the second time.
        """
        entries = self.scanner.scan(walk_working_tree(self.root), path_filter=path_filter)
        worklist = [e for e in entries if e.state == FileState.POINTER_STUB]
        return self._run("pull", worklist, self._pull_one, dry_run=dry_run, on_result=on_result)

    def _pull_one(self, entry: ScanEntry, result: FileResult, dry_run: bool) -> None:
        pointer = entry.pointer
        assert pointer is not None
        oid = pointer.oid
        result.oid, result.size = oid, pointer.size
        result.advance(FileStatus.HASH_KNOWN)

        if dry_run:
            result.action = Action.FROM_CACHE if self.cache.contains(oid) else Action.DOWNLOAD
            result.advance(FileStatus.PLANNED)
            return

        # Concurrent pulls of the same oid (threads or processes) wait
        # here; the followers find the object in the cache.
        with self.cache.lock(oid):
            if self.cache.contains(oid):
                result.action = Action.FROM_CACHE
                result.advance(FileStatus.CACHE_HIT)
            else:
                result.advance(FileStatus.TRANSFERRING)
                self.cache.put(oid, self.store.get(oid))
                result.action = Action.DOWNLOAD

            try:
                current = read_pointer(entry.abs_path)
            except OSError as exc:
                raise LocalIOError(f"cannot read {entry.path}: {exc}") from exc
            if current != pointer:
                raise LocalIOError(f"{entry.path} changed while pulling")
            self.cache.materialize(oid, entry.abs_path)
        result.advance(FileStatus.PERSISTED)

    # status

    def status(self, *, path_filter: PathFilter | None = None) -> list[StatusEntry]:
        """Describe every tracked file without hashing or transferring."""
        entries: list[StatusEntry] = []
        for entry in self.scanner.scan(walk_working_tree(self.root), path_filter=path_filter):
            if entry.pointer is not None:
                oid, size = entry.pointer.oid, entry.pointer.size
                cached = self.cache.contains(oid)
            else:
                oid, size, cached = None, None, False
                if entry.state == FileState.REAL_CONTENT:
                    try:
                        size = entry.abs_path.stat().st_size
                    except OSError:
                        size = None
            entries.append(
                StatusEntry(path=entry.path, state=entry.state, oid=oid, size=size, cached=cached)
            )
        return entries

    # worker pool

    def _process(
        self,
        func: Callable[[ScanEntry, FileResult, bool], None],
        entry: ScanEntry,
        result: FileResult,
        dry_run: bool,
    ) -> None:
        try:
            func(entry, result, dry_run)
        except LFSyncError as exc:
            result.fail(exc)
        except OSError as exc:
            result.fail(LocalIOError(f"{entry.path}: {exc}"))

    def _run(
        self,
        command: str,
        worklist: list[ScanEntry],
        func: Callable[[ScanEntry, FileResult, bool], None],
        *,
        dry_run: bool,
        on_result: Callable[[FileResult], None] | None,
    ) -> SyncReport:
        results = {entry.path: FileResult(path=entry.path) for entry in worklist}
        report = SyncReport(command=command, dry_run=dry_run, results=list(results.values()))
        if not worklist:
            return report

        log.info("%s %d file(s) with %d worker(s)... start", command, len(worklist), self.jobs)
        t0 = time.monotonic()
        pool = ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix=f"lfsync-{command}")
        try:
            futures = {
                pool.submit(self._process, func, entry, results[entry.path], dry_run): entry
                for entry in worklist
            }
            for future in as_completed(futures):
                result = results[futures[future].path]
                try:
                    future.result()
                except Exception as exc:
                    log.exception("%s %s... unexpected failure", command, result.path)
                    if not result.terminal:
                        result.fail(LFSyncError(f"unexpected error: {exc}"))
                if result.state == FileStatus.FAILED:
                    log.warning("%s %s... failure: %s", command, result.path, result.error)
                else:
                    log.debug("%s %s... %s", command, result.path, result.state.value)
                if on_result is not None:
                    on_result(result)
        except BaseException:
            # Interrupted: drop queued work, abandon in-flight work. Atomic
            # renames guarantee no partial file is ever visible.
            pool.shutdown(wait=False, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
        report.elapsed = time.monotonic() - t0
        log.info(
            "%s %d file(s)... done (%d failed) in %.1fs",
            command,
            len(worklist),
            len(report.failed),
            report.elapsed,
        )
        return report


__all__ = [
    "Action",
    "FileResult",
    "FileStatus",
    "IllegalTransitionError",
    "StatusEntry",
    "SyncEngine",
    "SyncReport",
]
