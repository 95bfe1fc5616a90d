"""Scan the working tree for files matching the tracked patterns."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .pointer import MAX_POINTER_SIZE, PointerRecord, hash_file, read_pointer

log = logging.getLogger("lfsync/scanner")

_SKIPPED_DIRS = frozenset({".git"})


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _translate_class(pattern: str, start: int) -> tuple[str, int] | None:
    """Translate the `[...]` class starting at start, if it is closed."""
    idx = start + 1
    if idx < len(pattern) and pattern[idx] in "!^":
        idx += 1
    if idx < len(pattern) and pattern[idx] == "]":
        idx += 1
    end = pattern.find("]", idx)
    if end < 0:
        return None
    body = pattern[start + 1 : end]
    if body[:1] in ("!", "^"):
        body = "^" + re.escape(body[1:]).replace(r"\-", "-")
    else:
        body = re.escape(body).replace(r"\-", "-")
    return f"(?!/)[{body}]", end + 1


def compile_glob(pattern: str) -> re.Pattern[str]:
    """
    Compile a gitattributes-style glob into a regular expression
    matching POSIX paths relative to the working tree root.

    A pattern without a slash matches the file name at any depth, a
    pattern containing a slash is anchored at the root, and a pattern
    ending with a slash matches every file below that directory. The
    `*` wildcard never crosses a slash while `**` matches zero or more
    directories.
    """
    norm = _normalize_pattern(pattern)
    if not norm or norm == "/":
        raise ValueError(f"empty glob pattern: {pattern!r}")
    dir_only = norm.endswith("/")
    norm = norm.rstrip("/")
    anchored = "/" in norm
    norm = norm.lstrip("/")

    out: list[str] = []
    idx = 0
    while idx < len(norm):
        if norm.startswith("**/", idx):
            out.append("(?:.*/)?")
            idx += 3
        elif norm.startswith("**", idx):
            out.append(".*")
            idx += 2
        elif norm[idx] == "*":
            out.append("[^/]*")
            idx += 1
        elif norm[idx] == "?":
            out.append("[^/]")
            idx += 1
        elif norm[idx] == "[" and (translated := _translate_class(norm, idx)) is not None:
            out.append(translated[0])
            idx = translated[1]
        else:
            out.append(re.escape(norm[idx]))
            idx += 1

    body = "".join(out)
    if not anchored:
        body = "(?:.*/)?" + body
    if dir_only:
        body += "/.*"
    return re.compile(f"^{body}$")


@dataclass(frozen=True)
class TrackedPattern:
    """A glob selecting which working-tree paths we manage."""

    pattern: str
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", compile_glob(self.pattern))

    def matches(self, path: str) -> bool:
        """Return whether the given POSIX relative path matches."""
        return self.regex.match(path) is not None


@dataclass(frozen=True)
class PathFilter:
    """Include/exclude filters layered on top of the tracked patterns."""

    include: tuple[TrackedPattern, ...] = ()
    exclude: tuple[TrackedPattern, ...] = ()

    def matches(self, path: str) -> bool:
        if self.include and not any(p.matches(path) for p in self.include):
            return False
        return not any(p.matches(path) for p in self.exclude)


def build_path_filter(
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
) -> PathFilter:
    """Build a PathFilter, ignoring empty patterns."""
    return PathFilter(
        include=tuple(TrackedPattern(p) for p in (include or ()) if p.strip()),
        exclude=tuple(TrackedPattern(p) for p in (exclude or ()) if p.strip()),
    )


class FileState(str, Enum):
    """What we observed on disk for a matched path."""

    REAL_CONTENT = "real_content"
    POINTER_STUB = "pointer_stub"
    ABSENT = "absent"


class ScanMode(str, Enum):
    """Which paths are considered by a scan."""

    STAGED = "staged"
    ALL = "all"


@dataclass(kw_only=True)
class ScanEntry:
    """
    A path matched by at least one tracked pattern.

    Attributes:
        path: POSIX path relative to the working tree root
        abs_path: absolute path on disk
        state: the observed state
        pointer: the decoded pointer for POINTER_STUB entries
    """

    path: str
    abs_path: Path
    state: FileState
    pointer: PointerRecord | None = None
    _digest: tuple[str, int] | None = field(default=None, repr=False)

    def content_hash(self) -> tuple[str, int]:
        """
        Return the (oid, size) of the content. For real content the
        file is hashed on the first call and the result is memoized.

        Raises:
            OSError: if the file cannot be read.
        """
        if self.pointer is not None:
            return self.pointer.oid, self.pointer.size
        if self._digest is None:
            self._digest = hash_file(self.abs_path)
        return self._digest


class Scanner:
    """Classify working-tree paths matching the tracked patterns."""

    def __init__(self, root: str | Path, patterns: Iterable[TrackedPattern | str]) -> None:
        self.root = Path(root)
        self.patterns = tuple(p if isinstance(p, TrackedPattern) else TrackedPattern(p) for p in patterns)

    def is_tracked(self, path: str) -> bool:
        """Return whether at least one tracked pattern matches path."""
        return any(p.matches(path) for p in self.patterns)

    def classify(self, path: str) -> ScanEntry | None:
        """Classify a single relative path. Returns None for non-regular files."""
        abs_path = self.root / path
        if not abs_path.exists() and not abs_path.is_symlink():
            return ScanEntry(path=path, abs_path=abs_path, state=FileState.ABSENT)
        if abs_path.is_symlink() or not abs_path.is_file():
            return None
        entry = ScanEntry(path=path, abs_path=abs_path, state=FileState.REAL_CONTENT)
        try:
            if abs_path.stat().st_size <= MAX_POINTER_SIZE:
                entry.pointer = read_pointer(abs_path)
        except OSError as exc:
            # Leave it as real content: hashing will fail and report it.
            log.warning("classifying %s... failure: %s", path, exc)
        if entry.pointer is not None:
            entry.state = FileState.POINTER_STUB
        return entry

    def scan(
        self,
        candidates: Iterable[str],
        *,
        path_filter: PathFilter | None = None,
    ) -> list[ScanEntry]:
        """Return the sorted entries for the tracked candidates."""
        entries: list[ScanEntry] = []
        for path in sorted({Path(c).as_posix() for c in candidates}):
            if not self.is_tracked(path):
                continue
            if path_filter is not None and not path_filter.matches(path):
                continue
            entry = self.classify(path)
            if entry is not None:
                entries.append(entry)
        log.debug("scanned %d tracked path(s) under %s", len(entries), self.root)
        return entries


def walk_working_tree(root: str | Path) -> Iterator[str]:
    """Yield the POSIX relative path of every regular file under root."""
    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIPPED_DIRS)
        base = Path(dirpath)
        for name in sorted(filenames):
            yield (base / name).relative_to(root).as_posix()
