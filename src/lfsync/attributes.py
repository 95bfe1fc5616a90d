"""
Tracked patterns persisted in the `.gitattributes` file.

Each tracked pattern is stored as a line like:

    *.psd filter=lfsync diff=lfsync merge=lfsync -text

Lines using the git-lfs `filter=lfs` attribute are honored as well, so
existing repositories keep working.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from .errors import LocalIOError
from .scanner import TrackedPattern

GITATTRIBUTES_FILENAME: Final[str] = ".gitattributes"

FILTER_NAME: Final[str] = "lfsync"

_FILTERS: Final[tuple[str, ...]] = (f"filter={FILTER_NAME}", "filter=lfs")

log = logging.getLogger("lfsync/attributes")


def _tracked_pattern_of(line: str) -> str | None:
    """Return the pattern of a tracking line or None for any other line."""
    fields = line.split()
    if not fields or fields[0].startswith("#"):
        return None
    if not any(attr in _FILTERS for attr in fields[1:]):
        return None
    return fields[0]


def _read_lines(root: Path) -> list[str]:
    path = root / GITATTRIBUTES_FILENAME
    try:
        return path.read_text().splitlines()
    except FileNotFoundError:
        return []
    except OSError as exc:
        raise LocalIOError(f"cannot read {path}: {exc}") from exc


def _write_lines(root: Path, lines: list[str]) -> None:
    path = root / GITATTRIBUTES_FILENAME
    try:
        path.write_text("".join(f"{line}\n" for line in lines))
    except OSError as exc:
        raise LocalIOError(f"cannot write {path}: {exc}") from exc


def load_tracked_patterns(root: str | Path) -> list[TrackedPattern]:
    """Return the tracked patterns configured for the working tree at root."""
    patterns: list[TrackedPattern] = []
    for line in _read_lines(Path(root)):
        pattern = _tracked_pattern_of(line)
        if pattern is None:
            continue
        try:
            patterns.append(TrackedPattern(pattern))
        except ValueError as exc:
            log.warning("ignoring tracked pattern %r: %s", pattern, exc)
    return patterns


def write_tracked_pattern(root: str | Path, pattern: str) -> bool:
    """
    Persist a new tracked pattern. Returns False if the pattern was
    already tracked, True if we added it.
    """
    root = Path(root)
    TrackedPattern(pattern)  # validate before touching the file
    lines = _read_lines(root)
    if any(_tracked_pattern_of(line) == pattern for line in lines):
        return False
    lines.append(f"{pattern} filter={FILTER_NAME} diff={FILTER_NAME} merge={FILTER_NAME} -text")
    _write_lines(root, lines)
    log.info("tracking %s", pattern)
    return True


def remove_tracked_pattern(root: str | Path, pattern: str) -> bool:
    """Stop tracking a pattern. Returns whether the pattern was tracked."""
    root = Path(root)
    lines = _read_lines(root)
    kept = [line for line in lines if _tracked_pattern_of(line) != pattern]
    if len(kept) == len(lines):
        return False
    _write_lines(root, kept)
    log.info("untracking %s", pattern)
    return True
