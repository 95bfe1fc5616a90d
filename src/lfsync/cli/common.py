"""Helpers shared by the sync commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
)

from ..cache import cache_dir_or_default
from ..config import config_path_for_root, load_config
from ..engine import SyncEngine, SyncReport
from ..errors import ConfigurationError, LFSyncError, VersionControlError
from ..vcs import GitVersionControl

log = logging.getLogger("lfsync/cli")


def repo_root(repo: str | None) -> Path:
    """
    Return the top-level directory of the git repository containing repo
    (default: the current directory), so that commands work from any
    subdirectory. Outside a git repository, repo itself is the root.
    """
    start = Path(repo or ".").resolve()
    try:
        return GitVersionControl(start).toplevel().resolve()
    except VersionControlError as exc:
        log.debug("finding repository root from %s... failure: %s", start, exc)
        return start


def open_engine(repo: str | None, cache_dir: str | None, jobs: int | None) -> SyncEngine:
    """
    Create the engine for the working tree at repo.

    Configuration errors abort the command before any file is touched.
    """
    root = repo_root(repo)
    try:
        config = load_config(config_path_for_root(root))
        return SyncEngine.from_config(
            root,
            config,
            cache_root=cache_dir_or_default(cache_dir),
            vcs=GitVersionControl(root),
            jobs=jobs,
        )
    except (ConfigurationError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    except LFSyncError as exc:
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc


def format_bytes(n: int) -> str:
    """Format a byte count using binary suffixes."""
    value = float(n)
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(value) < 1024:
            return f"{int(value)} {unit}" if value == int(value) else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} PiB"


def exit_on_failures(report: SyncReport) -> None:
    """Print the per-file diagnostics on stderr and exit with 1, if any."""
    if report.ok:
        return
    lines = report.diagnostics()
    click.echo(f"{len(lines)} {report.command} failure(s):", err=True)
    for line in lines:
        click.echo(f"  {line}", err=True)
    raise SystemExit(1)


def transfer_progress() -> Progress:
    """Return the progress bar shown while files are transferred."""
    return Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )
