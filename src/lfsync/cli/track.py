"""Track and untrack commands."""

import click

from ..attributes import remove_tracked_pattern, write_tracked_pattern
from ..errors import LFSyncError
from . import cli
from .common import repo_root


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.argument("patterns", nargs=-1, required=True)
def track(repo: str | None, patterns: tuple[str, ...]) -> None:
    """Start managing the files matching the given glob PATTERNS."""
    root = repo_root(repo)
    for pattern in patterns:
        try:
            added = write_tracked_pattern(root, pattern)
        except ValueError as exc:
            raise click.BadParameter(str(exc), param_hint="PATTERNS") from exc
        except LFSyncError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Tracking {pattern}" if added else f"{pattern} already tracked")


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.argument("patterns", nargs=-1, required=True)
def untrack(repo: str | None, patterns: tuple[str, ...]) -> None:
    """Stop managing the files matching the given glob PATTERNS."""
    root = repo_root(repo)
    for pattern in patterns:
        try:
            removed = remove_tracked_pattern(root, pattern)
        except LFSyncError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"Untracking {pattern}" if removed else f"{pattern} was not tracked")
