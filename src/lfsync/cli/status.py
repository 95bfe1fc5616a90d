"""Status command."""

import click
from rich.console import Console
from rich.markup import escape

from ..errors import LFSyncError
from ..scanner import FileState, build_path_filter
from . import cli
from .common import format_bytes, open_engine
from .logger import configure_logging


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.option("--cache-dir", default=None, help="Local cache directory (default: ~/.cache/lfsync)")
@click.option("-I", "--include", multiple=True, metavar="PATTERN", help="Only show matching paths")
@click.option("-X", "--exclude", multiple=True, metavar="PATTERN", help="Hide matching paths")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def status(
    repo: str | None,
    cache_dir: str | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    verbose: bool,
) -> None:
    """Show the state of every tracked file.

    Each file path is prefixed with a status letter:

    \b
      'R'  real content in the working tree
      'C'  pointer file, content available in the local cache
      'D'  pointer file, content needs download
    """
    configure_logging(verbose)
    engine = open_engine(repo, cache_dir, None)
    try:
        entries = engine.status(path_filter=build_path_filter(include, exclude))
    except LFSyncError as exc:
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc

    if not entries:
        click.echo("No tracked files.")
        return

    console = Console()
    for entry in entries:
        if entry.state == FileState.REAL_CONTENT:
            char, color = "R", "green"
        elif entry.cached:
            char, color = "C", "yellow"
        else:
            char, color = "D", "red"
        size = "" if entry.size is None else f" ({format_bytes(entry.size)})"
        console.print(f"[{color}]{char}[/] {escape(entry.path)}{size}")
