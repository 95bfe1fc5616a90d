"""ls-files command."""

import click

from ..attributes import load_tracked_patterns
from ..errors import LFSyncError
from ..scanner import FileState, Scanner, build_path_filter, walk_working_tree
from . import cli
from .common import format_bytes, repo_root
from .logger import configure_logging


@cli.command("ls-files")
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.option(
    "-l", "--long", "long_format", is_flag=True, default=False, help="Show oid and size of each file"
)
@click.option("-I", "--include", multiple=True, metavar="PATTERN", help="Only list matching paths")
@click.option("-X", "--exclude", multiple=True, metavar="PATTERN", help="Skip matching paths")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def ls_files(
    repo: str | None,
    long_format: bool,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    verbose: bool,
) -> None:
    """List the files matching the tracked patterns.

    With --long each line shows the abbreviated oid, the content size,
    the path and whether the working tree holds the real content or a
    pointer. Real content is hashed to compute its oid.
    """
    configure_logging(verbose)
    root = repo_root(repo)
    try:
        patterns = load_tracked_patterns(root)
        entries = Scanner(root, patterns).scan(
            walk_working_tree(root), path_filter=build_path_filter(include, exclude)
        )
    except LFSyncError as exc:
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc

    if not patterns:
        click.echo("No tracked patterns.")
        return
    if not entries:
        click.echo("No tracked files.")
        return

    for entry in entries:
        if not long_format:
            click.echo(entry.path)
            continue
        try:
            oid, size = entry.content_hash()
        except OSError as exc:
            raise click.ClickException(f"cannot read {entry.path}: {exc}") from exc
        kind = "pointer" if entry.state == FileState.POINTER_STUB else "real"
        click.echo(f"{oid[:12]} {format_bytes(size):>10}  {entry.path} ({kind})")
