"""Pull command."""

import click

from ..engine import Action
from ..errors import LFSyncError
from ..scanner import build_path_filter
from . import cli
from .common import exit_on_failures, format_bytes, open_engine, transfer_progress
from .logger import configure_logging


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.option("--cache-dir", default=None, help="Local cache directory (default: ~/.cache/lfsync)")
@click.option("-I", "--include", multiple=True, metavar="PATTERN", help="Only pull matching paths")
@click.option("-X", "--exclude", multiple=True, metavar="PATTERN", help="Skip matching paths")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be pulled without changing anything")
@click.option("-j", "--jobs", type=int, default=None, help="Number of parallel downloads")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def pull(
    repo: str | None,
    cache_dir: str | None,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    dry_run: bool,
    jobs: int | None,
    verbose: bool,
) -> None:
    """Replace pointer files with their content."""
    configure_logging(verbose)
    engine = open_engine(repo, cache_dir, jobs)
    path_filter = build_path_filter(include, exclude)

    try:
        if dry_run:
            report = engine.pull(dry_run=True, path_filter=path_filter)
        else:
            with transfer_progress() as progress:
                task_id = progress.add_task("pull", total=None)
                report = engine.pull(
                    path_filter=path_filter,
                    on_result=lambda _: progress.advance(task_id),
                )
    except LFSyncError as exc:
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc

    if not report.results:
        click.echo("Nothing to pull.")
        return

    if dry_run:
        for result in report.planned:
            verb = "would copy from cache" if result.action == Action.FROM_CACHE else "would download"
            click.echo(f"{verb} {result.path} ({format_bytes(result.size or 0)})")
        click.echo(f"Would pull {len(report.planned)} file(s).")
    else:
        done = len(report.persisted)
        click.echo(
            f"Pulled {done}/{len(report.results)} file(s) in {report.elapsed:.1f}s: "
            f"{report.count(Action.DOWNLOAD)} downloaded, "
            f"{report.count(Action.FROM_CACHE)} from the local cache."
        )

    exit_on_failures(report)
