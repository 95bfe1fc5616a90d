"""Push command."""

import click

from ..engine import Action, SyncReport
from ..errors import LFSyncError
from ..scanner import ScanMode, build_path_filter
from . import cli
from .common import exit_on_failures, format_bytes, open_engine, transfer_progress
from .logger import configure_logging

_PLANNED_VERBS: dict[Action, str] = {
    Action.UPLOAD: "would upload",
    Action.VERIFIED: "would verify",
}


def _print_plan(report: SyncReport) -> None:
    for result in report.planned:
        verb = _PLANNED_VERBS.get(result.action, "would push")  # type: ignore[arg-type]
        click.echo(f"{verb} {result.path} ({format_bytes(result.size or 0)})")
    click.echo(f"Would push {len(report.planned)} file(s).")


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.option("--cache-dir", default=None, help="Local cache directory (default: ~/.cache/lfsync)")
@click.option("-a", "--all", "all_files", is_flag=True, help="Push every tracked file, not only staged ones")
@click.option("-I", "--include", multiple=True, metavar="PATTERN", help="Only push matching paths")
@click.option("-X", "--exclude", multiple=True, metavar="PATTERN", help="Skip matching paths")
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be pushed without changing anything")
@click.option("-j", "--jobs", type=int, default=None, help="Number of parallel uploads")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def push(
    repo: str | None,
    cache_dir: str | None,
    all_files: bool,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    dry_run: bool,
    jobs: int | None,
    verbose: bool,
) -> None:
    """Upload tracked files and replace them with pointers.

    By default only the files staged for the next commit are considered;
    use `-a, --all` to consider every tracked file in the working tree.
    The rewritten pointers are staged again.
    """
    configure_logging(verbose)
    engine = open_engine(repo, cache_dir, jobs)
    mode = ScanMode.ALL if all_files else ScanMode.STAGED
    path_filter = build_path_filter(include, exclude)

    try:
        if dry_run:
            report = engine.push(mode=mode, dry_run=True, path_filter=path_filter)
        else:
            with transfer_progress() as progress:
                task_id = progress.add_task("push", total=None)
                report = engine.push(
                    mode=mode,
                    path_filter=path_filter,
                    on_result=lambda _: progress.advance(task_id),
                )
    except LFSyncError as exc:
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc

    if not report.results:
        click.echo("Nothing to push.")
        return

    if dry_run:
        _print_plan(report)
    else:
        uploaded = report.count(Action.UPLOAD) + report.count(Action.REUPLOAD)
        present = report.count(Action.ALREADY_REMOTE) + report.count(Action.VERIFIED)
        done = len(report.persisted)
        click.echo(
            f"Pushed {done}/{len(report.results)} file(s) in {report.elapsed:.1f}s: "
            f"{uploaded} uploaded, {present} already in the store."
        )

    exit_on_failures(report)
