"""Prune command."""

from datetime import timedelta

import click

from ..cache import LocalCache, cache_dir_or_default
from . import cli
from .common import format_bytes
from .logger import configure_logging


@cli.command()
@click.option("--cache-dir", default=None, help="Local cache directory (default: ~/.cache/lfsync)")
@click.option(
    "--days",
    type=click.IntRange(min=0),
    default=30,
    show_default=True,
    help="Remove objects not used for more than this many days",
)
@click.option("-n", "--dry-run", is_flag=True, help="Show what would be removed without removing it")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def prune(cache_dir: str | None, days: int, dry_run: bool, verbose: bool) -> None:
    """Remove old objects from the local cache.

    An object is considered used whenever it is cached, pushed or
    copied into a working tree. Objects locked by a running pull are
    never removed.
    """
    configure_logging(verbose)
    cache = LocalCache(cache_dir_or_default(cache_dir))
    result = cache.prune(timedelta(days=days), dry_run=dry_run)

    count = len(result.removed)
    if dry_run:
        for oid in result.removed:
            click.echo(f"would remove {oid}")
        click.echo(f"Would remove {count} object(s), freeing {format_bytes(result.freed)}.")
        return
    click.echo(f"Removed {count} object(s), freed {format_bytes(result.freed)}.")
    if result.skipped_locked:
        click.echo(f"Skipped {len(result.skipped_locked)} object(s) in use.")
