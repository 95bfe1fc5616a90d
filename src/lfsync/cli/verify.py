"""Verify command."""

import click
from rich.console import Console

from ..config import config_path_for_root, load_config
from ..errors import ConfigurationError, LFSyncError
from ..store import create_store
from . import cli
from .common import repo_root
from .logger import configure_logging

# Any well-formed oid works: a missing object still proves read access.
_CHECK_OID = "0" * 64


@cli.command()
@click.option("-C", "--repo", default=None, help="Working tree root (default: current directory)")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose mode.")
def verify(repo: str | None, verbose: bool) -> None:
    """Check the configuration and the connection to the content store."""
    configure_logging(verbose)
    console = Console()
    path = config_path_for_root(repo_root(repo))

    try:
        config = load_config(path)
        store = create_store(config)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    storage = config.storage
    console.print(f"[green]OK[/] configuration {path}")
    console.print(f"    provider: {storage.provider}")
    console.print(f"    bucket:   {storage.bucket}")
    console.print(f"    region:   {storage.region}")
    if storage.prefix:
        console.print(f"    prefix:   {storage.prefix}")
    if storage.endpoint:
        console.print(f"    endpoint: {storage.endpoint}")

    try:
        store.exists(_CHECK_OID)
    except LFSyncError as exc:
        console.print(f"[red]FAILED[/] connecting to {store.describe()}")
        raise click.ClickException(f"[{exc.kind.value}] {exc}") from exc
    console.print(f"[green]OK[/] connecting to {store.describe()}")
