"""lfsync command-line interface."""

import click

from .. import __version__


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, message="%(version)s")
def cli() -> None:
    """Keep large files out of git history using a content-addressed store.

    \b
    Typical workflow:
      lfsync track '*.psd'    manage matching files
      git add art.psd         stage real content as usual
      lfsync push             upload staged files, stage their pointers
      lfsync pull             replace pointers with their content
    """


@cli.command(hidden=True)
@click.argument("command", required=False)
@click.pass_context
def help(ctx: click.Context, command: str | None) -> None:
    """Show usage information for lfsync or one of its commands."""
    parent = ctx.find_root()
    if command is None:
        click.echo(cli.get_help(parent))
        return
    sub = cli.get_command(parent, command)
    if sub is None:
        raise click.UsageError(f"no such command: {command}", ctx=parent)
    with click.Context(sub, info_name=command, parent=parent) as sub_ctx:
        click.echo(sub.get_help(sub_ctx))


@cli.command("version")
def version_cmd() -> None:
    """Print the version number."""
    click.echo(__version__)


# Register subcommands (must be after cli is defined)
from . import ls_files as _ls_files  # noqa: E402, F401
from . import prune as _prune  # noqa: E402, F401
from . import pull as _pull  # noqa: E402, F401
from . import push as _push  # noqa: E402, F401
from . import status as _status  # noqa: E402, F401
from . import track as _track  # noqa: E402, F401
from . import verify as _verify  # noqa: E402, F401
