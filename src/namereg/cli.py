"""``namereg`` entry point: global options, then the command tree."""

from __future__ import annotations

from typing import Any

import click

from namereg import __version__
from namereg.commands import register_commands
from namereg.commands._context import AppContext
from namereg.config.settings import RegistrySettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="namereg")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON.")
@click.option("-q", "--quiet", is_flag=True, help="Print only the essential value.")
@click.option("-v", "--verbose", is_flag=True, help="More detail, plus debug logs.")
@click.option("--log-json", is_flag=True, help="Write logs to stderr as JSON lines.")
@click.option("-c", "--config", "config_path", default=None, help="Use this namereg.toml.")
@click.option(
    "--as",
    "caller",
    default=None,
    metavar="IDENTITY",
    help="Act as IDENTITY (default: $NAMEREG_CALLER).",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, **flags: Any) -> None:
    """Time-bounded name registry: register, renew, resolve."""
    app = AppContext(RegistrySettings.from_cli(config_path=config_path, **flags))
    ctx.obj = app
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
