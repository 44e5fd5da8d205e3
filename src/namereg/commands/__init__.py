"""Subcommand modules for namereg.

:func:`register_commands` imports command modules lazily so
``namereg --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Attach every command group and standalone command to *cli*."""
    # --- Groups ---
    from namereg.commands.admin import admin
    from namereg.commands.ledger import ledger
    from namereg.commands.query import tld

    cli.add_command(admin)
    cli.add_command(ledger)
    cli.add_command(tld)

    # --- Standalone commands ---
    from namereg.commands.query import fees, quote, resolve, reverse, status
    from namereg.commands.registration import batch, register, renew, set_target

    cli.add_command(register)
    cli.add_command(renew)
    cli.add_command(set_target)
    cli.add_command(batch)
    cli.add_command(resolve)
    cli.add_command(status)
    cli.add_command(reverse)
    cli.add_command(quote)
    cli.add_command(fees)
