"""Command group: the built-in SQLite ledger used to pay fees."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from namereg.commands._base import NameregGroup
from namereg.services.ledger import LedgerService

if TYPE_CHECKING:
    from namereg.commands._context import AppContext

_LEDGER_EXAMPLES = """\
  namereg ledger credit 0xabc... 100000000
  namereg --as 0xabc... ledger approve 100000000
  namereg ledger balance 0xabc..."""

_ASSET = click.option("--asset", default=None, help="Asset (defaults to the fee asset).")


@click.group(cls=NameregGroup, examples=_LEDGER_EXAMPLES)
def ledger() -> None:
    """Fund accounts and approve fee charges on the local ledger."""


@ledger.command()
@click.argument("identity")
@click.argument("amount", type=int)
@_ASSET
@click.pass_obj
def credit(app: AppContext, identity: str, amount: int, asset: str | None) -> None:
    """Add AMOUNT to IDENTITY's balance."""
    app.emit(LedgerService(app.registry).credit(identity, amount, asset=asset))


@ledger.command()
@click.argument("amount", type=int)
@_ASSET
@click.pass_obj
def approve(app: AppContext, amount: int, asset: str | None) -> None:
    """Allow the registry to charge up to AMOUNT from the caller."""
    app.emit(LedgerService(app.registry).approve(app.require_caller(), amount, asset=asset))


@ledger.command()
@click.argument("identity", required=False)
@_ASSET
@click.pass_obj
def balance(app: AppContext, identity: str | None, asset: str | None) -> None:
    """Show balance and allowance for IDENTITY (default: the caller)."""
    who = identity or app.require_caller()
    app.emit(LedgerService(app.registry).balance(who, asset=asset))
