"""Command group: administrator configuration changes."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from namereg.commands._base import NameregGroup
from namereg.domain.fees import FeeBucket
from namereg.services.admin import AdminService
from namereg.services.query import QueryService

if TYPE_CHECKING:
    from namereg.commands._context import AppContext

_ADMIN_EXAMPLES = """\
  namereg --as $ADMIN admin set-fee 3 40000000
  namereg --as $ADMIN admin add-tld bera
  namereg --as $ADMIN admin remove-tld bera
  namereg --as $ADMIN admin set-treasury 0xfee...
  namereg --as $ADMIN admin set-fee-asset USDT
  namereg admin show"""


@click.group(cls=NameregGroup, examples=_ADMIN_EXAMPLES)
def admin() -> None:
    """Change fees, TLDs, treasury, and fee asset (administrator only)."""


@admin.command("set-fee")
@click.argument("bucket", type=click.Choice([str(b) for b in FeeBucket]))
@click.argument("amount", type=int)
@click.pass_obj
def set_fee(app: AppContext, bucket: str, amount: int) -> None:
    """Set the per-year price for a character-count BUCKET."""
    app.emit(AdminService(app.registry).set_fee(app.require_caller(), bucket, amount))


@admin.command("add-tld")
@click.argument("suffix")
@click.pass_obj
def add_tld(app: AppContext, suffix: str) -> None:
    """Accept registrations under SUFFIX."""
    app.emit(AdminService(app.registry).add_tld(app.require_caller(), suffix))


@admin.command("remove-tld")
@click.argument("suffix")
@click.pass_obj
def remove_tld(app: AppContext, suffix: str) -> None:
    """Stop accepting registrations under SUFFIX. Existing records stay."""
    app.emit(AdminService(app.registry).remove_tld(app.require_caller(), suffix))


@admin.command("set-treasury")
@click.argument("identity")
@click.pass_obj
def set_treasury(app: AppContext, identity: str) -> None:
    """Send collected fees to IDENTITY."""
    app.emit(AdminService(app.registry).set_treasury(app.require_caller(), identity))


@admin.command("set-fee-asset")
@click.argument("asset")
@click.pass_obj
def set_fee_asset(app: AppContext, asset: str) -> None:
    """Charge fees in ASSET."""
    app.emit(AdminService(app.registry).set_fee_asset(app.require_caller(), asset))


@admin.command("show")
@click.pass_obj
def show(app: AppContext) -> None:
    """Show administrator, treasury, fee asset, and batch limit."""
    app.emit(QueryService(app.registry).settings())
