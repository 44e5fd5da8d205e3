"""Read-only commands: resolve, status, reverse, quote, fees, tld list."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from namereg.commands._base import NameregCommand, NameregGroup, split_domain
from namereg.domain.names import canonicalize, display_name
from namereg.domain.records import normalize_tld
from namereg.services.query import QueryService
from namereg.services.result import ServiceResult

if TYPE_CHECKING:
    from namereg.commands._context import AppContext


@click.command(
    cls=NameregCommand,
    examples="""\
  namereg resolve alice.pepu
  namereg -q resolve alice.pepu""",
)
@click.argument("domain")
@click.option("--tld", default=None, help="TLD, if DOMAIN is a bare name.")
@click.pass_obj
def resolve(app: AppContext, domain: str, tld: str | None) -> None:
    """Print the identity DOMAIN resolves to (zero address if none)."""
    name, suffix = split_domain(domain, tld)
    target = QueryService(app.registry).resolve(name, suffix)
    label = f"{display_name(canonicalize(name))}.{normalize_tld(suffix)}"
    app.emit(ServiceResult(ok=True, op="resolve", data={"domain": label, "resolves_to": target}))


@click.command(cls=NameregCommand, examples="  namereg status alice.pepu")
@click.argument("domain")
@click.option("--tld", default=None, help="TLD, if DOMAIN is a bare name.")
@click.pass_obj
def status(app: AppContext, domain: str, tld: str | None) -> None:
    """Show the record stored for DOMAIN."""
    name, suffix = split_domain(domain, tld)
    app.emit(QueryService(app.registry).status(name, suffix))


@click.command(cls=NameregCommand, examples="  namereg reverse 0xabc...")
@click.argument("identity")
@click.pass_obj
def reverse(app: AppContext, identity: str) -> None:
    """Show the live domain that resolves to IDENTITY."""
    app.emit(QueryService(app.registry).reverse_resolve(identity))


@click.command(
    cls=NameregCommand,
    examples="""\
  namereg quote alice
  namereg quote abc --years 10""",
)
@click.argument("name")
@click.option("--years", type=int, default=1, show_default=True, help="Registration length.")
@click.pass_obj
def quote(app: AppContext, name: str, years: int) -> None:
    """Price NAME for a number of years."""
    app.emit(QueryService(app.registry).quote(name, years))


@click.command(cls=NameregCommand)
@click.pass_obj
def fees(app: AppContext) -> None:
    """Show the per-year fee table."""
    app.emit(QueryService(app.registry).fee_table())


@click.group(cls=NameregGroup)
def tld() -> None:
    """Inspect supported TLDs."""


@tld.command("list")
@click.pass_obj
def list_tlds(app: AppContext) -> None:
    """List supported TLDs."""
    app.emit(QueryService(app.registry).list_tlds())
