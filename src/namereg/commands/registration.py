"""Commands: register, renew, set-target, batch."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import click

from namereg.commands._base import NameregCommand, split_domain
from namereg.services.registration import RegistrationService
from namereg.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from namereg.commands._context import AppContext


@click.command(
    cls=NameregCommand,
    examples="""\
  namereg --as 0xabc... register alice.pepu
  namereg --as 0xabc... register alice.pepu --years 3
  namereg --as $ADMIN register bob.pepu --target 0xdef...""",
)
@click.argument("domain")
@click.option("--tld", default=None, help="TLD, if DOMAIN is a bare name.")
@click.option("--years", type=int, default=1, show_default=True, help="Registration length.")
@click.option("--target", default=None, help="Resolution target (administrator only).")
@click.pass_obj
def register(
    app: AppContext,
    domain: str,
    tld: str | None,
    years: int,
    target: str | None,
) -> None:
    """Register DOMAIN for the calling identity."""
    name, suffix = split_domain(domain, tld)
    caller = app.require_caller()
    result = RegistrationService(app.registry).register(
        name, suffix, caller, years, target=target
    )
    app.emit(result)


@click.command(
    cls=NameregCommand,
    examples="""\
  namereg --as 0xabc... renew alice.pepu
  namereg --as 0xabc... renew alice.pepu --years 5""",
)
@click.argument("domain")
@click.option("--tld", default=None, help="TLD, if DOMAIN is a bare name.")
@click.option("--years", type=int, default=1, show_default=True, help="Years to add.")
@click.pass_obj
def renew(app: AppContext, domain: str, tld: str | None, years: int) -> None:
    """Extend DOMAIN from its current expiry."""
    name, suffix = split_domain(domain, tld)
    caller = app.require_caller()
    app.emit(RegistrationService(app.registry).renew(name, suffix, caller, years))


@click.command(
    "set-target",
    cls=NameregCommand,
    examples="""\
  namereg --as 0xabc... set-target alice.pepu 0xdef...""",
)
@click.argument("domain")
@click.argument("target")
@click.option("--tld", default=None, help="TLD, if DOMAIN is a bare name.")
@click.pass_obj
def set_target(app: AppContext, domain: str, target: str, tld: str | None) -> None:
    """Point DOMAIN at TARGET."""
    name, suffix = split_domain(domain, tld)
    caller = app.require_caller()
    app.emit(RegistrationService(app.registry).set_resolution_target(name, suffix, caller, target))


@click.command(
    cls=NameregCommand,
    examples="""\
  namereg --as $ADMIN batch names.json
  namereg --json --as $ADMIN batch names.json""",
)
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def batch(app: AppContext, file: str) -> None:
    """Register every entry in a JSON file in one operation.

    FILE holds a JSON array of objects with "name", "tld", and optional
    "years" (default 1) and "target" keys.
    """
    try:
        with open(file, encoding="utf-8") as f:
            entries = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        app.emit(_bad_file(f"Error reading {file}: {exc}"))
        return

    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        app.emit(_bad_file("Batch file must contain a JSON array of objects."))
        return
    allowed = {"name", "tld", "years", "target"}
    for index, entry in enumerate(entries):
        unknown = set(entry) - allowed
        if unknown or not {"name", "tld"} <= set(entry):
            msg = f"Entry {index} needs 'name' and 'tld' and may add 'years', 'target'."
            app.emit(_bad_file(msg))
            return

    caller = app.require_caller()
    app.emit(RegistrationService(app.registry).batch_register(caller, entries))


def _bad_file(message: str) -> ServiceResult:
    return ServiceResult(
        ok=False,
        op="batch_register",
        error=ServiceError(code="INVALID_FILE", message=message),
    )
