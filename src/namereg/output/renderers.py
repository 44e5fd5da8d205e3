"""Rich rendering of a ServiceResult, one layout per operation.

:func:`render_result` looks the layout up by ``result.op``. Operations
without a dedicated layout list their data as ``key: value`` lines.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from namereg.output.console import create_console, get_output, style_for_state

if TYPE_CHECKING:
    from rich.console import Console

    from namereg.services.result import ServiceResult

Layout = Callable[["Console", "ServiceResult", bool], None]

_KEY_STYLES = {
    "owner": "reg.identity",
    "resolution_target": "reg.identity",
    "resolves_to": "reg.identity",
    "identity": "reg.identity",
    "treasury": "reg.identity",
    "admin": "reg.identity",
    "domain": "reg.domain",
    "name": "reg.domain",
    "fee": "reg.amount",
    "total_fee": "reg.amount",
    "base_fee": "reg.amount",
    "amount": "reg.amount",
}

_RECORD_KEYS = (
    "state",
    "owner",
    "resolution_target",
    "resolves_to",
    "expires",
    "fee",
    "extended_by",
    "previous_target",
)
_RECORD_VERBOSE_KEYS = ("registered_at", "expires_at", "seconds_remaining", "fee_asset")
_QUOTE_KEYS = ("name", "characters", "bucket", "years", "base_fee", "total_fee", "fee_asset")


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Styled text for *result*, trailing newline stripped."""
    console = create_console()
    if not result.ok:
        _failure(console, result, verbose)
    else:
        _LAYOUTS.get(result.op, _everything)(console, result, verbose)
    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """The one value a script wants, for ``--quiet``."""
    if not result.ok:
        reason = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {reason}"
    data = result.data
    if result.op == "resolve":
        return str(data.get("resolves_to", ""))
    if result.op == "reverse_resolve":
        return str(data.get("domain") or "")
    if result.op == "quote":
        return str(data.get("total_fee", ""))
    if result.op == "list_tlds":
        return "\n".join(data.get("tlds", []))
    if result.op == "batch_register":
        return "\n".join(_domain_label(entry) for entry in data.get("registered", []))
    return f"OK: {result.op}"


def _domain_label(entry: dict[str, Any]) -> str:
    return f"{entry.get('name', '')}.{entry.get('tld', '')}"


def _headline(console: Console, result: ServiceResult) -> None:
    console.print(Text.assemble(("OK", "reg.ok"), (f"  {result.op}", "reg.op")))


def _line(console: Console, key: str, value: Any) -> None:
    text = str(value)
    style = style_for_state(text) if key == "state" else _KEY_STYLES.get(key, "")
    console.print(Text.assemble((f"  {key}: ", "reg.key"), (text, style)))


def _lines(console: Console, data: dict[str, Any], keys: tuple[str, ...]) -> None:
    for key in keys:
        if key in data:
            _line(console, key, data[key])


def _failure(console: Console, result: ServiceResult, verbose: bool) -> None:
    error = result.error
    code = error.code if error else "ERROR"
    reason = error.message if error else "Unknown error"
    # Plain strings in Text.assemble are not parsed as markup, so "[CODE]" survives.
    console.print(
        Text.assemble(("ERROR", "reg.error"), (f"  {result.op}", "reg.op"), f"  [{code}] ", reason)
    )
    if verbose and error and error.detail:
        console.print(Text("  detail:", style="dim"))
        for key, value in error.detail.items():
            console.print(Text(f"    {key}: {value}"))


def _record(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    data = result.data
    if "name" in data and "tld" in data:
        _line(console, "domain", _domain_label(data))
    _lines(console, data, _RECORD_KEYS)
    if verbose:
        _lines(console, data, _RECORD_VERBOSE_KEYS)


def _batch(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    data = result.data
    _line(console, "count", data.get("count", 0))
    _line(console, "total_fee", f"{data.get('total_fee', 0)} {data.get('fee_asset', '')}".strip())
    grid = Table(pad_edge=False)
    grid.add_column("Domain", style="reg.domain", no_wrap=True)
    grid.add_column("Resolves to", style="reg.identity")
    grid.add_column("Expires at", justify="right")
    for entry in data.get("registered", []):
        grid.add_row(
            _domain_label(entry),
            str(entry.get("resolution_target", "")),
            str(entry.get("expires_at", "")),
        )
    console.print(grid)


def _resolve(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    _line(console, "domain", result.data.get("domain", ""))
    _line(console, "resolves_to", result.data.get("resolves_to", ""))


def _reverse(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    _line(console, "identity", result.data.get("identity", ""))
    _line(console, "domain", result.data.get("domain") or "(none)")


def _quote(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    _lines(console, result.data, _QUOTE_KEYS)


def _fee_table(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    asset = result.data.get("fee_asset", "")
    grid = Table(pad_edge=False)
    grid.add_column("Characters")
    grid.add_column(f"Price / year ({asset})", justify="right")
    for bucket, amount in result.data.get("fees", {}).items():
        grid.add_row("other (0, 2, 5+)" if bucket == "default" else bucket, str(amount))
    console.print(grid)


def _tlds(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    for tld in result.data.get("tlds", []):
        console.print(f"  .{tld}")


def _everything(console: Console, result: ServiceResult, verbose: bool) -> None:
    _headline(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, separators=(",", ":"))
        _line(console, key, value)


_LAYOUTS: dict[str, Layout] = {
    "register": _record,
    "renew": _record,
    "set_resolution_target": _record,
    "status": _record,
    "batch_register": _batch,
    "resolve": _resolve,
    "reverse_resolve": _reverse,
    "quote": _quote,
    "fee_table": _fee_table,
    "list_tlds": _tlds,
}
