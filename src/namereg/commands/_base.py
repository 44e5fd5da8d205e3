"""Click classes shared by every namereg command.

Commands and groups built with ``cls=NameregCommand`` / ``cls=NameregGroup``
take an ``examples=`` text. ``--examples`` prints it and exits, so the
examples stay out of ``--help``.

:func:`split_domain` parses the ``NAME.TLD`` argument of per-domain
commands.
"""

from __future__ import annotations

from typing import Any

import click


def _examples_callback(text: str) -> Any:
    def callback(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
        if value and not ctx.resilient_parsing:
            click.echo(f"Examples for '{ctx.command_path}':\n")
            click.echo(text)
            ctx.exit(0)

    return callback


class _ExamplesMixin:
    examples: str | None = None

    def _install_examples(self, examples: str | None) -> None:
        self.examples = examples
        if not examples:
            return
        params: list[click.Parameter] = self.params  # type: ignore[attr-defined]
        params.append(
            click.Option(
                ["--examples"],
                is_flag=True,
                is_eager=True,
                expose_value=False,
                callback=_examples_callback(examples),
                help="Show usage examples and exit.",
            )
        )


class NameregCommand(_ExamplesMixin, click.Command):
    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._install_examples(examples)


class NameregGroup(_ExamplesMixin, click.Group):
    """Subcommands of this group are :class:`NameregCommand` by default."""

    command_class = NameregCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._install_examples(examples)


def split_domain(domain: str, tld: str | None) -> tuple[str, str]:
    """Accept ``name.tld`` or a bare name plus ``--tld``."""
    if tld is not None:
        return domain, tld
    name, dot, suffix = domain.rpartition(".")
    if not dot or not name:
        msg = f"{domain!r} has no TLD. Write NAME.TLD or pass --tld."
        raise click.BadParameter(msg, param_hint="DOMAIN")
    return name, suffix
