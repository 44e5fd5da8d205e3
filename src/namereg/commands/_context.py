"""Per-invocation state handed to every command through ``@click.pass_obj``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from namereg.config.logging import configure_logging
from namereg.domain.records import is_null_identity, normalize_identity
from namereg.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from namereg.config.settings import RegistrySettings
    from namereg.infrastructure.registry import Registry
    from namereg.services.result import ServiceResult


class AppContext:
    """Settings, the lazily opened registry, and result output.

    Nothing touches the database until a command asks for
    :attr:`registry`, so ``--help`` and ``--examples`` work anywhere.
    """

    def __init__(self, settings: RegistrySettings) -> None:
        self.settings = settings
        self.output = OutputSettings(
            json_output=settings.json_output,
            quiet=settings.quiet,
            verbose=settings.verbose,
        )
        self._registry: Registry | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    @property
    def registry(self) -> Registry:
        if self._registry is None:
            from namereg.infrastructure.registry import Registry

            self._registry = Registry.from_settings(self.settings)
        return self._registry

    @property
    def caller(self) -> str:
        return normalize_identity(self.settings.caller)

    def require_caller(self) -> str:
        """The acting identity. Usage error (exit 2) when there is none."""
        if is_null_identity(self.caller):
            raise click.UsageError("No caller identity. Pass --as IDENTITY or set NAMEREG_CALLER.")
        return self.caller

    def close(self) -> None:
        if self._registry is not None:
            self._registry.close()
            self._registry = None

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; a failure goes to stderr and exits 1.

        Warnings go to stderr after a success, except in JSON mode where
        they are already part of the payload.
        """
        text = format_result(result, settings=self.output)
        if not result.ok:
            click.echo(text, err=True)
            raise SystemExit(1)
        click.echo(text)
        if not self.output.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)
