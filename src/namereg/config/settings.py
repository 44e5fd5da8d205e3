"""RegistrySettings: one frozen object for everything a process is told.

Sources, strongest first:

1. keyword arguments (the CLI passes its flags here)
2. ``NAMEREG_*`` environment variables, ``__`` for nested keys
   (``NAMEREG_FEES__ONE=3``)
3. the ``namereg.toml`` found by :func:`~namereg.config.discovery.find_config`
4. defaults on the section models

The TOML layer is pydantic-settings' own :class:`TomlConfigSettingsSource`;
the file it reads is chosen per construction, so two settings objects built
from different directories never share a path.
"""

from __future__ import annotations

import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from namereg.config.discovery import find_config
from namereg.config.models import DatabaseConfig, EventsConfig, FeesConfig, RegistryConfig

_active_toml: ContextVar[Path | None] = ContextVar("namereg_active_toml", default=None)


class RegistrySettings(BaseSettings):
    """Settings for one namereg process.

    Attributes:
        root: Base for relative paths. The directory holding the config
            file, else the working directory.
        config_path: Config file that was read, if any.
        caller: Identity the CLI acts as (``--as`` / ``NAMEREG_CALLER``).
    """

    model_config = SettingsConfigDict(
        frozen=True,
        env_prefix="NAMEREG_",
        env_nested_delimiter="__",
    )

    root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    caller: str = ""

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    fees: FeesConfig = Field(default_factory=FeesConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml = TomlConfigSettingsSource(settings_cls, toml_file=_active_toml.get())
        return (init_settings, env_settings, toml)

    @property
    def db_path(self) -> Path:
        """Database file, resolved against :attr:`root` when relative."""
        path = Path(self.database.path)
        return path if path.is_absolute() else self.root / path

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        root: Path | None = None,
        **flags: Any,
    ) -> RegistrySettings:
        """Build settings for a CLI invocation.

        An explicit *config_path* that does not exist is ignored rather
        than searched around. Flags left at ``None`` are dropped so the
        environment and the file still apply.
        """
        if config_path:
            candidate = Path(config_path)
            toml_path = candidate if candidate.is_file() else None
        else:
            toml_path = find_config(root)

        if root is None:
            root = toml_path.parent if toml_path is not None else Path.cwd()

        overrides = {key: value for key, value in flags.items() if value is not None}
        token = _active_toml.set(toml_path)
        try:
            return cls(root=root, config_path=toml_path, **overrides)
        except tomllib.TOMLDecodeError as exc:
            raise click.ClickException(f"Invalid TOML in {toml_path}: {exc}") from exc
        finally:
            _active_toml.reset(token)
