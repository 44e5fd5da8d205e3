"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, namereg.toml only contains
overrides. A fresh registry needs only ``[registry] admin``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from namereg.domain.fees import AMOUNT_MAX, FeeTable


class RegistryConfig(BaseModel):
    """[registry] section."""

    model_config = {"frozen": True}

    name: str = "namereg"
    admin: str = ""
    treasury: str = ""
    fee_asset: str = "USDC"
    max_batch_size: int = Field(default=10, ge=1, le=100)
    tlds: list[str] = Field(default_factory=lambda: ["pepu"])


class FeesConfig(BaseModel):
    """[fees] section: seed prices per year, in the fee asset's smallest unit.

    USDC has six decimals, so ``1_000_000`` is one dollar.
    """

    model_config = {"frozen": True}

    one: int = Field(default=100_000_000, ge=0, le=AMOUNT_MAX)
    three: int = Field(default=50_000_000, ge=0, le=AMOUNT_MAX)
    four: int = Field(default=20_000_000, ge=0, le=AMOUNT_MAX)
    default: int = Field(default=5_000_000, ge=0, le=AMOUNT_MAX)

    def to_table(self) -> FeeTable:
        return FeeTable(one=self.one, three=self.three, four=self.four, default=self.default)


class DatabaseConfig(BaseModel):
    """[database] section. A relative path is resolved against the root."""

    model_config = {"frozen": True}

    path: str = ".namereg/namereg.db"


class EventsConfig(BaseModel):
    """[events] section."""

    model_config = {"frozen": True}

    sync: bool = True
    max_workers: int = Field(default=2, ge=1)

