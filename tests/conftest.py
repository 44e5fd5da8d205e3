"""Shared pytest fixtures for namereg tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from namereg.domain.fees import FeeTable
from namereg.infrastructure.database.engine import init_database
from namereg.infrastructure.database.store import SqlRegistryStore
from namereg.infrastructure.ledger import MemoryLedger, SqlLedger
from namereg.infrastructure.registry import Registry
from namereg.infrastructure.store import (
    SETTING_FEE_ASSET,
    SETTING_TREASURY,
    MemoryRegistryStore,
    RegistryStore,
)
from namereg.plugins.event_bus import EventBus
from namereg.plugins.manager import PluginManager

ADMIN = "0x" + "ad" * 20
TREASURY = "0x" + "7e" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c4" * 20

START = 1_700_000_000
YEAR = 365 * 24 * 60 * 60

# one=100, three=50, four=20, default=5
TEST_FEES = FeeTable(one=100, three=50, four=20, default=5)


class FakeClock:
    """Fixed, manually advanced unix clock."""

    def __init__(self, start: int = START) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def seed_store(store: RegistryStore) -> None:
    store.seed(
        fee_table=TEST_FEES,
        tlds=["pepu", "bera"],
        settings={SETTING_TREASURY: TREASURY, SETTING_FEE_ASSET: "USDC"},
    )


def fund(ledger: MemoryLedger | SqlLedger, identity: str, amount: int = 10_000) -> None:
    """Credit *identity* and approve the same amount."""
    ledger.credit(identity, amount, "USDC")
    ledger.approve(identity, amount, "USDC")


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_engine(tmp_path: Path) -> Iterator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path / "registry.db")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def ledger() -> MemoryLedger:
    return MemoryLedger()


@pytest.fixture
def plugin_manager() -> PluginManager:
    """Plugin manager with hookspecs but no discovered plugins."""
    return PluginManager()


@pytest.fixture
def registry(clock: FakeClock, ledger: MemoryLedger, plugin_manager: PluginManager) -> Registry:
    """Seeded in-memory registry with a synchronous event bus.

    ALICE, BOB and CAROL are funded with 10_000 USDC each.
    """
    store = MemoryRegistryStore()
    seed_store(store)
    for who in (ALICE, BOB, CAROL):
        fund(ledger, who)
    return Registry(
        store,
        ledger,
        admin=ADMIN,
        clock=clock,
        event_bus=EventBus(plugin_manager, sync=True),
        max_batch_size=5,
    )


@pytest.fixture
def sql_registry(db_engine: Engine, clock: FakeClock) -> Iterator[Registry]:
    """Seeded SQLite registry backed by the SQL ledger."""
    store = SqlRegistryStore(db_engine)
    seed_store(store)
    sql_ledger = SqlLedger(db_engine)
    for who in (ALICE, BOB, CAROL):
        fund(sql_ledger, who)
    reg = Registry(store, sql_ledger, admin=ADMIN, clock=clock, max_batch_size=5)
    try:
        yield reg
    finally:
        reg.close()


@pytest.fixture(params=["memory", "sql"])
def any_store(request: pytest.FixtureRequest, db_engine: Engine) -> RegistryStore:
    """Each store backend, seeded identically."""
    store: RegistryStore
    store = MemoryRegistryStore() if request.param == "memory" else SqlRegistryStore(db_engine)
    seed_store(store)
    return store


@pytest.fixture
def _isolated_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run the CLI from an empty temp directory with a minimal namereg.toml."""
    (tmp_path / "namereg.toml").write_text(
        f'[registry]\nadmin = "{ADMIN}"\ntreasury = "{TREASURY}"\ntlds = ["pepu"]\n\n'
        "[fees]\none = 100\nthree = 50\nfour = 20\ndefault = 5\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    for var in ("NAMEREG_CONFIG", "NAMEREG_CALLER", "NAMEREG_JSON_OUTPUT"):
        monkeypatch.delenv(var, raising=False)
