"""Registry — the single dependency injected into every service.

Owns the store, the fee collector, the notification bus, the clock, the
non-reentrant guard, and the administrator predicate. Configuration lives
in the store (fee table, TLD set, treasury, fee asset) and is seeded from
settings the first time a store is opened.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from namereg.domain.records import ZERO_IDENTITY, is_null_identity, normalize_identity
from namereg.infrastructure.guard import NonReentrantGuard
from namereg.infrastructure.store import SETTING_FEE_ASSET, SETTING_TREASURY

if TYPE_CHECKING:
    from collections.abc import Callable

    from namereg.config.settings import RegistrySettings
    from namereg.infrastructure.ledger import FeeCollector
    from namereg.infrastructure.store import RegistryStore
    from namereg.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


class Registry:
    """Collaborators for one registry instance.

    Constructed once per process (see :meth:`from_settings`) or directly in
    tests and embedding code. Services receive it via their
    :class:`~namereg.services.base.BaseService` constructor.
    """

    def __init__(
        self,
        store: RegistryStore,
        collector: FeeCollector,
        *,
        admin: str = "",
        clock: Callable[[], int] = system_clock,
        event_bus: EventBus | None = None,
        max_batch_size: int = 10,
    ) -> None:
        self._store = store
        self._collector = collector
        self._admin = normalize_identity(admin)
        self._clock = clock
        self._event_bus = event_bus
        self._guard = NonReentrantGuard()
        self.max_batch_size = max_batch_size

    @classmethod
    def from_settings(
        cls,
        settings: RegistrySettings,
        *,
        clock: Callable[[], int] = system_clock,
    ) -> Registry:
        """Open the SQLite store and ledger described by *settings*.

        Seeds the fee table, TLD set, treasury, and fee asset on first use
        and wires up the plugin event bus.
        """
        from namereg.infrastructure.database.engine import init_database
        from namereg.infrastructure.database.store import SqlRegistryStore
        from namereg.infrastructure.ledger import SqlLedger
        from namereg.plugins.event_bus import EventBus
        from namereg.plugins.manager import PluginManager

        engine = init_database(settings.db_path)
        store = SqlRegistryStore(engine)
        cfg = settings.registry
        store.seed(
            fee_table=settings.fees.to_table(),
            tlds=cfg.tlds,
            settings={
                SETTING_TREASURY: normalize_identity(cfg.treasury or cfg.admin),
                SETTING_FEE_ASSET: cfg.fee_asset,
            },
        )

        pm = PluginManager()
        pm.load_entry_points()
        bus = EventBus(pm, sync=settings.events.sync, max_workers=settings.events.max_workers)

        logger.debug("Opened registry at %s", settings.db_path)
        return cls(
            store,
            SqlLedger(engine),
            admin=cfg.admin,
            clock=clock,
            event_bus=bus,
            max_batch_size=cfg.max_batch_size,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def store(self) -> RegistryStore:
        return self._store

    @property
    def collector(self) -> FeeCollector:
        return self._collector

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if notifications are disabled)."""
        return self._event_bus

    @property
    def guard(self) -> NonReentrantGuard:
        return self._guard

    @property
    def admin(self) -> str:
        return self._admin

    def now(self) -> int:
        return self._clock()

    def is_admin(self, identity: str | None) -> bool:
        """The administrative gate. An unset administrator matches nobody."""
        if is_null_identity(self._admin):
            return False
        return normalize_identity(identity) == self._admin

    def treasury(self) -> str:
        """Recipient of collected fees (falls back to the administrator)."""
        with self._store.read() as view:
            value = view.setting(SETTING_TREASURY)
        if value and not is_null_identity(value):
            return value
        return self._admin or ZERO_IDENTITY

    def fee_asset(self) -> str:
        with self._store.read() as view:
            return view.setting(SETTING_FEE_ASSET) or "USDC"

    def close(self) -> None:
        """Flush notifications and release the store."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
        self._store.close()
