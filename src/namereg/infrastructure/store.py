"""RegistryStore — the uniform storage abstraction for all durable state.

Durable state is the record table (composite key ``(name, tld)``), the owner
index (identity -> key), the fee table, the TLD set, and a small settings
map (treasury, fee asset). Backends implement two context managers:

- :meth:`RegistryStore.read` yields a :class:`RegistryView` that observes a
  consistent state: either before or after any concurrent write, never in
  between.
- :meth:`RegistryStore.transaction` yields a :class:`RegistryWriter`. All of
  its writes commit together when the block exits normally and are
  discarded if it raises.

:class:`MemoryRegistryStore` lives here. The SQLite backend is
:class:`namereg.infrastructure.database.store.SqlRegistryStore`.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from namereg.domain.fees import FeeTable
from namereg.domain.records import DomainRecord, NameKey

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

SETTING_TREASURY = "treasury"
SETTING_FEE_ASSET = "fee_asset"
SETTING_SEEDED = "seeded"


# ---------------------------------------------------------------------------
# Read / write interfaces
# ---------------------------------------------------------------------------


class RegistryView(ABC):
    """Read access to registry state."""

    @abstractmethod
    def get(self, key: NameKey) -> DomainRecord | None:
        """Record stored under *key*, live or expired."""

    @abstractmethod
    def index_get(self, identity: str) -> NameKey | None:
        """Raw owner index entry for *identity* (may be stale)."""

    @abstractmethod
    def fee_table(self) -> FeeTable: ...

    @abstractmethod
    def tlds(self) -> list[str]:
        """Supported suffixes, sorted."""

    @abstractmethod
    def is_supported(self, tld: str) -> bool: ...

    @abstractmethod
    def setting(self, key: str) -> str | None: ...

    def is_available(self, key: NameKey, now: int) -> bool:
        """True when no record exists or the existing one has expired."""
        record = self.get(key)
        return record is None or not record.is_live(now)

    def live_holding(self, identity: str, now: int) -> NameKey | None:
        """The key *identity* currently resolves from, if that binding is live.

        An index entry is live only while its record exists, has not
        expired, and still resolves to *identity*.
        """
        key = self.index_get(identity)
        if key is None:
            return None
        record = self.get(key)
        if record is None or not record.is_live(now) or record.resolution_target != identity:
            return None
        return key


class RegistryWriter(RegistryView):
    """Read/write access inside a transaction."""

    @abstractmethod
    def put(self, record: DomainRecord) -> None:
        """Store *record* under its key, overwriting unconditionally."""

    @abstractmethod
    def index_set(self, identity: str, key: NameKey) -> None: ...

    @abstractmethod
    def index_clear(self, identity: str) -> None: ...

    @abstractmethod
    def set_fee_table(self, table: FeeTable) -> None: ...

    @abstractmethod
    def add_tld(self, tld: str) -> bool:
        """Add *tld*. Returns False if it was already supported."""

    @abstractmethod
    def remove_tld(self, tld: str) -> bool:
        """Remove *tld*. Returns False if it was not supported."""

    @abstractmethod
    def set_setting(self, key: str, value: str) -> None: ...

    def clear_index_if_points_at(self, identity: str, key: NameKey) -> None:
        """Drop *identity*'s index entry only if it refers to *key*."""
        if self.index_get(identity) == key:
            self.index_clear(identity)

    def assign_target(self, record: DomainRecord, new_target: str) -> DomainRecord:
        """Point *record* at *new_target*, keeping the owner index in step.

        The previous target's entry is cleared first (when it still points
        at this key), then the record is written, then the new target's
        entry is written.
        """
        self.clear_index_if_points_at(record.resolution_target, record.key)
        updated = record.model_copy(update={"resolution_target": new_target})
        self.put(updated)
        self.index_set(new_target, updated.key)
        return updated


class RegistryStore(ABC):
    """A backend holding all durable registry state."""

    @abstractmethod
    def read(self) -> AbstractContextManager[RegistryView]:
        """Context manager yielding a consistent read view."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[RegistryWriter]:
        """Context manager yielding an all-or-nothing writer."""

    def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    def seed(
        self,
        *,
        fee_table: FeeTable,
        tlds: Iterable[str],
        settings: dict[str, str],
    ) -> bool:
        """Write initial configuration once, on first initialization.

        Returns True if seeding happened, False if the store was already seeded.
        """
        with self.transaction() as txn:
            if txn.setting(SETTING_SEEDED) is not None:
                return False
            txn.set_fee_table(fee_table)
            for tld in tlds:
                txn.add_tld(tld)
            for key, value in settings.items():
                txn.set_setting(key, value)
            txn.set_setting(SETTING_SEEDED, "1")
        logger.debug("Seeded registry store with %d settings", len(settings))
        return True


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


@dataclass
class _MemoryState:
    records: dict[NameKey, DomainRecord] = field(default_factory=dict)
    index: dict[str, NameKey] = field(default_factory=dict)
    fees: FeeTable = field(default_factory=FeeTable)
    tlds: set[str] = field(default_factory=set)
    settings: dict[str, str] = field(default_factory=dict)

    def copy(self) -> _MemoryState:
        # Records are frozen, so shallow container copies are enough.
        return replace(
            self,
            records=dict(self.records),
            index=dict(self.index),
            tlds=set(self.tlds),
            settings=dict(self.settings),
        )


class MemoryRegistryView(RegistryView):
    def __init__(self, state: _MemoryState) -> None:
        self._state = state

    def get(self, key: NameKey) -> DomainRecord | None:
        return self._state.records.get(NameKey(*key))

    def index_get(self, identity: str) -> NameKey | None:
        return self._state.index.get(identity)

    def fee_table(self) -> FeeTable:
        return self._state.fees

    def tlds(self) -> list[str]:
        return sorted(self._state.tlds)

    def is_supported(self, tld: str) -> bool:
        return tld in self._state.tlds

    def setting(self, key: str) -> str | None:
        return self._state.settings.get(key)


class MemoryRegistryWriter(MemoryRegistryView, RegistryWriter):
    def put(self, record: DomainRecord) -> None:
        self._state.records[record.key] = record

    def index_set(self, identity: str, key: NameKey) -> None:
        self._state.index[identity] = NameKey(*key)

    def index_clear(self, identity: str) -> None:
        self._state.index.pop(identity, None)

    def set_fee_table(self, table: FeeTable) -> None:
        self._state.fees = table

    def add_tld(self, tld: str) -> bool:
        if tld in self._state.tlds:
            return False
        self._state.tlds.add(tld)
        return True

    def remove_tld(self, tld: str) -> bool:
        if tld not in self._state.tlds:
            return False
        self._state.tlds.discard(tld)
        return True

    def set_setting(self, key: str, value: str) -> None:
        self._state.settings[key] = value


class MemoryRegistryStore(RegistryStore):
    """Process-local store.

    A transaction works on a private copy of the state and swaps it in on
    commit, so readers always hold a complete snapshot.
    """

    def __init__(self) -> None:
        self._state = _MemoryState()
        self._write_lock = threading.Lock()

    @contextmanager
    def read(self) -> Iterator[RegistryView]:
        yield MemoryRegistryView(self._state)

    @contextmanager
    def transaction(self) -> Iterator[RegistryWriter]:
        with self._write_lock:
            working = self._state.copy()
            yield MemoryRegistryWriter(working)
            self._state = working
