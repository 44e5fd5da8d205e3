"""SqlRegistryStore — registry state in SQLite via SQLAlchemy Core.

Reads run on ``engine.connect()`` inside a single read transaction, so a
view sees one committed snapshot. Writes run on ``engine.begin()``:
commit on normal exit, rollback on exception.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from namereg.domain.fees import FeeBucket, FeeTable
from namereg.domain.records import DomainRecord, NameKey
from namereg.infrastructure.database.schema import (
    domains,
    fee_table,
    owner_index,
    registry_settings,
    tlds,
)
from namereg.infrastructure.store import RegistryStore, RegistryView, RegistryWriter

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

_BUCKET_FIELDS: dict[str, str] = {
    FeeBucket.ONE: "one",
    FeeBucket.THREE: "three",
    FeeBucket.FOUR: "four",
    FeeBucket.DEFAULT: "default",
}


class SqlRegistryView(RegistryView):
    """Reads against an open connection."""

    def __init__(self, conn: Connection) -> None:
        self.conn = conn

    def get(self, key: NameKey) -> DomainRecord | None:
        name, tld = key
        row = self.conn.execute(
            select(domains).where(domains.c.name == name, domains.c.tld == tld)
        ).first()
        if row is None:
            return None
        return DomainRecord(
            name=bytes(row.name),
            tld=row.tld,
            owner=row.owner,
            resolution_target=row.resolution_target,
            registered_at=row.registered_at,
            expires_at=row.expires_at,
        )

    def index_get(self, identity: str) -> NameKey | None:
        row = self.conn.execute(
            select(owner_index.c.name, owner_index.c.tld).where(
                owner_index.c.identity == identity
            )
        ).first()
        if row is None:
            return None
        return NameKey(bytes(row.name), row.tld)

    def fee_table(self) -> FeeTable:
        rows = self.conn.execute(select(fee_table.c.bucket, fee_table.c.amount)).fetchall()
        values = {
            _BUCKET_FIELDS[row.bucket]: row.amount for row in rows if row.bucket in _BUCKET_FIELDS
        }
        return FeeTable(**values)

    def tlds(self) -> list[str]:
        rows = self.conn.execute(select(tlds.c.tld).order_by(tlds.c.tld)).fetchall()
        return [str(row.tld) for row in rows]

    def is_supported(self, tld: str) -> bool:
        return self.conn.execute(select(tlds.c.tld).where(tlds.c.tld == tld)).first() is not None

    def setting(self, key: str) -> str | None:
        row = self.conn.execute(
            select(registry_settings.c.value).where(registry_settings.c.key == key)
        ).first()
        return None if row is None else str(row.value)


class SqlRegistryWriter(SqlRegistryView, RegistryWriter):
    """Writes against a connection inside ``engine.begin()``."""

    def put(self, record: DomainRecord) -> None:
        values = {
            "name": record.name,
            "tld": record.tld,
            "owner": record.owner,
            "resolution_target": record.resolution_target,
            "registered_at": record.registered_at,
            "expires_at": record.expires_at,
        }
        stmt = sqlite_insert(domains).values(**values)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[domains.c.name, domains.c.tld],
                set_={k: stmt.excluded[k] for k in values if k not in ("name", "tld")},
            )
        )

    def index_set(self, identity: str, key: NameKey) -> None:
        name, tld = key
        stmt = sqlite_insert(owner_index).values(identity=identity, name=name, tld=tld)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[owner_index.c.identity],
                set_={"name": stmt.excluded.name, "tld": stmt.excluded.tld},
            )
        )

    def index_clear(self, identity: str) -> None:
        self.conn.execute(delete(owner_index).where(owner_index.c.identity == identity))

    def set_fee_table(self, table: FeeTable) -> None:
        for bucket in FeeBucket:
            stmt = sqlite_insert(fee_table).values(bucket=str(bucket), amount=table.price(bucket))
            self.conn.execute(
                stmt.on_conflict_do_update(
                    index_elements=[fee_table.c.bucket],
                    set_={"amount": stmt.excluded.amount},
                )
            )

    def add_tld(self, tld: str) -> bool:
        if self.is_supported(tld):
            return False
        self.conn.execute(tlds.insert().values(tld=tld))
        return True

    def remove_tld(self, tld: str) -> bool:
        result = self.conn.execute(delete(tlds).where(tlds.c.tld == tld))
        return result.rowcount > 0

    def set_setting(self, key: str, value: str) -> None:
        stmt = sqlite_insert(registry_settings).values(key=key, value=value)
        self.conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[registry_settings.c.key],
                set_={"value": stmt.excluded.value},
            )
        )


class SqlRegistryStore(RegistryStore):
    """SQLite-backed registry store.

    The engine is owned by the store; :meth:`close` disposes it.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine."""
        return self._engine

    @contextmanager
    def read(self) -> Iterator[RegistryView]:
        with self._engine.connect() as conn, conn.begin():
            yield SqlRegistryView(conn)

    @contextmanager
    def transaction(self) -> Iterator[RegistryWriter]:
        with self._engine.begin() as conn:
            yield SqlRegistryWriter(conn)

    def close(self) -> None:
        self._engine.dispose()
