"""SQLite engine for the registry database.

The file lives at ``{root}/.namereg/namereg.db`` unless configured
otherwise. Connections run in WAL journal mode with explicit transactions:
a reader keeps the snapshot it started with while writers commit.

Only SQLAlchemy Core is used. Every operation is a few keyed reads and
writes in one short transaction, which needs no ORM session.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine

from namereg.infrastructure.database.schema import metadata

DATA_DIRNAME = ".namereg"
DB_FILENAME = "namereg.db"

_PRAGMAS = ("journal_mode=WAL", "synchronous=NORMAL")


def _on_connect(dbapi_connection: Any, _record: Any) -> None:
    # pysqlite would otherwise defer BEGIN until the first write, leaving reads
    # outside any transaction. SQLAlchemy emits BEGIN itself in _on_begin.
    dbapi_connection.isolation_level = None
    cur = dbapi_connection.cursor()
    try:
        for pragma in _PRAGMAS:
            cur.execute(f"PRAGMA {pragma}")
    finally:
        cur.close()


def _on_begin(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN")


def create_db_engine(db_path: Path) -> Engine:
    """Engine for the SQLite file at *db_path*.

    Every ``begin()`` opens a real SQLite transaction, so a read block sees
    one snapshot from its first query to its end.
    """
    engine = create_engine(f"sqlite:///{db_path}")
    event.listen(engine, "connect", _on_connect)
    event.listen(engine, "begin", _on_begin)
    return engine


def default_db_path(root: Path) -> Path:
    return root / DATA_DIRNAME / DB_FILENAME


def init_database(db_path: Path) -> Engine:
    """Engine for *db_path* with every table created.

    Creates the parent directory too. Running it against an existing
    database changes nothing.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    metadata.create_all(engine)
    return engine
