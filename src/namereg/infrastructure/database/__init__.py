"""SQLite database engine, schema, and the SQL registry store."""

from namereg.infrastructure.database.engine import create_db_engine, default_db_path, init_database
from namereg.infrastructure.database.schema import (
    domains,
    fee_table,
    ledger_accounts,
    metadata,
    owner_index,
    registry_settings,
    tlds,
)
from namereg.infrastructure.database.store import SqlRegistryStore

__all__ = [
    "SqlRegistryStore",
    "create_db_engine",
    "default_db_path",
    "domains",
    "fee_table",
    "init_database",
    "ledger_accounts",
    "metadata",
    "owner_index",
    "registry_settings",
    "tlds",
]
