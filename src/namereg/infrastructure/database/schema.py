"""SQLAlchemy Core table definitions for the namereg database.

Registry state lives in five tables (records, owner index, fee table,
TLD set, settings). ``ledger_accounts`` belongs to the built-in SQLite
fee ledger and is not part of the registry state.
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
)

metadata = MetaData()

domains = Table(
    "domains",
    metadata,
    Column("name", LargeBinary, nullable=False),  # canonical name bytes
    Column("tld", Text, nullable=False),
    Column("owner", Text, nullable=False),
    Column("resolution_target", Text, nullable=False),
    Column("registered_at", Integer, nullable=False),  # unix seconds
    Column("expires_at", Integer, nullable=False),  # unix seconds
    PrimaryKeyConstraint("name", "tld"),
)

owner_index = Table(
    "owner_index",
    metadata,
    Column("identity", Text, primary_key=True),
    Column("name", LargeBinary, nullable=False),
    Column("tld", Text, nullable=False),
)

fee_table = Table(
    "fee_table",
    metadata,
    Column("bucket", Text, primary_key=True),  # "1" | "3" | "4" | "default"
    Column("amount", Integer, nullable=False),
)

tlds = Table(
    "tlds",
    metadata,
    Column("tld", Text, primary_key=True),
)

registry_settings = Table(
    "registry_settings",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
)

ledger_accounts = Table(
    "ledger_accounts",
    metadata,
    Column("identity", Text, nullable=False),
    Column("asset", Text, nullable=False),
    Column("balance", Integer, nullable=False, default=0, server_default="0"),
    Column("allowance", Integer, nullable=False, default=0, server_default="0"),
    PrimaryKeyConstraint("identity", "asset"),
)

# ---------------------------------------------------------------------------
# Indexes for frequently filtered columns
# ---------------------------------------------------------------------------

Index("ix_domains_owner", domains.c.owner)
Index("ix_domains_target", domains.c.resolution_target)
Index("ix_domains_expires", domains.c.expires_at)
