"""Fee collectors — the capability the registry uses to move funds.

The registry never touches balances itself. It asks a :class:`FeeCollector`
for the payer's balance and spending allowance, then calls
:meth:`FeeCollector.charge`. A collector reports refusal by raising
:class:`LedgerError`; the service layer surfaces it as a fee collection
failure. :meth:`FeeCollector.refund` hands a charge back when the registry
cannot write the records it was paid for.

Two implementations ship with namereg:

- :class:`MemoryLedger` for tests and embedding.
- :class:`SqlLedger` backed by the ``ledger_accounts`` table, used by the CLI.

Allowance semantics follow token approvals: a charge consumes allowance
as well as balance.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from namereg.domain.fees import AMOUNT_MAX
from namereg.infrastructure.database.schema import ledger_accounts

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """A collector refused to move funds."""


@runtime_checkable
class FeeCollector(Protocol):
    """What the registry needs from a payment backend."""

    def balance_of(self, payer: str, asset: str) -> int: ...

    def allowance_of(self, payer: str, asset: str) -> int: ...

    def charge(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        """Move *amount* of *asset* from *payer* to *recipient* or raise LedgerError."""
        ...

    def refund(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        """Reverse an earlier :meth:`charge` of the same arguments or raise LedgerError."""
        ...


def _check_amount(amount: int) -> None:
    if amount < 0 or amount > AMOUNT_MAX:
        msg = f"Amount out of range: {amount}"
        raise LedgerError(msg)


# ---------------------------------------------------------------------------
# In-memory ledger
# ---------------------------------------------------------------------------


class MemoryLedger:
    """Dict-backed ledger keyed by ``(identity, asset)``."""

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()
        self.charges: list[tuple[str, str, int, str]] = []
        self.refunds: list[tuple[str, str, int, str]] = []

    def credit(self, identity: str, amount: int, asset: str) -> int:
        """Add *amount* to *identity*'s balance. Returns the new balance."""
        _check_amount(amount)
        with self._lock:
            key = (identity, asset)
            new_balance = self._balances.get(key, 0) + amount
            _check_amount(new_balance)
            self._balances[key] = new_balance
            return new_balance

    def approve(self, identity: str, amount: int, asset: str) -> None:
        """Set *identity*'s spending allowance to *amount*."""
        _check_amount(amount)
        with self._lock:
            self._allowances[(identity, asset)] = amount

    def balance_of(self, payer: str, asset: str) -> int:
        return self._balances.get((payer, asset), 0)

    def allowance_of(self, payer: str, asset: str) -> int:
        return self._allowances.get((payer, asset), 0)

    def charge(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        _check_amount(amount)
        with self._lock:
            key = (payer, asset)
            balance = self._balances.get(key, 0)
            allowance = self._allowances.get(key, 0)
            if balance < amount:
                msg = f"{payer} holds {balance} {asset}, needs {amount}"
                raise LedgerError(msg)
            if allowance < amount:
                msg = f"{payer} approved {allowance} {asset}, needs {amount}"
                raise LedgerError(msg)
            self._balances[key] = balance - amount
            self._allowances[key] = allowance - amount
            dest = (recipient, asset)
            self._balances[dest] = self._balances.get(dest, 0) + amount
            self.charges.append((payer, recipient, amount, asset))

    def refund(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        """Move *amount* back from *recipient* and restore *payer*'s allowance."""
        _check_amount(amount)
        with self._lock:
            source = (recipient, asset)
            held = self._balances.get(source, 0)
            if held < amount:
                msg = f"{recipient} holds {held} {asset}, cannot refund {amount}"
                raise LedgerError(msg)
            key = (payer, asset)
            allowance = self._allowances.get(key, 0) + amount
            _check_amount(allowance)
            # Debit first: payer and recipient may be the same account.
            self._balances[source] = held - amount
            self._balances[key] = self._balances.get(key, 0) + amount
            self._allowances[key] = allowance
            self.refunds.append((payer, recipient, amount, asset))


# ---------------------------------------------------------------------------
# SQLite ledger
# ---------------------------------------------------------------------------


class SqlLedger:
    """Ledger stored in the ``ledger_accounts`` table.

    Each charge runs in its own transaction, separate from registry writes.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def credit(self, identity: str, amount: int, asset: str) -> int:
        """Add *amount* to *identity*'s balance. Returns the new balance."""
        _check_amount(amount)
        with self._engine.begin() as conn:
            balance, allowance = self._account(conn, identity, asset)
            new_balance = balance + amount
            _check_amount(new_balance)
            self._write(conn, identity, asset, new_balance, allowance)
        return new_balance

    def approve(self, identity: str, amount: int, asset: str) -> None:
        """Set *identity*'s spending allowance to *amount*."""
        _check_amount(amount)
        with self._engine.begin() as conn:
            balance, _ = self._account(conn, identity, asset)
            self._write(conn, identity, asset, balance, amount)

    def balance_of(self, payer: str, asset: str) -> int:
        with self._engine.connect() as conn:
            return self._account(conn, payer, asset)[0]

    def allowance_of(self, payer: str, asset: str) -> int:
        with self._engine.connect() as conn:
            return self._account(conn, payer, asset)[1]

    def charge(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        _check_amount(amount)
        with self._engine.begin() as conn:
            balance, allowance = self._account(conn, payer, asset)
            if balance < amount:
                msg = f"{payer} holds {balance} {asset}, needs {amount}"
                raise LedgerError(msg)
            if allowance < amount:
                msg = f"{payer} approved {allowance} {asset}, needs {amount}"
                raise LedgerError(msg)
            self._write(conn, payer, asset, balance - amount, allowance - amount)
            dest_balance, dest_allowance = self._account(conn, recipient, asset)
            _check_amount(dest_balance + amount)
            self._write(conn, recipient, asset, dest_balance + amount, dest_allowance)
        logger.debug("Charged %d %s from %s to %s", amount, asset, payer, recipient)

    def refund(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        _check_amount(amount)
        with self._engine.begin() as conn:
            held, held_allowance = self._account(conn, recipient, asset)
            if held < amount:
                msg = f"{recipient} holds {held} {asset}, cannot refund {amount}"
                raise LedgerError(msg)
            self._write(conn, recipient, asset, held - amount, held_allowance)
            balance, allowance = self._account(conn, payer, asset)
            _check_amount(allowance + amount)
            self._write(conn, payer, asset, balance + amount, allowance + amount)
        logger.warning("Refunded %d %s from %s to %s", amount, asset, recipient, payer)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _account(conn: Connection, identity: str, asset: str) -> tuple[int, int]:
        row = conn.execute(
            select(ledger_accounts.c.balance, ledger_accounts.c.allowance).where(
                ledger_accounts.c.identity == identity,
                ledger_accounts.c.asset == asset,
            )
        ).first()
        if row is None:
            return 0, 0
        return int(row.balance), int(row.allowance)

    @staticmethod
    def _write(conn: Connection, identity: str, asset: str, balance: int, allowance: int) -> None:
        stmt = sqlite_insert(ledger_accounts).values(
            identity=identity,
            asset=asset,
            balance=balance,
            allowance=allowance,
        )
        conn.execute(
            stmt.on_conflict_do_update(
                index_elements=[ledger_accounts.c.identity, ledger_accounts.c.asset],
                set_={"balance": stmt.excluded.balance, "allowance": stmt.excluded.allowance},
            )
        )
