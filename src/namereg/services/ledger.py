"""LedgerService — balances and approvals on the built-in ledger.

Only collectors that keep their own accounts (:class:`MemoryLedger`,
:class:`SqlLedger`) support crediting and approving. A registry wired to
an external collector answers balance queries only.
"""

from __future__ import annotations

from namereg.config.logging import get_logger
from namereg.domain.errors import RegistryError
from namereg.domain.records import require_identity
from namereg.infrastructure.ledger import LedgerError
from namereg.services.base import BaseService
from namereg.services.result import ServiceError, ServiceResult

log = get_logger("namereg.ledger")


class LedgerService(BaseService):
    """Fund and inspect accounts on the local ledger."""

    def credit(self, identity: str, amount: int, *, asset: str | None = None) -> ServiceResult:
        """Mint *amount* of the fee asset into *identity*'s balance."""
        op = "ledger_credit"
        try:
            who = require_identity(identity, role="account")
        except RegistryError as exc:
            return self._failure(op, exc)
        asset = asset or self._registry.fee_asset()
        credit = getattr(self._registry.collector, "credit", None)
        if credit is None:
            return self._unsupported(op)
        try:
            balance = credit(who, amount, asset)
        except LedgerError as exc:
            return self._ledger_failure(op, exc)
        log.info("ledger.credited", identity=who, amount=amount, asset=asset)
        return ServiceResult(
            ok=True,
            op=op,
            data={"identity": who, "asset": asset, "amount": amount, "balance": balance},
        )

    def approve(self, identity: str, amount: int, *, asset: str | None = None) -> ServiceResult:
        """Set how much of *identity*'s balance the registry may charge."""
        op = "ledger_approve"
        try:
            who = require_identity(identity, role="account")
        except RegistryError as exc:
            return self._failure(op, exc)
        asset = asset or self._registry.fee_asset()
        approve = getattr(self._registry.collector, "approve", None)
        if approve is None:
            return self._unsupported(op)
        try:
            approve(who, amount, asset)
        except LedgerError as exc:
            return self._ledger_failure(op, exc)
        log.info("ledger.approved", identity=who, amount=amount, asset=asset)
        return ServiceResult(
            ok=True,
            op=op,
            data={"identity": who, "asset": asset, "allowance": amount},
        )

    def balance(self, identity: str, *, asset: str | None = None) -> ServiceResult:
        op = "ledger_balance"
        try:
            who = require_identity(identity, role="account")
        except RegistryError as exc:
            return self._failure(op, exc)
        asset = asset or self._registry.fee_asset()
        collector = self._registry.collector
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "identity": who,
                "asset": asset,
                "balance": collector.balance_of(who, asset),
                "allowance": collector.allowance_of(who, asset),
            },
        )

    @staticmethod
    def _unsupported(op: str) -> ServiceResult:
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(
                code="LEDGER_UNSUPPORTED",
                message="The configured fee collector does not manage local accounts",
            ),
        )

    @staticmethod
    def _ledger_failure(op: str, exc: LedgerError) -> ServiceResult:
        log.info("operation.rejected", op=op, code="LEDGER_ERROR", reason=str(exc))
        return ServiceResult(
            ok=False,
            op=op,
            error=ServiceError(code="LEDGER_ERROR", message=str(exc)),
        )
