"""BaseService — what every namereg service shares.

A service wraps one :class:`Registry` (store, fee collector, notification
bus, clock and reentrancy guard) and opens its own transactions with
``self._registry.store.transaction()``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from namereg.config.logging import get_logger
from namereg.domain.errors import (
    CommitFailed,
    FeeCollectionError,
    InsufficientAllowance,
    InsufficientUsdc,
    RegistryError,
)
from namereg.infrastructure.ledger import LedgerError
from namereg.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from namereg.infrastructure.registry import Registry

logger = logging.getLogger(__name__)
log = get_logger("namereg.services")


class BaseService:
    """Shared plumbing for the registry services.

    ::

        class RegistrationService(BaseService):
            def register(self, name: str, ...) -> ServiceResult:
                with self._registry.guard.enter("register"):
                    ...
    """

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    def _notify(self, hook_name: str, payload: dict[str, Any], warnings: list[str]) -> None:
        """Tell subscribers about a committed change.

        A subscriber that fails adds a warning to *warnings*; the operation
        itself has already succeeded. Nothing happens without a bus.
        """
        if self._registry.event_bus is None:
            return
        try:
            delivered = self._registry.event_bus.dispatch(hook_name, payload)
        except Exception:
            logger.debug("Dispatch of %s raised", hook_name, exc_info=True)
            delivered = False
        if not delivered:
            warnings.append(f"Event dispatch failed for {hook_name}")

    @staticmethod
    def _failure(op: str, exc: RegistryError) -> ServiceResult:
        """Failed result for *op*, logged at info level."""
        log.info("operation.rejected", op=op, code=exc.code, reason=exc.message)
        return ServiceResult(ok=False, op=op, error=ServiceError.from_exception(exc))

    def _collect_fee(self, payer: str, amount: int) -> str:
        """Charge *amount* to *payer* through the fee collector.

        Balance and allowance are checked first so the two shortfalls are
        reported distinctly. Returns the asset charged.

        Raises:
            InsufficientUsdc: Balance below *amount*.
            InsufficientAllowance: Approved allowance below *amount*.
            FeeCollectionError: The collector refused the charge.
        """
        asset = self._registry.fee_asset()
        if amount == 0:
            return asset

        collector = self._registry.collector
        balance = collector.balance_of(payer, asset)
        if balance < amount:
            raise InsufficientUsdc(
                f"{payer} holds {balance} {asset}; {amount} required",
                balance=balance,
                required=amount,
                asset=asset,
            )
        allowance = collector.allowance_of(payer, asset)
        if allowance < amount:
            raise InsufficientAllowance(
                f"{payer} approved {allowance} {asset}; {amount} required",
                allowance=allowance,
                required=amount,
                asset=asset,
            )

        treasury = self._registry.treasury()
        try:
            collector.charge(payer, treasury, amount, asset)
        except LedgerError as exc:
            raise FeeCollectionError(str(exc), payer=payer, amount=amount, asset=asset) from exc
        log.debug("fee.collected", payer=payer, amount=amount, asset=asset, treasury=treasury)
        return asset

    @contextmanager
    def _refund_on_failure(self, op: str, payer: str, amount: int, asset: str) -> Iterator[None]:
        """Wrap the store writes that follow a successful :meth:`_collect_fee`.

        If the writes raise, *amount* goes back to *payer* and the failure
        is re-raised as :class:`CommitFailed`. Pass ``amount=0`` when
        nothing was charged.

        Raises:
            CommitFailed: The store did not commit; ``detail["refunded"]``
                is False only if the collector refused the refund.
        """
        try:
            yield
        except Exception as exc:
            refunded = self._refund(payer, amount, asset)
            if isinstance(exc, RegistryError):
                exc.detail.setdefault("refunded", refunded)
                raise
            log.error(
                "commit.failed",
                op=op,
                payer=payer,
                amount=amount,
                refunded=refunded,
                exc_info=True,
            )
            raise CommitFailed(
                f"Could not save the {op} result: {exc}",
                refunded=refunded,
                amount=amount,
                asset=asset,
            ) from exc

    def _refund(self, payer: str, amount: int, asset: str) -> bool:
        if amount == 0:
            return True
        try:
            self._registry.collector.refund(payer, self._registry.treasury(), amount, asset)
        except Exception:
            # The store may be the thing that failed, so treasury() can raise too.
            log.error("fee.refund_failed", payer=payer, amount=amount, asset=asset, exc_info=True)
            return False
        return True
