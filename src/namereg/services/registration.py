"""RegistrationService — the registration/renewal state machine.

Pipeline for every mutating operation:
GUARD → VALIDATE → PRICE → COLLECT → COMMIT → NOTIFY → RESPOND

- VALIDATE reads one consistent view and raises on the first violation.
- COLLECT is the only step that leaves the registry; nothing is written
  before the collector confirms.
- COMMIT writes records and owner index entries in one store transaction.
  If the store fails, the fee is refunded and the result is COMMIT_FAILED.
- NOTIFY runs after the guard is released; plugin failures become warnings.

The administrator registers without paying (an explicit bypass, not a
discount) and may point a new record at any non-null identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from namereg.config.logging import get_logger
from namereg.domain.errors import (
    BatchTooLarge,
    DomainAlreadyExists,
    DomainExpired,
    DomainNotFound,
    EmptyBatch,
    ExpiryOverflow,
    FeeOverflow,
    InvalidTld,
    RegistryError,
    SameAddress,
    Unauthorized,
    WalletAlreadyOwnsDomain,
)
from namereg.domain.fees import checked_add, duration_seconds, total_fee, validate_years
from namereg.domain.names import canonicalize, display_name, validate
from namereg.domain.records import (
    DomainRecord,
    NameKey,
    normalize_identity,
    normalize_tld,
    require_identity,
)
from namereg.services._helpers import iso_from_unix, plural
from namereg.services.base import BaseService
from namereg.services.result import ServiceResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from namereg.infrastructure.store import RegistryView

log = get_logger("namereg.registration")


@dataclass(frozen=True)
class BatchEntry:
    """One line of a batch registration."""

    name: str | bytes
    tld: str
    years: int = 1
    target: str | None = None


@dataclass(frozen=True)
class _Planned:
    """A validated registration waiting for payment and commit."""

    record: DomainRecord
    fee: int
    superseded: DomainRecord | None


def _extend(start: int, years: int) -> int:
    """``start + years * 365 days``, overflow-checked."""
    return checked_add(start, duration_seconds(years), error=ExpiryOverflow)


def _coerce_entry(entry: BatchEntry | Sequence[Any] | dict[str, Any]) -> BatchEntry:
    if isinstance(entry, BatchEntry):
        return entry
    if isinstance(entry, dict):
        return BatchEntry(**entry)
    return BatchEntry(*entry)


class RegistrationService(BaseService):
    """Register, renew, and retarget names."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register(
        self,
        name: str | bytes,
        tld: str,
        requester: str,
        years: int,
        *,
        target: str | None = None,
    ) -> ServiceResult:
        """Register *name* under *tld* for *years* years.

        The record is owned by *requester* and resolves to *target*
        (defaults to the requester; only the administrator may choose
        another identity).
        """
        op = "register"
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                now = self._registry.now()
                payer = require_identity(requester, role="requester")
                is_admin = self._registry.is_admin(payer)
                with self._registry.store.read() as view:
                    plan = self._plan_registration(
                        view,
                        name=name,
                        tld=tld,
                        requester=payer,
                        target=target,
                        years=years,
                        now=now,
                        is_admin=is_admin,
                    )
                    if not is_admin:
                        self._check_not_holding(view, payer, now)
                asset = self._registry.fee_asset()
                charged = 0
                if not is_admin:
                    asset = self._collect_fee(payer, plan.fee)
                    charged = plan.fee
                with self._refund_on_failure(op, payer, charged, asset):
                    self._commit([plan])
        except RegistryError as exc:
            return self._failure(op, exc)

        self._notify("post_register", self._register_payload(plan, charged), warnings)
        log.info(
            "domain.registered",
            name=plan.record.key.label(),
            owner=plan.record.owner,
            target=plan.record.resolution_target,
            expires_at=plan.record.expires_at,
            fee=charged,
            admin=is_admin,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                **plan.record.to_dict(now),
                "expires": iso_from_unix(plan.record.expires_at),
                "fee": charged,
                "fee_asset": asset,
                "superseded": plan.superseded is not None,
            },
            warnings=warnings,
        )

    def renew(
        self,
        name: str | bytes,
        tld: str,
        requester: str,
        years: int,
    ) -> ServiceResult:
        """Extend a live record by *years* years from its current expiry."""
        op = "renew"
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                now = self._registry.now()
                payer = normalize_identity(requester)
                is_admin = self._registry.is_admin(payer)
                validate_years(years)
                key = NameKey(canonicalize(name), normalize_tld(tld))
                with self._registry.store.read() as view:
                    record = self._require_owned(view, key, payer)
                    if not record.is_live(now):
                        raise DomainExpired(
                            f"{key.label()} expired at {record.expires_at}",
                            expires_at=record.expires_at,
                        )
                    fee = total_fee(key.name, years, view.fee_table())
                new_expiry = _extend(record.expires_at, years)
                asset = self._registry.fee_asset()
                charged = 0
                if not is_admin:
                    asset = self._collect_fee(payer, fee)
                    charged = fee
                renewed = record.model_copy(update={"expires_at": new_expiry})
                with self._refund_on_failure(op, payer, charged, asset):
                    self._save(renewed)
        except RegistryError as exc:
            return self._failure(op, exc)

        self._notify(
            "post_renew",
            {
                "name": display_name(renewed.name),
                "tld": renewed.tld,
                "owner": renewed.owner,
                "expires_at": renewed.expires_at,
                "years": years,
                "fee": charged,
            },
            warnings,
        )
        log.info(
            "domain.renewed",
            name=renewed.key.label(),
            previous_expiry=record.expires_at,
            expires_at=renewed.expires_at,
            fee=charged,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                **renewed.to_dict(now),
                "previous_expires_at": record.expires_at,
                "expires": iso_from_unix(renewed.expires_at),
                "extended_by": plural(years, "year"),
                "fee": charged,
                "fee_asset": asset,
            },
            warnings=warnings,
        )

    def set_resolution_target(
        self,
        name: str | bytes,
        tld: str,
        requester: str,
        new_target: str,
    ) -> ServiceResult:
        """Point a live record at *new_target*, moving the owner index entry."""
        op = "set_resolution_target"
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                now = self._registry.now()
                target = require_identity(new_target, role="new target")
                caller = normalize_identity(requester)
                key = NameKey(canonicalize(name), normalize_tld(tld))
                with self._registry.store.read() as view:
                    record = self._require_owned(view, key, caller)
                    if not record.is_live(now):
                        raise DomainExpired(
                            f"{key.label()} expired at {record.expires_at}",
                            expires_at=record.expires_at,
                        )
                    if record.resolution_target == target:
                        raise SameAddress(f"{key.label()} already resolves to {target}")
                    held = view.live_holding(target, now)
                    if held is not None and held != key:
                        raise WalletAlreadyOwnsDomain(
                            f"{target} already holds {held.label()}",
                            identity=target,
                            holding=held.label(),
                        )
                with self._refund_on_failure(op, caller, 0, ""):
                    updated = self._retarget(record, target)
        except RegistryError as exc:
            return self._failure(op, exc)

        self._notify(
            "post_target_update",
            {
                "name": display_name(updated.name),
                "tld": updated.tld,
                "previous_target": record.resolution_target,
                "resolution_target": updated.resolution_target,
            },
            warnings,
        )
        log.info(
            "domain.target_updated",
            name=updated.key.label(),
            previous=record.resolution_target,
            target=updated.resolution_target,
        )
        return ServiceResult(
            ok=True,
            op=op,
            data={**updated.to_dict(now), "previous_target": record.resolution_target},
            warnings=warnings,
        )

    def batch_register(
        self,
        requester: str,
        entries: Sequence[BatchEntry | Sequence[Any] | dict[str, Any]],
    ) -> ServiceResult:
        """Register several names in one all-or-nothing operation.

        Every entry is validated and priced before anything is charged.
        The aggregate fee is collected once, then all records are written
        in a single transaction.
        """
        op = "batch_register"
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                now = self._registry.now()
                payer = require_identity(requester, role="requester")
                is_admin = self._registry.is_admin(payer)
                items = [_coerce_entry(e) for e in entries]
                if not items:
                    raise EmptyBatch("A batch needs at least one entry")
                limit = self._registry.max_batch_size
                if len(items) > limit:
                    raise BatchTooLarge(
                        f"Batch of {len(items)} exceeds the limit of {limit}",
                        size=len(items),
                        limit=limit,
                    )

                plans: list[_Planned] = []
                with self._registry.store.read() as view:
                    if not is_admin:
                        self._check_not_holding(view, payer, now)
                    seen_keys: set[NameKey] = set()
                    seen_targets: set[str] = set()
                    total = 0
                    for index, item in enumerate(items):
                        try:
                            plan = self._plan_registration(
                                view,
                                name=item.name,
                                tld=item.tld,
                                requester=payer,
                                target=item.target,
                                years=item.years,
                                now=now,
                                is_admin=is_admin,
                            )
                            self._check_batch_unique(plan.record, seen_keys, seen_targets)
                        except RegistryError as exc:
                            exc.detail.setdefault("index", index)
                            raise
                        total = checked_add(total, plan.fee, error=FeeOverflow)
                        plans.append(plan)

                asset = self._registry.fee_asset()
                charged = 0
                if not is_admin:
                    asset = self._collect_fee(payer, total)
                    charged = total
                with self._refund_on_failure(op, payer, charged, asset):
                    self._commit(plans)
        except RegistryError as exc:
            return self._failure(op, exc)

        for plan in plans:
            self._notify(
                "post_register",
                self._register_payload(plan, 0 if is_admin else plan.fee),
                warnings,
            )
        labels = [plan.record.key.label() for plan in plans]
        self._notify(
            "post_batch_register",
            {"owner": payer, "names": labels, "total_fee": charged},
            warnings,
        )
        log.info("batch.registered", owner=payer, count=len(plans), total_fee=charged)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "registered": [plan.record.to_dict(now) for plan in plans],
                "count": len(plans),
                "total_fee": charged,
                "fee_asset": asset,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _plan_registration(
        self,
        view: RegistryView,
        *,
        name: str | bytes,
        tld: str,
        requester: str,
        target: str | None,
        years: int,
        now: int,
        is_admin: bool,
    ) -> _Planned:
        """Validate one registration and build the record it would write.

        Check order: tld, duration, name, target, key conflict, target holding.
        """
        suffix = normalize_tld(tld)
        if not suffix or not view.is_supported(suffix):
            raise InvalidTld(f"Unsupported TLD: {tld!r}", tld=tld)
        validate_years(years)
        canonical = validate(name)

        if target is None or normalize_identity(target) == requester:
            resolved = requester
        elif is_admin:
            resolved = require_identity(target, role="target")
        else:
            raise Unauthorized(
                "Only the administrator may register on behalf of another identity",
                target=target,
            )

        key = NameKey(canonical, suffix)
        existing = view.get(key)
        if existing is not None and existing.is_live(now):
            raise DomainAlreadyExists(
                f"{key.label()} is registered until {existing.expires_at}",
                expires_at=existing.expires_at,
            )

        if is_admin:
            self._check_not_holding(view, resolved, now)

        fee = total_fee(canonical, years, view.fee_table())
        record = DomainRecord(
            name=canonical,
            tld=suffix,
            owner=requester,
            resolution_target=resolved,
            registered_at=now,
            expires_at=_extend(now, years),
        )
        return _Planned(record=record, fee=fee, superseded=existing)

    @staticmethod
    def _check_not_holding(view: RegistryView, identity: str, now: int) -> None:
        held = view.live_holding(identity, now)
        if held is not None:
            raise WalletAlreadyOwnsDomain(
                f"{identity} already holds {held.label()}",
                identity=identity,
                holding=held.label(),
            )

    @staticmethod
    def _check_batch_unique(
        record: DomainRecord,
        seen_keys: set[NameKey],
        seen_targets: set[str],
    ) -> None:
        if record.key in seen_keys:
            raise DomainAlreadyExists(f"{record.key.label()} appears twice in the batch")
        if record.resolution_target in seen_targets:
            raise WalletAlreadyOwnsDomain(
                f"{record.resolution_target} is the target of more than one batch entry",
                identity=record.resolution_target,
            )
        seen_keys.add(record.key)
        seen_targets.add(record.resolution_target)

    @staticmethod
    def _require_owned(view: RegistryView, key: NameKey, caller: str) -> DomainRecord:
        """Existence check first, then ownership. Liveness is the caller's call."""
        record = view.get(key)
        if record is None:
            raise DomainNotFound(f"{key.label()} is not registered")
        if record.owner != caller:
            raise Unauthorized(f"{caller or 'anonymous'} does not own {key.label()}")
        return record

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def _commit(self, plans: list[_Planned]) -> None:
        """Write planned records and their owner index entries atomically."""
        with self._registry.store.transaction() as txn:
            for plan in plans:
                if plan.superseded is not None:
                    txn.clear_index_if_points_at(
                        plan.superseded.resolution_target, plan.superseded.key
                    )
                txn.put(plan.record)
                txn.index_set(plan.record.resolution_target, plan.record.key)

    def _save(self, record: DomainRecord) -> None:
        with self._registry.store.transaction() as txn:
            txn.put(record)

    def _retarget(self, record: DomainRecord, target: str) -> DomainRecord:
        with self._registry.store.transaction() as txn:
            return txn.assign_target(record, target)

    @staticmethod
    def _register_payload(plan: _Planned, fee: int) -> dict[str, Any]:
        record = plan.record
        return {
            "name": display_name(record.name),
            "tld": record.tld,
            "owner": record.owner,
            "resolution_target": record.resolution_target,
            "registered_at": record.registered_at,
            "expires_at": record.expires_at,
            "fee": fee,
        }
