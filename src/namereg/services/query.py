"""QueryService — read-only registry lookups.

Nothing here mutates state or takes the non-reentrant guard. ``resolve``
never fails: a malformed, unknown or expired key resolves to the zero
identity.
"""

from __future__ import annotations

from namereg.domain.errors import InvalidName, RegistryError
from namereg.domain.fees import base_fee, bucket_for, total_fee
from namereg.domain.names import count_effective_characters, display_name, validate
from namereg.domain.records import (
    ZERO_IDENTITY,
    NameKey,
    RecordState,
    normalize_identity,
    normalize_tld,
)
from namereg.infrastructure.store import SETTING_FEE_ASSET
from namereg.services._helpers import iso_from_unix
from namereg.services.base import BaseService
from namereg.services.result import ServiceResult


class QueryService(BaseService):
    """Resolution, status, availability, and pricing lookups."""

    def resolve(self, name: str | bytes, tld: str) -> str:
        """Identity *name*.*tld* resolves to, or :data:`ZERO_IDENTITY`."""
        try:
            key = NameKey(validate(name), normalize_tld(tld))
        except InvalidName:
            return ZERO_IDENTITY
        now = self._registry.now()
        with self._registry.store.read() as view:
            record = view.get(key)
        if record is None or not record.is_live(now):
            return ZERO_IDENTITY
        return record.resolution_target

    def status(self, name: str | bytes, tld: str) -> ServiceResult:
        """Record details for a key, including its lifecycle state."""
        op = "status"
        try:
            key = NameKey(validate(name), normalize_tld(tld))
        except RegistryError as exc:
            return self._failure(op, exc)

        now = self._registry.now()
        with self._registry.store.read() as view:
            record = view.get(key)
            supported = view.is_supported(key.tld)

        if record is None:
            data: dict[str, object] = {
                "name": display_name(key.name),
                "tld": key.tld,
                "state": str(RecordState.UNREGISTERED),
                "available": True,
            }
        else:
            data = {
                **record.to_dict(now),
                "expires": iso_from_unix(record.expires_at),
                "available": not record.is_live(now),
            }
        data["tld_supported"] = supported
        live = record is not None and record.is_live(now)
        data["resolves_to"] = record.resolution_target if live else ZERO_IDENTITY
        return ServiceResult(ok=True, op=op, data=data)

    def is_available(self, name: str | bytes, tld: str) -> bool:
        """True when the key has no record or its record has expired.

        Malformed names are reported as unavailable.
        """
        try:
            key = NameKey(validate(name), normalize_tld(tld))
        except InvalidName:
            return False
        now = self._registry.now()
        with self._registry.store.read() as view:
            return view.is_available(key, now)

    def reverse_resolve(self, identity: str) -> ServiceResult:
        """The live key *identity* resolves from, if any."""
        op = "reverse_resolve"
        who = normalize_identity(identity)
        now = self._registry.now()
        with self._registry.store.read() as view:
            key = view.live_holding(who, now)
            record = view.get(key) if key is not None else None

        data: dict[str, object] = {"identity": who, "domain": None}
        if record is not None:
            data["domain"] = record.key.label()
            data["record"] = record.to_dict(now)
        return ServiceResult(ok=True, op=op, data=data)

    def quote(self, name: str | bytes, years: int) -> ServiceResult:
        """Price *name* for *years* years at the current fee table."""
        op = "quote"
        try:
            canonical = validate(name)
            with self._registry.store.read() as view:
                table = view.fee_table()
            total = total_fee(canonical, years, table)
        except RegistryError as exc:
            return self._failure(op, exc)

        count = count_effective_characters(canonical)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "name": display_name(canonical),
                "characters": count,
                "bucket": str(bucket_for(count)),
                "years": years,
                "base_fee": base_fee(canonical, table),
                "total_fee": total,
                "fee_asset": self._registry.fee_asset(),
            },
        )

    def fee_table(self) -> ServiceResult:
        with self._registry.store.read() as view:
            table = view.fee_table()
            asset = view.setting(SETTING_FEE_ASSET) or "USDC"
        return ServiceResult(
            ok=True,
            op="fee_table",
            data={"fees": table.as_buckets(), "fee_asset": asset},
        )

    def list_tlds(self) -> ServiceResult:
        with self._registry.store.read() as view:
            items = view.tlds()
        return ServiceResult(ok=True, op="list_tlds", data={"tlds": items, "count": len(items)})

    def settings(self) -> ServiceResult:
        """Administrator, treasury, fee asset, and batch limit."""
        return ServiceResult(
            ok=True,
            op="settings",
            data={
                "admin": self._registry.admin or ZERO_IDENTITY,
                "treasury": self._registry.treasury(),
                "fee_asset": self._registry.fee_asset(),
                "max_batch_size": self._registry.max_batch_size,
            },
        )
