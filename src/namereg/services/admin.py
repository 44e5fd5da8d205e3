"""AdminService — administrative configuration changes.

Every operation requires the configured administrator and runs under the
non-reentrant guard. Configuration lives in the store, so a change is
visible to the next operation on any process sharing it.
"""

from __future__ import annotations

from typing import Any

from namereg.config.logging import get_logger
from namereg.domain.errors import EmptyTld, InvalidFee, InvalidSetting, RegistryError, Unauthorized
from namereg.domain.fees import AMOUNT_MAX, FeeBucket
from namereg.domain.records import normalize_identity, normalize_tld, require_identity
from namereg.infrastructure.store import SETTING_FEE_ASSET, SETTING_TREASURY
from namereg.services.base import BaseService
from namereg.services.result import ServiceResult

log = get_logger("namereg.admin")


class AdminService(BaseService):
    """Fee table, TLD set, treasury, and fee asset management."""

    def set_fee(self, caller: str, bucket: FeeBucket | str, amount: int) -> ServiceResult:
        """Set the per-year price for one bucket."""
        op = "set_fee"
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                self._require_admin(caller)
                target = self._parse_bucket(bucket)
                if isinstance(amount, bool) or not isinstance(amount, int):
                    raise InvalidFee(f"Fee must be an integer, got {amount!r}", amount=amount)
                if not 0 <= amount <= AMOUNT_MAX:
                    raise InvalidFee(f"Fee out of range: {amount}", amount=amount)
                with self._registry.store.transaction() as txn:
                    table = txn.fee_table()
                    previous = table.price(target)
                    txn.set_fee_table(table.with_price(target, amount))
        except RegistryError as exc:
            return self._failure(op, exc)

        self._notify(
            "post_fee_change",
            {"bucket": str(target), "previous": previous, "amount": amount},
            warnings,
        )
        log.info("fee.changed", bucket=str(target), previous=previous, amount=amount)
        return ServiceResult(
            ok=True,
            op=op,
            data={"bucket": str(target), "previous": previous, "amount": amount},
            warnings=warnings,
        )

    def add_tld(self, caller: str, tld: str) -> ServiceResult:
        """Support *tld*. Adding an existing suffix is a no-op."""
        return self._change_tld("add_tld", caller, tld, supported=True)

    def remove_tld(self, caller: str, tld: str) -> ServiceResult:
        """Stop accepting registrations under *tld*. Existing records stay."""
        return self._change_tld("remove_tld", caller, tld, supported=False)

    def set_treasury(self, caller: str, treasury: str) -> ServiceResult:
        """Change the identity collected fees are paid to."""
        return self._change_setting("set_treasury", caller, SETTING_TREASURY, treasury)

    def set_fee_asset(self, caller: str, asset: str) -> ServiceResult:
        """Change the asset fees are charged in."""
        return self._change_setting("set_fee_asset", caller, SETTING_FEE_ASSET, asset)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_admin(self, caller: str) -> None:
        if not self._registry.is_admin(caller):
            who = normalize_identity(caller) or "anonymous"
            raise Unauthorized(f"{who} is not the administrator", caller=who)

    @staticmethod
    def _parse_bucket(bucket: FeeBucket | str) -> FeeBucket:
        value = str(bucket).strip().lower()
        if value in ("5", "5+", "else", "other"):
            value = FeeBucket.DEFAULT
        try:
            return FeeBucket(value)
        except ValueError:
            choices = ", ".join(str(b) for b in FeeBucket)
            raise InvalidFee(
                f"Unknown fee bucket {bucket!r} (choose {choices})", bucket=str(bucket)
            ) from None

    def _change_tld(self, op: str, caller: str, tld: str, *, supported: bool) -> ServiceResult:
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                self._require_admin(caller)
                suffix = normalize_tld(tld)
                if not suffix:
                    raise EmptyTld("TLD must not be empty")
                with self._registry.store.transaction() as txn:
                    changed = txn.add_tld(suffix) if supported else txn.remove_tld(suffix)
        except RegistryError as exc:
            return self._failure(op, exc)

        if changed:
            payload = {"tld": suffix, "supported": supported}
            self._notify("post_tld_change", payload, warnings)
            log.info("tld.changed", tld=suffix, supported=supported)
        return ServiceResult(
            ok=True,
            op=op,
            data={"tld": suffix, "supported": supported, "changed": changed},
            warnings=warnings,
        )

    def _change_setting(self, op: str, caller: str, key: str, value: str) -> ServiceResult:
        warnings: list[str] = []
        try:
            with self._registry.guard.enter(op):
                self._require_admin(caller)
                if key == SETTING_TREASURY:
                    cleaned = require_identity(value, role="treasury")
                else:
                    cleaned = (value or "").strip()
                    if not cleaned:
                        raise InvalidSetting("Fee asset must not be empty", key=key)
                with self._registry.store.transaction() as txn:
                    previous = txn.setting(key)
                    txn.set_setting(key, cleaned)
        except RegistryError as exc:
            return self._failure(op, exc)

        payload: dict[str, Any] = {"key": key, "previous": previous, "value": cleaned}
        self._notify("post_settings_change", payload, warnings)
        log.info("settings.changed", key=key, previous=previous, value=cleaned)
        return ServiceResult(ok=True, op=op, data=payload, warnings=warnings)
