"""Tests for RegistrationService — register, renew, retarget, batch."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest

from namereg.domain.fees import AMOUNT_MAX, FeeTable
from namereg.domain.records import ZERO_IDENTITY, DomainRecord, NameKey
from namereg.infrastructure.ledger import LedgerError, MemoryLedger
from namereg.infrastructure.registry import Registry
from namereg.infrastructure.store import MemoryRegistryStore, RegistryWriter
from namereg.services.query import QueryService
from namereg.services.registration import BatchEntry, RegistrationService
from namereg.services.result import ServiceResult
from tests.conftest import (
    ADMIN,
    ALICE,
    BOB,
    CAROL,
    START,
    TREASURY,
    YEAR,
    FakeClock,
    fund,
    seed_store,
)

DAVE = "0x" + "da" * 20


def _set_fees(registry: Registry, table: FeeTable) -> None:
    with registry.store.transaction() as txn:
        txn.set_fee_table(table)


def _stored(registry: Registry, name: bytes, tld: str = "pepu") -> DomainRecord | None:
    with registry.store.read() as view:
        return view.get(NameKey(name, tld))


# ---------------------------------------------------------------------------
# register
# ---------------------------------------------------------------------------


class TestRegister:
    def test_single_character_name(self, registry: Registry, ledger: MemoryLedger) -> None:
        result = RegistrationService(registry).register("a", "pepu", ALICE, 1)
        assert result.ok, result.error
        assert result.op == "register"
        assert result.data["owner"] == ALICE
        assert result.data["resolution_target"] == ALICE
        assert result.data["registered_at"] == START
        assert result.data["expires_at"] == START + YEAR
        assert result.data["state"] == "active"
        assert result.data["fee"] == 100
        assert result.data["fee_asset"] == "USDC"

        query = QueryService(registry)
        assert not query.is_available("a", "pepu")
        assert query.resolve("a", "pepu") == ALICE
        assert ledger.balance_of(ALICE, "USDC") == 10_000 - 100
        assert ledger.balance_of(TREASURY, "USDC") == 100

    def test_stores_canonical_name(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("AliCe", "pepu", ALICE, 1)
        assert result.ok
        assert result.data["name"] == "alice"
        assert _stored(registry, b"alice") is not None
        assert QueryService(registry).resolve("ALICE", "pepu") == ALICE

    def test_fee_scales_with_years(self, registry: Registry, ledger: MemoryLedger) -> None:
        result = RegistrationService(registry).register("abc", "pepu", ALICE, 3)
        assert result.data["fee"] == 150
        assert result.data["expires_at"] == START + 3 * YEAR
        assert ledger.charges == [(ALICE, TREASURY, 150, "USDC")]

    def test_accepts_leading_dot_tld(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", ".pepu", ALICE, 1)
        assert result.ok
        assert result.data["tld"] == "pepu"

    def test_taken_before_expiry(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("a", "pepu", ALICE, 1).ok
        result = svc.register("A", "pepu", BOB, 1)
        assert not result.ok
        assert result.code == "DOMAIN_ALREADY_EXISTS"

    def test_same_name_other_tld_is_a_different_key(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        assert svc.register("abc", "bera", BOB, 1).ok

    def test_unsupported_tld(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "com", ALICE, 1)
        assert result.code == "INVALID_TLD"

    def test_tld_checked_before_duration(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "com", ALICE, 0)
        assert result.code == "INVALID_TLD"

    @pytest.mark.parametrize("years", [0, 61])
    def test_invalid_duration(self, registry: Registry, years: int) -> None:
        result = RegistrationService(registry).register("abc", "pepu", ALICE, years)
        assert result.code == "INVALID_DURATION"

    @pytest.mark.parametrize(
        ("name", "code"),
        [("", "NAME_TOO_SHORT"), ("a" * 64, "NAME_TOO_LONG"), ("a_b", "INVALID_CHARACTER")],
    )
    def test_malformed_name(self, registry: Registry, name: str, code: str) -> None:
        result = RegistrationService(registry).register(name, "pepu", ALICE, 1)
        assert not result.ok
        assert result.code == code

    def test_one_live_domain_per_identity(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        for name, tld in (("second", "pepu"), ("alice", "bera")):
            result = svc.register(name, tld, ALICE, 1)
            assert result.code == "WALLET_ALREADY_OWNS_DOMAIN"
            assert result.error is not None
            assert result.error.detail["holding"] == "alice.pepu"

    def test_name_conflict_reported_before_holding(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.register("alice", "pepu", ALICE, 1).code == "DOMAIN_ALREADY_EXISTS"

    def test_holder_may_register_again_after_expiry(
        self, registry: Registry, clock: FakeClock
    ) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        clock.advance(YEAR)
        assert svc.register("other", "pepu", ALICE, 1).ok

    def test_expired_key_can_be_taken_over(self, registry: Registry, clock: FakeClock) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        clock.advance(YEAR)

        result = svc.register("alice", "pepu", BOB, 2)
        assert result.ok, result.error
        assert result.data["superseded"] is True
        assert result.data["owner"] == BOB
        assert result.data["registered_at"] == START + YEAR
        assert result.data["expires_at"] == START + 3 * YEAR

        query = QueryService(registry)
        assert query.resolve("alice", "pepu") == BOB
        assert query.reverse_resolve(ALICE).data["domain"] is None
        with registry.store.read() as view:
            assert view.index_get(ALICE) is None

    def test_explicit_self_target(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "pepu", ALICE, 1, target=ALICE)
        assert result.ok
        assert result.data["resolution_target"] == ALICE

    def test_non_admin_cannot_choose_target(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "pepu", ALICE, 1, target=BOB)
        assert result.code == "UNAUTHORIZED"

    def test_null_requester(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "pepu", ZERO_IDENTITY, 1)
        assert result.code == "INVALID_WALLET_ADDRESS"

    def test_insufficient_balance(self, registry: Registry) -> None:
        result = RegistrationService(registry).register("abc", "pepu", DAVE, 1)
        assert result.code == "INSUFFICIENT_USDC"
        assert result.error is not None
        assert result.error.detail["required"] == 50
        assert _stored(registry, b"abc") is None

    def test_insufficient_allowance(self, registry: Registry, ledger: MemoryLedger) -> None:
        ledger.credit(DAVE, 1_000, "USDC")
        ledger.approve(DAVE, 10, "USDC")
        result = RegistrationService(registry).register("abc", "pepu", DAVE, 1)
        assert result.code == "INSUFFICIENT_ALLOWANCE"
        assert ledger.balance_of(DAVE, "USDC") == 1_000
        assert _stored(registry, b"abc") is None

    def test_free_bucket_skips_collection(self, registry: Registry, ledger: MemoryLedger) -> None:
        _set_fees(registry, FeeTable(one=0, three=0, four=0, default=0))
        result = RegistrationService(registry).register("abc", "pepu", DAVE, 1)
        assert result.ok
        assert result.data["fee"] == 0
        assert ledger.charges == []

    def test_fee_overflow(self, registry: Registry, ledger: MemoryLedger) -> None:
        _set_fees(registry, FeeTable(one=1, three=1, four=1, default=AMOUNT_MAX))
        result = RegistrationService(registry).register("abcde", "pepu", ALICE, 2)
        assert result.code == "FEE_OVERFLOW"
        assert ledger.charges == []

    def test_expiry_overflow(
        self, registry: Registry, clock: FakeClock, ledger: MemoryLedger
    ) -> None:
        clock.now = AMOUNT_MAX - 10
        result = RegistrationService(registry).register("abcde", "pepu", ALICE, 1)
        assert result.code == "EXPIRY_OVERFLOW"
        assert ledger.charges == []


class TestAdminRegister:
    def test_fee_bypass(self, registry: Registry, ledger: MemoryLedger) -> None:
        result = RegistrationService(registry).register("a", "pepu", ADMIN, 5)
        assert result.ok
        assert result.data["fee"] == 0
        assert ledger.charges == []

    def test_register_for_another_identity(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        result = svc.register("gift", "pepu", ADMIN, 1, target=BOB)
        assert result.ok, result.error
        assert result.data["owner"] == ADMIN
        assert result.data["resolution_target"] == BOB
        assert QueryService(registry).resolve("gift", "pepu") == BOB
        # BOB now holds a live binding.
        assert svc.register("bob", "pepu", BOB, 1).code == "WALLET_ALREADY_OWNS_DOMAIN"

    def test_target_must_not_hold_a_domain(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("bob", "pepu", BOB, 1).ok
        result = svc.register("gift", "pepu", ADMIN, 1, target=BOB)
        assert result.code == "WALLET_ALREADY_OWNS_DOMAIN"

    def test_null_target(self, registry: Registry) -> None:
        result = RegistrationService(registry).register(
            "gift", "pepu", ADMIN, 1, target=ZERO_IDENTITY
        )
        assert result.code == "INVALID_WALLET_ADDRESS"

    def test_several_targets(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("one", "pepu", ADMIN, 1, target=ALICE).ok
        assert svc.register("two", "pepu", ADMIN, 1, target=BOB).ok
        assert svc.register("three", "pepu", ADMIN, 1, target=ALICE).code == (
            "WALLET_ALREADY_OWNS_DOMAIN"
        )


# ---------------------------------------------------------------------------
# renew
# ---------------------------------------------------------------------------


class TestRenew:
    def test_extends_from_previous_expiry(
        self, registry: Registry, clock: FakeClock, ledger: MemoryLedger
    ) -> None:
        svc = RegistrationService(registry)
        assert svc.register("a", "pepu", ALICE, 1).ok
        clock.advance(100 * 24 * 60 * 60)

        result = svc.renew("a", "pepu", ALICE, 2)
        assert result.ok, result.error
        assert result.data["previous_expires_at"] == START + YEAR
        assert result.data["expires_at"] == START + 3 * YEAR
        assert result.data["fee"] == 200
        assert result.data["extended_by"] == "2 years"
        assert ledger.balance_of(ALICE, "USDC") == 10_000 - 100 - 200

    def test_expiry_strictly_increases(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        previous = START + YEAR
        for years in (1, 3, 1):
            result = svc.renew("abc", "pepu", ALICE, years)
            assert result.data["expires_at"] == previous + years * YEAR
            assert result.data["expires_at"] > previous
            previous = result.data["expires_at"]

    def test_unknown_name(self, registry: Registry) -> None:
        assert RegistrationService(registry).renew("ghost", "pepu", ALICE, 1).code == (
            "DOMAIN_NOT_FOUND"
        )

    def test_malformed_name_is_not_found(self, registry: Registry) -> None:
        result = RegistrationService(registry).renew("bad_name", "pepu", ALICE, 1)
        assert result.code == "DOMAIN_NOT_FOUND"

    def test_non_owner(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        assert svc.renew("abc", "pepu", BOB, 1).code == "UNAUTHORIZED"

    def test_expired_is_not_not_found(self, registry: Registry, clock: FakeClock) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        clock.advance(YEAR)
        result = svc.renew("abc", "pepu", ALICE, 1)
        assert result.code == "DOMAIN_EXPIRED"

    def test_invalid_duration(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        assert svc.renew("abc", "pepu", ALICE, 61).code == "INVALID_DURATION"

    def test_owner_renews_after_retarget(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        assert svc.set_resolution_target("abc", "pepu", ALICE, CAROL).ok
        assert svc.renew("abc", "pepu", ALICE, 1).ok
        assert svc.renew("abc", "pepu", CAROL, 1).code == "UNAUTHORIZED"

    def test_unpaid_renewal_keeps_expiry(self, registry: Registry, ledger: MemoryLedger) -> None:
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        ledger.approve(ALICE, 0, "USDC")
        assert svc.renew("abc", "pepu", ALICE, 1).code == "INSUFFICIENT_ALLOWANCE"
        record = _stored(registry, b"abc")
        assert record is not None
        assert record.expires_at == START + YEAR

    def test_expiry_overflow(self, registry: Registry) -> None:
        with registry.store.transaction() as txn:
            txn.put(
                DomainRecord(
                    name=b"edge",
                    tld="pepu",
                    owner=ALICE,
                    resolution_target=ALICE,
                    registered_at=START,
                    expires_at=AMOUNT_MAX - 5,
                )
            )
        result = RegistrationService(registry).renew("edge", "pepu", ALICE, 1)
        assert result.code == "EXPIRY_OVERFLOW"

    def test_admin_renews_own_domain_for_free(
        self, registry: Registry, ledger: MemoryLedger
    ) -> None:
        svc = RegistrationService(registry)
        assert svc.register("root", "pepu", ADMIN, 1).ok
        result = svc.renew("root", "pepu", ADMIN, 10)
        assert result.ok
        assert result.data["fee"] == 0
        assert ledger.charges == []


# ---------------------------------------------------------------------------
# set_resolution_target
# ---------------------------------------------------------------------------


class TestSetResolutionTarget:
    def test_moves_binding(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok

        result = svc.set_resolution_target("alice", "pepu", ALICE, BOB)
        assert result.ok, result.error
        assert result.data["previous_target"] == ALICE
        assert result.data["resolution_target"] == BOB
        assert result.data["owner"] == ALICE

        query = QueryService(registry)
        assert query.resolve("alice", "pepu") == BOB
        assert query.reverse_resolve(BOB).data["domain"] == "alice.pepu"
        assert query.reverse_resolve(ALICE).data["domain"] is None

    def test_new_target_becomes_holder(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.set_resolution_target("alice", "pepu", ALICE, BOB).ok
        assert svc.register("bob", "pepu", BOB, 1).code == "WALLET_ALREADY_OWNS_DOMAIN"
        # The owner no longer resolves from any name, so it may register again.
        assert svc.register("second", "pepu", ALICE, 1).ok

    def test_null_target_checked_first(self, registry: Registry) -> None:
        result = RegistrationService(registry).set_resolution_target(
            "ghost", "pepu", ALICE, ZERO_IDENTITY
        )
        assert result.code == "INVALID_WALLET_ADDRESS"

    def test_unknown_name(self, registry: Registry) -> None:
        result = RegistrationService(registry).set_resolution_target("ghost", "pepu", ALICE, BOB)
        assert result.code == "DOMAIN_NOT_FOUND"

    def test_non_owner(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.set_resolution_target("alice", "pepu", BOB, BOB).code == "UNAUTHORIZED"

    def test_expired(self, registry: Registry, clock: FakeClock) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        clock.advance(YEAR + 1)
        assert svc.set_resolution_target("alice", "pepu", ALICE, BOB).code == "DOMAIN_EXPIRED"

    def test_same_address(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.set_resolution_target("alice", "pepu", ALICE, ALICE).code == "SAME_ADDRESS"

    def test_target_holding_another_live_domain(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.register("bob", "pepu", BOB, 1).ok
        result = svc.set_resolution_target("alice", "pepu", ALICE, BOB)
        assert result.code == "WALLET_ALREADY_OWNS_DOMAIN"
        assert QueryService(registry).resolve("alice", "pepu") == ALICE

    def test_target_with_expired_domain_is_free(
        self, registry: Registry, clock: FakeClock
    ) -> None:
        svc = RegistrationService(registry)
        assert svc.register("bob", "pepu", BOB, 1).ok
        clock.advance(YEAR)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        assert svc.set_resolution_target("alice", "pepu", ALICE, BOB).ok


# ---------------------------------------------------------------------------
# batch_register
# ---------------------------------------------------------------------------


class TestBatchRegister:
    def test_admin_batch(self, registry: Registry, ledger: MemoryLedger) -> None:
        result = RegistrationService(registry).batch_register(
            ADMIN,
            [("one", "pepu", 1, ALICE), ("two", "pepu", 2, BOB), ("three", "bera", 1, CAROL)],
        )
        assert result.ok, result.error
        assert result.data["count"] == 3
        assert result.data["total_fee"] == 0
        assert ledger.charges == []
        query = QueryService(registry)
        assert query.resolve("two", "pepu") == BOB
        assert query.reverse_resolve(CAROL).data["domain"] == "three.bera"

    def test_single_entry_charged_once(self, registry: Registry, ledger: MemoryLedger) -> None:
        result = RegistrationService(registry).batch_register(ALICE, [("abc", "pepu", 3)])
        assert result.ok, result.error
        assert result.data["total_fee"] == 150
        assert ledger.charges == [(ALICE, TREASURY, 150, "USDC")]

    def test_accepts_mappings_and_entries(self, registry: Registry) -> None:
        entries = [
            {"name": "map", "tld": "pepu", "years": 1, "target": ALICE},
            BatchEntry("entry", "pepu", 2, BOB),
        ]
        result = RegistrationService(registry).batch_register(ADMIN, entries)
        assert result.ok, result.error
        assert [r["name"] for r in result.data["registered"]] == ["map", "entry"]

    def test_empty(self, registry: Registry) -> None:
        assert RegistrationService(registry).batch_register(ALICE, []).code == "EMPTY_BATCH"

    def test_too_large(self, registry: Registry) -> None:
        entries = [(f"name{i}", "pepu", 1) for i in range(registry.max_batch_size + 1)]
        result = RegistrationService(registry).batch_register(ADMIN, entries)
        assert result.code == "BATCH_TOO_LARGE"

    def test_one_bad_entry_fails_everything(
        self, registry: Registry, ledger: MemoryLedger
    ) -> None:
        result = RegistrationService(registry).batch_register(
            ADMIN, [("good", "pepu", 1, ALICE), ("bad_", "pepu", 1, BOB)]
        )
        assert result.code == "INVALID_CHARACTER"
        assert result.error is not None
        assert result.error.detail["index"] == 1
        assert QueryService(registry).resolve("good", "pepu") == ZERO_IDENTITY
        assert ledger.charges == []

    def test_duplicate_key_in_batch(self, registry: Registry) -> None:
        result = RegistrationService(registry).batch_register(
            ADMIN, [("same", "pepu", 1, ALICE), ("SAME", "pepu", 1, BOB)]
        )
        assert result.code == "DOMAIN_ALREADY_EXISTS"
        assert result.error is not None
        assert result.error.detail["index"] == 1

    def test_duplicate_target_in_batch(self, registry: Registry) -> None:
        result = RegistrationService(registry).batch_register(
            ALICE, [("first", "pepu", 1), ("second", "pepu", 1)]
        )
        assert result.code == "WALLET_ALREADY_OWNS_DOMAIN"
        assert QueryService(registry).resolve("first", "pepu") == ZERO_IDENTITY

    def test_requester_already_holding(self, registry: Registry) -> None:
        svc = RegistrationService(registry)
        assert svc.register("alice", "pepu", ALICE, 1).ok
        result = svc.batch_register(ALICE, [("more", "pepu", 1)])
        assert result.code == "WALLET_ALREADY_OWNS_DOMAIN"

    def test_non_admin_target(self, registry: Registry) -> None:
        result = RegistrationService(registry).batch_register(ALICE, [("abc", "pepu", 1, BOB)])
        assert result.code == "UNAUTHORIZED"

    def test_aggregate_fee_overflow(self, registry: Registry) -> None:
        _set_fees(registry, FeeTable(one=1, three=1, four=1, default=AMOUNT_MAX))
        result = RegistrationService(registry).batch_register(
            ADMIN, [("first", "pepu", 1, ALICE), ("second", "pepu", 1, BOB)]
        )
        assert result.code == "FEE_OVERFLOW"

    def test_insufficient_funds_for_total(self, registry: Registry, ledger: MemoryLedger) -> None:
        ledger.credit(DAVE, 40, "USDC")
        ledger.approve(DAVE, 40, "USDC")
        result = RegistrationService(registry).batch_register(DAVE, [("abc", "pepu", 1)])
        assert result.code == "INSUFFICIENT_USDC"
        assert _stored(registry, b"abc") is None


# ---------------------------------------------------------------------------
# Re-entrancy
# ---------------------------------------------------------------------------


class CallbackLedger(MemoryLedger):
    """Ledger that calls back into the registry while charging."""

    def __init__(self) -> None:
        super().__init__()
        self.service: RegistrationService | None = None
        self.inner_result: ServiceResult | None = None

    def charge(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        assert self.service is not None
        self.inner_result = self.service.register("inner", "pepu", payer, 1)
        super().charge(payer, recipient, amount, asset)


class TestReentrancy:
    def test_reentrant_call_is_rejected(self, clock: FakeClock) -> None:
        store = MemoryRegistryStore()
        seed_store(store)
        ledger = CallbackLedger()
        fund(ledger, ALICE)
        registry = Registry(store, ledger, admin=ADMIN, clock=clock)
        svc = RegistrationService(registry)
        ledger.service = svc

        result = svc.register("outer", "pepu", ALICE, 1)
        assert result.ok
        assert ledger.inner_result is not None
        assert ledger.inner_result.code == "REENTRANT_CALL"
        assert _stored(registry, b"inner") is None
        assert _stored(registry, b"outer") is not None


class UnwritableStore(MemoryRegistryStore):
    """Store whose transactions fail to commit once ``broken`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.broken = False

    @contextmanager
    def transaction(self) -> Iterator[RegistryWriter]:
        with super().transaction() as txn:
            yield txn
            if self.broken:
                raise OSError("disk I/O error")


class NoRefundLedger(MemoryLedger):
    def refund(self, payer: str, recipient: str, amount: int, asset: str) -> None:
        raise LedgerError("refunds are disabled")


class TestCommitFailure:
    @pytest.fixture
    def store(self) -> UnwritableStore:
        store = UnwritableStore()
        seed_store(store)
        return store

    def _registry(self, store: UnwritableStore, ledger: MemoryLedger, clock: FakeClock) -> Registry:
        fund(ledger, ALICE)
        return Registry(store, ledger, admin=ADMIN, clock=clock)

    def test_register_refunds_fee(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = MemoryLedger()
        registry = self._registry(store, ledger, clock)
        store.broken = True
        result = RegistrationService(registry).register("abc", "pepu", ALICE, 1)
        assert result.code == "COMMIT_FAILED"
        assert result.error is not None
        assert result.error.detail["refunded"] is True
        assert result.error.detail["amount"] == 50
        assert ledger.balance_of(ALICE, "USDC") == 10_000
        assert ledger.allowance_of(ALICE, "USDC") == 10_000
        assert ledger.balance_of(TREASURY, "USDC") == 0
        assert ledger.refunds == [(ALICE, TREASURY, 50, "USDC")]
        assert _stored(registry, b"abc") is None
        assert QueryService(registry).resolve("abc", "pepu") == ZERO_IDENTITY

    def test_renew_refunds_fee(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = MemoryLedger()
        registry = self._registry(store, ledger, clock)
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        store.broken = True
        result = svc.renew("abc", "pepu", ALICE, 2)
        assert result.code == "COMMIT_FAILED"
        assert ledger.balance_of(ALICE, "USDC") == 10_000 - 50
        stored = _stored(registry, b"abc")
        assert stored is not None
        assert stored.expires_at == START + YEAR

    def test_batch_refunds_total(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = MemoryLedger()
        registry = self._registry(store, ledger, clock)
        store.broken = True
        result = RegistrationService(registry).batch_register(ALICE, [("abc", "pepu", 2)])
        assert result.code == "COMMIT_FAILED"
        assert result.error is not None
        assert result.error.detail["amount"] == 100
        assert ledger.balance_of(ALICE, "USDC") == 10_000

    def test_retarget_failure_is_typed(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = MemoryLedger()
        registry = self._registry(store, ledger, clock)
        svc = RegistrationService(registry)
        assert svc.register("abc", "pepu", ALICE, 1).ok
        store.broken = True
        result = svc.set_resolution_target("abc", "pepu", ALICE, BOB)
        assert result.code == "COMMIT_FAILED"
        assert QueryService(registry).resolve("abc", "pepu") == ALICE

    def test_refused_refund_is_reported(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = NoRefundLedger()
        registry = self._registry(store, ledger, clock)
        store.broken = True
        result = RegistrationService(registry).register("abc", "pepu", ALICE, 1)
        assert result.code == "COMMIT_FAILED"
        assert result.error is not None
        assert result.error.detail["refunded"] is False
        assert ledger.balance_of(ALICE, "USDC") == 9_950

    def test_admin_failure_refunds_nothing(self, store: UnwritableStore, clock: FakeClock) -> None:
        ledger = MemoryLedger()
        registry = self._registry(store, ledger, clock)
        store.broken = True
        result = RegistrationService(registry).register("abc", "pepu", ADMIN, 1)
        assert result.code == "COMMIT_FAILED"
        assert ledger.refunds == []
