"""Typed registry errors.

Every failure the registry can report is a :class:`RegistryError` subclass
with a stable ``code``. The service layer converts them into
:class:`~namereg.services.result.ServiceError` payloads; nothing above the
services ever sees the exception itself.

Four categories:

- Input validation — caller-correctable (bad name, tld, duration, identity).
- State conflict — caller must change the request, not retry it verbatim.
- Arithmetic safety — fixed-width overflow, never clamped.
- External dependency — the fee collector refused, or the store failed to
  commit after the fee was taken (the fee is refunded).
"""

from __future__ import annotations

from typing import Any


class RegistryError(Exception):
    """Base class for all registry failures."""

    code: str = "REGISTRY_ERROR"

    def __init__(self, message: str, **detail: Any) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail


# --- Input validation ---


class InvalidName(RegistryError):
    code = "INVALID_NAME"


class NameTooShort(InvalidName):
    code = "NAME_TOO_SHORT"


class NameTooLong(InvalidName):
    code = "NAME_TOO_LONG"


class InvalidCharacter(InvalidName):
    code = "INVALID_CHARACTER"


class InvalidTld(RegistryError):
    code = "INVALID_TLD"


class EmptyTld(RegistryError):
    code = "EMPTY_TLD"


class InvalidDuration(RegistryError):
    code = "INVALID_DURATION"


class InvalidSetting(RegistryError):
    code = "INVALID_SETTING"


class InvalidWalletAddress(RegistryError):
    code = "INVALID_WALLET_ADDRESS"


class InvalidFee(RegistryError):
    code = "INVALID_FEE"


class EmptyBatch(RegistryError):
    code = "EMPTY_BATCH"


class BatchTooLarge(RegistryError):
    code = "BATCH_TOO_LARGE"


# --- State conflicts ---


class DomainAlreadyExists(RegistryError):
    code = "DOMAIN_ALREADY_EXISTS"


class DomainNotFound(RegistryError):
    code = "DOMAIN_NOT_FOUND"


class DomainExpired(RegistryError):
    code = "DOMAIN_EXPIRED"


class Unauthorized(RegistryError):
    code = "UNAUTHORIZED"


class WalletAlreadyOwnsDomain(RegistryError):
    code = "WALLET_ALREADY_OWNS_DOMAIN"


class SameAddress(RegistryError):
    code = "SAME_ADDRESS"


class ReentrantCall(RegistryError):
    code = "REENTRANT_CALL"


# --- Arithmetic safety ---


class ArithmeticOverflow(RegistryError):
    code = "ARITHMETIC_OVERFLOW"


class FeeOverflow(ArithmeticOverflow):
    code = "FEE_OVERFLOW"


class ExpiryOverflow(ArithmeticOverflow):
    code = "EXPIRY_OVERFLOW"


# --- External dependency ---


class FeeCollectionError(RegistryError):
    code = "FEE_COLLECTION_FAILED"


class InsufficientUsdc(FeeCollectionError):
    code = "INSUFFICIENT_USDC"


class InsufficientAllowance(FeeCollectionError):
    code = "INSUFFICIENT_ALLOWANCE"


class CommitFailed(RegistryError):
    """The store rejected the writes after the fee was collected.

    ``detail["refunded"]`` says whether the fee went back to the payer.
    """

    code = "COMMIT_FAILED"
