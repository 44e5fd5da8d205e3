"""Domain records, identities, and the per-key lifecycle.

Lifecycle per ``(name, tld)`` key::

    unregistered --register--> active --renew--> active
                                 |
                          (expires_at passes)
                                 v
                              expired --register--> active (new owner)

Expiry never deletes a row. An expired record stays in the store until a
new registration supersedes it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import NamedTuple

from pydantic import BaseModel, Field

from namereg.domain.errors import InvalidWalletAddress
from namereg.domain.fees import AMOUNT_MAX
from namereg.domain.names import display_name

ZERO_IDENTITY = "0x0000000000000000000000000000000000000000"


def normalize_identity(identity: str | None) -> str:
    """Trim whitespace and lower-case ``0x`` hex identities.

    Anything else is treated as an opaque identifier and only trimmed.
    """
    if identity is None:
        return ""
    value = identity.strip()
    if value[:2] in ("0x", "0X"):
        return "0x" + value[2:].lower()
    return value


def is_null_identity(identity: str | None) -> bool:
    """The empty identity and the all-zero address both mean "nobody"."""
    value = normalize_identity(identity)
    return value == "" or value == ZERO_IDENTITY


def require_identity(identity: str | None, *, role: str = "identity") -> str:
    """Normalize *identity*, raising :class:`InvalidWalletAddress` if null."""
    if is_null_identity(identity):
        raise InvalidWalletAddress(f"The {role} must not be the null identity", role=role)
    return normalize_identity(identity)


class RecordState(StrEnum):
    """Observable state of a ``(name, tld)`` key."""

    UNREGISTERED = "unregistered"
    ACTIVE = "active"
    EXPIRED = "expired"


class NameKey(NamedTuple):
    """Composite store key."""

    name: bytes
    tld: str

    def label(self) -> str:
        """``name.tld`` for display."""
        return f"{display_name(self.name)}.{self.tld}"


class DomainRecord(BaseModel):
    """One name binding. Frozen; mutations produce a new record."""

    model_config = {"frozen": True}

    name: bytes
    tld: str
    owner: str
    resolution_target: str
    registered_at: int = Field(ge=0, le=AMOUNT_MAX)
    expires_at: int = Field(ge=0, le=AMOUNT_MAX)

    @property
    def key(self) -> NameKey:
        return NameKey(self.name, self.tld)

    def is_live(self, now: int) -> bool:
        """True until the expiry timestamp is reached."""
        return now < self.expires_at

    def state(self, now: int) -> RecordState:
        return RecordState.ACTIVE if self.is_live(now) else RecordState.EXPIRED

    def to_dict(self, now: int | None = None) -> dict[str, object]:
        """Serializable view for service results and events."""
        data: dict[str, object] = {
            "name": display_name(self.name),
            "tld": self.tld,
            "owner": self.owner,
            "resolution_target": self.resolution_target,
            "registered_at": self.registered_at,
            "expires_at": self.expires_at,
        }
        if now is not None:
            data["state"] = str(self.state(now))
            data["seconds_remaining"] = max(0, self.expires_at - now)
        return data


def normalize_tld(tld: str | None) -> str:
    """Strip whitespace and a single leading dot."""
    value = (tld or "").strip()
    if value.startswith("."):
        value = value[1:]
    return value
