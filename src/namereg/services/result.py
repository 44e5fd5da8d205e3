"""What every service operation hands back.

INVARIANT: Services return a :class:`ServiceResult` for expected failures
instead of raising. A :class:`~namereg.domain.errors.RegistryError` is
carried as a :class:`ServiceError` whose ``code`` is the error's stable
code, so callers branch on strings rather than exception types.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from namereg.domain.errors import RegistryError


class ServiceError(BaseModel):
    """Why an operation was rejected."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: RegistryError) -> ServiceError:
        return cls(code=exc.code, message=exc.message, detail=dict(exc.detail))


class ServiceResult(BaseModel):
    """Outcome of one service call.

    Attributes:
        ok: True when the operation took effect (or the query answered).
        op: Operation name, e.g. ``"register"`` or ``"batch_register"``.
        data: Payload on success.
        warnings: Problems that did not stop the operation, such as a
            subscriber that failed to take a notification.
        error: Set exactly when ``ok`` is False.
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None

    @property
    def code(self) -> str | None:
        return self.error.code if self.error else None
