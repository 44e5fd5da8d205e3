"""Non-reentrant execution guard for state-mutating registry operations.

A mutating operation may hand control to the fee collector before it
commits. The guard makes sure nothing re-enters the registry from inside
that window:

- Re-entry from the thread already inside the guard raises
  :class:`~namereg.domain.errors.ReentrantCall`.
- Other threads wait for the lock, so mutations are serialized.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from namereg.domain.errors import ReentrantCall

if TYPE_CHECKING:
    from collections.abc import Iterator


class NonReentrantGuard:
    """Lock plus a per-thread "in progress" flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._local = threading.local()

    @property
    def active(self) -> bool:
        """True while the current thread is inside the guard."""
        return getattr(self._local, "op", None) is not None

    @contextmanager
    def enter(self, op: str) -> Iterator[None]:
        """Run the block exclusively, rejecting same-thread re-entry."""
        current = getattr(self._local, "op", None)
        if current is not None:
            msg = f"{op} called while {current} is in progress"
            raise ReentrantCall(msg, op=op, active=current)
        with self._lock:
            self._local.op = op
            try:
                yield
            finally:
                self._local.op = None
