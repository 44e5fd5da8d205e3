"""Deliver registry notifications to subscribers through the pluggy relay.

Delivery happens after the state change has committed and the guard has
been released. Inline delivery (the default) reports whether every
subscriber accepted the call; threaded delivery queues the call on a
small pool and reports failures through :attr:`EventBus.failures` and the
log.

INVARIANT: A subscriber exception never reaches the registry.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from namereg.plugins.manager import PluginManager

logger = logging.getLogger(__name__)


class EventBus:
    """Fire-and-forget notification dispatch.

    Parameters:
        plugin_manager: Manager whose hook relay receives the calls.
        sync: Call subscribers on the dispatching thread.
        max_workers: Pool size for threaded delivery.
    """

    def __init__(
        self,
        plugin_manager: PluginManager,
        *,
        sync: bool = True,
        max_workers: int = 2,
    ) -> None:
        self._pm = plugin_manager
        self._pool: ThreadPoolExecutor | None = None
        if not sync:
            self._pool = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="namereg-events"
            )
        self._pending: set[Future[bool]] = set()
        self._lock = threading.Lock()
        self.failures = 0

    @property
    def plugin_manager(self) -> PluginManager:
        return self._pm

    def dispatch(self, hook_name: str, payload: dict[str, Any]) -> bool:
        """Send *payload* to every ``hook_name`` subscriber.

        False means an inline delivery failed. Threaded delivery returns
        True once the call is queued.
        """
        if self._pool is None:
            return self._deliver(hook_name, payload)
        future = self._pool.submit(self._deliver, hook_name, payload)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return True

    @property
    def pending(self) -> int:
        """Queued or running deliveries."""
        with self._lock:
            return len(self._pending)

    def flush(self, timeout: float = 30.0) -> None:
        """Block until queued deliveries finish or *timeout* passes."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("%d notifications still running after %.0fs", len(not_done), timeout)

    def shutdown(self) -> None:
        """Flush, then stop the pool. Safe to call twice."""
        self.flush()
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def _forget(self, future: Future[bool]) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, hook_name: str, payload: dict[str, Any]) -> bool:
        caller = getattr(self._pm.hook, hook_name, None)
        if caller is None:
            logger.debug("No hook named %s", hook_name)
            return True
        try:
            caller(**payload)
        except Exception as exc:
            with self._lock:
                self.failures += 1
            logger.warning("Subscriber to %s failed: %s", hook_name, exc)
            return False
        return True
