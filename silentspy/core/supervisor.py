"""Fail-safe boundary around event dispatch.

The first uncaught exception during dispatch:

1. announces itself with one ``PASSTHROUGH`` block naming the failure,
2. flips the session to passthrough for good,
3. runs every registered revert (verbosity hint, stream capture, ...),
   ignoring failures from the reverts themselves.

After that every notification is ignored and the host's unfiltered
output flows as if this subsystem were not installed.  No exception ever
escapes into the host's event delivery.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from silentspy.core.emitter import ProtocolEmitter
from silentspy.models.events import BuildEvent

logger = logging.getLogger(__name__)


class FailSafeSupervisor:
    """Wraps a dispatch callable and degrades on the first failure.

    Parameters
    ----------
    dispatch:
        Callable applying one notification (normally
        ``SessionCoordinator.handle``).
    emitter:
        Used only for the single passthrough announcement.
    reverts:
        Best-effort undo actions run once when tripping.
    """

    def __init__(
        self,
        dispatch: Callable[[BuildEvent], None],
        emitter: ProtocolEmitter,
        reverts: Iterable[Callable[[], None]] = (),
    ) -> None:
        self._dispatch = dispatch
        self._emitter = emitter
        self._reverts = list(reverts)
        self._degraded = False
        self._lock = threading.Lock()

    @property
    def degraded(self) -> bool:
        return self._degraded

    def add_revert(self, action: Callable[[], None]) -> None:
        self._reverts.append(action)

    def dispatch(self, event: BuildEvent) -> None:
        """Apply *event* unless degraded; never raises ``Exception``."""
        if self._degraded:
            return
        try:
            self._dispatch(event)
        except Exception as exc:
            self.trip(f"{type(exc).__name__}: {exc}", exc)

    def trip(self, reason: str, exc: BaseException | None = None) -> None:
        """Degrade to passthrough.  Only the first call has any effect."""
        with self._lock:
            if self._degraded:
                return
            self._degraded = True

        if exc is not None:
            logger.error("Degrading to passthrough: %s", reason, exc_info=exc)
        else:
            logger.error("Degrading to passthrough: %s", reason)

        try:
            self._emitter.emit_passthrough(reason)
        except Exception:
            logger.exception("Could not announce passthrough")

        for revert in self._reverts:
            try:
                revert()
            except Exception:
                logger.debug("Revert %r failed", revert, exc_info=True)
