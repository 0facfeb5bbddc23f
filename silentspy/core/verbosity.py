"""Best-effort verbosity hint for the host's logging backend.

The host's own log output is outside this subsystem's control; all it can
do is ask the backend to be quieter and later undo that request.  A
backend that cannot be reached is not an error, just a capability gap.

Priority chain:
1. **Custom backends** — user-provided Protocol implementations.
2. **LoggingVerbosityControl** — raises stdlib loggers to ERROR.
3. **NoOpVerbosityControl** — the default; does nothing.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class VerbosityControl(Protocol):
    """Protocol for logging-backend verbosity hints."""

    def suppress(self) -> None:
        """Ask the backend to emit errors only."""
        ...

    def restore(self) -> None:
        """Undo ``suppress``.  Must be safe to call more than once."""
        ...


class NoOpVerbosityControl:
    """Verbosity hint that changes nothing."""

    def suppress(self) -> None:
        pass

    def restore(self) -> None:
        pass


class LoggingVerbosityControl:
    """Raises the named stdlib loggers to ERROR and restores their levels.

    Parameters
    ----------
    logger_names:
        Loggers to quiet.  ``""`` is the root logger.
    """

    def __init__(self, logger_names: Iterable[str] = ("",)) -> None:
        self._names = list(logger_names)
        self._previous: dict[str, int] = {}
        self._lock = threading.Lock()

    @property
    def suppressed(self) -> bool:
        return bool(self._previous)

    def suppress(self) -> None:
        with self._lock:
            if self._previous:
                return
            for name in self._names:
                target = logging.getLogger(name)
                self._previous[name] = target.level
                target.setLevel(logging.ERROR)
        logger.debug("Logging suppressed for %s", self._names)

    def restore(self) -> None:
        with self._lock:
            previous, self._previous = self._previous, {}
        for name, level in previous.items():
            logging.getLogger(name).setLevel(level)
        if previous:
            logger.debug("Logging restored for %s", list(previous))
