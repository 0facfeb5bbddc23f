"""Host-facing adapter — receives the build tool's lifecycle notifications.

The host calls ``init()`` once, ``on_event()`` for every notification, and
``close()`` at shutdown.  With ``MSE_ACTIVE`` unset the spy builds nothing
and every call returns immediately.

When active, one session context is wired together per build::

    ExecutionUnitRegistry ─┐
    ArtifactExtractor ─────┼─> SessionCoordinator ─> FailSafeSupervisor
    ProtocolEmitter ───────┘

and handed out by reference; there is no process-wide singleton.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Callable
from typing import Any, TextIO

from silentspy.config import SpySettings, config
from silentspy.core.artifact_extractor import ArtifactExtractor
from silentspy.core.capture import OutputCapture
from silentspy.core.coordinator import SessionCoordinator
from silentspy.core.emitter import ProtocolEmitter
from silentspy.core.supervisor import FailSafeSupervisor
from silentspy.core.unit_registry import ExecutionUnitRegistry
from silentspy.core.verbosity import (
    LoggingVerbosityControl,
    NoOpVerbosityControl,
    VerbosityControl,
)
from silentspy.models.events import BuildEvent
from silentspy.models.session import SessionState

logger = logging.getLogger(__name__)


class SilentSpy:
    """Condenses a build's lifecycle into the line protocol.

    Parameters
    ----------
    settings:
        Runtime settings.  Defaults to the process-wide ``config``.
    out:
        Stream for protocol output.  Defaults to ``sys.stdout`` as it is
        at ``init()`` time, before capture is installed.
    verbosity:
        Verbosity hint backend.  Defaults to stdlib logging when
        ``quiet_loggers`` is set, otherwise a no-op.
    clock:
        Monotonic clock for session timing.
    """

    def __init__(
        self,
        settings: SpySettings | None = None,
        *,
        out: TextIO | None = None,
        verbosity: VerbosityControl | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or config
        self._out = out
        self._verbosity = verbosity
        self._clock = clock
        self._active = False

        self.emitter: ProtocolEmitter | None = None
        self.registry: ExecutionUnitRegistry | None = None
        self.coordinator: SessionCoordinator | None = None
        self.supervisor: FailSafeSupervisor | None = None
        self.capture: OutputCapture | None = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def degraded(self) -> bool:
        return self.supervisor is not None and self.supervisor.degraded

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Wire the session context when activated.  Never raises."""
        settings = self._settings
        if not settings.active:
            return

        out = self._out or sys.stdout
        emitter = ProtocolEmitter(out, prefix=settings.prefix)
        verbosity: VerbosityControl = self._verbosity or (
            LoggingVerbosityControl(settings.quiet_loggers)
            if settings.quiet_loggers
            else NoOpVerbosityControl()
        )
        capture: OutputCapture | None = None
        try:
            logging.getLogger("silentspy").setLevel(settings.log_level.upper())
            registry = ExecutionUnitRegistry(
                settings.buffer_capacity, settings.buffer_head_bytes
            )
            extractor = ArtifactExtractor(trace_lines=settings.trace_lines)
            coordinator = SessionCoordinator(
                registry, extractor, emitter, clock=self._clock
            )
            capture = OutputCapture(registry)
            supervisor = FailSafeSupervisor(
                coordinator.handle,
                emitter,
                reverts=[verbosity.restore, capture.uninstall, self._release_held_output],
            )
            verbosity.suppress()
            if settings.capture_streams:
                capture.install()
        except Exception as exc:
            logger.warning("Initialization failed, staying inactive", exc_info=True)
            self._revert(verbosity, capture)
            try:
                emitter.emit_passthrough(f"init failed: {exc}")
            except Exception:
                logger.exception("Could not announce passthrough")
            return

        self._out = out
        self._verbosity = verbosity
        self.emitter = emitter
        self.registry = registry
        self.coordinator = coordinator
        self.capture = capture
        self.supervisor = supervisor
        self._active = True
        logger.info("silentspy active (prefix=%s)", settings.prefix)

    def on_event(self, event: Any) -> None:
        """Handle one host notification.  Never raises."""
        if not self._active or self.supervisor is None:
            return
        if not isinstance(event, BuildEvent):
            return
        self.supervisor.dispatch(event)

    def close(self) -> None:
        """Undo every side effect installed by ``init``.  Never raises.

        Closing while a session is still open means the host aborted the
        build; the spy degrades so held output reaches the real stream.
        """
        if not self._active:
            return
        if (
            self.supervisor is not None
            and self.coordinator is not None
            and self.coordinator.state is SessionState.ACTIVE
        ):
            self.supervisor.trip("closed before session end")
        self._revert(self._verbosity, self.capture)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _revert(
        verbosity: VerbosityControl | None, capture: OutputCapture | None
    ) -> None:
        for action in (
            verbosity.restore if verbosity is not None else None,
            capture.uninstall if capture is not None else None,
        ):
            if action is None:
                continue
            try:
                action()
            except Exception:
                logger.debug("Revert %r failed", action, exc_info=True)

    def _release_held_output(self) -> None:
        """Hand captured bytes back to the real stream after degrading."""
        if self.registry is None or self._out is None:
            return
        for _unit, buffer in self.registry.drain():
            self._out.write(buffer.text())
        held = self.registry.take_unattributed()
        if held:
            self._out.write(held.decode("utf-8", errors="replace"))
        self._out.flush()
