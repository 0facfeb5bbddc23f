"""Session coordinator — the lifecycle state machine.

Enforces:
- IDLE -> ACTIVE only on session-started, ACTIVE -> TERMINATED only on
  session-ended (VALID_TRANSITIONS table)
- Nothing is done before a session starts or after it ends
- Only the recognised notifications act; all other lifecycle noise is
  dropped here
- The failed flag is sticky and counters only grow
- Exactly one summary block per session, emitted at session end
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping

from silentspy.core.artifact_extractor import ArtifactExtractor
from silentspy.core.bounded_buffer import BoundedBuffer
from silentspy.core.causes import detail_message
from silentspy.core.emitter import ProtocolEmitter
from silentspy.core.unit_registry import ExecutionUnitRegistry
from silentspy.models.events import BuildEvent, EventType, ModuleRef, UnitKey
from silentspy.models.results import ParseKey, ReportKind, TestSummary
from silentspy.models.session import (
    VALID_TRANSITIONS,
    SessionSnapshot,
    SessionState,
)

logger = logging.getLogger(__name__)

TEST_PLUGINS: dict[str, ReportKind] = {
    "maven-surefire-plugin": ReportKind.UNIT,
    "maven-failsafe-plugin": ReportKind.INTEGRATION,
}
COMPILER_PLUGINS: frozenset[str] = frozenset({"maven-compiler-plugin"})

UNATTRIBUTED_LABEL = "unattributed"


class InvalidTransitionError(RuntimeError):
    """Raised when a requested session state transition is not valid."""


class BuildSession:
    """Aggregate state of one build, from session start to session end.

    Counters only grow and ``failed`` only flips to True.  All mutation
    goes through ``_lock`` so units completing in parallel never lose an
    update.
    """

    def __init__(
        self,
        module_count: int,
        goals: list[str],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.module_count = module_count
        self.goals = list(goals)
        self._clock = clock
        self._started_at = clock()
        self._lock = threading.Lock()
        self._tests_total = 0
        self._tests_failed = 0
        self._tests_errors = 0
        self._tests_skipped = 0
        self._compiler_errors = 0
        self._warnings = 0
        self._failed_modules = 0
        self._succeeded_modules = 0
        self._failed = False

    @property
    def failed(self) -> bool:
        return self._failed

    def mark_failed(self) -> None:
        self._failed = True

    def merge_tests(self, summary: TestSummary) -> None:
        with self._lock:
            self._tests_total += max(summary.total, 0)
            self._tests_failed += max(summary.failures, 0)
            self._tests_errors += max(summary.errors, 0)
            self._tests_skipped += max(summary.skipped, 0)
            self._warnings += len(summary.warnings)

    def add_compiler_errors(self, count: int) -> None:
        with self._lock:
            self._compiler_errors += max(count, 0)

    def add_warnings(self, count: int) -> None:
        with self._lock:
            self._warnings += max(count, 0)

    def module_succeeded(self) -> None:
        with self._lock:
            self._succeeded_modules += 1

    def module_failed(self) -> None:
        with self._lock:
            self._failed_modules += 1
            self._failed = True

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            total = self._tests_total
            passed = max(
                total - self._tests_failed - self._tests_errors - self._tests_skipped, 0
            )
            failed_modules = self._failed_modules
            if self._failed and failed_modules == 0:
                failed_modules = 1
            return SessionSnapshot(
                module_count=self.module_count,
                goals=self.goals,
                tests_total=total,
                tests_passed=passed,
                tests_failed=self._tests_failed,
                tests_errors=self._tests_errors,
                tests_skipped=self._tests_skipped,
                compiler_errors=self._compiler_errors,
                warnings=self._warnings,
                failed_modules=failed_modules,
                failed=self._failed,
                elapsed_seconds=max(self._clock() - self._started_at, 0.0),
            )


class SessionCoordinator:
    """Decides, per notification, whether to buffer, parse, emit, or ignore.

    Parameters
    ----------
    registry:
        Output attribution and unit buffers.
    extractor:
        Artifact parsing.
    emitter:
        The protocol writer.
    clock:
        Monotonic clock used for the session duration.
    test_plugins:
        Plugin ids whose units produce test reports, with their report kind.
    compiler_plugins:
        Plugin ids whose failures carry compiler diagnostics.
    """

    def __init__(
        self,
        registry: ExecutionUnitRegistry,
        extractor: ArtifactExtractor,
        emitter: ProtocolEmitter,
        *,
        clock: Callable[[], float] = time.monotonic,
        test_plugins: Mapping[str, ReportKind] | None = None,
        compiler_plugins: frozenset[str] | set[str] | None = None,
    ) -> None:
        self._registry = registry
        self._extractor = extractor
        self._emitter = emitter
        self._clock = clock
        self._test_plugins = dict(test_plugins if test_plugins is not None else TEST_PLUGINS)
        self._compiler_plugins = frozenset(
            compiler_plugins if compiler_plugins is not None else COMPILER_PLUGINS
        )
        self._state = SessionState.IDLE
        self._session: BuildSession | None = None
        self._handlers: dict[EventType, Callable[[BuildEvent], None]] = {
            EventType.MOJO_STARTED: self._on_unit_started,
            EventType.MOJO_SUCCEEDED: self._on_unit_succeeded,
            EventType.MOJO_FAILED: self._on_unit_failed,
            EventType.PROJECT_SUCCEEDED: self._on_module_succeeded,
            EventType.PROJECT_FAILED: self._on_module_failed,
            EventType.SESSION_ENDED: self._on_session_ended,
        }

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> BuildSession | None:
        return self._session

    def _transition(self, target: SessionState) -> None:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition session from {self._state.value} to {target.value}. "
                f"Allowed: {[s.value for s in allowed]}"
            )
        logger.debug("Session %s -> %s", self._state.value, target.value)
        self._state = target

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle(self, event: BuildEvent) -> None:
        """Apply one notification."""
        if self._state is SessionState.IDLE:
            if event.event_type is EventType.SESSION_STARTED:
                self._on_session_started(event)
            return
        if self._state is SessionState.TERMINATED:
            return
        handler = self._handlers.get(event.event_type)
        if handler is not None:
            handler(event)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_session_started(self, event: BuildEvent) -> None:
        self._extractor.reset()
        self._session = BuildSession(event.module_count, event.goals, clock=self._clock)
        self._transition(SessionState.ACTIVE)
        self._emitter.emit_session_start(event.module_count, event.goals)

    def _on_unit_started(self, event: BuildEvent) -> None:
        if event.unit is None:
            return
        self._registry.register_current_context(event.unit)

    def _on_unit_succeeded(self, event: BuildEvent) -> None:
        session = self._require_session()
        unit = event.unit
        if unit is None:
            return
        buffer = self._registry.release(unit)

        kind = self._test_plugins.get(unit.plugin)
        if kind is not None:
            summary = self._parse_tests(unit, event.module, kind)
            if summary is not None and summary.has_failures:
                self._emitter.emit_test_results(summary)
        elif unit.plugin in self._compiler_plugins and buffer:
            warnings = [
                d
                for d in self._extractor.parse_diagnostics(buffer.text())
                if d.severity == "WARNING"
            ]
            session.add_warnings(len(warnings))

    def _on_unit_failed(self, event: BuildEvent) -> None:
        session = self._require_session()
        session.mark_failed()
        unit = event.unit
        if unit is None:
            return
        buffer = self._registry.release(unit)
        self._emitter.emit_fail(unit)

        reported = False
        kind = self._test_plugins.get(unit.plugin)
        if kind is not None:
            summary = self._parse_tests(unit, event.module, kind)
            if summary is not None and summary.has_failures:
                self._emitter.emit_test_results(summary)
                reported = True
        elif unit.plugin in self._compiler_plugins:
            reported = self._report_compiler_errors(event, buffer)

        if not reported:
            self._emit_fallback(unit.label, event, buffer)

    def _on_module_succeeded(self, event: BuildEvent) -> None:
        self._require_session().module_succeeded()

    def _on_module_failed(self, event: BuildEvent) -> None:
        self._require_session().module_failed()

    def _on_session_ended(self, event: BuildEvent) -> None:
        session = self._require_session()
        leftovers = self._registry.drain()
        unattributed = self._registry.take_unattributed()
        if session.failed:
            for unit, buffer in leftovers:
                self._emitter.emit_buffered_output(unit.label, buffer.getvalue())
            self._emitter.emit_buffered_output(UNATTRIBUTED_LABEL, unattributed)

        snapshot = session.snapshot()
        if snapshot.failed:
            self._emitter.emit_build_failed(snapshot)
        else:
            self._emitter.emit_ok(snapshot)
        self._transition(SessionState.TERMINATED)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> BuildSession:
        if self._session is None:
            raise InvalidTransitionError("No build session in progress")
        return self._session

    def _parse_tests(
        self, unit: UnitKey, module: ModuleRef | None, kind: ReportKind
    ) -> TestSummary | None:
        if module is None or module.basedir is None:
            return None
        key = ParseKey(
            module=module.identity,
            execution_id=unit.execution_id,
            artifact_set=kind.reports_subdir,
        )
        summary = self._extractor.parse_reports(
            module.basedir, kind, key=key, on_warning=self._emitter.emit_passthrough
        )
        if not summary.consumed:
            return None
        self._require_session().merge_tests(summary)
        return summary

    def _report_compiler_errors(
        self, event: BuildEvent, buffer: BoundedBuffer | None
    ) -> bool:
        diagnostics = [
            d
            for d in self._extractor.parse_diagnostics(detail_message(event.cause))
            if d.severity == "ERROR"
        ]
        if not diagnostics and buffer:
            diagnostics = [
                d
                for d in self._extractor.parse_diagnostics(buffer.text())
                if d.severity == "ERROR"
            ]
        if not diagnostics:
            return False
        self._emitter.emit_compiler_errors(diagnostics)
        self._require_session().add_compiler_errors(len(diagnostics))
        return True

    def _emit_fallback(
        self, label: str, event: BuildEvent, buffer: BoundedBuffer | None
    ) -> None:
        """Raw output for a failure no artifact explained."""
        if buffer:
            self._emitter.emit_buffered_output(label, buffer.getvalue())
            return
        detail = detail_message(event.cause)
        if detail:
            self._emitter.emit_buffered_output(label, detail)
