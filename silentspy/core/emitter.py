"""Line-oriented output protocol — the only writer of visible output.

Every block starts with ``<prefix>:<KIND>`` so consumers can pick this
subsystem's lines out of a shared stream.  Detail lines under a test
failure are indented by two spaces; raw captured text is framed by
``BUFFERED_OUTPUT_BEGIN`` / ``BUFFERED_OUTPUT_END`` so its extent never
depends on its content.

Example of a failed build::

    MSE:SESSION_START modules=3 goals=clean,verify
    MSE:FAIL maven-surefire-plugin:test @ core
    MSE:TESTS total=23 passed=21 failed=1 errors=1 skipped=1
    MSE:TEST_FAIL com.acme.CartTest#addsItem
      expected:<2> but was:<3>
      at com.acme.CartTest.addsItem(CartTest.java:41)
    MSE:BUILD_FAILED failed=1 modules=3 tests=21/23 time=12.4s
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import TextIO

from silentspy.models.events import UnitKey
from silentspy.models.results import CompilerDiagnostic, TestStatus, TestSummary
from silentspy.models.session import SessionSnapshot

DEFAULT_PREFIX = "MSE"
_INDENT = "  "

_CASE_KINDS: dict[TestStatus, str] = {
    TestStatus.FAILED: "TEST_FAIL",
    TestStatus.ERROR: "TEST_ERROR",
}


def _one_line(text: str) -> str:
    return " ".join(text.split())


class ProtocolEmitter:
    """Formats and writes protocol blocks.

    Holds no session state; each call writes one self-contained,
    newline-terminated block in a single ``write``.

    Parameters
    ----------
    out:
        Destination stream.  Must not be a capturing stream.
    prefix:
        Marker token opening every protocol line.
    """

    def __init__(self, out: TextIO, prefix: str = DEFAULT_PREFIX) -> None:
        self._out = out
        self._prefix = prefix
        self._lock = threading.Lock()

    @property
    def prefix(self) -> str:
        return self._prefix

    def _line(self, kind: str, body: str = "") -> str:
        if body:
            return f"{self._prefix}:{kind} {body}\n"
        return f"{self._prefix}:{kind}\n"

    def _write(self, block: str) -> None:
        with self._lock:
            self._out.write(block)
            self._out.flush()

    # ------------------------------------------------------------------
    # Session blocks
    # ------------------------------------------------------------------

    def emit_session_start(self, module_count: int, goals: Iterable[str]) -> None:
        self._write(
            self._line("SESSION_START", f"modules={module_count} goals={','.join(goals)}")
        )

    def emit_ok(self, snapshot: SessionSnapshot) -> None:
        self._write(
            self._line(
                "OK",
                f"modules={snapshot.module_count} "
                f"tests={snapshot.tests_passed}/{snapshot.tests_total} "
                f"time={snapshot.elapsed_seconds:.1f}s "
                f"warnings={snapshot.warnings}",
            )
        )

    def emit_build_failed(self, snapshot: SessionSnapshot) -> None:
        self._write(
            self._line(
                "BUILD_FAILED",
                f"failed={snapshot.failed_modules} "
                f"modules={snapshot.module_count} "
                f"tests={snapshot.tests_passed}/{snapshot.tests_total} "
                f"time={snapshot.elapsed_seconds:.1f}s",
            )
        )

    # ------------------------------------------------------------------
    # Per-event blocks
    # ------------------------------------------------------------------

    def emit_fail(self, unit: UnitKey) -> None:
        """``FAIL plugin:goal @ module``; non-default executions are named."""
        target = f"{unit.plugin}:{unit.goal}"
        if unit.execution_id and not unit.execution_id.startswith("default"):
            target += f" ({unit.execution_id})"
        self._write(self._line("FAIL", f"{target} @ {unit.module}"))

    def emit_compiler_errors(self, diagnostics: Iterable[CompilerDiagnostic]) -> None:
        block = "".join(
            self._line("ERR", f"{d.path}:{d.line}:{d.column} {_one_line(d.message)}")
            for d in diagnostics
        )
        if block:
            self._write(block)

    def emit_test_results(self, summary: TestSummary) -> None:
        parts = [
            self._line(
                "TESTS",
                f"total={summary.total} passed={summary.passed} "
                f"failed={summary.failures} errors={summary.errors} "
                f"skipped={summary.skipped}",
            )
        ]
        for case in summary.cases:
            kind = _CASE_KINDS.get(case.status)
            if kind is None:
                continue
            parts.append(self._line(kind, f"{case.class_name}#{case.case_name}"))
            if case.message:
                parts.extend(f"{_INDENT}{line}\n" for line in case.message.splitlines())
            if case.trace:
                parts.extend(f"{_INDENT}{line}\n" for line in case.trace.splitlines())
        self._write("".join(parts))

    def emit_buffered_output(self, label: str, content: bytes | str) -> None:
        """Raw captured text between BEGIN/END marker lines."""
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")
        if not content:
            return
        if not content.endswith("\n"):
            content += "\n"
        self._write(
            self._line("BUFFERED_OUTPUT_BEGIN", label)
            + content
            + self._line("BUFFERED_OUTPUT_END")
        )

    def emit_passthrough(self, reason: str) -> None:
        self._write(self._line("PASSTHROUGH", _one_line(reason)))
