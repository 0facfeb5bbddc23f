"""Structured result recovery from build artifacts.

Test runners write one XML report per suite into a conventional directory
once they finish, whether the tests ran in-process or in a forked JVM.
Those files are complete and schema-stable, unlike live console text,
which may be interleaved, partial, or never reach this process at all.

Two entry points:

- ``parse_reports`` — aggregate every report file of one report set.
  Guarded by a ParseKey so the same set is never counted twice.
- ``parse_diagnostics`` — compiler diagnostics from raw text.  No match
  means an empty list, letting the caller fall back to raw output.
"""

from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

from silentspy.core.diagnostics import DiagnosticPatternSet
from silentspy.models.results import (
    CompilerDiagnostic,
    ParseKey,
    ReportKind,
    TestCaseResult,
    TestStatus,
    TestSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_TRACE_LINES = 20
REPORT_GLOB = "TEST-*.xml"


class ReportParseError(ValueError):
    """Raised for a single unreadable or malformed report file."""


def cap_lines(text: str, max_lines: int) -> str:
    """Keep at most *max_lines* lines of *text*, noting how many were cut."""
    lines = text.strip("\n").splitlines()
    if len(lines) <= max_lines:
        return "\n".join(line.rstrip() for line in lines)
    kept = [line.rstrip() for line in lines[:max_lines]]
    kept.append(f"... {len(lines) - max_lines} more lines")
    return "\n".join(kept)


def _int_attr(element: ET.Element, name: str, path: Path) -> int:
    raw = element.get(name)
    if raw is None or raw == "":
        return 0
    try:
        value = int(raw)
    except ValueError:
        # Some writers emit "3.0"
        try:
            as_float = float(raw)
        except ValueError as exc:
            raise ReportParseError(
                f"{path.name}: attribute {name}={raw!r} is not a number"
            ) from exc
        # inf and nan are never integral
        if not as_float.is_integer():
            raise ReportParseError(
                f"{path.name}: attribute {name}={raw!r} is not a whole number"
            )
        value = int(as_float)
    if value < 0:
        raise ReportParseError(f"{path.name}: attribute {name}={raw!r} is negative")
    return value


class ArtifactExtractor:
    """Parses test reports and compiler diagnostics into result records.

    Parameters
    ----------
    trace_lines:
        Maximum lines kept from each failure's stack trace.
    patterns:
        Diagnostic pattern set.  Defaults to the single lenient pattern.
    """

    def __init__(
        self,
        trace_lines: int = DEFAULT_TRACE_LINES,
        patterns: DiagnosticPatternSet | None = None,
    ) -> None:
        self._trace_lines = trace_lines
        self._patterns = patterns or DiagnosticPatternSet()
        self._consumed: set[ParseKey] = set()
        self._lock = threading.Lock()

    @property
    def patterns(self) -> DiagnosticPatternSet:
        return self._patterns

    # ------------------------------------------------------------------
    # ParseKey bookkeeping
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Forget consumed keys; called when a new session starts."""
        with self._lock:
            self._consumed.clear()

    def consume(self, key: ParseKey) -> bool:
        """Mark *key* consumed.  Returns False if it already was."""
        with self._lock:
            if key in self._consumed:
                return False
            self._consumed.add(key)
            return True

    def is_consumed(self, key: ParseKey) -> bool:
        return key in self._consumed

    # ------------------------------------------------------------------
    # Test reports
    # ------------------------------------------------------------------

    def parse_reports(
        self,
        basedir: Path,
        kind: ReportKind,
        *,
        key: ParseKey | None = None,
        on_warning: Callable[[str], None] | None = None,
    ) -> TestSummary:
        """Aggregate every report file for *kind* under *basedir*.

        When *key* has been consumed already this session, nothing is
        read and the returned summary has ``consumed=False``.
        """
        if key is not None and not self.consume(key):
            logger.debug("Report set %s already parsed; skipping", key)
            return TestSummary.already_consumed()
        return self.parse_reports_dir(Path(basedir) / kind.reports_subdir, on_warning)

    def parse_reports_dir(
        self,
        reports_dir: Path,
        on_warning: Callable[[str], None] | None = None,
    ) -> TestSummary:
        """Aggregate every ``TEST-*.xml`` file in *reports_dir*.

        A malformed file is skipped with a warning; the rest still count.
        """
        reports_dir = Path(reports_dir)
        if not reports_dir.is_dir():
            logger.debug("No reports at %s", reports_dir)
            return TestSummary()

        total = failures = errors = skipped = 0
        cases: list[TestCaseResult] = []
        warnings: list[str] = []

        for report in sorted(reports_dir.glob(REPORT_GLOB)):
            try:
                counts, file_cases = self._parse_report_file(report)
            except ReportParseError as exc:
                message = f"skipped malformed report {report.name}: {exc}"
                logger.warning("%s", message)
                warnings.append(message)
                if on_warning is not None:
                    on_warning(message)
                continue
            total += counts[0]
            failures += counts[1]
            errors += counts[2]
            skipped += counts[3]
            cases.extend(file_cases)

        return TestSummary(
            total=total,
            failures=failures,
            errors=errors,
            skipped=skipped,
            cases=cases,
            warnings=warnings,
        )

    def _parse_report_file(
        self, path: Path
    ) -> tuple[tuple[int, int, int, int], list[TestCaseResult]]:
        try:
            root = ET.parse(path).getroot()
        except (ET.ParseError, OSError) as exc:
            raise ReportParseError(str(exc)) from exc

        if root.tag == "testsuite":
            suites = [root]
        elif root.tag == "testsuites":
            suites = root.findall("testsuite")
        else:
            raise ReportParseError(f"unexpected root element <{root.tag}>")

        total = failures = errors = skipped = 0
        cases: list[TestCaseResult] = []
        for suite in suites:
            total += _int_attr(suite, "tests", path)
            failures += _int_attr(suite, "failures", path)
            errors += _int_attr(suite, "errors", path)
            skipped += _int_attr(suite, "skipped", path)
            suite_name = suite.get("name", "")
            for testcase in suite.iter("testcase"):
                result = self._failed_case(testcase, suite_name)
                if result is not None:
                    cases.append(result)
        return (total, failures, errors, skipped), cases

    def _failed_case(self, testcase: ET.Element, suite_name: str) -> TestCaseResult | None:
        for tag, status in (("failure", TestStatus.FAILED), ("error", TestStatus.ERROR)):
            detail = testcase.find(tag)
            if detail is None:
                continue
            trace = detail.text or ""
            message = detail.get("message") or ""
            if not message and trace.strip():
                message = trace.strip().splitlines()[0]
            return TestCaseResult(
                class_name=testcase.get("classname") or suite_name,
                case_name=testcase.get("name", ""),
                status=status,
                message=message.strip(),
                trace=cap_lines(trace, self._trace_lines),
            )
        return None

    # ------------------------------------------------------------------
    # Compiler diagnostics
    # ------------------------------------------------------------------

    def parse_diagnostics(self, raw_text: str | None) -> list[CompilerDiagnostic]:
        """Diagnostics in *raw_text* in encounter order; empty if none match."""
        if not raw_text:
            return []
        return self._patterns.parse(raw_text)
