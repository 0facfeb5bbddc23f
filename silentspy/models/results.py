"""Result records recovered from build artifacts."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class TestStatus(str, Enum):
    """Outcome of a single test case."""

    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class ReportKind(str, Enum):
    """Which family of test reports a unit produces."""

    UNIT = "unit"
    INTEGRATION = "integration"

    @property
    def reports_subdir(self) -> str:
        """Conventional report directory, relative to the module base dir."""
        if self is ReportKind.INTEGRATION:
            return "target/failsafe-reports"
        return "target/surefire-reports"


class TestCaseResult(BaseModel):
    """Detail for one failed or errored test case."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    class_name: str
    case_name: str
    status: TestStatus
    message: str = ""
    trace: str = ""  # already capped to the configured number of lines


class TestSummary(BaseModel):
    """Aggregate counts for one report set, plus failure detail.

    ``consumed`` is False when the parse was skipped because its key had
    already been used this session; callers must not merge such a summary.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    total: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0
    cases: list[TestCaseResult] = []
    warnings: list[str] = []
    consumed: bool = True

    @property
    def passed(self) -> int:
        return max(self.total - self.failures - self.errors - self.skipped, 0)

    @property
    def has_failures(self) -> bool:
        return self.failures > 0 or self.errors > 0

    @classmethod
    def already_consumed(cls) -> TestSummary:
        return cls(consumed=False)


class CompilerDiagnostic(BaseModel):
    """One compiler message pinned to a source position."""

    model_config = ConfigDict(frozen=True)

    path: str
    line: int
    column: int
    message: str
    severity: str = "ERROR"


class ParseKey(BaseModel):
    """Identifies one artifact set; consumed at most once per session."""

    model_config = ConfigDict(frozen=True)

    module: str  # group_id:artifact_id
    execution_id: str
    artifact_set: str  # report subdir, e.g. target/surefire-reports

    def __str__(self) -> str:
        return f"{self.module}:{self.execution_id}:{self.artifact_set}"
