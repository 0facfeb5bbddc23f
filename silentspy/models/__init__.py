"""silentspy data models — all Pydantic v2, all frozen (immutable)."""

from silentspy.models.events import (
    BuildEvent,
    EventType,
    FailureCause,
    ModuleRef,
    UnitKey,
)
from silentspy.models.results import (
    CompilerDiagnostic,
    ParseKey,
    ReportKind,
    TestCaseResult,
    TestStatus,
    TestSummary,
)
from silentspy.models.session import VALID_TRANSITIONS, SessionSnapshot, SessionState

__all__ = [
    # events
    "EventType",
    "ModuleRef",
    "UnitKey",
    "FailureCause",
    "BuildEvent",
    # results
    "TestStatus",
    "ReportKind",
    "TestCaseResult",
    "TestSummary",
    "CompilerDiagnostic",
    "ParseKey",
    # session
    "SessionState",
    "VALID_TRANSITIONS",
    "SessionSnapshot",
]
