"""Session lifecycle models — the coordinator's state table."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SessionState(str, Enum):
    """Lifecycle of one build session as seen by the coordinator."""

    IDLE = "idle"
    ACTIVE = "active"
    TERMINATED = "terminated"


# Valid state transitions, enforced by SessionCoordinator._transition.
# TERMINATED is terminal.
VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.ACTIVE},
    SessionState.ACTIVE: {SessionState.TERMINATED},
    SessionState.TERMINATED: set(),
}


class SessionSnapshot(BaseModel):
    """Point-in-time copy of the session aggregates, used for formatting."""

    model_config = ConfigDict(frozen=True)

    module_count: int = 0
    goals: list[str] = []
    tests_total: int = 0
    tests_passed: int = 0
    tests_failed: int = 0
    tests_errors: int = 0
    tests_skipped: int = 0
    compiler_errors: int = 0
    warnings: int = 0
    failed_modules: int = 0
    failed: bool = False
    elapsed_seconds: float = 0.0
