"""Lifecycle notification models — what the host build tool delivers.

The host emits one ordered stream of notifications.  Only a handful of
them matter to the condenser; the rest are enumerated so they can be
recognised and ignored.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    """Every notification type the host build tool can deliver."""

    PROJECT_DISCOVERY_STARTED = "project_discovery_started"
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    PROJECT_SKIPPED = "project_skipped"
    PROJECT_STARTED = "project_started"
    PROJECT_SUCCEEDED = "project_succeeded"
    PROJECT_FAILED = "project_failed"
    MOJO_SKIPPED = "mojo_skipped"
    MOJO_STARTED = "mojo_started"
    MOJO_SUCCEEDED = "mojo_succeeded"
    MOJO_FAILED = "mojo_failed"
    FORK_STARTED = "fork_started"
    FORK_SUCCEEDED = "fork_succeeded"
    FORK_FAILED = "fork_failed"
    FORKED_PROJECT_STARTED = "forked_project_started"
    FORKED_PROJECT_SUCCEEDED = "forked_project_succeeded"
    FORKED_PROJECT_FAILED = "forked_project_failed"


class ModuleRef(BaseModel):
    """One module (project) of the build."""

    model_config = ConfigDict(frozen=True)

    group_id: str = ""
    artifact_id: str
    basedir: Path | None = None

    @property
    def identity(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


class UnitKey(BaseModel):
    """Identity of one execution unit (plugin goal run against a module).

    A plugin bound several times to the same module is told apart by
    ``execution_id``.
    """

    model_config = ConfigDict(frozen=True)

    plugin: str
    goal: str
    execution_id: str = "default"
    module: str

    @property
    def label(self) -> str:
        return f"{self.plugin}:{self.goal} ({self.execution_id}) @ {self.module}"


class FailureCause(BaseModel):
    """Serializable view of an exception and its cause chain.

    ``long_message`` carries the detailed text some build tools attach to
    their failures (full compiler output, for instance) next to the short
    ``message``.
    """

    model_config = ConfigDict(frozen=True)

    type_name: str
    message: str = ""
    long_message: str | None = None
    cause: FailureCause | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, *, max_depth: int = 16) -> FailureCause:
        """Snapshot *exc* and up to *max_depth* links of its chain.

        Raises
        ------
        ValueError
            If *max_depth* is less than 1.
        """
        if max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {max_depth}")
        chain: list[BaseException] = [exc]
        seen: set[int] = {id(exc)}
        current = exc.__cause__ or exc.__context__
        while current is not None and id(current) not in seen and len(chain) < max_depth:
            seen.add(id(current))
            chain.append(current)
            current = current.__cause__ or current.__context__

        result = cls._snapshot(chain[-1], None)
        for link in reversed(chain[:-1]):
            result = cls._snapshot(link, result)
        return result

    @classmethod
    def _snapshot(cls, exc: BaseException, cause: FailureCause | None) -> FailureCause:
        long_message = getattr(exc, "long_message", None)
        return cls(
            type_name=type(exc).__name__,
            message=str(exc),
            long_message=long_message if isinstance(long_message, str) else None,
            cause=cause,
        )


class BuildEvent(BaseModel):
    """A single lifecycle notification.

    Which optional fields are populated depends on ``event_type``:

    - ``session_started``: ``module_count``, ``goals``
    - ``mojo_started``: ``unit``
    - ``mojo_succeeded``: ``unit``, ``module``
    - ``mojo_failed``: ``unit``, ``module``, ``cause``
    - ``project_succeeded`` / ``project_failed``: ``module``
    """

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    module_count: int = 0
    goals: list[str] = []
    unit: UnitKey | None = None
    module: ModuleRef | None = None
    cause: FailureCause | None = None

    # ------------------------------------------------------------------
    # Constructors for the recognised notifications
    # ------------------------------------------------------------------

    @classmethod
    def session_started(cls, module_count: int, goals: list[str]) -> BuildEvent:
        return cls(
            event_type=EventType.SESSION_STARTED,
            module_count=module_count,
            goals=list(goals),
        )

    @classmethod
    def unit_started(cls, unit: UnitKey) -> BuildEvent:
        return cls(event_type=EventType.MOJO_STARTED, unit=unit)

    @classmethod
    def unit_succeeded(cls, unit: UnitKey, module: ModuleRef | None) -> BuildEvent:
        return cls(event_type=EventType.MOJO_SUCCEEDED, unit=unit, module=module)

    @classmethod
    def unit_failed(
        cls,
        unit: UnitKey,
        module: ModuleRef | None,
        cause: FailureCause | BaseException | None = None,
    ) -> BuildEvent:
        if isinstance(cause, BaseException):
            cause = FailureCause.from_exception(cause)
        return cls(
            event_type=EventType.MOJO_FAILED, unit=unit, module=module, cause=cause
        )

    @classmethod
    def module_succeeded(cls, module: ModuleRef) -> BuildEvent:
        return cls(event_type=EventType.PROJECT_SUCCEEDED, module=module)

    @classmethod
    def module_failed(cls, module: ModuleRef) -> BuildEvent:
        return cls(event_type=EventType.PROJECT_FAILED, module=module)

    @classmethod
    def session_ended(cls) -> BuildEvent:
        return cls(event_type=EventType.SESSION_ENDED)
