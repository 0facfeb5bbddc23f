"""Shared test fixtures for silentspy."""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from silentspy.config import SpySettings
from silentspy.core.artifact_extractor import ArtifactExtractor
from silentspy.core.coordinator import SessionCoordinator
from silentspy.core.emitter import ProtocolEmitter
from silentspy.core.unit_registry import ExecutionUnitRegistry
from silentspy.models.events import ModuleRef, UnitKey


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def out() -> io.StringIO:
    """Stream standing in for the host's console."""
    return io.StringIO()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> ExecutionUnitRegistry:
    """Registry with small buffers so truncation is cheap to reach."""
    return ExecutionUnitRegistry(buffer_capacity=1024, head_bytes=256)


@pytest.fixture
def extractor() -> ArtifactExtractor:
    return ArtifactExtractor(trace_lines=5)


@pytest.fixture
def emitter(out: io.StringIO) -> ProtocolEmitter:
    return ProtocolEmitter(out, prefix="MSE")


@pytest.fixture
def coordinator(
    registry: ExecutionUnitRegistry,
    extractor: ArtifactExtractor,
    emitter: ProtocolEmitter,
    clock: FakeClock,
) -> SessionCoordinator:
    """A coordinator wired to the in-memory test collaborators."""
    return SessionCoordinator(registry, extractor, emitter, clock=clock)


@pytest.fixture
def active_settings() -> SpySettings:
    """Settings for an active spy that leaves sys.stdout alone."""
    return SpySettings(active=True, capture_streams=False, trace_lines=5)


# ---------------------------------------------------------------------------
# Factories shared across test modules
# ---------------------------------------------------------------------------


@pytest.fixture
def make_module(tmp_path: Path) -> Callable[..., ModuleRef]:
    """Factory fixture: a module whose base dir lives under tmp_path."""

    def _factory(artifact_id: str = "core", group_id: str = "com.acme") -> ModuleRef:
        basedir = tmp_path / artifact_id
        basedir.mkdir(parents=True, exist_ok=True)
        return ModuleRef(group_id=group_id, artifact_id=artifact_id, basedir=basedir)

    return _factory


@pytest.fixture
def make_unit() -> Callable[..., UnitKey]:
    """Factory fixture: build a UnitKey with sensible defaults."""

    def _factory(
        plugin: str = "maven-surefire-plugin",
        goal: str = "test",
        module: str = "core",
        **overrides: Any,
    ) -> UnitKey:
        defaults: dict[str, Any] = {
            "plugin": plugin,
            "goal": goal,
            "execution_id": f"default-{goal}",
            "module": module,
        }
        defaults.update(overrides)
        return UnitKey(**defaults)

    return _factory


def report_xml(
    name: str,
    tests: int,
    failures: int = 0,
    errors: int = 0,
    skipped: int = 0,
    cases: str = "",
) -> str:
    """Minimal surefire-style report document."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<testsuite name="{name}" tests="{tests}" failures="{failures}" '
        f'errors="{errors}" skipped="{skipped}">\n'
        f"{cases}"
        "</testsuite>\n"
    )


@pytest.fixture
def write_report() -> Callable[..., Path]:
    """Factory fixture: write one TEST-<name>.xml into a report directory."""

    def _factory(
        reports_dir: Path,
        name: str,
        tests: int,
        failures: int = 0,
        errors: int = 0,
        skipped: int = 0,
        cases: str = "",
    ) -> Path:
        reports_dir.mkdir(parents=True, exist_ok=True)
        path = reports_dir / f"TEST-{name}.xml"
        path.write_text(
            report_xml(name, tests, failures, errors, skipped, cases), encoding="utf-8"
        )
        return path

    return _factory
