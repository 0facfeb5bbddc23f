"""Tests for SessionCoordinator — state machine, suppression, per-event output."""

from __future__ import annotations

import io

import pytest

from silentspy.core.coordinator import (
    BuildSession,
    InvalidTransitionError,
    SessionCoordinator,
)
from silentspy.core.unit_registry import ExecutionUnitRegistry
from silentspy.models.events import BuildEvent, EventType, FailureCause
from silentspy.models.results import ReportKind, TestSummary
from silentspy.models.session import SessionState

FAILED_CASE = (
    '<testcase name="addsItem" classname="com.acme.CartTest">'
    '<failure message="boom">trace line</failure></testcase>'
)


def _lines(out: io.StringIO) -> list[str]:
    return out.getvalue().splitlines()


class TestStateMachine:
    def test_starts_idle(self, coordinator: SessionCoordinator):
        assert coordinator.state is SessionState.IDLE
        assert coordinator.session is None

    def test_events_before_start_are_ignored(
        self, coordinator: SessionCoordinator, out: io.StringIO, make_unit, make_module
    ):
        unit = make_unit()
        for event in (
            BuildEvent.unit_started(unit),
            BuildEvent.unit_failed(unit, make_module(), RuntimeError("x")),
            BuildEvent.module_failed(make_module()),
            BuildEvent.session_ended(),
        ):
            coordinator.handle(event)

        assert out.getvalue() == ""
        assert coordinator.state is SessionState.IDLE
        assert coordinator.session is None

    def test_session_start_activates(self, coordinator: SessionCoordinator, out: io.StringIO):
        coordinator.handle(BuildEvent.session_started(2, ["clean", "install"]))
        assert coordinator.state is SessionState.ACTIVE
        assert _lines(out) == ["MSE:SESSION_START modules=2 goals=clean,install"]

    def test_second_session_start_while_active_is_ignored(
        self, coordinator: SessionCoordinator, out: io.StringIO
    ):
        coordinator.handle(BuildEvent.session_started(2, ["verify"]))
        coordinator.handle(BuildEvent.session_started(9, ["deploy"]))
        assert len(_lines(out)) == 1
        assert coordinator.session.module_count == 2

    def test_session_end_terminates(self, coordinator: SessionCoordinator):
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.session_ended())
        assert coordinator.state is SessionState.TERMINATED

    def test_terminated_ignores_everything(
        self, coordinator: SessionCoordinator, out: io.StringIO
    ):
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.session_ended())
        before = out.getvalue()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.session_ended())
        assert out.getvalue() == before

    @pytest.mark.parametrize(
        "event_type",
        [
            EventType.PROJECT_DISCOVERY_STARTED,
            EventType.PROJECT_STARTED,
            EventType.PROJECT_SKIPPED,
            EventType.MOJO_SKIPPED,
            EventType.FORK_STARTED,
            EventType.FORK_SUCCEEDED,
            EventType.FORKED_PROJECT_STARTED,
        ],
    )
    def test_noise_is_silent(
        self, coordinator: SessionCoordinator, out: io.StringIO, event_type: EventType
    ):
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent(event_type=event_type))
        assert len(_lines(out)) == 1


class TestBuildSession:
    def test_counters_merge(self, clock):
        session = BuildSession(2, ["verify"], clock=clock)
        session.merge_tests(TestSummary(total=10, failures=1))
        session.merge_tests(TestSummary(total=5, skipped=2, warnings=["w"]))
        clock.advance(3.25)
        snap = session.snapshot()
        assert (snap.tests_total, snap.tests_passed, snap.tests_failed, snap.tests_skipped) == (
            15, 12, 1, 2,
        )
        assert snap.warnings == 1
        assert snap.elapsed_seconds == pytest.approx(3.25)

    def test_failed_flag_is_sticky(self, clock):
        session = BuildSession(1, [], clock=clock)
        session.module_failed()
        session.module_succeeded()
        assert session.failed
        assert session.snapshot().failed_modules == 1

    def test_unit_failure_alone_reports_one_failed(self, clock):
        session = BuildSession(1, [], clock=clock)
        session.mark_failed()
        assert session.snapshot().failed_modules == 1

    def test_negative_counts_never_decrease(self, clock):
        session = BuildSession(1, [], clock=clock)
        session.add_compiler_errors(2)
        session.add_compiler_errors(-5)
        session.add_warnings(-1)
        snap = session.snapshot()
        assert snap.compiler_errors == 2
        assert snap.warnings == 0

    def test_negative_test_summary_never_decreases_totals(self, clock):
        session = BuildSession(1, [], clock=clock)
        session.merge_tests(TestSummary(total=10, failures=1))
        session.merge_tests(TestSummary(total=-7, failures=-1, errors=-2, skipped=-3))
        snap = session.snapshot()
        assert (snap.tests_total, snap.tests_failed, snap.tests_errors, snap.tests_skipped) == (
            10, 1, 0, 0,
        )


class TestTestUnits:
    def test_successful_tests_are_silent_until_summary(
        self, coordinator, out, clock, make_unit, make_module, write_report
    ):
        module = make_module()
        write_report(module.basedir / ReportKind.UNIT.reports_subdir, "A", tests=12, skipped=2)
        unit = make_unit()

        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_succeeded(unit, module))
        coordinator.handle(BuildEvent.module_succeeded(module))
        clock.advance(4.0)
        coordinator.handle(BuildEvent.session_ended())

        assert _lines(out) == [
            "MSE:SESSION_START modules=1 goals=verify",
            "MSE:OK modules=1 tests=10/12 time=4.0s warnings=0",
        ]

    def test_ignored_test_failures_are_reported_on_success(
        self, coordinator, out, make_unit, make_module, write_report
    ):
        module = make_module()
        write_report(
            module.basedir / ReportKind.UNIT.reports_subdir, "Cart",
            tests=3, failures=1, cases=FAILED_CASE,
        )
        unit = make_unit()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_succeeded(unit, module))

        assert "MSE:TESTS total=3 passed=2 failed=1 errors=0 skipped=0" in _lines(out)
        assert coordinator.session.failed is False

    def test_failed_test_unit(self, coordinator, out, make_unit, make_module, write_report):
        module = make_module()
        write_report(
            module.basedir / ReportKind.UNIT.reports_subdir, "Cart",
            tests=3, failures=1, cases=FAILED_CASE,
        )
        unit = make_unit()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_failed(unit, module, RuntimeError("There are test failures")))
        coordinator.handle(BuildEvent.module_failed(module))
        coordinator.handle(BuildEvent.session_ended())

        assert _lines(out)[1:] == [
            "MSE:FAIL maven-surefire-plugin:test @ core",
            "MSE:TESTS total=3 passed=2 failed=1 errors=0 skipped=0",
            "MSE:TEST_FAIL com.acme.CartTest#addsItem",
            "  boom",
            "  trace line",
            "MSE:BUILD_FAILED failed=1 modules=1 tests=2/3 time=0.0s",
        ]

    def test_same_report_set_counted_once(
        self, coordinator, make_unit, make_module, write_report
    ):
        module = make_module()
        write_report(module.basedir / ReportKind.UNIT.reports_subdir, "A", tests=10)
        unit = make_unit()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_succeeded(unit, module))
        # A later corrective notification for the same unit
        coordinator.handle(BuildEvent.unit_failed(unit, module, RuntimeError("late")))

        assert coordinator.session.snapshot().tests_total == 10

    def test_integration_tests_use_failsafe_reports(
        self, coordinator, make_unit, make_module, write_report
    ):
        module = make_module()
        write_report(module.basedir / ReportKind.INTEGRATION.reports_subdir, "IT", tests=6)
        write_report(module.basedir / ReportKind.UNIT.reports_subdir, "UT", tests=100)
        unit = make_unit(plugin="maven-failsafe-plugin", goal="integration-test")
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_succeeded(unit, module))
        assert coordinator.session.snapshot().tests_total == 6

    def test_malformed_report_counts_as_warning(
        self, coordinator, out, make_unit, make_module, write_report
    ):
        module = make_module()
        reports = module.basedir / ReportKind.UNIT.reports_subdir
        write_report(reports, "A", tests=2)
        (reports / "TEST-Bad.xml").write_text("<not-closed", encoding="utf-8")
        unit = make_unit()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_succeeded(unit, module))
        coordinator.handle(BuildEvent.session_ended())
        lines = _lines(out)
        assert lines[1].startswith("MSE:PASSTHROUGH skipped malformed report TEST-Bad.xml")
        assert lines[-1] == "MSE:OK modules=1 tests=2/2 time=0.0s warnings=1"

    def test_malformed_report_announced_on_failed_build(
        self, coordinator, out, make_unit, make_module
    ):
        """BUILD_FAILED has no warnings field, so the skip must be announced inline."""
        module = make_module()
        reports = module.basedir / ReportKind.UNIT.reports_subdir
        reports.mkdir(parents=True)
        (reports / "TEST-bad.xml").write_text("<testsuite", encoding="utf-8")
        unit = make_unit()
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_failed(unit, module, RuntimeError("tests failed")))
        coordinator.handle(BuildEvent.module_failed(module))
        coordinator.handle(BuildEvent.session_ended())

        lines = _lines(out)
        assert lines[1] == "MSE:FAIL maven-surefire-plugin:test @ core"
        assert lines[2].startswith("MSE:PASSTHROUGH skipped malformed report TEST-bad.xml")
        assert lines[-1] == "MSE:BUILD_FAILED failed=1 modules=1 tests=0/0 time=0.0s"
        assert coordinator.state is SessionState.TERMINATED


class TestCompilerUnits:
    def test_compiler_errors_from_cause_chain(self, coordinator, out, make_unit, make_module):
        unit = make_unit(plugin="maven-compiler-plugin", goal="compile")
        cause = FailureCause(
            type_name="MojoExecutionException",
            message="Compilation failure",
            cause=FailureCause(
                type_name="CompilationFailureException",
                message="Compilation failure",
                long_message=(
                    "[ERROR] /src/Cart.java:[12,8] cannot find symbol\n"
                    "[ERROR] /src/Repo.java:[4,1] class, interface, or enum expected\n"
                ),
            ),
        )
        coordinator.handle(BuildEvent.session_started(1, ["compile"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(BuildEvent.unit_failed(unit, make_module(), cause))

        assert _lines(out)[1:] == [
            "MSE:FAIL maven-compiler-plugin:compile @ core",
            "MSE:ERR /src/Cart.java:12:8 cannot find symbol",
            "MSE:ERR /src/Repo.java:4:1 class, interface, or enum expected",
        ]
        assert coordinator.session.snapshot().compiler_errors == 2

    def test_compiler_errors_from_buffered_output(
        self, coordinator, registry: ExecutionUnitRegistry, out, make_unit, make_module
    ):
        unit = make_unit(plugin="maven-compiler-plugin", goal="compile")
        coordinator.handle(BuildEvent.session_started(1, ["compile"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        registry.write(b"[ERROR] /src/Cart.java:[1,2] oops\n")
        coordinator.handle(
            BuildEvent.unit_failed(unit, make_module(), FailureCause(type_name="X", message="failed"))
        )
        assert "MSE:ERR /src/Cart.java:1:2 oops" in _lines(out)

    def test_unparseable_failure_falls_back_to_buffered_output(
        self, coordinator, registry: ExecutionUnitRegistry, out, make_unit, make_module
    ):
        unit = make_unit(plugin="maven-compiler-plugin", goal="compile")
        coordinator.handle(BuildEvent.session_started(1, ["compile"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        registry.write(b"javac crashed: OutOfMemoryError\n")
        coordinator.handle(
            BuildEvent.unit_failed(unit, make_module(), FailureCause(type_name="X", message="failed"))
        )
        assert _lines(out)[1:] == [
            "MSE:FAIL maven-compiler-plugin:compile @ core",
            f"MSE:BUFFERED_OUTPUT_BEGIN {unit.label}",
            "javac crashed: OutOfMemoryError",
            "MSE:BUFFERED_OUTPUT_END",
        ]

    def test_compiler_warnings_counted_on_success(
        self, coordinator, registry: ExecutionUnitRegistry, out, make_unit, make_module
    ):
        unit = make_unit(plugin="maven-compiler-plugin", goal="compile")
        coordinator.handle(BuildEvent.session_started(1, ["compile"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        registry.write(
            b"[WARNING] /src/A.java:[1,1] deprecated\n[WARNING] /src/B.java:[2,2] unchecked\n"
        )
        coordinator.handle(BuildEvent.unit_succeeded(unit, make_module()))
        coordinator.handle(BuildEvent.session_ended())
        assert _lines(out)[-1] == "MSE:OK modules=1 tests=0/0 time=0.0s warnings=2"


class TestOtherUnits:
    def test_other_plugin_failure_emits_cause_when_nothing_buffered(
        self, coordinator, out, make_unit, make_module
    ):
        unit = make_unit(plugin="maven-enforcer-plugin", goal="enforce")
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        coordinator.handle(
            BuildEvent.unit_failed(unit, make_module(), RuntimeError("Rule 0 failed"))
        )
        assert _lines(out)[1:] == [
            "MSE:FAIL maven-enforcer-plugin:enforce @ core",
            f"MSE:BUFFERED_OUTPUT_BEGIN {unit.label}",
            "Rule 0 failed",
            "MSE:BUFFERED_OUTPUT_END",
        ]

    def test_successful_unit_output_is_discarded(
        self, coordinator, registry: ExecutionUnitRegistry, out, make_unit, make_module
    ):
        unit = make_unit(plugin="maven-jar-plugin", goal="jar")
        coordinator.handle(BuildEvent.session_started(1, ["package"]))
        coordinator.handle(BuildEvent.unit_started(unit))
        registry.write(b"Building jar: core.jar\n")
        coordinator.handle(BuildEvent.unit_succeeded(unit, make_module()))
        coordinator.handle(BuildEvent.session_ended())
        assert "Building jar" not in out.getvalue()
        assert registry.active_units == []


class TestUnattributedOutput:
    def test_discarded_on_success(self, coordinator, registry, out):
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        registry.write(b"pool chatter\n")
        coordinator.handle(BuildEvent.session_ended())
        assert "pool chatter" not in out.getvalue()

    def test_flushed_on_failure(self, coordinator, registry, out, make_module):
        coordinator.handle(BuildEvent.session_started(1, ["verify"]))
        registry.write(b"pool chatter\n")
        coordinator.handle(BuildEvent.module_failed(make_module()))
        coordinator.handle(BuildEvent.session_ended())
        assert _lines(out)[1:] == [
            "MSE:BUFFERED_OUTPUT_BEGIN unattributed",
            "pool chatter",
            "MSE:BUFFERED_OUTPUT_END",
            "MSE:BUILD_FAILED failed=1 modules=1 tests=0/0 time=0.0s",
        ]


class TestInternalGuards:
    def test_transition_table_enforced(self, coordinator: SessionCoordinator):
        with pytest.raises(InvalidTransitionError):
            coordinator._transition(SessionState.TERMINATED)
