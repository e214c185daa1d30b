"""Tests for the verify phase."""

from __future__ import annotations

import pytest
from conftest import SETUP_STATE, state_values

from project_verifier.phases import VerifyPhase

pytestmark = pytest.mark.unit

VERIFY_PREFIX = ("-ntp", "-Dtest=Project1Test*", "-DexcludedGroups=none()|!verify")
DEBUG_PREFIX = ("-ntp", "-Dtest=Project1Test*", "-DexcludedGroups=verify")


def test_passing_run_records_success(harness_factory) -> None:
    h = harness_factory(values=state_values(SETUP_STATE))

    result = VerifyPhase(h.services).run()

    assert not result.failed
    assert result.state.passed is True
    assert h.backend.values["passed"] == "true"
    assert h.backend.values["message"] == "All Project 1 verification tests of v1.2.3 passed!"
    assert h.runner.ran("mvn", *VERIFY_PREFIX)
    assert not h.runner.ran("mvn", *DEBUG_PREFIX)
    assert h.runner.ran("java", "--version")
    assert "Verification Testing Phase" in h.log


def test_failing_run_runs_debug_tests_and_fails(harness_factory) -> None:
    h = harness_factory(values=state_values(SETUP_STATE))
    h.runner.fail("mvn", *VERIFY_PREFIX)

    result = VerifyPhase(h.services).run()

    assert result.failed
    assert result.message == "One or more Project 1 verification tests of v1.2.3 failed."
    assert h.runner.ran("mvn", *DEBUG_PREFIX)
    assert h.backend.values["passed"] == "false"
    assert (
        "::error::Unable to verify project. One or more Project 1 verification tests of v1.2.3 failed."
        in h.log
    )


def test_lint_warnings_annotate_without_counting(harness_factory) -> None:
    h = harness_factory(values=state_values(SETUP_STATE))
    h.runner.fail("mvn", "-ntp", "-DcompileOptionXlint=-Xlint:all")

    result = VerifyPhase(h.services).run()

    assert not result.failed
    assert "::warning::Unable to compile code without warnings." in h.log
    assert "warnings" not in h.backend.values
    assert result.status["mainWarnings"] == 1


def test_main_compile_failure_skips_tests(harness_factory) -> None:
    h = harness_factory(values=state_values(SETUP_STATE))
    h.runner.fail(
        "mvn",
        "-ntp",
        "-DcompileOptionXlint=-Xlint:none",
        "-DcompileOptionXdoclint=-Xdoclint:none",
        "-Dmaven.compiler.showWarnings=false",
    )

    result = VerifyPhase(h.services).run()

    assert result.failed
    assert result.message == "Recompiling returned non-zero exit code (1)."
    assert not h.runner.ran("mvn", *VERIFY_PREFIX)
    assert "passed" not in h.backend.values
    assert h.backend.values["project"] == "1"


def test_test_compile_failure_is_fatal(harness_factory) -> None:
    h = harness_factory(values=state_values(SETUP_STATE))
    h.runner.fail(
        "mvn",
        "-ntp",
        "-DcompileOptionXlint=-Xlint:none",
        "-DcompileOptionXdoclint=-Xdoclint:none",
        "-DcompileOptionFail=false",
    )

    result = VerifyPhase(h.services).run()

    assert result.failed
    assert result.message == "Compiling returned non-zero exit code (1)."
    assert not h.runner.ran("mvn", *VERIFY_PREFIX)


def test_missing_setup_state_fails_without_running_commands(harness_factory) -> None:
    h = harness_factory()

    result = VerifyPhase(h.services).run()

    assert result.failed
    assert result.message == "Missing state from an earlier phase: project, version, tester."
    assert h.runner.calls == []
    assert "No keys to restore." in h.log
