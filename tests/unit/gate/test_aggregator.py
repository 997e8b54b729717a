"""Gate aggregation verdicts and the per-run state machine."""

from __future__ import annotations

import logging
from itertools import product

import pytest

from depgate.errors import MissingOutcomeError
from depgate.gate.aggregator import GateRun, aggregate
from depgate.gate.types import GateState, JobOutcome, Verdict

PREREQUISITES = ("tests", "fmt_lint", "test_wasm")


def test_one_failure_fails_the_gate() -> None:
    result = aggregate(
        {"tests": "success", "fmt_lint": "failure", "test_wasm": "success"},
        set(PREREQUISITES),
    )

    assert result.verdict is Verdict.FAIL
    assert result.failing == ("fmt_lint",)
    assert result.summary.startswith("Some checks failed")


def test_missing_outcome_counts_as_failure(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="depgate.gate.aggregator"):
        result = aggregate({"tests": "success"}, {"tests", "fmt_lint"})

    assert result.verdict is Verdict.FAIL
    assert result.missing == ("fmt_lint",)
    assert "fmt_lint=missing" in result.summary
    assert "`fmt_lint` has no recorded outcome" in caplog.text


def test_strict_mode_raises_for_missing_outcome() -> None:
    with pytest.raises(MissingOutcomeError) as exc_info:
        aggregate({"tests": "success"}, {"tests", "fmt_lint"}, strict=True)

    assert exc_info.value.job == "fmt_lint"


def test_skipped_jobs_pass() -> None:
    result = aggregate({"tests": "success", "fmt_lint": "skipped"}, {"tests", "fmt_lint"})

    assert result.passed
    assert result.summary == "All checks passed: fmt_lint=skipped, tests=success"


def test_unrelated_outcomes_are_ignored() -> None:
    result = aggregate({"tests": "success", "docs": "failure"}, {"tests"})

    assert result.passed
    assert result.prerequisites == ("tests",)


def test_no_prerequisites_passes() -> None:
    assert aggregate({}, set()).passed


def test_unknown_outcome_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown job outcome"):
        aggregate({"tests": "neutral"}, {"tests"})


@pytest.mark.parametrize("outcomes", list(product(list(JobOutcome), repeat=3)))
def test_verdict_for_every_outcome_combination(outcomes: tuple[JobOutcome, ...]) -> None:
    result = aggregate(dict(zip(PREREQUISITES, outcomes)), PREREQUISITES)

    blocked = any(item in {JobOutcome.FAILURE, JobOutcome.CANCELLED} for item in outcomes)
    assert result.verdict is (Verdict.FAIL if blocked else Verdict.PASS)


def test_gate_run_resolves_once() -> None:
    run = GateRun({"build": frozenset(PREREQUISITES)})
    for job in PREREQUISITES:
        run.record(job, JobOutcome.SUCCESS)

    assert run.state("build") is GateState.PENDING
    result = run.resolve("build")

    assert result.passed
    assert run.state("build") is GateState.PASSED
    with pytest.raises(RuntimeError, match="already resolved"):
        run.resolve("build")


def test_gate_run_outcomes_are_write_once() -> None:
    run = GateRun({"build": frozenset({"tests"})})
    run.record("tests", "success")

    with pytest.raises(ValueError, match="already recorded"):
        run.record("tests", "failure")


def test_gate_run_cancelled_prerequisite_fails() -> None:
    run = GateRun({"build": frozenset({"tests", "fmt_lint"})})
    run.record("tests", "cancelled")
    run.record("fmt_lint", "success")

    assert run.resolve("build").verdict is Verdict.FAIL
    assert run.state("build") is GateState.FAILED


def test_gate_run_rejects_unknown_aggregator() -> None:
    run = GateRun({"build": frozenset({"tests"})})

    with pytest.raises(KeyError):
        run.resolve("deploy")


def test_gate_run_failed_resolution_is_terminal() -> None:
    run = GateRun({"build": frozenset({"tests", "fmt_lint"})})
    run.record("tests", "success")

    with pytest.raises(MissingOutcomeError):
        run.resolve("build", strict=True)

    assert run.state("build") is GateState.FAILED
    with pytest.raises(RuntimeError, match="already resolved as failed"):
        run.resolve("build")
