"""Combine prerequisite job outcomes into a single pass/fail verdict."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depgate.errors import MissingOutcomeError
from depgate.gate.types import BLOCKING_OUTCOMES, GateResult, GateState, JobOutcome, Verdict

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from depgate.gate.types import GateGraph

logger = logging.getLogger(__name__)


def aggregate(
    outcomes: Mapping[str, JobOutcome | str],
    prerequisites: Iterable[str],
    *,
    strict: bool = False,
) -> GateResult:
    """Render one verdict: any failure or cancellation fails the gate.

    A prerequisite without an outcome counts as a failure. With ``strict``
    it raises MissingOutcomeError instead.
    """
    required = tuple(sorted(set(prerequisites)))
    resolved: dict[str, str] = {}
    failing: list[str] = []
    missing: list[str] = []

    for job in required:
        if job not in outcomes:
            error = MissingOutcomeError(job)
            if strict:
                raise error
            logger.warning("%s", error)
            missing.append(job)
            failing.append(job)
            resolved[job] = JobOutcome.FAILURE.value
            continue

        outcome = JobOutcome.parse(outcomes[job])
        resolved[job] = outcome.value
        if outcome in BLOCKING_OUTCOMES:
            failing.append(job)

    verdict = Verdict.FAIL if failing else Verdict.PASS
    summary = _summarize(verdict, required, resolved, missing)
    logger.info("%s", summary)

    return GateResult(
        verdict=verdict,
        prerequisites=required,
        outcomes=resolved,
        failing=tuple(failing),
        missing=tuple(missing),
        summary=summary,
    )


class GateRun:
    """Outcomes for one pipeline run, each written once and read once."""

    def __init__(self, graph: GateGraph) -> None:
        self.graph = {job: frozenset(needs) for job, needs in graph.items()}
        self._outcomes: dict[str, JobOutcome] = {}
        self._states: dict[str, GateState] = {job: GateState.PENDING for job in self.graph}

    def record(self, job: str, outcome: JobOutcome | str) -> None:
        if job in self._outcomes:
            raise ValueError(f"Outcome for `{job}` already recorded as {self._outcomes[job].value}")
        self._outcomes[job] = JobOutcome.parse(outcome)

    def state(self, aggregator_job: str) -> GateState:
        return self._states[self._require_aggregator(aggregator_job)]

    def resolve(self, aggregator_job: str, *, strict: bool = False) -> GateResult:
        job = self._require_aggregator(aggregator_job)
        if self._states[job] is not GateState.PENDING:
            raise RuntimeError(f"Gate `{job}` already resolved as {self._states[job].value}")

        try:
            result = aggregate(self._outcomes, self.graph[job], strict=strict)
        except (MissingOutcomeError, ValueError):
            self._states[job] = GateState.FAILED
            raise
        self._states[job] = GateState.PASSED if result.passed else GateState.FAILED
        return result

    def _require_aggregator(self, job: str) -> str:
        if job not in self.graph:
            raise KeyError(f"`{job}` is not an aggregator job in this gate graph")
        return job


def _summarize(
    verdict: Verdict,
    required: tuple[str, ...],
    resolved: dict[str, str],
    missing: list[str],
) -> str:
    if not required:
        return "All checks passed (no prerequisites)"
    parts = ", ".join(
        f"{job}=missing" if job in missing else f"{job}={resolved[job]}" for job in required
    )
    if verdict is Verdict.PASS:
        return f"All checks passed: {parts}"
    return f"Some checks failed: {parts}"
