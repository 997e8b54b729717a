"""Read gate graphs and outcome maps from CI workflow artifacts."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import yaml  # type: ignore[import-untyped]

from depgate.gate.types import JobOutcome

if TYPE_CHECKING:
    from pathlib import Path

    from depgate.gate.types import GateGraph


def load_workflow_jobs(workflow_path: Path) -> dict[str, dict[str, Any]]:
    """Return the ``jobs`` mapping of a workflow file."""
    try:
        raw = yaml.safe_load(workflow_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"{workflow_path.name} parse error: {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"{workflow_path.name}: expected mapping at top level")

    jobs = raw.get("jobs")
    if not isinstance(jobs, dict) or not jobs:
        raise ValueError(f"{workflow_path.name}: missing non-empty `jobs` mapping")
    for name, job in jobs.items():
        if not isinstance(job, dict):
            raise ValueError(f"{workflow_path.name}: job `{name}` must be a mapping")
    return jobs


def load_gate_graph(workflow_path: Path) -> GateGraph:
    """Map every job with ``needs`` to its prerequisite set."""
    jobs = load_workflow_jobs(workflow_path)
    graph: dict[str, frozenset[str]] = {}

    for name in sorted(jobs):
        needs = _normalize_needs(jobs[name].get("needs"), name)
        if not needs:
            continue
        unknown = sorted(needs - set(jobs))
        if unknown:
            raise ValueError(f"job `{name}` needs undefined job(s): {', '.join(unknown)}")
        graph[name] = needs

    return graph


def find_aggregator_jobs(workflow_path: Path) -> tuple[str, ...]:
    """Jobs that always run after their prerequisites, whatever the outcome."""
    jobs = load_workflow_jobs(workflow_path)
    found = []
    for name in sorted(jobs):
        condition = str(jobs[name].get("if", ""))
        if "always()" in condition and jobs[name].get("needs"):
            found.append(name)
    return tuple(found)


def parse_needs_payload(payload: Any) -> dict[str, JobOutcome]:
    """Parse ``{"job": {"result": "success"}}`` or ``{"job": "success"}``."""
    if not isinstance(payload, dict):
        raise ValueError("outcome payload must be a JSON object keyed by job name")

    outcomes: dict[str, JobOutcome] = {}
    for job, value in payload.items():
        if isinstance(value, dict):
            if "result" not in value:
                raise ValueError(f"outcome for `{job}` is missing `result`")
            value = value["result"]
        outcomes[str(job)] = JobOutcome.parse(value)
    return outcomes


def load_outcomes(path: Path) -> dict[str, JobOutcome]:
    """Load an outcome map from a JSON file."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path.name} parse error: {exc}") from exc
    return parse_needs_payload(payload)


def _normalize_needs(value: Any, job: str) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value})
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return frozenset(value)
    raise ValueError(f"job `{job}` has malformed `needs`")
