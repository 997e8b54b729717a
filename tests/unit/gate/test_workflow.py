"""Gate graph extraction from workflow files and outcome payload parsing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depgate.gate.types import JobOutcome
from depgate.gate.workflow import find_aggregator_jobs, load_gate_graph, load_outcomes, parse_needs_payload


def test_load_gate_graph(build_workflow: Path) -> None:
    graph = load_gate_graph(build_workflow)

    assert dict(graph) == {"build": frozenset({"tests", "fmt_lint", "test_wasm"})}


def test_find_aggregator_jobs(build_workflow: Path) -> None:
    assert find_aggregator_jobs(build_workflow) == ("build",)


def test_string_needs_and_undefined_job(tmp_path: Path) -> None:
    workflow = tmp_path / "wf.yml"
    workflow.write_text(
        "jobs:\n  a:\n    runs-on: x\n  b:\n    needs: a\n  c:\n    needs: [a, ghost]\n",
        encoding="utf-8",
    )

    with pytest.raises(ValueError, match="ghost"):
        load_gate_graph(workflow)


def test_workflow_without_jobs(tmp_path: Path) -> None:
    workflow = tmp_path / "wf.yml"
    workflow.write_text("name: empty\n", encoding="utf-8")

    with pytest.raises(ValueError, match="jobs"):
        load_gate_graph(workflow)


def test_parse_needs_context_payload() -> None:
    payload = {
        "tests": {"result": "success", "outputs": {}},
        "fmt_lint": {"result": "skipped", "outputs": {}},
    }

    assert parse_needs_payload(payload) == {
        "tests": JobOutcome.SUCCESS,
        "fmt_lint": JobOutcome.SKIPPED,
    }


def test_parse_flat_payload() -> None:
    assert parse_needs_payload({"tests": "Cancelled"}) == {"tests": JobOutcome.CANCELLED}


@pytest.mark.parametrize("payload", [[], {"tests": {"outputs": {}}}, {"tests": "pending"}])
def test_parse_payload_rejects_malformed(payload) -> None:
    with pytest.raises(ValueError):
        parse_needs_payload(payload)


def test_load_outcomes_reports_json_errors(tmp_path: Path) -> None:
    path = tmp_path / "needs.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="parse error"):
        load_outcomes(path)

    path.write_text(json.dumps({"tests": {"result": "failure"}}), encoding="utf-8")
    assert load_outcomes(path) == {"tests": JobOutcome.FAILURE}
