"""CI gate aggregation."""

from depgate.gate.aggregator import GateRun, aggregate
from depgate.gate.types import GateResult, GateState, JobOutcome, Verdict
from depgate.gate.workflow import find_aggregator_jobs, load_gate_graph, load_outcomes, parse_needs_payload

__all__ = [
    "GateResult",
    "GateRun",
    "GateState",
    "JobOutcome",
    "Verdict",
    "aggregate",
    "find_aggregator_jobs",
    "load_gate_graph",
    "load_outcomes",
    "parse_needs_payload",
]
