"""Gate aggregation domain types."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class JobOutcome(str, Enum):
    """Terminal state reported by the execution platform for one job."""

    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str | JobOutcome) -> JobOutcome:
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(
                f"unknown job outcome `{value}`; expected one of {[item.value for item in cls]}"
            ) from None


BLOCKING_OUTCOMES = frozenset({JobOutcome.FAILURE, JobOutcome.CANCELLED})


class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class GateState(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


GateGraph = Mapping[str, frozenset[str]]


@dataclass(frozen=True)
class GateResult:
    """One deterministic verdict over a set of prerequisites."""

    verdict: Verdict
    prerequisites: tuple[str, ...]
    outcomes: dict[str, str]
    failing: tuple[str, ...]
    missing: tuple[str, ...]
    summary: str

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS
