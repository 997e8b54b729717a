"""Error taxonomy shared by the policy engine and the gate aggregator."""

from __future__ import annotations

POLICY_REASON_MISSING = "POLICY_MISSING"
POLICY_REASON_PARSE_ERROR = "POLICY_PARSE_ERROR"
POLICY_REASON_SCHEMA_INVALID = "POLICY_SCHEMA_INVALID"
RULE_REASON_INVALID = "RULE_INVALID"


class InvalidRuleError(ValueError):
    """Malformed or ambiguous policy document."""

    reason_code: str

    def __init__(self, message: str, reason_code: str = RULE_REASON_INVALID) -> None:
        super().__init__(message)
        self.reason_code = reason_code


class MissingOutcomeError(LookupError):
    """A declared prerequisite job never reported an outcome."""

    job: str

    def __init__(self, job: str) -> None:
        super().__init__(f"Prerequisite `{job}` has no recorded outcome; treating as failure")
        self.job = job


class ClockSkewWarning(UserWarning):
    """Evaluation time precedes the version publish time."""
