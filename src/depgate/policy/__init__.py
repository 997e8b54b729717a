"""Dependency update policy: rule engine and window evaluator."""

from depgate.policy.engine import apply_overrides, evaluate, evaluate_many, match_rule, merge_effects
from depgate.policy.loader import ensure_default_policy, load_policy, parse_policy, resolve_policy_path
from depgate.policy.window import is_eligible

__all__ = [
    "apply_overrides",
    "ensure_default_policy",
    "evaluate",
    "evaluate_many",
    "is_eligible",
    "load_policy",
    "match_rule",
    "merge_effects",
    "parse_policy",
    "resolve_policy_path",
]
