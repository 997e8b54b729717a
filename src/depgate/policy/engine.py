"""Deterministic rule engine: ordered fold of matching rules over a base policy."""

from __future__ import annotations

import logging
from dataclasses import replace
from fnmatch import fnmatchcase
from functools import reduce
from typing import TYPE_CHECKING, Any

from depgate.errors import InvalidRuleError
from depgate.policy.types import (
    REPLACEMENT_LABEL,
    SECURITY_LABEL,
    Candidate,
    Decision,
    EffectivePolicy,
    ListMergeMode,
    Rule,
    UpdateType,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from depgate.policy.types import PolicyDocument

logger = logging.getLogger(__name__)

OVERRIDE_VULNERABILITY = "vulnerability-fix"
OVERRIDE_MAJOR = "major-update"
OVERRIDE_REPLACEMENT = "replacement-update"


def check_rule(rule: Rule) -> None:
    """Reject matchers that are present but empty."""
    for field_name in ("match_managers", "match_update_types", "match_source_urls"):
        value = getattr(rule, field_name)
        if value is not None and len(value) == 0:
            raise InvalidRuleError(
                f"rule `{rule.name}` has an empty `{field_name}` matcher; "
                "use None to match any value"
            )


def match_rule(rule: Rule, candidate: Candidate) -> bool:
    """All declared matchers must hold; absent matchers match anything."""
    check_rule(rule)

    if rule.match_managers is not None and candidate.manager not in rule.match_managers:
        return False
    if rule.match_update_types is not None and candidate.update_type not in rule.match_update_types:
        return False
    if rule.match_source_urls is not None:
        if candidate.source_url is None:
            return False
        if not any(fnmatchcase(candidate.source_url, pattern) for pattern in rule.match_source_urls):
            return False
    return True


def merge_effects(
    policy: EffectivePolicy,
    rule: Rule,
    list_merge: ListMergeMode = ListMergeMode.REPLACE,
) -> EffectivePolicy:
    """Return a new policy with the rule's set fields layered on top."""
    effects = rule.effects
    changes: dict[str, object] = {"matched_rules": (*policy.matched_rules, rule.name)}

    if effects.automerge is not None:
        changes["automerge"] = effects.automerge
    if effects.platform_automerge is not None:
        changes["platform_automerge"] = effects.platform_automerge
    if effects.minimum_release_age is not None:
        changes["minimum_release_age"] = effects.minimum_release_age
    if effects.dependency_dashboard_approval is not None:
        changes["dependency_dashboard_approval"] = effects.dependency_dashboard_approval
    if effects.group_name is not None:
        changes["group_name"] = effects.group_name

    if effects.add_labels is not None:
        changes["labels"] = _merge_list(policy.labels, effects.add_labels, list_merge)
    if effects.schedule is not None:
        changes["schedule"] = _merge_list(policy.schedule, effects.schedule, list_merge)

    return replace(policy, **changes)


def apply_overrides(policy: EffectivePolicy, candidate: Candidate) -> EffectivePolicy:
    """Apply fixed-precedence safety overrides after generic rule merging."""
    if candidate.is_vulnerability_fix:
        policy = replace(
            policy,
            automerge=False,
            labels=_add_label(policy.labels, SECURITY_LABEL),
            overrides=(*policy.overrides, OVERRIDE_VULNERABILITY),
        )
    if candidate.update_type == UpdateType.MAJOR:
        policy = replace(
            policy,
            automerge=False,
            dependency_dashboard_approval=True,
            overrides=(*policy.overrides, OVERRIDE_MAJOR),
        )
    if candidate.update_type == UpdateType.REPLACEMENT:
        policy = replace(
            policy,
            automerge=False,
            labels=_add_label(policy.labels, REPLACEMENT_LABEL),
            overrides=(*policy.overrides, OVERRIDE_REPLACEMENT),
        )
    return policy


def evaluate(
    candidate: Candidate,
    rules: Sequence[Rule],
    base: EffectivePolicy,
    *,
    list_merge: ListMergeMode = ListMergeMode.REPLACE,
) -> EffectivePolicy:
    """Compute the effective policy for one candidate.

    Raises:
        InvalidRuleError: If any rule declares an empty matcher list
    """
    for rule in rules:
        check_rule(rule)

    seed = replace(base, matched_rules=(), overrides=())
    merged = reduce(
        lambda policy, rule: merge_effects(policy, rule, list_merge),
        (rule for rule in rules if match_rule(rule, candidate)),
        seed,
    )
    return apply_overrides(merged, candidate)


def evaluate_many(
    candidates: Iterable[Candidate | Mapping[str, Any]],
    document: PolicyDocument,
) -> list[Decision]:
    """Evaluate candidates independently; one failure never aborts the rest.

    Items may be Candidates or raw update-feed records (see
    ``Candidate.from_record``).
    """
    decisions: list[Decision] = []
    for index, item in enumerate(candidates):
        try:
            candidate = item if isinstance(item, Candidate) else Candidate.from_record(item)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping candidate #%d: %s", index, exc)
            decisions.append(Decision(candidate=None, policy=None, error=str(exc)))
            continue

        try:
            policy = evaluate(candidate, document.rules, document.base, list_merge=document.list_merge)
        except InvalidRuleError as exc:
            logger.warning("Evaluation failed for %s/%s: %s", candidate.manager, candidate.update_type.value, exc)
            decisions.append(Decision(candidate=candidate, policy=None, error=str(exc)))
            continue
        decisions.append(Decision(candidate=candidate, policy=policy))
    return decisions


def _merge_list(current: tuple, incoming: tuple, list_merge: ListMergeMode) -> tuple:
    if list_merge is ListMergeMode.UNION:
        return tuple(dict.fromkeys((*current, *incoming)))
    return tuple(dict.fromkeys(incoming))


def _add_label(labels: tuple[str, ...], label: str) -> tuple[str, ...]:
    if label in labels:
        return labels
    return (*labels, label)
