"""Policy domain types for dependency update decisions."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_POLICY_RELATIVE_PATH = Path(".depgate/policy.yaml")
POLICY_ENV_VAR = "DEPGATE_POLICY"

SECURITY_LABEL = "security"
REPLACEMENT_LABEL = "replacement"

WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class UpdateType(str, Enum):
    """Kind of version change a candidate proposes."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    PIN = "pin"
    DIGEST = "digest"
    ROLLBACK = "rollback"
    BUMP = "bump"
    REPLACEMENT = "replacement"


UPDATE_TYPES: tuple[str, ...] = tuple(item.value for item in UpdateType)


class ListMergeMode(str, Enum):
    """How list-valued effects combine when several rules match."""

    REPLACE = "replace"
    UNION = "union"


@dataclass(frozen=True)
class Candidate:
    """A proposed dependency or pin update awaiting a merge decision.

    ``current_time`` is the evaluation time recorded with the decision;
    ``is_eligible`` still takes ``now`` explicitly.
    """

    manager: str
    update_type: UpdateType
    source_url: str | None = None
    is_vulnerability_fix: bool = False
    current_time: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.manager, str) or not self.manager.strip():
            raise ValueError("candidate manager must be a non-empty string")
        try:
            update_type = UpdateType(self.update_type)
        except ValueError as exc:
            raise ValueError(
                f"unknown update type `{self.update_type}`; expected one of {UPDATE_TYPES}"
            ) from exc
        object.__setattr__(self, "update_type", update_type)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Candidate:
        """Build a candidate from an update-feed record (camelCase keys)."""
        if "manager" not in record or "updateType" not in record:
            raise ValueError("candidate record needs `manager` and `updateType`")
        return cls(
            manager=record["manager"],
            update_type=record["updateType"],
            source_url=record.get("sourceUrl"),
            is_vulnerability_fix=bool(record.get("isVulnerabilityFix", False)),
        )


@dataclass(frozen=True)
class ScheduleWindow:
    """Recurring day-of-week + hour range, start inclusive and end exclusive."""

    days: tuple[str, ...]
    start_hour: int = 0
    end_hour: int = 24

    def __post_init__(self) -> None:
        if not self.days:
            raise ValueError("schedule window needs at least one day")
        unknown = [day for day in self.days if day not in WEEKDAYS]
        if unknown:
            raise ValueError(f"unknown weekday(s): {', '.join(unknown)}")
        if not 0 <= self.start_hour < self.end_hour <= 24:
            raise ValueError(
                f"schedule window hours must satisfy 0 <= start < end <= 24, "
                f"got {self.start_hour}..{self.end_hour}"
            )

    def contains(self, moment: datetime) -> bool:
        day = WEEKDAYS[moment.weekday()]
        return day in self.days and self.start_hour <= moment.hour < self.end_hour

    def describe(self) -> str:
        return f"{','.join(self.days)} {self.start_hour:02d}:00-{self.end_hour:02d}:00"


@dataclass(frozen=True)
class RuleEffects:
    """Policy fields a rule sets. ``None`` means the rule leaves the field alone."""

    automerge: bool | None = None
    platform_automerge: bool | None = None
    add_labels: tuple[str, ...] | None = None
    schedule: tuple[ScheduleWindow, ...] | None = None
    minimum_release_age: timedelta | None = None
    dependency_dashboard_approval: bool | None = None
    group_name: str | None = None


@dataclass(frozen=True)
class Rule:
    """Named matcher + effect pair.

    Matcher fields set to ``None`` match any candidate. An empty tuple is
    ambiguous and rejected by the engine.
    """

    name: str
    match_managers: tuple[str, ...] | None = None
    match_update_types: tuple[UpdateType, ...] | None = None
    match_source_urls: tuple[str, ...] | None = None
    effects: RuleEffects = field(default_factory=RuleEffects)

    def __post_init__(self) -> None:
        if self.match_update_types is not None:
            object.__setattr__(
                self,
                "match_update_types",
                tuple(UpdateType(value) for value in self.match_update_types),
            )


@dataclass(frozen=True)
class EffectivePolicy:
    """Fully merged decision for one candidate."""

    automerge: bool = False
    platform_automerge: bool = False
    labels: tuple[str, ...] = ()
    schedule: tuple[ScheduleWindow, ...] = ()
    minimum_release_age: timedelta | None = None
    dependency_dashboard_approval: bool = False
    group_name: str | None = None
    matched_rules: tuple[str, ...] = ()
    overrides: tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyDocument:
    """Normalized policy document: base policy plus ordered rules."""

    base: EffectivePolicy
    rules: tuple[Rule, ...]
    timezone: str = "UTC"
    list_merge: ListMergeMode = ListMergeMode.REPLACE
    path: Path | None = None


@dataclass(frozen=True)
class Eligibility:
    """Window evaluator verdict with the gates that failed."""

    eligible: bool
    reason: str
    failed_gates: tuple[str, ...] = ()


@dataclass(frozen=True)
class Decision:
    """Outcome of one isolated candidate evaluation.

    ``candidate`` is None when the input record could not be parsed.
    """

    candidate: Candidate | None
    policy: EffectivePolicy | None
    error: str | None = None
