"""Load, validate, and normalize policy documents."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfoNotFoundError

import yaml  # type: ignore[import-untyped]

from depgate.errors import (
    POLICY_REASON_MISSING,
    POLICY_REASON_PARSE_ERROR,
    POLICY_REASON_SCHEMA_INVALID,
    InvalidRuleError,
)
from depgate.policy.schedule import parse_duration, parse_schedule
from depgate.policy.types import (
    DEFAULT_POLICY_RELATIVE_PATH,
    POLICY_ENV_VAR,
    UPDATE_TYPES,
    EffectivePolicy,
    ListMergeMode,
    PolicyDocument,
    Rule,
    RuleEffects,
    UpdateType,
)
from depgate.policy.window import resolve_timezone
from depgate.schemas.validator import validate_data

logger = logging.getLogger(__name__)

POLICY_SCHEMA_NAME = "policy_document"

# Keep this literal deterministic and sorted in write path.
DEFAULT_POLICY_TEMPLATE: dict[str, Any] = {
    "timezone": "UTC",
    "listMerge": "replace",
    "automerge": False,
    "platformAutomerge": False,
    "addLabels": ["dependencies"],
    "schedule": ["at any time"],
    "minimumReleaseAge": None,
    "dependencyDashboardApproval": False,
    "packageRules": [
        {
            "name": "cargo-minor-patch",
            "matchManagers": ["cargo"],
            "matchUpdateTypes": ["minor", "patch"],
            "automerge": True,
            "platformAutomerge": True,
            "minimumReleaseAge": "3 days",
        },
        {
            "name": "github-actions-pins",
            "groupName": "github-actions",
            "matchManagers": ["github-actions"],
            "matchUpdateTypes": ["pin", "digest", "minor", "patch"],
            "automerge": True,
            "addLabels": ["dependencies", "ci"],
            "schedule": ["before 6am on monday"],
        },
        {
            "name": "toolchain-weekly",
            "matchSourceUrls": ["https://github.com/rust-lang/**"],
            "schedule": ["every weekend"],
        },
    ],
}


def policy_path_for_repo(repo_root: Path) -> Path:
    """Return canonical policy file path for a repository."""
    return repo_root.resolve() / DEFAULT_POLICY_RELATIVE_PATH


def resolve_policy_path(cli_path: Path | None = None, *, repo_root: Path | None = None) -> Path:
    """Resolve the policy path: CLI flag, then environment, then repo default."""
    if cli_path is not None:
        return cli_path.expanduser().resolve()

    env_path = os.getenv(POLICY_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path).expanduser().resolve()

    return policy_path_for_repo(repo_root or Path.cwd())


def ensure_default_policy(repo_root: Path, *, force: bool = False) -> Path:
    """Create default policy YAML deterministically."""
    output_path = policy_path_for_repo(repo_root)
    if output_path.exists() and not force:
        raise FileExistsError(f"Policy file already exists: {output_path}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    rendered = yaml.safe_dump(DEFAULT_POLICY_TEMPLATE, sort_keys=True)
    output_path.write_text(rendered, encoding="utf-8")
    return output_path


def load_policy(path: Path) -> PolicyDocument:
    """Read a YAML or JSON policy document and normalize it."""
    if not path.exists():
        raise InvalidRuleError(
            f"Missing policy document at {path}. Run `depgate policy init` first.",
            POLICY_REASON_MISSING,
        )

    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise InvalidRuleError(f"{path.name} parse error: {exc}", POLICY_REASON_PARSE_ERROR) from exc

    document = parse_policy(raw, path=path)
    logger.info("Loaded %d rule(s) from %s", len(document.rules), path)
    return document


def parse_policy(raw: Any, *, path: Path | None = None) -> PolicyDocument:
    """Validate a raw mapping against the schema, then normalize it."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InvalidRuleError(
            "policy document parse error: expected mapping at top level",
            POLICY_REASON_PARSE_ERROR,
        )

    errors = validate_data(raw, POLICY_SCHEMA_NAME)
    if errors:
        raise InvalidRuleError(
            "policy document failed schema validation:\n" + "\n".join(f"  - {e}" for e in errors),
            POLICY_REASON_SCHEMA_INVALID,
        )

    timezone = str(raw.get("timezone", "UTC")).strip()
    try:
        resolve_timezone(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidRuleError(f"unknown timezone `{timezone}`") from exc

    base_effects = _normalize_effects(raw, "base policy")
    base = EffectivePolicy(
        automerge=bool(base_effects.automerge),
        platform_automerge=bool(base_effects.platform_automerge),
        labels=base_effects.add_labels or (),
        schedule=base_effects.schedule or (),
        minimum_release_age=base_effects.minimum_release_age,
        dependency_dashboard_approval=bool(base_effects.dependency_dashboard_approval),
        group_name=base_effects.group_name,
    )

    rules = tuple(
        normalize_rule(entry, index) for index, entry in enumerate(raw.get("packageRules") or [])
    )

    return PolicyDocument(
        base=base,
        rules=rules,
        timezone=timezone,
        list_merge=ListMergeMode(raw.get("listMerge", ListMergeMode.REPLACE.value)),
        path=path,
    )


def normalize_rule(entry: dict[str, Any], index: int) -> Rule:
    """Normalize one ``packageRules`` entry into a Rule."""
    name = str(entry.get("name") or entry.get("description") or f"packageRules[{index}]").strip()

    update_types = _normalize_matcher(entry, "matchUpdateTypes", name)
    if update_types is not None:
        unknown = [value for value in update_types if value not in UPDATE_TYPES]
        if unknown:
            raise InvalidRuleError(
                f"rule `{name}` matchUpdateTypes has unknown value(s) {unknown}; "
                f"expected one of {UPDATE_TYPES}"
            )

    return Rule(
        name=name,
        match_managers=_normalize_matcher(entry, "matchManagers", name),
        match_update_types=(
            tuple(UpdateType(value) for value in update_types) if update_types is not None else None
        ),
        match_source_urls=_normalize_matcher(entry, "matchSourceUrls", name),
        effects=_normalize_effects(entry, f"rule `{name}`"),
    )


def _normalize_matcher(entry: dict[str, Any], key: str, rule_name: str) -> tuple[str, ...] | None:
    if key not in entry:
        return None
    values = [str(item).strip() for item in entry[key]]
    values = [item for item in values if item]
    if not values:
        raise InvalidRuleError(
            f"rule `{rule_name}` declares an empty `{key}`; remove the field to match any "
            "value or list at least one value"
        )
    return tuple(dict.fromkeys(values))


def _normalize_effects(entry: dict[str, Any], owner: str) -> RuleEffects:
    if "addLabels" in entry and "labels" in entry:
        raise InvalidRuleError(f"{owner} sets both `addLabels` and `labels`")
    labels_raw = entry.get("addLabels", entry.get("labels"))
    labels = None
    if labels_raw is not None:
        labels = tuple(dict.fromkeys(item.strip() for item in labels_raw if item.strip()))

    try:
        schedule = parse_schedule(entry["schedule"]) if "schedule" in entry else None
        minimum_release_age = parse_duration(entry.get("minimumReleaseAge"))
    except ValueError as exc:
        raise InvalidRuleError(f"{owner}: {exc}") from exc

    group_name = entry.get("groupName")
    return RuleEffects(
        automerge=entry.get("automerge"),
        platform_automerge=entry.get("platformAutomerge"),
        add_labels=labels,
        schedule=schedule,
        minimum_release_age=minimum_release_age,
        dependency_dashboard_approval=entry.get("dependencyDashboardApproval"),
        group_name=group_name.strip() if isinstance(group_name, str) and group_name.strip() else None,
    )

