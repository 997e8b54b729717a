"""Policy document loading and validation."""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from depgate.errors import InvalidRuleError
from depgate.policy.loader import (
    DEFAULT_POLICY_TEMPLATE,
    ensure_default_policy,
    load_policy,
    parse_policy,
    resolve_policy_path,
)
from depgate.policy.types import ListMergeMode, UpdateType


def test_default_template_round_trips(tmp_path: Path) -> None:
    path = ensure_default_policy(tmp_path)
    document = load_policy(path)

    assert path == tmp_path.resolve() / ".depgate" / "policy.yaml"
    assert [rule.name for rule in document.rules] == [
        "cargo-minor-patch",
        "github-actions-pins",
        "toolchain-weekly",
    ]
    assert document.base.labels == ("dependencies",)
    assert document.base.schedule == ()
    assert document.rules[0].effects.minimum_release_age == timedelta(days=3)
    assert document.rules[0].match_update_types == (UpdateType.MINOR, UpdateType.PATCH)


def test_init_refuses_overwrite(tmp_path: Path) -> None:
    ensure_default_policy(tmp_path)

    with pytest.raises(FileExistsError):
        ensure_default_policy(tmp_path)
    ensure_default_policy(tmp_path, force=True)


def test_init_is_deterministic(tmp_path: Path) -> None:
    first = ensure_default_policy(tmp_path).read_bytes()
    second = ensure_default_policy(tmp_path, force=True).read_bytes()

    assert first == second


def test_json_documents_are_supported(tmp_path: Path) -> None:
    path = tmp_path / "renovate.json"
    path.write_text(json.dumps({"listMerge": "union", "packageRules": [{"automerge": True}]}), encoding="utf-8")

    document = load_policy(path)

    assert document.list_merge is ListMergeMode.UNION
    assert document.rules[0].name == "packageRules[0]"
    assert document.rules[0].match_managers is None


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(InvalidRuleError) as exc_info:
        load_policy(tmp_path / "absent.yaml")

    assert exc_info.value.reason_code == "POLICY_MISSING"


def test_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_text("packageRules: [\n", encoding="utf-8")

    with pytest.raises(InvalidRuleError) as exc_info:
        load_policy(path)

    assert exc_info.value.reason_code == "POLICY_PARSE_ERROR"


def test_undecodable_file_is_a_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.write_bytes(b"automerge: true\n# \xff\xfe\n")

    with pytest.raises(InvalidRuleError) as exc_info:
        load_policy(path)

    assert exc_info.value.reason_code == "POLICY_PARSE_ERROR"


def test_unreadable_path_is_a_parse_error(tmp_path: Path) -> None:
    path = tmp_path / "policy.yaml"
    path.mkdir()

    with pytest.raises(InvalidRuleError) as exc_info:
        load_policy(path)

    assert exc_info.value.reason_code == "POLICY_PARSE_ERROR"


@pytest.mark.parametrize(
    "document",
    [
        {"automerge": "yes"},
        {"unknownKey": True},
        {"packageRules": [{"matchManagers": "cargo"}]},
        {"packageRules": [{"matchDepNames": ["serde"]}]},
        {"listMerge": "append"},
    ],
)
def test_schema_violations(document: dict) -> None:
    with pytest.raises(InvalidRuleError) as exc_info:
        parse_policy(document)

    assert exc_info.value.reason_code == "POLICY_SCHEMA_INVALID"


@pytest.mark.parametrize(
    ("document", "message"),
    [
        ({"packageRules": [{"name": "empty", "matchManagers": []}]}, "empty `matchManagers`"),
        ({"packageRules": [{"matchUpdateTypes": ["huge"]}]}, "unknown value"),
        ({"packageRules": [{"schedule": ["on someday"]}]}, "unknown weekday"),
        ({"minimumReleaseAge": "soon"}, "unparsable duration"),
        ({"timezone": "Mars/Olympus_Mons"}, "unknown timezone"),
        ({"addLabels": ["a"], "labels": ["b"]}, "both"),
    ],
)
def test_semantic_violations(document: dict, message: str) -> None:
    with pytest.raises(InvalidRuleError, match=message) as exc_info:
        parse_policy(document)

    assert exc_info.value.reason_code == "RULE_INVALID"


def test_resolve_policy_path_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    explicit = tmp_path / "explicit.yaml"
    from_env = tmp_path / "env.yaml"

    monkeypatch.setenv("DEPGATE_POLICY", str(from_env))
    assert resolve_policy_path(explicit, repo_root=tmp_path) == explicit.resolve()
    assert resolve_policy_path(None, repo_root=tmp_path) == from_env.resolve()

    monkeypatch.delenv("DEPGATE_POLICY")
    assert resolve_policy_path(None, repo_root=tmp_path) == tmp_path.resolve() / ".depgate" / "policy.yaml"


def test_template_is_valid_yaml_mapping() -> None:
    rendered = yaml.safe_dump(DEFAULT_POLICY_TEMPLATE, sort_keys=True)

    assert parse_policy(yaml.safe_load(rendered)).rules
