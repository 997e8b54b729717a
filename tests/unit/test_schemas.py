"""Packaged schema lookup and validation."""

from __future__ import annotations

import pytest

from depgate.policy.loader import DEFAULT_POLICY_TEMPLATE
from depgate.schemas.validator import validate_data


def test_default_template_has_no_violations() -> None:
    assert validate_data(DEFAULT_POLICY_TEMPLATE, "policy_document") == []


def test_violations_are_reported_with_location() -> None:
    errors = validate_data({"packageRules": [{"automerge": "yes"}], "bogus": 1}, "policy_document")

    assert len(errors) == 2
    assert errors == validate_data({"packageRules": [{"automerge": "yes"}], "bogus": 1}, "policy_document")
    assert any(error.startswith("packageRules.0.automerge: ") for error in errors)
    assert any("bogus" in error for error in errors)


def test_unknown_schema_name() -> None:
    with pytest.raises(KeyError):
        validate_data({}, "no_such_schema")
