"""JSON Schema validation against packaged schemas."""

from typing import Any

from jsonschema.validators import Draft202012Validator

from depgate.schemas.registry import get_registry


def validate_data(data: Any, schema_name: str) -> list[str]:
    """Return schema violations for ``data`` as ``path: message`` lines.

    An empty list means the data is valid. Errors are ordered by location
    so repeated runs report them identically.

    Raises:
        KeyError: If schema not found in package data
    """
    validator = Draft202012Validator(get_registry().get_json(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: ([str(p) for p in e.path], e.message))
    return [_format_error(error.path, error.message) for error in errors]


def _format_error(path: Any, message: str) -> str:
    location = ".".join(str(part) for part in path)
    return f"{location}: {message}" if location else message
