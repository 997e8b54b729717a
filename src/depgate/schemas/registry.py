"""Schema registry backed exclusively by package data.

Schemas ship inside the ``depgate_schemas`` package so validation behaves
the same regardless of the working directory.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib.resources import files
from typing import Any

SCHEMA_PACKAGE = "depgate_schemas"
SCHEMA_SUFFIX = ".schema.json"


@dataclass(frozen=True)
class SchemaRegistry:
    """Registry of available schemas from package data.

    Attributes:
        available: Sorted tuple of canonical schema names (without suffix)
    """

    available: tuple[str, ...] = ()

    def __init__(self) -> None:
        object.__setattr__(self, "available", tuple(sorted(self._discover_schemas())))

    def _discover_schemas(self) -> list[str]:
        try:
            schema_files = files(SCHEMA_PACKAGE)
            return [
                item.name[: -len(SCHEMA_SUFFIX)]
                for item in schema_files.iterdir()
                if item.name.endswith(SCHEMA_SUFFIX)
            ]
        except (ModuleNotFoundError, FileNotFoundError):
            return []

    def get_text(self, name: str) -> str:
        """Load schema text by canonical name (suffix optional).

        Raises:
            KeyError: If schema not found (lists available schemas)
        """
        canonical_name = name.removesuffix(SCHEMA_SUFFIX)
        if canonical_name not in self.available:
            raise KeyError(
                f"Schema '{canonical_name}' not found in depgate package data. "
                f"Available schemas: {', '.join(self.available) or 'none'}"
            )
        return (files(SCHEMA_PACKAGE) / f"{canonical_name}{SCHEMA_SUFFIX}").read_text(encoding="utf-8")

    def get_json(self, name: str) -> dict[str, Any]:
        """Load schema as a parsed JSON mapping."""
        return json.loads(self.get_text(name))


@lru_cache(maxsize=1)
def get_registry() -> SchemaRegistry:
    """Return the process-wide schema registry."""
    return SchemaRegistry()
