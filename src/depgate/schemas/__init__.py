"""Schema registry and validation for depgate documents."""

from depgate.schemas.registry import SchemaRegistry, get_registry
from depgate.schemas.validator import validate_data

__all__ = ["SchemaRegistry", "get_registry", "validate_data"]
