"""Schema validation: backend contract and the engine-side coordinator."""

from pyformstate.validation.coordinator import CheckHelpers, ValidationCoordinator
from pyformstate.validation.schema import (
    PydanticSchemaValidator,
    SchemaValidator,
    StrictPathGuard,
    create_empty_values,
    issues_to_errors,
)

__all__ = [
    "CheckHelpers",
    "PydanticSchemaValidator",
    "SchemaValidator",
    "StrictPathGuard",
    "ValidationCoordinator",
    "create_empty_values",
    "issues_to_errors",
]
