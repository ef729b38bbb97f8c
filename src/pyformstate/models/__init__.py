"""Data models for form state."""

from pyformstate.models._base import FormBaseModel
from pyformstate.models.computed import ComputedDescriptor, ComputeFn
from pyformstate.models.drafts import DraftDocument
from pyformstate.models.meta import FieldMeta
from pyformstate.models.results import ValidationFailure, ValidationResult, ValidationSuccess
from pyformstate.models.rules import ConditionalRule, Predicate, RuleEffects

__all__ = [
    "ComputeFn",
    "ComputedDescriptor",
    "ConditionalRule",
    "DraftDocument",
    "FieldMeta",
    "FormBaseModel",
    "Predicate",
    "RuleEffects",
    "ValidationFailure",
    "ValidationResult",
    "ValidationSuccess",
]
