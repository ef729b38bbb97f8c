"""pyformstate - Asyncio state engine for structured input forms."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyformstate")
except PackageNotFoundError:
    __version__ = "0+local"
from pyformstate.arrays import ArrayPathHelper, SnapshotArrayHelper
from pyformstate.config import FormConfig
from pyformstate.context import FormMeta, HandlerContext
from pyformstate.drafts import DraftStore, DraftWriter, JsonFileDraftStore, MemoryDraftStore
from pyformstate.exceptions import (
    FormConfigError,
    FormDisposedError,
    FormNotFoundError,
    FormPathError,
    FormStateError,
)
from pyformstate.fields import FieldBinding, FieldHandle
from pyformstate.form import Form
from pyformstate.groups import GroupHelper
from pyformstate.models import (
    ComputedDescriptor,
    FieldMeta,
    RuleEffects,
    ValidationFailure,
    ValidationResult,
    ValidationSuccess,
)
from pyformstate.registry import FormRegistry
from pyformstate.state.events import FormEvent
from pyformstate.state.policy import FormMode, ValidationMode
from pyformstate.validation import PydanticSchemaValidator, SchemaValidator

__all__ = [
    "ArrayPathHelper",
    "ComputedDescriptor",
    "DraftStore",
    "DraftWriter",
    "FieldBinding",
    "FieldHandle",
    "FieldMeta",
    "Form",
    "FormConfig",
    "FormConfigError",
    "FormDisposedError",
    "FormEvent",
    "FormMeta",
    "FormMode",
    "FormNotFoundError",
    "FormPathError",
    "FormRegistry",
    "FormStateError",
    "GroupHelper",
    "HandlerContext",
    "JsonFileDraftStore",
    "MemoryDraftStore",
    "PydanticSchemaValidator",
    "RuleEffects",
    "SchemaValidator",
    "SnapshotArrayHelper",
    "ValidationFailure",
    "ValidationMode",
    "ValidationResult",
    "ValidationSuccess",
]
