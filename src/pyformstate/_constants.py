"""Internal constants shared across the library."""

#: Quiet period before a per-field schema validation runs (seconds).
FIELD_VALIDATION_DEBOUNCE_S: float = 0.15

#: Quiet period before a draft snapshot is written (seconds).
DRAFT_WRITE_DEBOUNCE_S: float = 0.2

#: Error key used when the validator reports an issue without a location.
ROOT_ERROR_KEY = "_root"

#: Separator between path segments.
PATH_SEPARATOR = "."

#: Separator between array path and field name in computed templates
#: (``"items*total"`` expands to ``items.0.total``, ``items.1.total``, ...).
TEMPLATE_WILDCARD = "*"

#: Placeholder segment accepted in template dependencies (``"items.*.qty"``).
INDEX_PLACEHOLDER = "*"

#: Segment used by the strict path guard to stand for any array index.
ANY_INDEX = "#"
