"""Per-field bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FieldMeta:
    """Dirty/touched/error state for a single path.

    Created lazily on the first write or registration of a path, dropped
    when the field is unregistered or its array element is removed, and
    reset wholesale on a form reset.
    """

    dirty: bool = False
    touched: bool = False
    error: str | None = None
