"""Schema validation results.

Validators return one of two shapes, discriminated on ``success``:

* :class:`ValidationSuccess` carries the (possibly coerced/defaulted) data.
* :class:`ValidationFailure` carries path-keyed error messages using
  ``.``-joined paths for nested and array locations.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from pyformstate.models._base import FormBaseModel


class ValidationSuccess(FormBaseModel):
    success: Literal[True] = True
    data: dict[str, Any] = Field(default_factory=dict)


class ValidationFailure(FormBaseModel):
    success: Literal[False] = False
    errors: dict[str, str] = Field(default_factory=dict)
    message: str = "Validation failed"
    data: dict[str, Any] = Field(default_factory=dict)


ValidationResult = ValidationSuccess | ValidationFailure
