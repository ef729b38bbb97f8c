"""Custom exception hierarchy for pyformstate."""

from __future__ import annotations


class FormStateError(Exception):
    """Base exception for all pyformstate errors."""


class FormConfigError(FormStateError):
    """Invalid form configuration detected at registration time.

    Raised immediately (never degraded silently) for things like a computed
    field that depends on itself, a non-callable compute target, an object
    that is not a usable schema, or malformed conditional rule effects.
    """


class FormPathError(FormStateError, KeyError):
    """A path was rejected at the store boundary.

    Raised when strict path checking is enabled and the path does not exist
    in the schema, or when two paths would alias the same nested slot with
    incompatible container shapes.
    """

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class FormNotFoundError(FormStateError, KeyError):
    """No form registered under the requested id."""

    def __init__(self, form_id: str) -> None:
        self.form_id = form_id
        super().__init__(f'Form with ID "{form_id}" not found')

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class FormDisposedError(FormStateError):
    """Operation attempted on a form that has already been disposed."""
