"""Validation trigger policy.

This module decides *when* validation runs for a given mode. It contains no
validation logic itself; the coordinator consults it before scheduling work.
"""

from __future__ import annotations

from enum import StrEnum


class ValidationMode(StrEnum):
    CHANGE = "change"
    BLUR = "blur"
    SUBMIT = "submit"
    CHANGE_SUBMIT = "change-submit"


class FormMode(StrEnum):
    """Whether the store accepts writes.

    ``UNCONTROLLED`` forms only read their initial defaults; every mutation
    is a no-op.
    """

    CONTROLLED = "controlled"
    UNCONTROLLED = "uncontrolled"


def validates_on_change(mode: ValidationMode) -> bool:
    return mode in (ValidationMode.CHANGE, ValidationMode.CHANGE_SUBMIT)


def validates_on_blur(mode: ValidationMode) -> bool:
    return mode == ValidationMode.BLUR


def validates_on_submit(mode: ValidationMode) -> bool:
    """Whether a full schema pass gates submission."""
    return mode in (ValidationMode.SUBMIT, ValidationMode.CHANGE_SUBMIT)


def should_validate_change(mode: ValidationMode, *, computed: bool, unregistered: bool) -> bool:
    """Decide whether a committed value triggers a debounced field pass.

    Computed fields are never validated on change (their value is derived),
    and neither are fields a conditional rule has unregistered.
    """
    if computed or unregistered:
        return False
    return validates_on_change(mode)
