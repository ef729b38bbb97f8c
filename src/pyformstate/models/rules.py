"""Conditional rule models."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from pyformstate.exceptions import FormConfigError
from pyformstate.models._base import FormBaseModel

Predicate = Callable[[dict[str, Any]], Any]


class RuleEffects(FormBaseModel):
    """Effects a rule applies to each of its fields.

    ``None`` means "leave as is"; only ``visible``/``required`` carry state
    across rules, ``clear`` and ``unregister`` act on hidden fields only.
    """

    visible: bool | None = None
    required: bool | None = None
    clear: bool = False
    unregister: bool = False

    @classmethod
    def coerce(cls, value: RuleEffects | Mapping[str, Any] | None) -> RuleEffects:
        if value is None:
            return cls()
        if isinstance(value, RuleEffects):
            return value
        try:
            return cls.model_validate(dict(value))
        except ValidationError as exc:
            raise FormConfigError(f"Invalid conditional effects {dict(value)!r}: {exc}") from exc


@dataclass(eq=False)
class ConditionalRule:
    """An ordered predicate-driven toggle over a set of fields.

    Compared by identity so that a disposer removes exactly the rule it was
    issued for, even when two rules are structurally identical.
    """

    fields: tuple[str, ...]
    when: Predicate
    then: RuleEffects = field(default_factory=RuleEffects)
    otherwise: RuleEffects = field(default_factory=RuleEffects)
