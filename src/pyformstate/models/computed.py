"""Computed field descriptors."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

ComputeFn = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class ComputedDescriptor:
    """A derived field.

    ``deps is None`` means "recompute on any change". ``index`` is set for
    descriptors expanded from an array template; their ``fn`` is called as
    ``fn(values, index)`` instead of ``fn(values)``.
    """

    name: str
    deps: tuple[str, ...] | None
    fn: ComputeFn
    index: int | None = None

    def evaluate(self, values: dict[str, Any]) -> Any:
        if self.index is None:
            return self.fn(values)
        return self.fn(values, self.index)
