"""Helpers for editing a nested object (a "group") as a unit."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from pyformstate.paths import flatten_at, get_by_path, is_under
from pyformstate.state.store import ValueStore


class GroupHelper:
    def __init__(
        self,
        store: ValueStore,
        path: str,
        *,
        defaults: Mapping[str, Any] | None = None,
        validate_partial: Callable[[Mapping[str, Any]], Awaitable[dict[str, str]]] | None = None,
    ) -> None:
        self.store = store
        self.path = path
        self._defaults = defaults or {}
        self._validate_partial = validate_partial

    def get(self) -> dict[str, Any]:
        current = self.store.get(self.path)
        return current if isinstance(current, dict) else {}

    def set(self, values: Mapping[str, Any], overwrite: bool = False) -> GroupHelper:
        """Merge *values* into the group, or replace it when *overwrite* is set."""
        group = dict(values) if overwrite else {**self.get(), **values}
        flat = {key: value for key, value in self.store.flat().items() if not is_under(key, self.path)}
        flat.update(flatten_at(self.path, group))
        self.store.replace_flat(flat, overwrite=True)
        return self

    def reset(self, to: Mapping[str, Any] | None = None) -> GroupHelper:
        """Restore *to*, or the group's default values."""
        if to is None:
            default = get_by_path(self._defaults, self.path)
            to = default if isinstance(default, Mapping) else {}
        return self.set(to, overwrite=True)

    async def validate(self) -> dict[str, str]:
        if self._validate_partial is None:
            return {}
        return await self._validate_partial({self.path: self.get()})
