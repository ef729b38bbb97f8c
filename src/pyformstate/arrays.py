"""Array-of-records editing.

:class:`ArrayPathHelper` edits an array that lives in the value store. Every
mutator re-reads the array, computes the new list and rewrites all keys
under the array path in a single bulk commit, so subscribers observe one
batch per operation. Mutators return the helper for chaining::

    form.array("items").push({"qty": 1}).move_up(1).remove_if(lambda i: not i["qty"])

:class:`SnapshotArrayHelper` offers a small subset of the same vocabulary on
a detached nested snapshot (the one handed to a submit handler).
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any

from pyformstate.paths import flatten_at, get_by_path, is_under, renumber_removed, set_by_path
from pyformstate.state.store import ValueStore

if TYPE_CHECKING:
    from pyformstate.computed import ComputedFieldGraph

_logger = logging.getLogger(__name__)

ItemPredicate = Callable[[Any], Any]


class ArrayPathHelper:
    def __init__(self, store: ValueStore, path: str, graph: ComputedFieldGraph | None = None) -> None:
        self.store = store
        self.path = path
        self.graph = graph

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self) -> list[Any]:
        """Deep copy of the current array (``[]`` when absent)."""
        current = self.store.get(self.path)
        return copy.deepcopy(current) if isinstance(current, list) else []

    @property
    def value(self) -> list[Any]:
        return self.get()

    @property
    def length(self) -> int:
        return len(self.get())

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[Any]:
        return iter(self.get())

    def to_object(self) -> dict[int, Any]:
        return dict(enumerate(self.get()))

    def some(self, predicate: ItemPredicate) -> bool:
        return any(predicate(item) for item in self.get())

    def every(self, predicate: ItemPredicate) -> bool:
        return all(predicate(item) for item in self.get())

    def find_index(self, predicate: ItemPredicate) -> int:
        for index, item in enumerate(self.get()):
            if predicate(item):
                return index
        return -1

    def first(self) -> Any:
        items = self.get()
        return items[0] if items else None

    def last(self) -> Any:
        items = self.get()
        return items[-1] if items else None

    def is_first(self, index: int) -> bool:
        return index == 0

    def is_last(self, index: int) -> bool:
        return index == self.length - 1

    # ------------------------------------------------------------------
    # Commit helpers
    # ------------------------------------------------------------------

    def _commit(self, items: list[Any]) -> ArrayPathHelper:
        flat = {key: value for key, value in self.store.flat().items() if not is_under(key, self.path)}
        flat.update(flatten_at(self.path, items))
        self.store.replace_flat(flat, overwrite=True)
        return self

    def _remove_indices(self, indices: Iterable[int]) -> ArrayPathHelper:
        removed = sorted(set(indices))
        if not removed:
            return self
        flat = self.store.flat()
        current = flat.get(self.path)
        if isinstance(current, list) and current:
            # a whole list held as one leaf; spread it into indexed keys first
            del flat[self.path]
            flat.update(flatten_at(self.path, current))
        self.store.renumber_meta(self.path, removed)
        self.store.replace_flat(renumber_removed(flat, self.path, removed), overwrite=True)
        if self.graph is not None:
            self.graph.prune_array(self.path, self.length)
        _logger.debug("Removed %s from %s", removed, self.path)
        return self

    def _expand(self, start: int, stop: int) -> None:
        if self.graph is not None:
            self.graph.expand_array(self.path, start, stop)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def push(self, item: Any) -> ArrayPathHelper:
        """Append one item, or every item of a list."""
        items = self.get()
        start = len(items)
        items.extend(item if isinstance(item, list) else [item])
        self._commit(items)
        self._expand(start, len(items))
        return self

    def insert(self, index: int, item: Any) -> ArrayPathHelper:
        items = self.get()
        items.insert(index, item)
        return self._commit(items)

    def insert_first(self, item: Any) -> ArrayPathHelper:
        return self.insert(0, item)

    def update_at(self, index: int, item: Any) -> ArrayPathHelper:
        items = self.get()
        items[index] = item
        return self._commit(items)

    def swap(self, a: int, b: int) -> ArrayPathHelper:
        items = self.get()
        items[a], items[b] = items[b], items[a]
        return self._commit(items)

    def move(self, source: int, target: int) -> ArrayPathHelper:
        items = self.get()
        items.insert(target, items.pop(source))
        return self._commit(items)

    def move_up(self, index: int) -> ArrayPathHelper:
        if index <= 0:
            return self
        return self.move(index, index - 1)

    def move_down(self, index: int) -> ArrayPathHelper:
        if index >= self.length - 1:
            return self
        return self.move(index, index + 1)

    def replace_all(self, items: Iterable[Any]) -> ArrayPathHelper:
        return self._commit(list(items))

    def replace_where(self, predicate: ItemPredicate, item: Any) -> ArrayPathHelper:
        return self._commit([item if predicate(current) else current for current in self.get()])

    def merge(self, fn: Callable[[list[Any]], Iterable[Any]]) -> ArrayPathHelper:
        """Replace the array with ``fn(current)``; templates cover new tail indices."""
        before = self.get()
        items = list(fn(copy.deepcopy(before)))
        self._commit(items)
        self._expand(len(before), len(items))
        return self

    def sort(self, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> ArrayPathHelper:
        return self._commit(sorted(self.get(), key=key, reverse=reverse))  # type: ignore[type-var]

    def filter(self, predicate: ItemPredicate) -> ArrayPathHelper:
        return self._commit([item for item in self.get() if predicate(item)])

    def map(self, fn: Callable[[Any], Any]) -> ArrayPathHelper:
        return self._commit([fn(item) for item in self.get()])

    def compact(self) -> ArrayPathHelper:
        """Drop falsy items (``None``, ``""``, ``0``, ``False``, empty containers)."""
        return self.filter(bool)

    def remove(self, index: int) -> ArrayPathHelper:
        return self._remove_indices([index])

    def remove_if(self, predicate: ItemPredicate) -> ArrayPathHelper:
        return self._remove_indices(index for index, item in enumerate(self.get()) if predicate(item))

    def clear(self) -> ArrayPathHelper:
        self.store.drop_meta(self.path, descendants=True)
        self._commit([])
        if self.graph is not None:
            self.graph.prune_array(self.path, 0)
        return self


class SnapshotArrayHelper:
    """Array helper bound to a detached nested snapshot instead of the store."""

    def __init__(self, data: dict[str, Any], path: str) -> None:
        self.data = data
        self.path = path

    def get(self) -> list[Any]:
        current = get_by_path(self.data, self.path)
        return current if isinstance(current, list) else []

    @property
    def value(self) -> list[Any]:
        return self.get()

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self.data)

    def _replace(self, items: list[Any]) -> SnapshotArrayHelper:
        set_by_path(self.data, self.path, items)
        return self

    def filter(self, predicate: ItemPredicate) -> SnapshotArrayHelper:
        return self._replace([item for item in self.get() if predicate(item)])

    def remove_if(self, predicate: ItemPredicate) -> SnapshotArrayHelper:
        return self._replace([item for item in self.get() if not predicate(item)])

    def map(self, fn: Callable[[Any], Any]) -> SnapshotArrayHelper:
        return self._replace([fn(item) for item in self.get()])
