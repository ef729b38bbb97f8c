"""Computed (derived) fields.

A computed field is a pure function of the form values. It is evaluated
once at registration, then again whenever one of its dependencies changes
(or on every change when it has none). Results are written back through the
regular store write path, so they look like any other value to subscribers.

Templates keyed ``"<array>*<field>"`` expand to one descriptor per array
element (``items*total`` -> ``items.0.total``, ``items.1.total``, ...); their
functions receive the element index as a second argument.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any

from pyformstate._constants import PATH_SEPARATOR, TEMPLATE_WILDCARD
from pyformstate._scheduling import TaskTracker
from pyformstate.exceptions import FormConfigError
from pyformstate.models.computed import ComputedDescriptor, ComputeFn
from pyformstate.paths import array_indices, join_path, rewrite_index_deps
from pyformstate.state.store import ValueStore
from pyformstate.subscriptions import Unsubscribe

_logger = logging.getLogger(__name__)

TemplateSpec = ComputeFn | tuple[Sequence[str] | None, ComputeFn] | Mapping[str, Any]


def template_parts(spec: TemplateSpec) -> tuple[tuple[str, ...] | None, ComputeFn]:
    """Normalise a computed spec to ``(deps, fn)``.

    Accepts a bare callable, a ``(deps, fn)`` pair or a ``{"deps": ..., "fn": ...}``
    mapping.
    """
    if callable(spec):
        return None, spec
    if isinstance(spec, Mapping):
        deps, fn = spec.get("deps"), spec.get("fn")
    elif isinstance(spec, tuple) and len(spec) == 2:
        deps, fn = spec
    else:
        raise FormConfigError(f"Invalid computed field spec: {spec!r}")
    return (tuple(deps) if deps else None), fn


def split_template(key: str) -> tuple[str, str] | None:
    """``"items*total"`` -> ``("items", "total")``; ``None`` for plain keys."""
    if TEMPLATE_WILDCARD not in key:
        return None
    parts = key.split(TEMPLATE_WILDCARD)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return None
    return parts[0].rstrip(PATH_SEPARATOR), parts[1].lstrip(PATH_SEPARATOR)


class ComputedFieldGraph:
    def __init__(self, store: ValueStore, tasks: TaskTracker | None = None) -> None:
        self.store = store
        self.tasks = tasks if tasks is not None else TaskTracker()
        self._descriptors: dict[str, ComputedDescriptor] = {}
        self._unsubscribers: dict[str, Unsubscribe] = {}
        self._templates: dict[str, TemplateSpec] = {}
        self._computing: set[str] = set()

    @property
    def descriptors(self) -> Mapping[str, ComputedDescriptor]:
        return MappingProxyType(self._descriptors)

    def owns(self, path: str) -> bool:
        return path in self._descriptors

    def compute(
        self,
        name: str,
        deps_or_fn: Iterable[str] | ComputeFn | None,
        fn: ComputeFn | None = None,
        index: int | None = None,
    ) -> ComputedDescriptor:
        """Register (or replace) the computed field *name*.

        Raises
        ------
        FormConfigError
            If *name* lists itself as a dependency or *fn* is not callable.
        """
        if fn is None and callable(deps_or_fn):
            deps: tuple[str, ...] | None = None
            fn = deps_or_fn
        else:
            deps = tuple(deps_or_fn) if deps_or_fn else None  # type: ignore[arg-type]

        if deps is not None and name in deps:
            raise FormConfigError(f'Computed field "{name}" cannot depend on itself.')
        if not callable(fn):
            raise FormConfigError(f'Computed field "{name}" needs a callable, got {fn!r}')

        self.remove(name)
        descriptor = ComputedDescriptor(name=name, deps=deps, fn=fn, index=index)
        self._descriptors[name] = descriptor
        self.safe_compute(name)

        def _recompute(_value: Any) -> None:
            self.safe_compute(name)

        if deps:
            self._unsubscribers[name] = self.store.bus.subscribe(list(deps), _recompute, emit_current=False)
        else:
            self._unsubscribers[name] = self.store.bus.subscribe(_recompute)
        _logger.debug("Computed field %s registered (deps=%s)", name, deps)
        return descriptor

    def safe_compute(self, name: str) -> None:
        """Evaluate *name* and write the result when it changed."""
        descriptor = self._descriptors.get(name)
        if descriptor is None or name in self._computing:
            return
        self._computing.add(name)
        try:
            result = descriptor.evaluate(self.store.get_all())
            if inspect.isawaitable(result):
                self.tasks.spawn(self._settle(descriptor, result))
            elif result != self.store.get(name):
                self.store.set(name, result)
        finally:
            self._computing.discard(name)

    async def _settle(self, descriptor: ComputedDescriptor, pending: Awaitable[Any]) -> None:
        value = await pending
        if self._descriptors.get(descriptor.name) is not descriptor:
            _logger.debug("Dropping stale async result for %s", descriptor.name)
            return
        if value != self.store.get(descriptor.name):
            self.store.set(descriptor.name, value)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def register_all(self, specs: Mapping[str, TemplateSpec]) -> None:
        """Register plain specs and expand array templates over existing elements."""
        flat = self.store.flat()
        for key, spec in specs.items():
            parts = split_template(key)
            if parts is None:
                if TEMPLATE_WILDCARD in key:
                    _logger.debug("Ignoring malformed computed template %s", key)
                    continue
                deps, fn = template_parts(spec)
                self.compute(key, deps, fn)
                continue
            self._templates[key] = spec
            array_path, _field = parts
            indices = array_indices(flat, array_path)
            if indices:
                self._expand(key, array_path, indices)

    def expand_array(self, path: str, start: int, stop: int) -> None:
        """Expand every template of array *path* for indices ``start..stop-1``."""
        if stop <= start:
            return
        for key in self._templates:
            parts = split_template(key)
            if parts is not None and parts[0] == path:
                self._expand(key, path, range(start, stop))

    def _expand(self, key: str, array_path: str, indices: Iterable[int]) -> None:
        _array, field = split_template(key)  # type: ignore[misc]
        deps, fn = template_parts(self._templates[key])
        for index in indices:
            name = join_path(array_path, index, field)
            self.compute(name, rewrite_index_deps(array_path, index, deps), fn, index=index)

    def prune_array(self, path: str, length: int) -> None:
        """Drop expanded descriptors of *path* whose index is ``>= length``."""
        prefix = path + PATH_SEPARATOR
        for name, descriptor in list(self._descriptors.items()):
            if descriptor.index is None or descriptor.index < length or not name.startswith(prefix):
                continue
            if name[len(prefix):].split(PATH_SEPARATOR, 1)[0] == str(descriptor.index):
                self.remove(name)

    def remove(self, name: str) -> None:
        self._descriptors.pop(name, None)
        unsubscribe = self._unsubscribers.pop(name, None)
        if unsubscribe is not None:
            unsubscribe()

    def clear(self) -> None:
        for name in list(self._descriptors):
            self.remove(name)
        self._templates.clear()
