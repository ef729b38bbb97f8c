"""Flat in-memory value store.

This is the only component allowed to mutate form values. Every other part
of the engine (validation, computed fields, conditionals, array helpers)
writes through :meth:`ValueStore.set` / :meth:`ValueStore.set_many` so that
dirty tracking, transformation pipelines and notifications are applied
uniformly.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pyformstate.models.meta import FieldMeta
from pyformstate.paths import flatten, flatten_at, is_under, nest, renumber_removed, subtree
from pyformstate.state.events import ChannelBus, FormEvent, value_event
from pyformstate.subscriptions import SubscriptionBus

_logger = logging.getLogger(__name__)

Transform = Callable[[Any], Any]
FieldValidator = Callable[[Any], str | None]
PathGuard = Callable[[str], None]


@dataclass(frozen=True, slots=True)
class Commit:
    """A non-silent write, as seen by commit listeners.

    ``bulk`` is set for ``set_many``/``replace_flat`` commits; ``persist`` is
    cleared when the write must not be mirrored into the draft store
    (initialization and reset).
    """

    paths: tuple[str, ...]
    bulk: bool = False
    persist: bool = True
    value: Any = None


CommitListener = Callable[[Commit], None]


class ValueStore:
    """Authoritative ``{path: value}`` mapping plus per-field metadata.

    A read-only store (uncontrolled form) silently ignores every mutation;
    callers rely on that for forms that only ever read their defaults.
    """

    def __init__(
        self,
        *,
        read_only: bool = False,
        channels: ChannelBus | None = None,
        error_parser: Callable[[str], str] | None = None,
    ) -> None:
        self.read_only = read_only
        self.channels = channels if channels is not None else ChannelBus()
        self.error_parser = error_parser
        self.path_guard: PathGuard | None = None
        self.bus = SubscriptionBus(self)
        self._values: dict[str, Any] = {}
        self._meta: dict[str, FieldMeta] = {}
        self._transforms: dict[str, list[Transform]] = {}
        self._validators: dict[str, FieldValidator] = {}
        self._commit_listeners: list[CommitListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any:
        """Value at *path*: a leaf, the nested sub-tree below it, or ``None``.

        The result is a copy; mutating it never changes the store.
        """
        return copy.deepcopy(subtree(self._values, path))

    def get_all(self) -> dict[str, Any]:
        """Nested projection (a copy) of the whole store."""
        return copy.deepcopy(nest(self._values))

    def flat(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)

    def keys(self) -> list[str]:
        return list(self._values)

    def __contains__(self, path: object) -> bool:
        return path in self._values

    # ------------------------------------------------------------------
    # Commit listeners
    # ------------------------------------------------------------------

    def add_commit_listener(self, listener: CommitListener) -> None:
        if listener not in self._commit_listeners:
            self._commit_listeners.append(listener)

    def remove_commit_listener(self, listener: CommitListener) -> None:
        if listener in self._commit_listeners:
            self._commit_listeners.remove(listener)

    def _fire_commit(self, commit: Commit) -> None:
        for listener in list(self._commit_listeners):
            listener(commit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set(self, path: str, value: Any, *, silent: bool = False) -> None:
        """Transform, store and mark *path* dirty.

        Unless *silent*, the write is announced on the ``value:*`` and
        ``value:<path>`` channels, checked by the path's synchronous
        validator, queued for subscribers and handed to commit listeners.
        A silent write only updates the value and the dirty flag.
        """
        if self.read_only:
            _logger.debug("Ignoring write to %s on read-only store", path)
            return
        if self.path_guard is not None:
            self.path_guard(path)

        value = self.apply_transforms(path, value)
        touched = self._write(path, value)
        self.mark_dirty(path)

        if silent:
            return

        if self.channels.listening(FormEvent.VALUE_ANY):
            self.channels.emit(FormEvent.VALUE_ANY, self.get_all())
        self.channels.emit(value_event(path), value)

        validator = self._validators.get(path)
        if validator is not None:
            self.set_error(path, validator(value))

        self.bus.notify(path)
        for key in touched:
            if key != path:
                self.bus.notify(key)
        self._fire_commit(Commit(paths=(path,), value=value))

    def _write(self, path: str, value: Any) -> list[str]:
        """Store *value* at *path* and return every flat key that changed.

        Containers are flattened below *path*. Keys that alias the same slot
        (the path itself, its descendants and its ancestors) are replaced, so
        a path is never held both as a leaf and as a parent.
        """
        entries = flatten_at(path, value)
        if path in entries and path in self._values and not any(
            key != path and (is_under(key, path) or is_under(path, key)) for key in self._values
        ):
            self._values[path] = entries[path]
            return [path]

        dropped: list[str] = []
        rebuilt: dict[str, Any] = {}
        placed = False
        for key, current in self._values.items():
            if is_under(key, path) or is_under(path, key):
                dropped.append(key)
                if not placed:
                    rebuilt.update(entries)
                    placed = True
                continue
            rebuilt[key] = current
        if not placed:
            rebuilt.update(entries)
        self._values = rebuilt
        return list(dict.fromkeys([*dropped, *entries]))

    def set_many(
        self,
        partial: Mapping[str, Any],
        *,
        overwrite: bool = False,
        persist: bool = True,
    ) -> None:
        """Merge (or, with *overwrite*, replace the store with) a nested partial."""
        self.replace_flat(flatten(partial), overwrite=overwrite, persist=persist)

    def replace_flat(
        self,
        flat: Mapping[str, Any],
        *,
        overwrite: bool = True,
        persist: bool = True,
    ) -> None:
        """Commit an already flattened mapping.

        Every touched key is notified individually (keys dropped by an
        overwrite count as touched), followed by one aggregate ``value:*``
        announcement.
        """
        if self.read_only:
            _logger.debug("Ignoring bulk write of %d keys on read-only store", len(flat))
            return
        if self.path_guard is not None:
            for path in flat:
                self.path_guard(path)

        touched = list(flat)
        if overwrite:
            touched.extend(key for key in self._values if key not in flat)
            self._values = dict(flat)
        else:
            self._values.update(flat)

        if self.channels.listening(FormEvent.VALUE_ANY):
            self.channels.emit(FormEvent.VALUE_ANY, self.get_all())
        for path in touched:
            if self.channels.listening(value_event(path)):
                self.channels.emit(value_event(path), self.get(path))
            self.bus.notify(path)

        self._fire_commit(Commit(paths=tuple(touched), bulk=True, persist=persist))

    def load(self, nested: Mapping[str, Any]) -> None:
        """Seed the store with initial values.

        Works on read-only stores too and notifies nobody; only meant for
        form construction.
        """
        self._values = flatten(nested)

    # ------------------------------------------------------------------
    # Transformation pipeline & per-field validators
    # ------------------------------------------------------------------

    def apply_transforms(self, path: str, value: Any) -> Any:
        for transform in self._transforms.get(path, ()):
            value = transform(value)
        return value

    def add_transform(self, path: str, transform: Transform) -> None:
        self._transforms.setdefault(path, []).append(transform)

    def set_transforms(self, path: str, transforms: Transform | Iterable[Transform] | None) -> None:
        if transforms is None:
            self._transforms.pop(path, None)
        elif callable(transforms):
            self._transforms[path] = [transforms]
        else:
            self._transforms[path] = list(transforms)

    def set_validator(self, path: str, validator: FieldValidator | None) -> None:
        if validator is None:
            self._validators.pop(path, None)
        else:
            self._validators[path] = validator

    def has_validator(self, path: str) -> bool:
        return path in self._validators

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def meta(self, path: str) -> FieldMeta:
        entry = self._meta.get(path)
        if entry is None:
            entry = FieldMeta()
            self._meta[path] = entry
        return entry

    def mark_dirty(self, path: str) -> None:
        self.meta(path).dirty = True

    def mark_touched(self, path: str) -> None:
        self.meta(path).touched = True

    def is_dirty(self, path: str | None = None) -> bool:
        if path is None:
            return any(m.dirty for m in self._meta.values())
        entry = self._meta.get(path)
        return entry is not None and entry.dirty

    def is_touched(self, path: str | None = None) -> bool:
        if path is None:
            return any(m.touched for m in self._meta.values())
        entry = self._meta.get(path)
        return entry is not None and entry.touched

    def get_error(self, path: str) -> str | None:
        entry = self._meta.get(path)
        return entry.error if entry is not None else None

    def errors(self) -> dict[str, str]:
        return {path: m.error for path, m in self._meta.items() if m.error is not None}

    def set_error(self, path: str, error: str | None) -> None:
        """Attach (or with ``None`` clear) the message for *path*.

        Setting the value a path already has is a no-op and notifies nobody.
        """
        if error is not None and self.error_parser is not None:
            error = self.error_parser(error)
        if self.get_error(path) == error:
            return
        self.meta(path).error = error
        self.bus.emit_error(path, error)

    def dirty_paths(self) -> dict[str, bool]:
        return {path: True for path, m in self._meta.items() if m.dirty}

    def touched_paths(self) -> dict[str, bool]:
        return {path: True for path, m in self._meta.items() if m.touched}

    def drop_meta(self, path: str, *, descendants: bool = False) -> None:
        """Forget dirty/touched/error state for *path* (and optionally below)."""
        targets = [p for p in self._meta if is_under(p, path)] if descendants else [path]
        for target in targets:
            entry = self._meta.pop(target, None)
            if entry is not None and entry.error is not None:
                self.bus.emit_error(target, None)

    def renumber_meta(self, prefix: str, removed: Iterable[int]) -> None:
        """Mirror an array removal in the metadata map."""
        removed = list(removed)
        for path in [p for p in self._meta if p.startswith(prefix + ".")]:
            head = path[len(prefix) + 1:].split(".", 1)[0]
            entry = self._meta[path]
            if head.isdigit() and int(head) in removed and entry.error is not None:
                self.bus.emit_error(path, None)
        self._meta = renumber_removed(self._meta, prefix, removed, keep_marker=False)

    def reset_meta(self) -> None:
        for path, entry in self._meta.items():
            if entry.error is not None:
                self.bus.emit_error(path, None)
        self._meta.clear()

    def forget(self, path: str) -> None:
        """Drop everything the store keeps for *path* except its value."""
        self.drop_meta(path)
        self._transforms.pop(path, None)
        self._validators.pop(path, None)
