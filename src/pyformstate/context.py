"""Form metadata store and the context object handed to user handlers."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pyformstate.arrays import SnapshotArrayHelper
from pyformstate.paths import map_errors as _map_errors
from pyformstate.state.events import ChannelBus, FormEvent


class FormMeta:
    """Free-form key/value metadata attached to a form (UI hints, wizard step, ...).

    Non-silent writes are announced on the ``meta:change`` channel with the
    full mapping.
    """

    def __init__(self, channels: ChannelBus, initial: Mapping[str, Any] | None = None) -> None:
        self._channels = channels
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any, *, silent: bool = False) -> None:
        self._data[key] = value
        if not silent:
            self._channels.emit(FormEvent.META_CHANGE, dict(self._data))

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._channels.emit(FormEvent.META_CHANGE, dict(self._data))

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self) -> list[str]:
        return list(self._data)

    def values(self) -> dict[str, Any]:
        return dict(self._data)

    def clear(self) -> None:
        self._data.clear()
        self._channels.emit(FormEvent.META_CHANGE, {})

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)


@dataclass
class HandlerContext:
    """Capabilities available inside ``on_valid`` and ``on_ready`` handlers.

    ``data`` is the snapshot the handler received; :meth:`array` edits that
    snapshot, not the live form.
    """

    data: dict[str, Any]
    set_values: Callable[..., None]
    set_errors: Callable[[Any], None]
    reset: Callable[[], None]
    focus: Callable[[str], None]
    meta: FormMeta

    def map_errors(self, errors: Mapping[str, Any], path: str = "") -> None:
        """Publish a nested error structure rooted at *path*."""
        self.set_errors(_map_errors(errors, path))

    def array(self, path: str) -> SnapshotArrayHelper:
        return SnapshotArrayHelper(self.data, path)
