"""Named lifecycle channels.

Every form owns a :class:`ChannelBus`: a lazily populated map of named
channels that UI layers (or plugins) listen on for lifecycle events such as
``submit:before`` or ``value:items.0.qty``. Channels are fire-and-forget;
delivery is synchronous and in subscription order.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pyformstate.exceptions import FormConfigError

ChannelCallback = Callable[[Any], None]


class FormEvent(StrEnum):
    VALIDATE_BEFORE = "validate:before"
    VALIDATE_AFTER = "validate:after"
    SUBMIT_BEFORE = "submit:before"
    SUBMIT_AFTER = "submit:after"
    FIELD_MOUNT = "field:mount"
    FIELD_UNMOUNT = "field:unmount"
    SCHEMA_READY = "schema:ready"
    META_CHANGE = "meta:change"
    VALUE_ANY = "value:*"


def value_event(path: str) -> str:
    """Channel name carrying the latest value of *path*."""
    return f"value:{path}"


class Channel:
    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: list[ChannelCallback] = []

    def emit(self, payload: Any = None) -> None:
        for callback in list(self._listeners):
            callback(payload)

    def subscribe(self, callback: ChannelCallback) -> Callable[[], None]:
        if callback not in self._listeners:
            self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


class ChannelBus:
    """Lazily created named channels."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}

    def channel(self, name: str) -> Channel:
        if not name:
            raise FormConfigError("Channel name required")
        key = str(name)
        existing = self._channels.get(key)
        if existing is None:
            existing = Channel(key)
            self._channels[key] = existing
        return existing

    def emit(self, name: str, payload: Any = None) -> None:
        """Emit on *name* without creating the channel when nobody listens."""
        existing = self._channels.get(str(name))
        if existing is not None:
            existing.emit(payload)

    def listening(self, name: str) -> bool:
        existing = self._channels.get(str(name))
        return existing is not None and len(existing) > 0

    def clear_all(self) -> None:
        for channel in self._channels.values():
            channel.clear()
        self._channels.clear()
