"""Per-path and whole-form observers with batched, coalesced delivery.

A commit (one ``set``/``set_many`` call and everything it cascades into)
only *queues* the changed paths. Delivery happens once the current
synchronous stack has unwound: on the running event loop via
``loop.call_soon``, or on an explicit :meth:`SubscriptionBus.flush` when no
loop is running. Within one batch every affected subscriber fires exactly
once with the value committed at the end of the batch; path subscribers are
served before global ones.

Errors and visibility travel on parallel channels that deliver immediately.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol

from pyformstate.paths import is_under

_logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class ValueSource(Protocol):
    """What the bus reads when it delivers."""

    def get(self, path: str) -> Any:
        ...

    def get_all(self) -> dict[str, Any]:
        ...

    def get_error(self, path: str) -> str | None:
        ...


def _add(registry: dict[str, list[Any]], key: str, callback: Any) -> None:
    callbacks = registry.setdefault(key, [])
    if callback not in callbacks:
        callbacks.append(callback)


def _discard(registry: dict[str, list[Any]], key: str, callback: Any) -> bool:
    """Remove *callback*; return ``True`` when the key's set became empty."""
    callbacks = registry.get(key)
    if callbacks is None:
        return False
    if callback in callbacks:
        callbacks.remove(callback)
    if not callbacks:
        del registry[key]
        return True
    return False


class SubscriptionBus:
    def __init__(self, source: ValueSource) -> None:
        self._source = source
        self._field_subscribers: dict[str, list[Subscriber]] = {}
        self._global_subscribers: list[Subscriber] = []
        self._error_subscribers: dict[str, list[Callable[[str | None], None]]] = {}
        self._visibility_subscribers: dict[str, list[Callable[[bool], None]]] = {}
        self._refs: dict[str, str] = {}
        self._pending: dict[str, None] = {}
        self._handle: asyncio.Handle | None = None

    # ------------------------------------------------------------------
    # Value subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        target: str | Iterable[str] | Subscriber,
        callback: Subscriber | None = None,
        *,
        ref: str | None = None,
        emit_current: bool = True,
    ) -> Unsubscribe:
        """Observe one path, several paths, or (given only a callable) every batch.

        Path subscribers are invoked once immediately with the current value
        unless *emit_current* is false. *ref* associates a UI binding token
        with each path; it is released when the last subscriber of that path
        goes away.
        """
        if callback is None:
            if not callable(target):
                raise TypeError("subscribe() needs a callback")
            global_cb: Subscriber = target
            if global_cb not in self._global_subscribers:
                self._global_subscribers.append(global_cb)

            def _unsubscribe_global() -> None:
                if global_cb in self._global_subscribers:
                    self._global_subscribers.remove(global_cb)

            return _unsubscribe_global

        paths = [target] if isinstance(target, str) else list(target)  # type: ignore[arg-type]
        for path in paths:
            if ref is not None:
                self._refs[path] = ref
            self._field_subscribers.setdefault(path, [])
            if emit_current:
                callback(self._source.get(path))
            _add(self._field_subscribers, path, callback)

        def _unsubscribe() -> None:
            for path in paths:
                if _discard(self._field_subscribers, path, callback) and ref is not None:
                    if self._refs.get(path) == ref:
                        del self._refs[path]

        return _unsubscribe

    def unsubscribe_path(self, path: str, callback: Subscriber | None = None) -> None:
        """Drop one callback (or every callback) observing *path*."""
        if callback is None:
            self._field_subscribers.pop(path, None)
        else:
            _discard(self._field_subscribers, path, callback)
        if path not in self._field_subscribers:
            self._refs.pop(path, None)
        self._error_subscribers.pop(path, None)

    def subscribed_paths(self) -> list[str]:
        return list(self._field_subscribers)

    def ref_for(self, path: str) -> str | None:
        return self._refs.get(path)

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._pending)

    def notify(self, path: str) -> None:
        """Queue *path* as changed in the current batch."""
        self._pending[path] = None
        self._schedule()

    def _schedule(self) -> None:
        if self._handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: delivery waits for an explicit flush().
            return
        self._handle = loop.call_soon(self.flush)

    def flush(self) -> None:
        """Deliver the pending batch now."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if not self._pending:
            return
        changed = list(self._pending)
        self._pending.clear()

        for sub_path, callbacks in list(self._field_subscribers.items()):
            if not any(is_under(path, sub_path) for path in changed):
                continue
            value = self._source.get(sub_path)
            for callback in list(callbacks):
                callback(value)

        if self._global_subscribers:
            values = self._source.get_all()
            for callback in list(self._global_subscribers):
                callback(values)

    # ------------------------------------------------------------------
    # Error channel
    # ------------------------------------------------------------------

    def subscribe_error(self, path: str, callback: Callable[[str | None], None]) -> Unsubscribe:
        _add(self._error_subscribers, path, callback)
        callback(self._source.get_error(path))

        def _unsubscribe() -> None:
            _discard(self._error_subscribers, path, callback)

        return _unsubscribe

    def emit_error(self, path: str, error: str | None) -> None:
        for callback in list(self._error_subscribers.get(path, ())):
            callback(error)

    # ------------------------------------------------------------------
    # Visibility channel
    # ------------------------------------------------------------------

    def subscribe_visibility(self, path: str, callback: Callable[[bool], None]) -> Unsubscribe:
        _add(self._visibility_subscribers, path, callback)

        def _unsubscribe() -> None:
            _discard(self._visibility_subscribers, path, callback)

        return _unsubscribe

    def emit_visibility(self, path: str, visible: bool) -> None:
        for callback in list(self._visibility_subscribers.get(path, ())):
            callback(visible)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def clear(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending.clear()
        self._field_subscribers.clear()
        self._global_subscribers.clear()
        self._error_subscribers.clear()
        self._visibility_subscribers.clear()
        self._refs.clear()
        _logger.debug("Subscription bus cleared")
