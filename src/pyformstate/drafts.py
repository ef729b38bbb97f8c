"""Draft persistence.

A draft is a JSON snapshot of a form's values stored under a key so that an
interrupted edit can be restored later. Storage is pluggable through the
:class:`DraftStore` protocol; two implementations are provided:

* :class:`MemoryDraftStore` keeps one serialized document in memory.
* :class:`JsonFileDraftStore` keeps the same document in a file.

Both treat a corrupted document as empty (logging a warning) and never
raise on read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from pyformstate._constants import DRAFT_WRITE_DEBOUNCE_S
from pyformstate._scheduling import Debouncer
from pyformstate.models.drafts import DraftDocument

_logger = logging.getLogger(__name__)

DraftListener = Callable[[dict[str, Any]], None]


class DraftStore(Protocol):
    """Structural interface for draft storage backends."""

    def read(self, key: str) -> dict[str, Any] | None:
        ...

    def write(self, key: str, blob: dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class _DocumentDraftStore:
    """Shared logic for stores holding every draft in one JSON document."""

    def _load_raw(self) -> str | None:
        raise NotImplementedError

    def _save_raw(self, raw: str | None) -> None:
        raise NotImplementedError

    def _load(self) -> DraftDocument:
        raw = self._load_raw()
        if not raw:
            return DraftDocument()
        try:
            return DraftDocument.model_validate_json(raw)
        except ValidationError:
            _logger.warning("Discarding corrupted draft document", exc_info=True)
            self._save_raw(None)
            return DraftDocument()

    def _save(self, document: DraftDocument) -> None:
        self._save_raw(document.model_dump_json() if document.drafts else None)

    def read(self, key: str) -> dict[str, Any] | None:
        return self._load().drafts.get(key)

    def write(self, key: str, blob: dict[str, Any]) -> None:
        self._save(self._load().with_draft(key, blob))

    def delete(self, key: str) -> None:
        document = self._load()
        if key in document.drafts:
            self._save(document.without(key))

    def keys(self) -> list[str]:
        return list(self._load().drafts)


class MemoryDraftStore(_DocumentDraftStore):
    """In-memory store; ``document`` holds the raw serialized JSON."""

    def __init__(self, document: str | None = None) -> None:
        self.document = document

    def _load_raw(self) -> str | None:
        return self.document

    def _save_raw(self, raw: str | None) -> None:
        self.document = raw


class JsonFileDraftStore(_DocumentDraftStore):
    """Drafts kept in a single JSON file keyed by draft id."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load_raw(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _save_raw(self, raw: str | None) -> None:
        if raw is None:
            self.path.unlink(missing_ok=True)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(raw, encoding="utf-8")
        tmp.replace(self.path)


class DraftWriter:
    """Debounced writer of one form's draft.

    Parameters
    ----------
    store : DraftStore
        Backend receiving the snapshots.
    key : str
        Draft id.
    delay : float
        Quiet period before a scheduled snapshot is written. Without a
        running event loop, :meth:`schedule` writes immediately.
    """

    def __init__(self, store: DraftStore, key: str, *, delay: float = DRAFT_WRITE_DEBOUNCE_S) -> None:
        self.store = store
        self.key = key
        self._debouncer = Debouncer(delay)
        self._save_listeners: list[DraftListener] = []
        self._restore_listeners: list[DraftListener] = []

    def on_save(self, listener: DraftListener) -> Callable[[], None]:
        return _listen(self._save_listeners, listener)

    def on_restore(self, listener: DraftListener) -> Callable[[], None]:
        return _listen(self._restore_listeners, listener)

    def schedule(self, snapshot: Callable[[], dict[str, Any]]) -> None:
        """Write ``snapshot()`` once the debounce period passes without another call."""
        if not self._debouncer.call(self.key, lambda: self.write_now(snapshot())):
            self.write_now(snapshot())

    def write_now(self, values: dict[str, Any]) -> None:
        self._debouncer.cancel(self.key)
        self.store.write(self.key, values)
        _logger.debug("Draft %s written", self.key)
        for listener in list(self._save_listeners):
            listener(values)

    def read(self) -> dict[str, Any]:
        """Stored draft, or ``{}`` when there is none."""
        return self.store.read(self.key) or {}

    def restored(self, values: dict[str, Any]) -> None:
        for listener in list(self._restore_listeners):
            listener(values)

    def pending(self) -> bool:
        return self._debouncer.pending(self.key)

    def delete(self) -> None:
        self._debouncer.cancel(self.key)
        self.store.delete(self.key)
        _logger.debug("Draft %s deleted", self.key)

    def cancel(self) -> None:
        self._debouncer.cancel_all()


def _listen(listeners: list[DraftListener], listener: DraftListener) -> Callable[[], None]:
    if listener not in listeners:
        listeners.append(listener)

    def _remove() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return _remove
