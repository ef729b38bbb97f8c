"""Field bindings.

:class:`FieldBinding` is what a UI widget holds while it is mounted: it
mirrors the field's value and error and forwards change/blur events.
:class:`FieldHandle` is a lightweight, stateless accessor for one path.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from pyformstate.state.events import FormEvent
from pyformstate.state.store import FieldValidator, Transform

if TYPE_CHECKING:
    from pyformstate.form import Form

_logger = logging.getLogger(__name__)

_ref_ids = itertools.count(1)


class FieldBinding:
    """A mounted field.

    Parameters
    ----------
    form : Form
        Owning form.
    name : str
        Field path.
    default_value : Any, optional
        Written silently when the field has no value yet.
    transform : callable or iterable of callables, optional
        Pipeline applied to every value written to the field.
    validate : callable, optional
        Synchronous validator returning an error message or ``None``.
    """

    def __init__(
        self,
        form: Form,
        name: str,
        *,
        default_value: Any = None,
        transform: Transform | Iterable[Transform] | None = None,
        validate: FieldValidator | None = None,
    ) -> None:
        self.form = form
        self.name = name
        self.ref = f"{name}-{next(_ref_ids)}"
        self.value: Any = None
        self.error: str | None = None
        self._closed = False

        store = form.store
        if transform is not None:
            store.set_transforms(name, transform)
        if validate is not None:
            store.set_validator(name, validate)
        if default_value is not None and store.get(name) is None:
            store.set(name, default_value, silent=True)

        self._unsubscribe_value = store.bus.subscribe(name, self._on_value, ref=self.ref)
        self._unsubscribe_error = store.bus.subscribe_error(name, self._on_error)
        store.channels.emit(FormEvent.FIELD_MOUNT, name)
        _logger.debug("Field %s mounted (ref=%s)", name, self.ref)

    def _on_value(self, value: Any) -> None:
        self.value = value

    def _on_error(self, error: str | None) -> None:
        self.error = error

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def on_change(self, value: Any) -> None:
        self.form.set_value(self.name, value)
        self.form.store.mark_touched(self.name)

    def on_blur(self) -> None:
        self.form.store.mark_touched(self.name)
        self.form.coordinator.on_blur(self.name)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._unsubscribe_value()
        self._unsubscribe_error()
        self.form.store.set_transforms(self.name, None)
        self.form.store.set_validator(self.name, None)
        self.form.store.channels.emit(FormEvent.FIELD_UNMOUNT, self.name)
        _logger.debug("Field %s unmounted", self.name)

    def __enter__(self) -> FieldBinding:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class FieldHandle:
    def __init__(self, form: Form, path: str) -> None:
        self.form = form
        self.path = path

    def get(self) -> Any:
        return self.form.get_value(self.path)

    def set(self, value: Any) -> None:
        self.form.set_value(self.path, value)

    def transform(self, fn: Transform) -> FieldHandle:
        self.form.transform(self.path, fn)
        return self

    async def validate(self) -> bool:
        """Validate the field now; focus it when invalid."""
        error = await self.form.coordinator.validate_field(self.path)
        if error is not None:
            self.form.focus(self.path)
        return error is None

    def focus(self) -> None:
        self.form.focus(self.path)

    def reset(self) -> None:
        self.form.reset_field(self.path)

    @property
    def error(self) -> str | None:
        return self.form.store.get_error(self.path)

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_dirty(self) -> bool:
        return self.form.store.is_dirty(self.path)

    @property
    def is_touched(self) -> bool:
        return self.form.store.is_touched(self.path)

    @property
    def is_visible(self) -> bool:
        return self.form.conditionals.is_visible(self.path)

    @property
    def is_required(self) -> bool:
        return self.form.conditionals.is_required(self.path)
