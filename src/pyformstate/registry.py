"""Lookup of live forms by id."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from pyformstate.exceptions import FormNotFoundError

if TYPE_CHECKING:
    from pyformstate.form import Form

_logger = logging.getLogger(__name__)


class FormRegistry:
    """Explicit registry instance shared by the forms that should find each other."""

    def __init__(self) -> None:
        self._forms: dict[str, Form] = {}

    def add(self, form_id: str, form: Form) -> Callable[[], None]:
        """Register *form*; the returned callable removes it again."""
        if form_id in self._forms and self._forms[form_id] is not form:
            _logger.debug("Replacing registered form %s", form_id)
        self._forms[form_id] = form

        def _remove() -> None:
            if self._forms.get(form_id) is form:
                del self._forms[form_id]

        return _remove

    def get(self, form_id: str) -> Form:
        try:
            return self._forms[form_id]
        except KeyError:
            raise FormNotFoundError(form_id) from None

    def delete(self, form_id: str) -> None:
        self._forms.pop(form_id, None)

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._forms

    def __iter__(self) -> Iterator[str]:
        return iter(self._forms)

    def __len__(self) -> int:
        return len(self._forms)
