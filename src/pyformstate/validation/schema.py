"""Schema validator contract and the default pydantic-backed implementation.

The engine never validates values itself. It hands candidates to a
:class:`SchemaValidator` and consumes the path-keyed result. Any object
satisfying the protocol can be injected; :class:`PydanticSchemaValidator`
treats a ``pydantic.BaseModel`` subclass as the schema.
"""

from __future__ import annotations

import types
import typing
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol, get_args, get_origin

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from pyformstate._constants import ANY_INDEX, ROOT_ERROR_KEY
from pyformstate.exceptions import FormConfigError, FormPathError
from pyformstate.models.results import ValidationFailure, ValidationResult, ValidationSuccess
from pyformstate.paths import is_index, join_path, nest, split_path


class SchemaValidator(Protocol):
    """Structural interface for schema validation backends.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (:class:`PydanticSchemaValidator`) concrete.
    """

    async def validate(self, schema: Any, candidate: Mapping[str, Any]) -> ValidationResult:
        ...

    def check_schema(self, schema: Any) -> None:
        """Raise :class:`FormConfigError` when *schema* is not usable."""
        ...

    def placeholders(self, schema: Any) -> dict[str, Any]:
        """Empty values for every field the schema declares."""
        ...

    def path_guard(self, schema: Any) -> Callable[[str], None] | None:
        """Callable rejecting unknown paths, or ``None`` when unsupported."""
        ...


def issues_to_errors(issues: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """Convert pydantic-style issues (``loc`` + ``msg``) to ``{path: message}``.

    The first message reported for a path wins; issues without a location
    are filed under ``_root``.
    """
    errors: dict[str, str] = {}
    for issue in issues:
        loc = issue.get("loc") or issue.get("path") or ()
        path = join_path(*(str(part) for part in loc)) or ROOT_ERROR_KEY
        message = issue.get("msg") or issue.get("message") or "Invalid value"
        errors.setdefault(path, str(message))
    return errors


def is_issue_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(item, Mapping) and ("loc" in item or "path" in item) for item in value)
    )


# ---------------------------------------------------------------------------
# Annotation introspection
# ---------------------------------------------------------------------------


def _unwrap(annotation: Any) -> Any:
    """Strip ``Annotated`` and ``Optional``/unions down to the first concrete type."""
    while True:
        origin = get_origin(annotation)
        if origin is typing.Annotated:
            annotation = get_args(annotation)[0]
            continue
        if origin is typing.Union or origin is types.UnionType:
            members = [arg for arg in get_args(annotation) if arg is not type(None)]
            if not members:
                return None
            annotation = members[0]
            continue
        return annotation


def _is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _is_sequence(annotation: Any) -> bool:
    origin = get_origin(annotation) or annotation
    return origin in (list, tuple, set, frozenset)


def _is_mapping(annotation: Any) -> bool:
    origin = get_origin(annotation) or annotation
    return origin in (dict, Mapping) or annotation is Any


def _element_type(annotation: Any) -> Any:
    args = get_args(annotation)
    return _unwrap(args[0]) if args else Any


def create_empty_values(schema: type[BaseModel] | None) -> dict[str, Any]:
    """Placeholder values for every field declared on *schema*.

    Nested models recurse, sequences start empty, booleans are ``False``,
    mappings are ``{}`` and everything else is ``""`` (an empty input).
    """
    if schema is None:
        return {}
    result: dict[str, Any] = {}
    for name, field in schema.model_fields.items():
        result[field.alias or name] = _empty_value(_unwrap(field.annotation))
    return result


def _empty_value(annotation: Any) -> Any:
    if _is_model(annotation):
        return create_empty_values(annotation)
    if _is_sequence(annotation):
        return []
    if annotation is bool:
        return False
    if annotation is not Any and _is_mapping(annotation):
        return {}
    return ""


def schema_paths(schema: type[BaseModel], prefix: str = "") -> tuple[set[str], set[str]]:
    """Known path patterns for *schema*.

    Returns ``(closed, open_)``: ``closed`` holds every addressable path with
    list positions written as ``#``; ``open_`` holds prefixes (mapping or
    ``Any`` fields) below which any path is accepted.
    """
    closed: set[str] = set()
    open_: set[str] = set()
    for name, field in schema.model_fields.items():
        path = join_path(prefix, field.alias or name)
        _collect(_unwrap(field.annotation), path, closed, open_)
    return closed, open_


def _collect(annotation: Any, path: str, closed: set[str], open_: set[str]) -> None:
    closed.add(path)
    if _is_model(annotation):
        sub_closed, sub_open = schema_paths(annotation, path)
        closed |= sub_closed
        open_ |= sub_open
    elif _is_sequence(annotation):
        _collect(_element_type(annotation), join_path(path, ANY_INDEX), closed, open_)
    elif _is_mapping(annotation):
        open_.add(path)


class StrictPathGuard:
    """Reject paths that do not exist in a schema."""

    def __init__(self, schema: type[BaseModel]) -> None:
        self._name = schema.__name__
        self._closed, self._open = schema_paths(schema)

    @staticmethod
    def normalize(path: str) -> str:
        return join_path(*(ANY_INDEX if is_index(seg) else seg for seg in split_path(path)))

    def allows(self, path: str) -> bool:
        normalized = self.normalize(path)
        if normalized in self._closed:
            return True
        if any(normalized.startswith(p + ".") for p in self._open):
            return True
        return any(p.startswith(normalized + ".") for p in self._closed)

    def __call__(self, path: str) -> None:
        if not self.allows(path):
            raise FormPathError(f"Unknown path {path!r} for schema {self._name}", path=path)


class PydanticSchemaValidator:
    """Validate candidates against a ``pydantic.BaseModel`` subclass."""

    def check_schema(self, schema: Any) -> None:
        if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            raise FormConfigError(f"Schema is not a pydantic model: {schema!r}")

    async def validate(self, schema: type[BaseModel], candidate: Mapping[str, Any]) -> ValidationResult:
        self.check_schema(schema)
        nested = nest(candidate)
        try:
            model = schema.model_validate(nested)
        except PydanticValidationError as exc:
            return ValidationFailure(errors=issues_to_errors(exc.errors()), data=nested)
        return ValidationSuccess(data=model.model_dump(by_alias=True))

    def placeholders(self, schema: type[BaseModel]) -> dict[str, Any]:
        return create_empty_values(schema)

    def path_guard(self, schema: type[BaseModel]) -> Callable[[str], None] | None:
        return StrictPathGuard(schema)
