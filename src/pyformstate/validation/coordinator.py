"""Validation coordinator.

Decides when schema validation runs (per field on change or blur, per form on
submit), talks to the injected :class:`~pyformstate.validation.schema.SchemaValidator`
and writes the resulting messages into the value store's metadata.
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pyformstate._scheduling import Debouncer, TaskTracker
from pyformstate.config import FormConfig
from pyformstate.models.results import ValidationFailure, ValidationResult, ValidationSuccess
from pyformstate.paths import flatten, multi_path_error
from pyformstate.state.events import FormEvent
from pyformstate.state.policy import should_validate_change, validates_on_blur, validates_on_submit
from pyformstate.state.store import Commit, ValueStore
from pyformstate.validation.schema import SchemaValidator, is_issue_list, issues_to_errors

_logger = logging.getLogger(__name__)

_MISSING: Any = object()

CheckFn = Callable[[dict[str, Any], "CheckHelpers"], Mapping[str, str] | None | Awaitable[Mapping[str, str] | None]]
SubmitFn = Callable[[dict[str, Any], Any], Any]


@dataclass(frozen=True)
class CheckHelpers:
    """Helpers handed to a form-level ``check`` callback."""

    focus: Callable[[str], None]
    multi_path_error: Callable[..., dict[str, str]] = multi_path_error


class ValidationCoordinator:
    """Runs schema validation on behalf of a form.

    Parameters
    ----------
    store : ValueStore
        Store whose values are validated and whose metadata receives errors.
    validator : SchemaValidator
        Validation backend.
    config : FormConfig
        Supplies the validation mode, debounce period and focus behaviour.
    is_unregistered, is_computed : callable
        Predicates supplied by the conditional evaluator and computed graph.
    focus : callable, optional
        Called with the first errored path after a failed submit.
    """

    def __init__(
        self,
        store: ValueStore,
        validator: SchemaValidator,
        config: FormConfig,
        *,
        tasks: TaskTracker | None = None,
        is_unregistered: Callable[[str], bool] = lambda _path: False,
        is_computed: Callable[[str], bool] = lambda _path: False,
        focus: Callable[[str], None] | None = None,
    ) -> None:
        self.store = store
        self.validator = validator
        self.config = config
        self.is_unregistered = is_unregistered
        self.is_computed = is_computed
        self.focus = focus
        self.check: CheckFn | None = None
        self.context_factory: Callable[[dict[str, Any]], Any] | None = None
        self.is_validated = False
        self.submitting = False
        self._schema: Any = None
        self._debouncer = Debouncer(config.field_debounce, tasks)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @property
    def schema(self) -> Any:
        return self._schema

    def set_schema(self, schema: Any) -> None:
        """Swap the schema; a non-``None`` schema is checked first."""
        if schema is not None:
            self.validator.check_schema(schema)
        self._schema = schema
        self.is_validated = False
        if self.config.strict_paths and schema is not None:
            self.store.path_guard = self.validator.path_guard(schema)
        else:
            self.store.path_guard = None
        self.store.channels.emit(FormEvent.SCHEMA_READY, schema)
        _logger.debug("Schema set to %r", schema)

    def _active(self) -> bool:
        return self._schema is not None and not self.store.read_only

    # ------------------------------------------------------------------
    # Field level
    # ------------------------------------------------------------------

    def on_commit(self, commit: Commit) -> None:
        """Commit listener scheduling a debounced pass for single-path writes."""
        if commit.bulk or not commit.paths:
            return
        path = commit.paths[0]
        if should_validate_change(
            self.config.validate_on,
            computed=self.is_computed(path),
            unregistered=self.is_unregistered(path),
        ):
            self.schedule_field(path, commit.value)

    def on_blur(self, path: str) -> None:
        if validates_on_blur(self.config.validate_on) and not self.is_unregistered(path):
            self.schedule_field(path)

    def schedule_field(self, path: str, value: Any = _MISSING) -> None:
        """Debounced :meth:`validate_field`; a newer request replaces the pending one."""
        if not self._active():
            return
        if value is _MISSING:
            value = self.store.get(path)
        self._debouncer.call(path, lambda: self.validate_field(path, value))

    async def validate_field(self, path: str, value: Any = _MISSING) -> str | None:
        """Validate ``{path: value}`` now and store the resulting message."""
        if not path or not self._active() or self.is_unregistered(path):
            return None
        if value is _MISSING:
            value = self.store.get(path)
        result = await self.validator.validate(self._schema, {path: value})
        error = None if result.success else result.errors.get(path)
        self.store.set_error(path, error)
        return error

    def pending(self, path: str) -> bool:
        return self._debouncer.pending(path)

    # ------------------------------------------------------------------
    # Form level
    # ------------------------------------------------------------------

    async def validate_form(self) -> ValidationResult | None:
        """Validate the whole store.

        On success the store is brought in line with the validator output
        (coerced and defaulted values). Errors for unregistered fields are
        ignored; if nothing else remains the pass counts as a success.
        Returns ``None`` when there is nothing to validate against.
        """
        self.store.channels.emit(FormEvent.VALIDATE_BEFORE, self.store.get_all())
        if not self._active():
            self.is_validated = False
            self.store.channels.emit(FormEvent.VALIDATE_AFTER, None)
            return None

        result = await self.validator.validate(self._schema, self.store.flat())
        if result.success:
            self._apply_canonical(result.data)
        else:
            errors = {path: msg for path, msg in result.errors.items() if not self.is_unregistered(path)}
            if errors:
                result = ValidationFailure(errors=errors, message=result.message, data=result.data)
            else:
                result = ValidationSuccess(data=self.store.get_all())

        self.is_validated = result.success
        self.store.channels.emit(FormEvent.VALIDATE_AFTER, result)
        return result

    def _apply_canonical(self, data: Mapping[str, Any]) -> None:
        current = self.store.flat()
        canonical = flatten(data)
        if all(current.get(key, _MISSING) == value for key, value in canonical.items()):
            return
        # Keys the schema does not know about (computed fields, extras) survive.
        self.store.replace_flat({**current, **canonical}, overwrite=True, persist=False)

    async def validate(self) -> bool:
        """Validate the whole form, publish its errors and focus the first one."""
        result = await self.validate_form()
        if result is None:
            return False
        if result.success:
            self.reset_errors()
            return True
        self.set_errors(result.errors)
        self.focus_first(result.errors)
        return False

    async def validate_partial(self, values: Mapping[str, Any]) -> dict[str, str]:
        """Validate a sub-tree; only the errors of its own keys are touched."""
        if not self._active():
            return {}
        flat = flatten(values)
        result = await self.validator.validate(self._schema, flat)
        errors = {} if result.success else result.errors
        touched = {key: errors.get(key) for key in flat}
        for key, message in touched.items():
            self.store.set_error(key, message)
        return {key: msg for key, msg in touched.items() if msg is not None}

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def set_errors(self, errors: Mapping[str, Any] | list[Any] | None) -> None:
        """Replace the error map.

        Accepts a flat ``{path: message}`` map, a nested map or a list of
        pydantic-style issues. An empty input clears every error.
        """
        if not errors:
            self.reset_errors()
            return
        if is_issue_list(errors):
            mapped: dict[str, Any] = issues_to_errors(errors)  # type: ignore[arg-type]
        elif isinstance(errors, Mapping):
            mapped = flatten(errors)
        else:
            raise TypeError(f"Unsupported error container: {type(errors).__name__}")

        for path in list(self.store.errors()):
            if path not in mapped:
                self.store.set_error(path, None)
        for path, message in mapped.items():
            self.store.set_error(path, None if message is None else str(message))

    def reset_errors(self) -> None:
        for path in list(self.store.errors()):
            self.store.set_error(path, None)

    def focus_first(self, errors: Mapping[str, Any] | None) -> None:
        if not errors or not self.config.auto_focus_on_error or self.focus is None:
            return
        self.focus(next(iter(errors)))

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, on_valid: SubmitFn | None) -> bool:
        """Validate, run the optional ``check`` and hand a snapshot to *on_valid*.

        Returns ``True`` when *on_valid* ran to completion.
        """
        channels = self.store.channels
        channels.emit(FormEvent.SUBMIT_BEFORE, self.store.get_all())
        ran = False
        try:
            if self._schema is not None and validates_on_submit(self.config.validate_on):
                result = await self.validate_form()
                if result is not None and not result.success:
                    self.set_errors(result.errors)
                    self.focus_first(result.errors)
                    _logger.debug("Submit aborted: %d schema error(s)", len(result.errors))
                    return False
                self.reset_errors()

            if self.check is not None:
                helpers = CheckHelpers(focus=self.focus or (lambda _path: None))
                outcome = self.check(self.store.get_all(), helpers)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if outcome:
                    self.is_validated = False
                    self.set_errors(outcome)
                    self.focus_first(outcome)
                    _logger.debug("Submit aborted by check: %s", sorted(outcome))
                    return False
                self.reset_errors()

            if on_valid is None:
                return False
            snapshot = copy.deepcopy(self.store.get_all())
            context = self.context_factory(snapshot) if self.context_factory is not None else None
            self.submitting = True
            outcome = on_valid(snapshot, context)
            if inspect.isawaitable(outcome):
                await outcome
            ran = True
            return True
        finally:
            self.submitting = False
            channels.emit(FormEvent.SUBMIT_AFTER, ran)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Cancel pending field validation timers."""
        self._debouncer.cancel_all()
