"""The form engine facade.

:class:`Form` wires the value store, subscription bus, validation
coordinator, computed graph, conditional evaluator and draft writer
together and exposes the public operations a UI layer calls::

    async with Form(schema=Order, default_values={"items": []}) as form:
        form.array("items").push({"qty": 1})
        form.compute("count", ["items"], lambda v: len(v["items"]))
        await form.submit(save_order)
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable, Coroutine, Iterable, Mapping
from typing import Any

from pyformstate._scheduling import TaskTracker
from pyformstate.arrays import ArrayPathHelper
from pyformstate.computed import ComputedFieldGraph, TemplateSpec
from pyformstate.conditionals import ConditionalEvaluator, EffectsLike
from pyformstate.config import FormConfig
from pyformstate.context import FormMeta, HandlerContext
from pyformstate.drafts import DraftListener, DraftStore, DraftWriter, MemoryDraftStore
from pyformstate.exceptions import FormDisposedError
from pyformstate.fields import FieldBinding, FieldHandle
from pyformstate.groups import GroupHelper
from pyformstate.models.computed import ComputeFn
from pyformstate.models.rules import Predicate
from pyformstate.paths import determine_dirty_fields, get_by_path, merge_initial_values
from pyformstate.registry import FormRegistry
from pyformstate.state.events import Channel, ChannelBus, FormEvent
from pyformstate.state.policy import FormMode
from pyformstate.state.store import Commit, FieldValidator, Transform, ValueStore
from pyformstate.subscriptions import Subscriber, Unsubscribe
from pyformstate.validation.coordinator import CheckFn, SubmitFn, ValidationCoordinator
from pyformstate.validation.schema import PydanticSchemaValidator, SchemaValidator

_logger = logging.getLogger(__name__)

FocusCallback = Callable[[str, str | None], None]
ReadyCallback = Callable[[dict[str, Any], HandlerContext], None]


class Form:
    """Client-side form state engine.

    Parameters
    ----------
    config : FormConfig, optional
        Engine configuration. Defaults to ``FormConfig()``.
    schema : Any, optional
        Schema understood by *validator* (a pydantic model class for the
        default validator).
    default_values : dict, optional
        Nested initial values.
    errors : dict, optional
        Initial error map.
    computed : dict, optional
        Computed field specs keyed by field name or ``"<array>*<field>"``
        template.
    check : callable, optional
        Extra cross-field check run on submit after schema validation.
    error_parser : callable, optional
        Rewrites every error message before it is stored.
    validator : SchemaValidator, optional
        Validation backend. Defaults to :class:`PydanticSchemaValidator`.
    drafts : DraftStore, optional
        Draft backend. Only used when ``config.draft_key`` is set; defaults
        to an in-memory store.
    registry : FormRegistry, optional
        Registry the form joins under ``config.form_id``.
    on_submit : callable, optional
        Default handler for :meth:`submit`.
    on_ready : callable, optional
        Called with the merged initial values and a handler context before
        they are committed.
    on_focus : callable, optional
        Called with ``(path, ref)`` whenever a field is focused.
    on_draft_restore : callable, optional
        Called with the merged initial values when drafts are enabled.

    Raises
    ------
    FormConfigError
        If the schema is rejected by the validator or a computed spec is
        invalid.
    """

    def __init__(
        self,
        config: FormConfig | None = None,
        *,
        schema: Any = None,
        default_values: Mapping[str, Any] | None = None,
        errors: Mapping[str, Any] | None = None,
        computed: Mapping[str, TemplateSpec] | None = None,
        check: CheckFn | None = None,
        error_parser: Callable[[str], str] | None = None,
        validator: SchemaValidator | None = None,
        drafts: DraftStore | None = None,
        registry: FormRegistry | None = None,
        on_submit: SubmitFn | None = None,
        on_ready: ReadyCallback | None = None,
        on_focus: FocusCallback | None = None,
        on_draft_restore: DraftListener | None = None,
    ) -> None:
        self.config = config if config is not None else FormConfig()
        self.validator = validator if validator is not None else PydanticSchemaValidator()
        if schema is not None:
            self.validator.check_schema(schema)

        self.channels = ChannelBus()
        self.store = ValueStore(
            read_only=self.config.mode == FormMode.UNCONTROLLED,
            channels=self.channels,
            error_parser=error_parser,
        )
        self.tasks = TaskTracker()
        self.graph = ComputedFieldGraph(self.store, self.tasks)
        self.conditionals = ConditionalEvaluator(self.store)
        self.coordinator = ValidationCoordinator(
            self.store,
            self.validator,
            self.config,
            tasks=self.tasks,
            is_unregistered=self.conditionals.is_unregistered,
            is_computed=self.graph.owns,
            focus=self.focus,
        )
        self.coordinator.check = check
        self.coordinator.context_factory = self._handler_context
        self.meta = FormMeta(self.channels)
        self.focused: str | None = None

        self._on_submit = on_submit
        self._on_focus = on_focus
        self._watched: set[str] = set()
        self._disposed = False
        self._defaults: dict[str, Any] = copy.deepcopy(dict(default_values or {}))
        self._placeholders = self._placeholders_for(schema)

        draft_key = self.config.draft_key
        self._drafts: DraftWriter | None = None
        if draft_key is not None:
            self._drafts = DraftWriter(
                drafts if drafts is not None else MemoryDraftStore(),
                draft_key,
                delay=self.config.draft_debounce,
            )
            if on_draft_restore is not None:
                self._drafts.on_restore(on_draft_restore)

        saved = self._drafts.read() if self._drafts is not None else {}
        merged = merge_initial_values(
            saved=saved,
            defaults=self._defaults,
            placeholders=self._placeholders,
            saved_first=self.config.saved_form_first,
        )
        if self._drafts is not None:
            self._drafts.restored(merged)
        if on_ready is not None:
            on_ready(merged, self._handler_context(merged))

        self.coordinator.set_schema(schema)
        if self.store.read_only:
            self.store.load(merged)
        else:
            self.store.set_many(merged, overwrite=True, persist=False)
        if saved:
            for path in determine_dirty_fields(self._defaults, saved):
                self.store.mark_dirty(path)

        self.graph.register_all(computed or {})
        if errors:
            self.coordinator.set_errors(errors)

        self.store.add_commit_listener(self._on_commit)
        self._unregister: Callable[[], None] | None = None
        if registry is not None and self.config.form_id is not None:
            self._unregister = registry.add(self.config.form_id, self)
        _logger.debug("Form %s initialised with %d value(s)", self.config.form_id, len(self.store.keys()))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _placeholders_for(self, schema: Any) -> dict[str, Any]:
        if schema is None or self.config.mode != FormMode.CONTROLLED:
            return {}
        return self.validator.placeholders(schema)

    def _initial_values(self) -> dict[str, Any]:
        return merge_initial_values(saved=None, defaults=self._defaults, placeholders=self._placeholders)

    def _ensure_live(self) -> None:
        if self._disposed:
            raise FormDisposedError(f"Form {self.config.form_id or id(self)} has been disposed")

    def _on_commit(self, commit: Commit) -> None:
        self.conditionals.on_commit(commit)
        self.coordinator.on_commit(commit)
        if self._drafts is None or not commit.persist:
            return
        if not commit.bulk and commit.paths[0] in self._watched:
            self._drafts.write_now(self.store.get_all())
        else:
            self._drafts.schedule(self.store.get_all)

    def _handler_context(self, data: dict[str, Any]) -> HandlerContext:
        return HandlerContext(
            data=data,
            set_values=self.set_values,
            set_errors=self.set_errors,
            reset=self.reset,
            focus=self.focus,
            meta=self.meta,
        )

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def set_value(self, path: str, value: Any, *, silent: bool = False) -> None:
        self._ensure_live()
        self.store.set(path, value, silent=silent)

    def set_values(self, values: Mapping[str, Any], *, overwrite: bool = False) -> None:
        self._ensure_live()
        self.store.set_many(values, overwrite=overwrite)

    def get_value(self, path: str) -> Any:
        return self.store.get(path)

    def get_values(self) -> dict[str, Any]:
        return self.store.get_all()

    @property
    def values(self) -> dict[str, Any]:
        return self.store.get_all()

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def set_errors(self, errors: Mapping[str, Any] | list[Any] | None) -> None:
        self.coordinator.set_errors(errors)

    def set_error(self, path: str, message: str | None) -> None:
        self.store.set_error(path, message)

    def get_error(self, path: str) -> str | None:
        return self.store.get_error(path)

    def get_errors(self) -> dict[str, str]:
        return self.store.errors()

    @property
    def errors(self) -> dict[str, str]:
        return self.store.errors()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Restore defaults and placeholders, clear metadata and delete the draft."""
        self._ensure_live()
        self.coordinator.cancel()
        self.store.reset_meta()
        self.store.set_many(self._initial_values(), overwrite=True, persist=False)
        self.channels.emit(FormEvent.VALUE_ANY, {})
        self.coordinator.is_validated = False
        if self._drafts is not None:
            self._drafts.delete()
        _logger.debug("Form %s reset", self.config.form_id)

    def reset_field(self, path: str) -> None:
        """Restore the initial value of *path* and mark it touched."""
        self.set_value(path, copy.deepcopy(get_by_path(self._initial_values(), path)))
        self.store.mark_touched(path)

    def dispose(self, delete_draft: bool = False) -> None:
        """Tear the form down; further use raises :class:`FormDisposedError`."""
        if self._disposed:
            return
        self.coordinator.cancel()
        if self._drafts is not None:
            self._drafts.cancel()
            if delete_draft:
                self._drafts.delete()
        self.tasks.cancel_all()
        self.graph.clear()
        self.conditionals.clear()
        self.store.remove_commit_listener(self._on_commit)
        self.store.bus.clear()
        self.channels.clear_all()
        if self._unregister is not None:
            self._unregister()
            self._unregister = None
        self._disposed = True
        _logger.debug("Form %s disposed", self.config.form_id)

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def __aenter__(self) -> Form:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Validation & submission
    # ------------------------------------------------------------------

    async def validate(self) -> bool:
        self._ensure_live()
        return await self.coordinator.validate()

    async def validate_partial(self, values: Mapping[str, Any]) -> dict[str, str]:
        self._ensure_live()
        return await self.coordinator.validate_partial(values)

    def set_schema(self, schema: Any) -> None:
        self._ensure_live()
        self.coordinator.set_schema(schema)
        self._placeholders = self._placeholders_for(schema)

    async def submit(self, on_valid: SubmitFn | None = None) -> bool:
        """Validate and hand a snapshot to *on_valid* (or the configured ``on_submit``)."""
        self._ensure_live()
        return await self.coordinator.submit(on_valid if on_valid is not None else self._on_submit)

    def handle_submit(self, on_valid: SubmitFn | None = None) -> Callable[..., Coroutine[Any, Any, bool]]:
        """Return an event handler coroutine function that submits the form."""

        async def _handler(*_args: Any, **_kwargs: Any) -> bool:
            return await self.submit(on_valid)

        return _handler

    @property
    def on_submit(self) -> Callable[..., Coroutine[Any, Any, bool]] | None:
        if self._on_submit is None:
            return None
        return self.handle_submit(self._on_submit)

    @property
    def submitting(self) -> bool:
        return self.coordinator.submitting

    @property
    def validated(self) -> bool:
        return self.coordinator.is_validated

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        target: str | Iterable[str] | Subscriber,
        callback: Subscriber | None = None,
        *,
        ref: str | None = None,
    ) -> Unsubscribe:
        self._ensure_live()
        return self.store.bus.subscribe(target, callback, ref=ref)

    def subscribe_error(self, path: str, callback: Callable[[str | None], None]) -> Unsubscribe:
        self._ensure_live()
        return self.store.bus.subscribe_error(path, callback)

    def subscribe_visibility(self, path: str, callback: Callable[[bool], None]) -> Unsubscribe:
        self._ensure_live()
        return self.store.bus.subscribe_visibility(path, callback)

    def unsubscribe_field(self, path: str, callback: Subscriber | None = None) -> None:
        """Drop subscribers of *path* and forget its metadata and per-field hooks."""
        self.store.bus.unsubscribe_path(path, callback)
        self.store.forget(path)
        self.graph.remove(path)

    def unsubscribe_field_prefix(self, prefix: str) -> None:
        for path in self.store.bus.subscribed_paths():
            if path.startswith(prefix):
                self.unsubscribe_field(path)

    def flush(self) -> None:
        """Deliver pending subscriber notifications now."""
        self.store.bus.flush()

    async def settle(self) -> None:
        """Flush notifications and wait for background computations to finish."""
        self.store.bus.flush()
        await asyncio.sleep(0)
        while self.store.bus.pending or len(self.tasks):
            await self.tasks.join()
            self.store.bus.flush()
            await asyncio.sleep(0)

    # ------------------------------------------------------------------
    # Field bindings and helpers
    # ------------------------------------------------------------------

    def register(
        self,
        path: str,
        *,
        default_value: Any = None,
        transform: Transform | Iterable[Transform] | None = None,
        validate: FieldValidator | None = None,
    ) -> FieldBinding:
        self._ensure_live()
        return FieldBinding(self, path, default_value=default_value, transform=transform, validate=validate)

    def field(self, path: str) -> FieldHandle:
        return FieldHandle(self, path)

    def array(self, path: str) -> ArrayPathHelper:
        self._ensure_live()
        return ArrayPathHelper(self.store, path, self.graph)

    def group(self, path: str) -> GroupHelper:
        self._ensure_live()
        return GroupHelper(self.store, path, defaults=self._initial_values(), validate_partial=self.validate_partial)

    # ------------------------------------------------------------------
    # Derived behaviour
    # ------------------------------------------------------------------

    def compute(
        self,
        name: str,
        deps_or_fn: Iterable[str] | ComputeFn | None,
        fn: ComputeFn | None = None,
    ) -> None:
        self._ensure_live()
        self.graph.compute(name, deps_or_fn, fn)

    def transform(self, path: str, fn: Transform) -> None:
        """Append *fn* to the pipeline of *path* and run the current value through it."""
        self._ensure_live()
        self.store.add_transform(path, fn)
        current = self.store.get(path)
        if current is not None:
            self.store.set(path, current)

    def conditional(
        self,
        fields: str | Iterable[str],
        *,
        when: Predicate,
        then: EffectsLike = None,
        otherwise: EffectsLike = None,
    ) -> Callable[[], None]:
        self._ensure_live()
        return self.conditionals.add_rule(fields, when=when, then=then, otherwise=otherwise)

    def watch(self, fields: str | Iterable[str] | None = None) -> Any:
        """Mark fields as watched and return their current values.

        Changes to a watched field are written to the draft immediately
        instead of debounced. With no argument every current field is
        watched and the whole value tree is returned.
        """
        if fields is None:
            self._watched = set(self.store.keys())
            return self.get_values()
        if isinstance(fields, str):
            self._watched.add(fields)
            return self.get_value(fields)
        names = list(fields)
        self._watched.update(names)
        return {name: self.get_value(name) for name in names}

    # ------------------------------------------------------------------
    # State flags
    # ------------------------------------------------------------------

    def is_dirty(self, path: str | None = None) -> bool:
        return self.store.is_dirty(path)

    def is_touched(self, path: str | None = None) -> bool:
        return self.store.is_touched(path)

    def mark_dirty(self, path: str) -> None:
        self.store.mark_dirty(path)

    def mark_touched(self, path: str) -> None:
        self.store.mark_touched(path)

    def is_visible(self, path: str) -> bool:
        return self.conditionals.is_visible(path)

    def is_required(self, path: str) -> bool:
        return self.conditionals.is_required(path)

    # ------------------------------------------------------------------
    # Focus, drafts, channels
    # ------------------------------------------------------------------

    def focus(self, path: str) -> None:
        self.focused = path
        if self._on_focus is not None:
            self._on_focus(path, self.store.bus.ref_for(path))
        _logger.debug("Focus moved to %s", path)

    def on_draft_save(self, listener: DraftListener) -> Callable[[], None]:
        if self._drafts is None:
            _logger.debug("Draft listener ignored: drafts are disabled")
            return lambda: None
        return self._drafts.on_save(listener)

    def on_draft_restore(self, listener: DraftListener) -> Callable[[], None]:
        if self._drafts is None:
            _logger.debug("Draft listener ignored: drafts are disabled")
            return lambda: None
        return self._drafts.on_restore(listener)

    def channel(self, name: str) -> Channel:
        self._ensure_live()
        return self.channels.channel(name)

    def debug(self) -> dict[str, Any]:
        """Snapshot of the engine's internal state for troubleshooting."""
        return {
            "values": self.store.flat(),
            "errors": self.store.errors(),
            "dirty": self.store.dirty_paths(),
            "touched": self.store.touched_paths(),
            "computed": sorted(self.graph.descriptors),
            "hidden": self.conditionals.hidden_paths(),
            "subscriptions": self.store.bus.subscribed_paths(),
            "watched": sorted(self._watched),
            "focused": self.focused,
            "validated": self.coordinator.is_validated,
            "submitting": self.coordinator.submitting,
            "meta": self.meta.values(),
        }
