"""Conditional visibility / requiredness rules."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pyformstate.exceptions import FormConfigError
from pyformstate.models.rules import ConditionalRule, Predicate, RuleEffects
from pyformstate.state.store import Commit, ValueStore

_logger = logging.getLogger(__name__)

EffectsLike = RuleEffects | Mapping[str, Any] | None


class ConditionalEvaluator:
    """Ordered list of rules re-evaluated after every non-silent commit.

    Rules are applied in registration order; when two rules touch the same
    field, the later one wins.
    """

    def __init__(self, store: ValueStore) -> None:
        self.store = store
        self._rules: list[ConditionalRule] = []
        self._hidden: dict[str, bool] = {}
        self._required: dict[str, bool] = {}
        self._unregistered: dict[str, bool] = {}

    @property
    def rules(self) -> tuple[ConditionalRule, ...]:
        return tuple(self._rules)

    def add_rule(
        self,
        fields: str | Iterable[str],
        *,
        when: Predicate,
        then: EffectsLike = None,
        otherwise: EffectsLike = None,
    ) -> Callable[[], None]:
        """Append a rule, evaluate immediately and return its disposer."""
        if not callable(when):
            raise FormConfigError(f"Conditional predicate must be callable, got {when!r}")
        targets = (fields,) if isinstance(fields, str) else tuple(fields)
        rule = ConditionalRule(
            fields=targets,
            when=when,
            then=RuleEffects.coerce(then),
            otherwise=RuleEffects.coerce(otherwise),
        )
        self._rules.append(rule)
        _logger.debug("Conditional rule added for %s", targets)
        self.evaluate()

        def dispose() -> None:
            if rule in self._rules:
                self._rules.remove(rule)
                self.evaluate(reset=rule.fields)

        return dispose

    def on_commit(self, commit: Commit) -> None:
        if self._rules:
            self.evaluate()

    def evaluate(self, reset: Iterable[str] = ()) -> None:
        """Run every rule against the current values.

        Fields in *reset* drop their flags first so that only the remaining
        rules decide their state.
        """
        values = self.store.get_all()
        before = {path for path, hidden in self._hidden.items() if hidden}
        for path in reset:
            self._hidden.pop(path, None)
            self._required.pop(path, None)
            self._unregistered.pop(path, None)

        for rule in self._rules:
            try:
                matched = bool(rule.when(values))
            except Exception:
                _logger.debug("Predicate for %s raised; treating as false", rule.fields, exc_info=True)
                matched = False
            effects = rule.then if matched else rule.otherwise
            for path in rule.fields:
                self._apply(path, effects)

        after = {path for path, hidden in self._hidden.items() if hidden}
        for path in sorted(before ^ after):
            self.store.bus.emit_visibility(path, path not in after)

    def _apply(self, path: str, effects: RuleEffects) -> None:
        if effects.visible is not None:
            self._hidden[path] = not effects.visible
        if effects.required is not None:
            self._required[path] = effects.required

        if not self._hidden.get(path, False):
            self._unregistered.pop(path, None)
            return

        if effects.clear and self.store.get(path) is not None:
            self.store.set(path, None, silent=True)
        if effects.unregister:
            self._unregistered[path] = True
        self.store.set_error(path, None)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_hidden(self, path: str) -> bool:
        return self._hidden.get(path, False)

    def is_visible(self, path: str) -> bool:
        return not self.is_hidden(path)

    def is_required(self, path: str) -> bool:
        return self._required.get(path, False)

    def is_unregistered(self, path: str) -> bool:
        return self._unregistered.get(path, False)

    def hidden_paths(self) -> list[str]:
        return [path for path, hidden in self._hidden.items() if hidden]

    def clear(self) -> None:
        self._rules.clear()
        self._hidden.clear()
        self._required.clear()
        self._unregistered.clear()
