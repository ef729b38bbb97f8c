"""Form configuration for pyformstate."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyformstate._constants import DRAFT_WRITE_DEBOUNCE_S, FIELD_VALIDATION_DEBOUNCE_S
from pyformstate.state.policy import FormMode, ValidationMode


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FormConfig:
    """Engine configuration.

    Parameters
    ----------
    validate_on : ValidationMode
        When validation runs. ``change`` variants debounce a per-field pass
        on every commit; ``submit`` variants gate submission on a full schema
        pass. Defaults to ``change-submit``.
    mode : FormMode
        ``controlled`` (default) or ``uncontrolled``. Uncontrolled stores
        ignore every write.
    field_debounce : float
        Quiet period in seconds before a per-field validation runs.
    draft_debounce : float
        Quiet period in seconds before a draft snapshot is written.
    auto_focus_on_error : bool
        Focus the first errored field when submission fails validation.
    saved_form_first : bool
        When merging initial values, let the persisted draft take precedence
        over ``default_values``.
    persist_key : str or None
        Draft identifier. Drafts are only read/written when this is set.
    form_id : str or None
        Registry identifier. Also used as ``persist_key`` when that is unset.
    strict_paths : bool
        Reject writes to paths that do not exist in the schema.
    """

    validate_on: ValidationMode = ValidationMode.CHANGE_SUBMIT
    mode: FormMode = FormMode.CONTROLLED
    field_debounce: float = FIELD_VALIDATION_DEBOUNCE_S
    draft_debounce: float = DRAFT_WRITE_DEBOUNCE_S
    auto_focus_on_error: bool = True
    saved_form_first: bool = True
    persist_key: str | None = None
    form_id: str | None = None
    strict_paths: bool = False

    def __post_init__(self) -> None:
        # Accept plain strings for the enum fields.
        object.__setattr__(self, "validate_on", ValidationMode(self.validate_on))
        object.__setattr__(self, "mode", FormMode(self.mode))

    @property
    def draft_key(self) -> str | None:
        """Key used for draft persistence (``persist_key`` falls back to ``form_id``)."""
        return self.persist_key if self.persist_key is not None else self.form_id

    @classmethod
    def from_env(cls, **overrides: Any) -> FormConfig:
        """Create configuration from environment variables.

        Reads optional ``FORMSTATE_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FormConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "FORMSTATE_VALIDATE_ON": "validate_on",
            "FORMSTATE_MODE": "mode",
            "FORMSTATE_PERSIST_KEY": "persist_key",
            "FORMSTATE_FORM_ID": "form_id",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Debounce periods are numeric, handle separately
        field_debounce_env = env.get("FORMSTATE_FIELD_DEBOUNCE")
        if field_debounce_env is not None and "field_debounce" not in overrides:
            config_kwargs["field_debounce"] = float(field_debounce_env)

        draft_debounce_env = env.get("FORMSTATE_DRAFT_DEBOUNCE")
        if draft_debounce_env is not None and "draft_debounce" not in overrides:
            config_kwargs["draft_debounce"] = float(draft_debounce_env)

        if "auto_focus_on_error" not in overrides:
            config_kwargs["auto_focus_on_error"] = _env_bool(env.get("FORMSTATE_AUTO_FOCUS_ON_ERROR"), True)

        if "saved_form_first" not in overrides:
            config_kwargs["saved_form_first"] = _env_bool(env.get("FORMSTATE_SAVED_FORM_FIRST"), True)

        if "strict_paths" not in overrides:
            config_kwargs["strict_paths"] = _env_bool(env.get("FORMSTATE_STRICT_PATHS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
