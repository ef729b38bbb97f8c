from __future__ import annotations

import dataclasses

import pytest

from pyformstate import FormConfig, FormMode, ValidationMode


def test_defaults() -> None:
    config = FormConfig()

    assert config.validate_on is ValidationMode.CHANGE_SUBMIT
    assert config.mode is FormMode.CONTROLLED
    assert config.auto_focus_on_error
    assert config.saved_form_first
    assert not config.strict_paths
    assert config.draft_key is None


def test_plain_strings_are_coerced_to_enums() -> None:
    config = FormConfig(validate_on="blur", mode="uncontrolled")  # type: ignore[arg-type]

    assert config.validate_on is ValidationMode.BLUR
    assert config.mode is FormMode.UNCONTROLLED


def test_unknown_mode_is_rejected() -> None:
    with pytest.raises(ValueError):
        FormConfig(validate_on="sometimes")  # type: ignore[arg-type]


def test_draft_key_prefers_persist_key() -> None:
    assert FormConfig(form_id="f").draft_key == "f"
    assert FormConfig(form_id="f", persist_key="p").draft_key == "p"


def test_config_is_frozen() -> None:
    config = FormConfig()

    with pytest.raises(dataclasses.FrozenInstanceError):
        config.form_id = "x"  # type: ignore[misc]


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORMSTATE_VALIDATE_ON", "submit")
    monkeypatch.setenv("FORMSTATE_FIELD_DEBOUNCE", "0.5")
    monkeypatch.setenv("FORMSTATE_DRAFT_DEBOUNCE", "1")
    monkeypatch.setenv("FORMSTATE_AUTO_FOCUS_ON_ERROR", "no")
    monkeypatch.setenv("FORMSTATE_STRICT_PATHS", "on")
    monkeypatch.setenv("FORMSTATE_FORM_ID", "signup")

    config = FormConfig.from_env()

    assert config.validate_on is ValidationMode.SUBMIT
    assert config.field_debounce == 0.5
    assert config.draft_debounce == 1.0
    assert not config.auto_focus_on_error
    assert config.strict_paths
    assert config.draft_key == "signup"


def test_from_env_overrides_win(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORMSTATE_MODE", "uncontrolled")
    monkeypatch.setenv("FORMSTATE_FIELD_DEBOUNCE", "0.5")
    monkeypatch.setenv("FORMSTATE_SAVED_FORM_FIRST", "garbage")

    config = FormConfig.from_env(mode="controlled", field_debounce=0.0)

    assert config.mode is FormMode.CONTROLLED
    assert config.field_debounce == 0.0
    assert config.saved_form_first
