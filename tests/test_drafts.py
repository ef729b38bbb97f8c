from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import pytest

from pyformstate import Form, FormConfig
from pyformstate.drafts import DraftWriter, JsonFileDraftStore, MemoryDraftStore


@pytest.mark.parametrize("document", ["not json", "[1, 2]", '{"drafts": {"k": 3}}'])
def test_corrupted_document_reads_as_empty(document: str, caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryDraftStore(document)

    with caplog.at_level(logging.WARNING, logger="pyformstate.drafts"):
        assert store.read("k") is None

    assert store.document is None
    assert "corrupted draft" in caplog.text


def test_form_with_corrupted_draft_starts_from_defaults() -> None:
    form = Form(
        FormConfig(persist_key="signup"),
        drafts=MemoryDraftStore("{broken"),
        default_values={"name": "Ada"},
    )

    assert form.get_values() == {"name": "Ada"}
    assert not form.is_dirty()


def test_memory_store_keeps_drafts_by_key() -> None:
    store = MemoryDraftStore()

    store.write("a", {"x": 1})
    store.write("b", {"y": 2})
    store.delete("a")

    assert store.read("a") is None
    assert store.read("b") == {"y": 2}
    assert store.keys() == ["b"]
    assert json.loads(store.document or "") == {"drafts": {"b": {"y": 2}}}


def test_json_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "drafts.json"
    store = JsonFileDraftStore(path)

    assert store.read("signup") is None
    store.write("signup", {"name": "Ada", "items": [{"qty": 1}]})

    assert JsonFileDraftStore(path).read("signup") == {"name": "Ada", "items": [{"qty": 1}]}
    assert not path.with_suffix(".json.tmp").exists()

    store.delete("signup")
    assert not path.exists()


def test_draft_restore_wins_and_marks_changed_fields_dirty() -> None:
    store = MemoryDraftStore()
    store.write("signup", {"name": "Saved", "age": 3})
    restored: list[dict[str, Any]] = []

    form = Form(
        FormConfig(persist_key="signup"),
        drafts=store,
        default_values={"name": "", "age": 3},
        on_draft_restore=restored.append,
    )

    assert form.get_values() == {"name": "Saved", "age": 3}
    assert form.is_dirty("name")
    assert not form.is_dirty("age")
    assert restored == [{"name": "Saved", "age": 3}]


def test_defaults_win_when_saved_form_is_not_first() -> None:
    store = MemoryDraftStore()
    store.write("signup", {"name": "Saved", "city": "Oslo"})

    form = Form(
        FormConfig(persist_key="signup", saved_form_first=False),
        drafts=store,
        default_values={"name": "Ada", "city": ""},
    )

    assert form.get_values() == {"name": "Ada", "city": "Oslo"}


def test_form_id_doubles_as_draft_key() -> None:
    store = MemoryDraftStore()
    form = Form(FormConfig(form_id="checkout"), drafts=store, default_values={"a": 1})

    form.set_value("a", 2)

    assert store.read("checkout") == {"a": 2}


def test_initialisation_does_not_write_a_draft() -> None:
    store = MemoryDraftStore()

    Form(FormConfig(persist_key="k"), drafts=store, default_values={"a": 1})

    assert store.document is None


@pytest.mark.asyncio
async def test_writes_are_debounced() -> None:
    store = MemoryDraftStore()
    form = Form(FormConfig(persist_key="k", draft_debounce=0.01), drafts=store, default_values={"a": 0})
    saved: list[dict[str, Any]] = []
    form.on_draft_save(saved.append)

    for value in range(1, 4):
        form.set_value("a", value)
    assert store.read("k") is None

    await asyncio.sleep(0.05)

    assert store.read("k") == {"a": 3}
    assert saved == [{"a": 3}]
    form.dispose()


@pytest.mark.asyncio
async def test_watched_field_is_written_immediately() -> None:
    store = MemoryDraftStore()
    form = Form(FormConfig(persist_key="k", draft_debounce=60), drafts=store, default_values={"a": 0, "b": 0})

    assert form.watch("a") == 0
    form.set_value("a", 1)
    assert store.read("k") == {"a": 1, "b": 0}

    form.set_value("b", 1)
    assert store.read("k") == {"a": 1, "b": 0}
    form.dispose()


def test_reset_deletes_the_draft() -> None:
    store = MemoryDraftStore()
    form = Form(FormConfig(persist_key="k"), drafts=store, default_values={"a": 0})
    form.set_value("a", 5)
    assert store.read("k") == {"a": 5}

    form.reset()

    assert store.read("k") is None
    assert form.get_values() == {"a": 0}


def test_dispose_can_delete_the_draft() -> None:
    store = MemoryDraftStore()
    form = Form(FormConfig(persist_key="k"), drafts=store, default_values={"a": 0})
    form.set_value("a", 5)

    form.dispose(delete_draft=True)

    assert store.read("k") is None


def test_writer_without_loop_writes_synchronously() -> None:
    store = MemoryDraftStore()
    writer = DraftWriter(store, "k", delay=10)

    writer.schedule(lambda: {"a": 1})

    assert store.read("k") == {"a": 1}
    assert not writer.pending()
    assert writer.read() == {"a": 1}
