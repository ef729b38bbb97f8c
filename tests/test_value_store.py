from __future__ import annotations

from typing import Any

from pyformstate.state.events import FormEvent
from pyformstate.state.store import Commit, ValueStore


def test_set_applies_transforms_and_marks_dirty() -> None:
    store = ValueStore()
    store.set_transforms("name", [str.strip, str.upper])

    store.set("name", "  ada ")

    assert store.get("name") == "ADA"
    assert store.is_dirty("name")
    assert not store.is_touched("name")


def test_set_runs_field_validator_and_fires_commit() -> None:
    store = ValueStore()
    commits: list[Commit] = []
    store.add_commit_listener(commits.append)
    store.set_validator("age", lambda v: None if v > 0 else "Must be positive")

    store.set("age", -1)

    assert store.get_error("age") == "Must be positive"
    assert commits == [Commit(paths=("age",), value=-1)]


def test_silent_set_skips_cascade() -> None:
    store = ValueStore()
    commits: list[Commit] = []
    store.add_commit_listener(commits.append)
    store.set_validator("age", lambda v: "always wrong")

    store.set("age", 5, silent=True)

    assert store.get("age") == 5
    assert store.is_dirty("age")
    assert store.get_error("age") is None
    assert commits == []
    assert store.bus.pending == frozenset()


def test_set_emits_value_channels() -> None:
    store = ValueStore()
    seen_all: list[Any] = []
    seen_one: list[Any] = []
    store.channels.channel(FormEvent.VALUE_ANY).subscribe(seen_all.append)
    store.channels.channel("value:name").subscribe(seen_one.append)

    store.set("name", "x")

    assert seen_all == [{"name": "x"}]
    assert seen_one == ["x"]


def test_set_many_merges_or_overwrites() -> None:
    store = ValueStore()
    store.set_many({"a": 1, "b": {"c": 2}})
    store.set_many({"b": {"d": 3}})

    assert store.get_all() == {"a": 1, "b": {"c": 2, "d": 3}}

    commits: list[Commit] = []
    store.add_commit_listener(commits.append)
    store.set_many({"z": 0}, overwrite=True)

    assert store.get_all() == {"z": 0}
    assert commits[0].bulk
    assert set(commits[0].paths) == {"z", "a", "b.c", "b.d"}


def test_read_only_store_ignores_writes() -> None:
    store = ValueStore(read_only=True)
    store.load({"name": "initial"})

    store.set("name", "changed")
    store.set_many({"name": "changed"}, overwrite=True)

    assert store.get("name") == "initial"
    assert not store.is_dirty()


def test_set_error_is_deduplicated() -> None:
    store = ValueStore()
    received: list[str | None] = []
    store.bus.subscribe_error("age", received.append)

    store.set_error("age", "Bad")
    store.set_error("age", "Bad")
    store.set_error("age", None)

    assert received == [None, "Bad", None]


def test_error_parser_rewrites_messages() -> None:
    store = ValueStore(error_parser=lambda msg: f"!{msg}")

    store.set_error("age", "Bad")

    assert store.errors() == {"age": "!Bad"}


def test_renumber_meta_follows_removed_rows() -> None:
    store = ValueStore()
    store.set_many({"items": [{"qty": 1}, {"qty": 2}, {"qty": 3}]})
    store.mark_touched("items.2.qty")
    store.set_error("items.0.qty", "Too small")

    store.renumber_meta("items", [0])

    assert store.touched_paths() == {"items.1.qty": True}
    assert store.errors() == {}


def test_forget_drops_meta_and_hooks() -> None:
    store = ValueStore()
    store.set_validator("name", lambda v: None)
    store.add_transform("name", str.strip)
    store.set("name", "x")

    store.forget("name")

    assert not store.is_dirty("name")
    assert not store.has_validator("name")
    assert store.apply_transforms("name", " y ") == " y "
    assert store.get("name") == "x"


def test_writing_a_container_replaces_keys_below_it() -> None:
    store = ValueStore()
    store.load({"items": [{"qty": 1}, {"qty": 2}], "note": "x"})

    store.set("items", [{"qty": 5}])

    assert store.flat() == {"items.0.qty": 5, "note": "x"}
    assert store.bus.pending == frozenset({"items", "items.0.qty", "items.1.qty"})

    store.set("items.0.qty", 7)

    assert store.get_all() == {"items": [{"qty": 7}], "note": "x"}


def test_writing_an_empty_container_leaves_a_marker() -> None:
    store = ValueStore()
    store.load({"items": [{"qty": 1}], "extra": {"a": 1}})

    store.set("items", [], silent=True)
    store.set("extra", {})

    assert store.flat() == {"items": [], "extra": {}}
    assert store.get("items") == []


def test_writing_a_scalar_drops_children_and_leaf_ancestors() -> None:
    store = ValueStore()
    store.load({"customer": {"name": "Ada", "city": "Oslo"}, "tags": []})

    store.set("customer", None)
    store.set("tags.0", "a")

    assert store.flat() == {"customer": None, "tags.0": "a"}
    assert store.get_all() == {"customer": None, "tags": ["a"]}


def test_reads_do_not_expose_stored_objects() -> None:
    store = ValueStore()
    store.load({"items": [{"qty": 1}], "tags": []})

    store.get("items")[0]["qty"] = 99
    store.get_all()["tags"].append("x")
    store.get("tags").append("y")
    store.flat()["tags"].append("z")

    assert store.get_all() == {"items": [{"qty": 1}], "tags": []}
