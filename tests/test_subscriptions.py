from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pyformstate.state.store import ValueStore


def test_path_subscription_emits_current_value_immediately() -> None:
    store = ValueStore()
    store.set_many({"name": "ada"})
    store.bus.flush()
    seen: list[Any] = []

    store.bus.subscribe("name", seen.append)

    assert seen == ["ada"]


def test_burst_of_sets_is_coalesced_to_final_value() -> None:
    store = ValueStore()
    seen: list[Any] = []
    store.bus.subscribe("age", seen.append)

    store.set("age", 1)
    store.set("age", 2)
    store.bus.flush()

    assert seen == [None, 2]


@pytest.mark.asyncio
async def test_delivery_is_scheduled_on_running_loop() -> None:
    store = ValueStore()
    seen: list[Any] = []
    store.bus.subscribe("age", seen.append, emit_current=False)

    store.set("age", 1)
    store.set("age", 2)
    assert seen == []

    await asyncio.sleep(0)

    assert seen == [2]


def test_parent_subscriber_fires_for_descendant_changes() -> None:
    store = ValueStore()
    seen: list[Any] = []
    store.bus.subscribe("address", seen.append, emit_current=False)

    store.set("address.city", "Oslo")
    store.set("address.zip", "0150")
    store.set("addressee", "x")
    store.bus.flush()

    assert seen == [{"city": "Oslo", "zip": "0150"}]


def test_field_subscribers_run_before_globals() -> None:
    store = ValueStore()
    order: list[str] = []
    store.bus.subscribe(lambda values: order.append("global"))
    store.bus.subscribe("a", lambda value: order.append("field"), emit_current=False)

    store.set("a", 1)
    store.bus.flush()

    assert order == ["field", "global"]


def test_global_subscriber_receives_nested_projection_once() -> None:
    store = ValueStore()
    seen: list[dict[str, Any]] = []
    store.bus.subscribe(seen.append)

    store.set("a.b", 1)
    store.set("c", 2)
    store.bus.flush()
    store.bus.flush()

    assert seen == [{"a": {"b": 1}, "c": 2}]


def test_unsubscribe_removes_empty_sets_and_refs() -> None:
    store = ValueStore()
    unsubscribe = store.bus.subscribe("name", lambda value: None, ref="name-1")

    assert store.bus.ref_for("name") == "name-1"

    unsubscribe()

    assert store.bus.subscribed_paths() == []
    assert store.bus.ref_for("name") is None


def test_visibility_channel() -> None:
    store = ValueStore()
    seen: list[bool] = []
    unsubscribe = store.bus.subscribe_visibility("email", seen.append)

    store.bus.emit_visibility("email", False)
    unsubscribe()
    store.bus.emit_visibility("email", True)

    assert seen == [False]


def test_subscriber_exception_propagates_and_batch_is_consumed() -> None:
    store = ValueStore()

    def boom(_value: Any) -> None:
        raise RuntimeError("subscriber failed")

    store.bus.subscribe("a", boom, emit_current=False)
    store.set("a", 1)

    with pytest.raises(RuntimeError):
        store.bus.flush()
    assert store.bus.pending == frozenset()
