from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pyformstate import Form, FormConfigError
from pyformstate.computed import split_template, template_parts


def test_self_dependency_fails_at_registration() -> None:
    form = Form(default_values={"total": 0})

    with pytest.raises(FormConfigError):
        form.compute("total", ["price", "total"], lambda v: 0)


def test_non_callable_compute_target_fails() -> None:
    form = Form()

    with pytest.raises(FormConfigError):
        form.compute("total", ["price"], "not a function")  # type: ignore[arg-type]


def test_total_tracks_its_dependencies_only() -> None:
    form = Form(default_values={"price": 2, "qty": 3, "note": ""})
    form.flush()
    calls: list[dict[str, Any]] = []

    def total(values: dict[str, Any]) -> int:
        calls.append(values)
        return values["price"] * values["qty"]

    form.compute("total", ["price", "qty"], total)
    assert form.get_value("total") == 6
    assert len(calls) == 1

    form.set_value("price", 5)
    form.flush()
    assert form.get_value("total") == 15
    assert len(calls) == 2

    form.set_value("qty", 4)
    form.flush()
    assert form.get_value("total") == 20
    assert len(calls) == 3

    form.set_value("note", "gift")
    form.flush()
    form.flush()
    assert len(calls) == 3


def test_computed_without_deps_follows_every_change() -> None:
    form = Form(default_values={"first": "Ada", "last": "Lovelace"})

    form.compute("full", lambda v: f"{v['first']} {v['last']}")
    form.set_value("last", "Byron")
    form.flush()
    form.flush()

    assert form.get_value("full") == "Ada Byron"


def test_unchanged_result_is_not_written() -> None:
    form = Form(default_values={"a": 1})
    form.compute("parity", ["a"], lambda v: v["a"] % 2)
    form.flush()
    seen: list[Any] = []
    form.subscribe("parity", seen.append)

    form.set_value("a", 3)
    form.flush()
    form.flush()

    assert seen == [1]


def test_re_registering_replaces_previous_descriptor() -> None:
    form = Form(default_values={"a": 1})
    form.compute("b", ["a"], lambda v: v["a"] + 1)
    form.compute("b", ["a"], lambda v: v["a"] * 10)

    form.set_value("a", 2)
    form.flush()

    assert form.get_value("b") == 20
    assert len(form.graph.descriptors) == 1


@pytest.mark.asyncio
async def test_async_compute_result_is_written_on_resolution() -> None:
    form = Form(default_values={"code": "no"})

    async def lookup(values: dict[str, Any]) -> str:
        await asyncio.sleep(0)
        return values["code"].upper()

    form.compute("country", ["code"], lookup)
    await form.settle()
    assert form.get_value("country") == "NO"

    form.set_value("code", "se")
    await form.settle()
    assert form.get_value("country") == "SE"
    form.dispose()


def test_array_templates_expand_per_element_and_on_push() -> None:
    form = Form(
        default_values={"items": [{"price": 2, "qty": 1}, {"price": 3, "qty": 2}]},
        computed={
            "items*total": (["items.*.price", "items.*.qty"], lambda v, i: v["items"][i]["price"] * v["items"][i]["qty"]),
        },
    )

    assert form.get_value("items.0.total") == 2
    assert form.get_value("items.1.total") == 6
    assert set(form.graph.descriptors) == {"items.0.total", "items.1.total"}

    form.array("items").push({"price": 5, "qty": 5})
    assert form.get_value("items.2.total") == 25

    form.set_value("items.1.qty", 10)
    form.flush()
    assert form.get_value("items.1.total") == 30


def test_removal_prunes_expanded_descriptors() -> None:
    form = Form(
        default_values={"items": [{"qty": 1}, {"qty": 2}, {"qty": 3}]},
        computed={"items*double": {"deps": ["items.*.qty"], "fn": lambda v, i: v["items"][i]["qty"] * 2}},
    )

    form.array("items").remove(0)

    assert set(form.graph.descriptors) == {"items.0.double", "items.1.double"}


def test_template_helpers() -> None:
    def fn(values: dict[str, Any]) -> int:
        return 1

    assert split_template("items*total") == ("items", "total")
    assert split_template("items.*.total") == ("items", "total")
    assert split_template("total") is None
    assert template_parts(fn) == (None, fn)
    assert template_parts((["a"], fn)) == (("a",), fn)
    with pytest.raises(FormConfigError):
        template_parts(42)  # type: ignore[arg-type]
