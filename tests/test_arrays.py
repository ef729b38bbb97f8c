from __future__ import annotations

from typing import Any

from pyformstate import Form
from pyformstate.arrays import SnapshotArrayHelper


def _form(items: list[Any]) -> Form:
    return Form(default_values={"items": items})


def test_remove_if_leaves_no_stale_keys() -> None:
    form = _form([{"qty": 1}, {"qty": 2}])

    form.array("items").remove_if(lambda item: item["qty"] == 1)

    assert form.store.flat() == {"items.0.qty": 2}
    assert form.get_value("items") == [{"qty": 2}]


def test_remove_keeps_order_and_contiguous_indices() -> None:
    form = _form([{"n": "a"}, {"n": "b"}, {"n": "c"}, {"n": "d"}])

    form.array("items").remove(1).remove(1)

    assert form.get_value("items") == [{"n": "a"}, {"n": "d"}]
    assert sorted(form.store.flat()) == ["items.0.n", "items.1.n"]


def test_remove_moves_metadata_with_rows() -> None:
    form = _form([{"qty": 0}, {"qty": 2}, {"qty": 3}])
    form.set_error("items.0.qty", "Too small")
    form.mark_touched("items.2.qty")

    form.array("items").remove(0)

    assert form.get_errors() == {}
    assert form.store.touched_paths() == {"items.1.qty": True}


def test_removing_every_row_leaves_empty_array() -> None:
    form = _form([{"qty": 1}])

    form.array("items").remove(0)

    assert form.get_value("items") == []
    assert form.get_values() == {"items": []}


def test_remove_if_after_writing_the_whole_list() -> None:
    form = _form([{"qty": 1}, {"qty": 2}])
    form.set_value("items", [{"qty": 0}, {"qty": 3}, {"qty": 0}])

    form.array("items").remove_if(lambda item: item["qty"] == 0)

    assert form.get_value("items") == [{"qty": 3}]
    assert form.store.flat() == {"items.0.qty": 3}


def test_remove_from_a_list_of_scalars() -> None:
    form = Form()
    form.set_value("tags", ["a", "b", "c"])

    form.array("tags").remove(0)

    assert form.get_value("tags") == ["b", "c"]


def test_remove_from_a_registered_default_list() -> None:
    form = Form()

    with form.register("tags", default_value=["a", "b"]):
        form.array("tags").remove(1)

        assert form.get_value("tags") == ["a"]


def test_remove_spreads_a_list_held_as_one_key() -> None:
    form = Form()
    form.store.replace_flat({"tags": ["a", "b", "c"]})

    form.array("tags").remove(1)

    assert form.store.flat() == {"tags.0": "a", "tags.1": "c"}
    assert form.get_value("tags") == ["a", "c"]


def test_push_insert_and_update() -> None:
    form = _form([])
    items = form.array("items")

    items.push({"n": "b"}).insert_first({"n": "a"}).push([{"n": "c"}, {"n": "d"}])
    items.update_at(3, {"n": "z"})

    assert [item["n"] for item in items] == ["a", "b", "c", "z"]
    assert len(items) == 4


def test_moves_and_swap() -> None:
    form = _form(["a", "b", "c"])
    items = form.array("items")

    items.move(0, 2)
    assert items.value == ["b", "c", "a"]

    items.swap(0, 1)
    assert items.value == ["c", "b", "a"]

    items.move_up(0).move_down(2)
    assert items.value == ["c", "b", "a"]

    items.move_up(2)
    assert items.value == ["c", "a", "b"]


def test_sort_filter_map_and_compact() -> None:
    form = _form([3, 0, None, 1, "", 2])
    items = form.array("items")

    items.compact()
    assert items.value == [3, 1, 2]

    items.sort()
    assert items.value == [1, 2, 3]

    items.sort(key=lambda n: -n).map(lambda n: n * 10).filter(lambda n: n > 10)
    assert items.value == [30, 20]


def test_replace_where_and_merge() -> None:
    form = _form([{"id": 1, "ok": False}, {"id": 2, "ok": False}])
    items = form.array("items")

    items.replace_where(lambda item: item["id"] == 2, {"id": 2, "ok": True})
    items.merge(lambda current: current + [{"id": 3, "ok": True}])

    assert items.value == [{"id": 1, "ok": False}, {"id": 2, "ok": True}, {"id": 3, "ok": True}]
    assert items.find_index(lambda item: item["ok"]) == 1
    assert items.some(lambda item: item["id"] == 3)
    assert not items.every(lambda item: item["ok"])
    assert items.first() == {"id": 1, "ok": False}
    assert items.last()["id"] == 3
    assert items.is_first(0) and items.is_last(2)
    assert set(items.to_object()) == {0, 1, 2}


def test_clear_drops_rows_and_metadata() -> None:
    form = _form([{"qty": 1}, {"qty": 2}])
    form.set_error("items.1.qty", "Bad")

    form.array("items").clear()

    assert form.get_value("items") == []
    assert form.get_errors() == {}
    assert form.array("items").length == 0


def test_reads_are_detached_copies() -> None:
    form = _form([{"qty": 1}])

    copy_ = form.array("items").get()
    copy_[0]["qty"] = 99

    assert form.get_value("items.0.qty") == 1


def test_mutation_is_one_notification_batch() -> None:
    form = _form([{"qty": 1}, {"qty": 2}, {"qty": 3}])
    form.flush()
    seen: list[Any] = []
    form.store.bus.subscribe("items", seen.append, emit_current=False)

    form.array("items").remove_if(lambda item: item["qty"] > 1)
    form.flush()

    assert seen == [[{"qty": 1}]]


def test_missing_array_reads_as_empty() -> None:
    form = Form()

    assert form.array("rows").value == []
    assert form.array("rows").first() is None


def test_snapshot_helper_edits_detached_data() -> None:
    data: dict[str, Any] = {"order": {"items": [1, 2, 3, 4]}}
    helper = SnapshotArrayHelper(data, "order.items")

    helper.remove_if(lambda n: n == 2).map(lambda n: n * 2).filter(lambda n: n < 8)

    assert helper.value == [2, 6]
    snap = helper.snapshot()
    snap["order"]["items"].append(0)
    assert data["order"]["items"] == [2, 6]
