"""Path codec: conversion between nested value trees and flat path maps.

A *path* is a dot-separated string. Segments made only of digits address
list positions; every other segment addresses a mapping key::

    {"items": [{"qty": 1}], "name": "x"}  <->  {"items.0.qty": 1, "name": "x"}

Empty lists and empty dicts are kept as leaf markers at their own path so
that ``nest(flatten(x)) == x`` holds for any tree built from dicts, lists
and scalars. Anything that is not a ``dict`` or ``list`` (dates, tuples,
models, ...) is a leaf and is never recursed into.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any

from pyformstate._constants import INDEX_PLACEHOLDER, PATH_SEPARATOR
from pyformstate.exceptions import FormPathError


def split_path(path: str) -> list[str]:
    return path.split(PATH_SEPARATOR) if path else []


def join_path(*segments: str | int) -> str:
    return PATH_SEPARATOR.join(str(s) for s in segments if s != "")


def is_index(segment: str) -> bool:
    """Return ``True`` when *segment* denotes a non-negative list index."""
    return segment.isdigit()


def is_under(path: str, prefix: str) -> bool:
    """Return ``True`` when *path* equals *prefix* or is a strict descendant of it."""
    return path == prefix or path.startswith(prefix + PATH_SEPARATOR)


def _is_empty_marker(value: Any) -> bool:
    return (isinstance(value, list) and not value) or (isinstance(value, dict) and not value)


# ---------------------------------------------------------------------------
# flatten / nest
# ---------------------------------------------------------------------------


def _flatten_into(value: Any, path: str, out: dict[str, Any]) -> None:
    if isinstance(value, Mapping):
        if not value:
            out[path] = {}
            return
        for key, item in value.items():
            _flatten_into(item, join_path(path, str(key)), out)
        return
    if isinstance(value, list):
        if not value:
            out[path] = []
            return
        for idx, item in enumerate(value):
            _flatten_into(item, join_path(path, idx), out)
        return
    out[path] = value


def flatten(nested: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten a nested mapping into a ``{path: value}`` dict."""
    result: dict[str, Any] = {}
    for key, value in nested.items():
        _flatten_into(value, join_path(prefix, str(key)), result)
    return result


def flatten_at(path: str, value: Any) -> dict[str, Any]:
    """Flatten *value* as if it lived at *path* in the tree."""
    result: dict[str, Any] = {}
    _flatten_into(value, path, result)
    return result


def _get_child(node: dict[str, Any] | list[Any], segment: str) -> Any:
    if isinstance(node, list):
        idx = int(segment)
        return node[idx] if idx < len(node) else None
    return node.get(segment)


def _set_child(node: dict[str, Any] | list[Any], segment: str, value: Any, path: str) -> None:
    if isinstance(node, list):
        if not is_index(segment):
            raise FormPathError(f"Path {path!r} addresses key {segment!r} inside a list", path=path)
        idx = int(segment)
        if idx >= len(node):
            node.extend([None] * (idx + 1 - len(node)))
        node[idx] = value
        return
    node[segment] = value


def _place(root: dict[str, Any], path: str, value: Any) -> None:
    parts = split_path(path)
    node: dict[str, Any] | list[Any] = root
    for i, part in enumerate(parts[:-1]):
        child = _get_child(node, part)
        wants_list = is_index(parts[i + 1])
        if isinstance(child, (dict, list)) and child and isinstance(child, list) != wants_list:
            raise FormPathError(f"Path {path!r} conflicts with the shape of its siblings", path=path)
        if wants_list and not isinstance(child, list):
            child = []
            _set_child(node, part, child, path)
        elif not wants_list and not isinstance(child, dict):
            child = {}
            _set_child(node, part, child, path)
        node = child
    last = parts[-1]
    if _is_empty_marker(value):
        existing = _get_child(node, last)
        # A marker never clobbers a container populated by a sibling key.
        if isinstance(existing, type(value)) and existing:
            return
        value = type(value)()
    _set_child(node, last, value, path)


def nest(flat: Mapping[str, Any]) -> dict[str, Any]:
    """Rebuild the nested tree from a flat ``{path: value}`` mapping.

    The container created for an intermediate node is chosen by peeking at
    the next segment: an index segment yields a list, anything else a dict.
    Lists are padded with ``None`` up to the addressed position.
    """
    result: dict[str, Any] = {}
    for path, value in flat.items():
        if not path:
            continue
        _place(result, path, value)
    return result


# ---------------------------------------------------------------------------
# nested tree access
# ---------------------------------------------------------------------------


def get_by_path(obj: Any, path: str) -> Any:
    """Resolve *path* inside a nested tree, returning ``None`` when absent."""
    current = obj
    for part in split_path(path):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list) and is_index(part):
            idx = int(part)
            current = current[idx] if idx < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def set_by_path(obj: dict[str, Any], path: str, value: Any) -> None:
    """Write *value* at *path* inside a nested tree, creating intermediates."""
    if not path:
        return
    parts = split_path(path)
    node: dict[str, Any] | list[Any] = obj
    for i, part in enumerate(parts[:-1]):
        child = _get_child(node, part)
        if not isinstance(child, (dict, list)):
            child = [] if is_index(parts[i + 1]) else {}
            _set_child(node, part, child, path)
        node = child
    _set_child(node, parts[-1], value, path)


def subtree(flat: Mapping[str, Any], path: str) -> Any:
    """Project the value stored at or below *path* out of a flat mapping."""
    if path in flat and not _is_empty_marker(flat[path]):
        return flat[path]
    prefix = path + PATH_SEPARATOR
    below = {key[len(prefix):]: value for key, value in flat.items() if key.startswith(prefix)}
    if not below:
        return copy.deepcopy(flat[path]) if path in flat else None
    if all(is_index(split_path(key)[0]) for key in below):
        holder = nest({join_path("_", key): value for key, value in below.items()})
        return holder["_"]
    return nest(below)


# ---------------------------------------------------------------------------
# array re-indexing
# ---------------------------------------------------------------------------


def _index_after(key: str, prefix: str) -> tuple[int, str] | None:
    rest = key[len(prefix) + 1:]
    head, sep, tail = rest.partition(PATH_SEPARATOR)
    if not is_index(head):
        return None
    return int(head), (sep + tail)


def renumber_removed(
    flat: Mapping[str, Any],
    prefix: str,
    removed: Iterable[int],
    *,
    keep_marker: bool = True,
) -> dict[str, Any]:
    """Drop the keys of *removed* indices under *prefix* and close the gaps.

    Each surviving key moves down by the number of removed indices below it,
    so indices stay contiguous from 0 and relative order is preserved. When
    nothing survives under *prefix* an empty-list marker is left in place.
    """
    dropped = sorted(set(removed))
    result: dict[str, Any] = {}
    survivors = False
    for key, value in flat.items():
        if not key.startswith(prefix + PATH_SEPARATOR):
            if key != prefix or not keep_marker:
                result[key] = value
            continue
        parsed = _index_after(key, prefix)
        if parsed is None:
            result[key] = value
            continue
        idx, tail = parsed
        if idx in dropped:
            continue
        shift = sum(1 for r in dropped if r < idx)
        result[f"{prefix}{PATH_SEPARATOR}{idx - shift}{tail}"] = value
        survivors = True
    if keep_marker and not survivors:
        result[prefix] = []
    return result


def array_indices(flat: Mapping[str, Any], prefix: str) -> list[int]:
    """Sorted distinct indices that have keys under the array at *prefix*."""
    indices: set[int] = set()
    for key in flat:
        if key.startswith(prefix + PATH_SEPARATOR):
            parsed = _index_after(key, prefix)
            if parsed is not None:
                indices.add(parsed[0])
    return sorted(indices)


def rewrite_index_deps(array_path: str, index: int, deps: Iterable[str] | None) -> list[str]:
    """Point template dependencies at a concrete array element.

    ``items.*.qty`` and ``items.0.qty`` both become ``items.<index>.qty``;
    dependencies outside the array are returned unchanged.
    """
    if not deps:
        return []
    prefix = array_path + PATH_SEPARATOR
    rewritten: list[str] = []
    for dep in deps:
        if dep.startswith(prefix):
            head, sep, tail = dep[len(prefix):].partition(PATH_SEPARATOR)
            if is_index(head) or head == INDEX_PLACEHOLDER:
                dep = f"{prefix}{index}{sep}{tail}"
        rewritten.append(dep)
    return rewritten


# ---------------------------------------------------------------------------
# initial value merging
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def merge_values(primary: Mapping[str, Any], secondary: Mapping[str, Any]) -> dict[str, Any]:
    """Merge two trees key-wise; non-blank *primary* values win.

    Returns a flat mapping. A blank primary value (``None`` or ``""``) falls
    back to the secondary value when the secondary has one.
    """
    flat_primary = flatten(primary)
    flat_secondary = flatten(secondary)
    result: dict[str, Any] = {}
    for key in {**flat_primary, **flat_secondary}:
        primary_value = flat_primary.get(key)
        secondary_value = flat_secondary.get(key)
        if not _is_blank(primary_value):
            result[key] = primary_value
        elif secondary_value is not None:
            result[key] = secondary_value
        else:
            result[key] = primary_value
    return result


def merge_initial_values(
    *,
    saved: Mapping[str, Any] | None,
    defaults: Mapping[str, Any] | None,
    placeholders: Mapping[str, Any] | None,
    saved_first: bool = True,
) -> dict[str, Any]:
    """Combine a persisted draft, defaults and schema placeholders.

    ``saved_first`` decides whether the draft or the defaults win; the
    placeholders only ever fill gaps. Returns the nested tree.
    """
    first, second = (saved, defaults) if saved_first else (defaults, saved)
    merged = nest(merge_values(first or {}, second or {}))
    return nest(merge_values(merged, placeholders or {}))


def determine_dirty_fields(defaults: Mapping[str, Any], saved: Mapping[str, Any]) -> dict[str, bool]:
    """Paths whose saved value differs from the default value."""
    flat_defaults = flatten(defaults)
    flat_saved = flatten(saved)
    return {
        key: True
        for key in {**flat_defaults, **flat_saved}
        if flat_saved.get(key) != flat_defaults.get(key)
    }


# ---------------------------------------------------------------------------
# error maps
# ---------------------------------------------------------------------------


def multi_path_error(paths: Iterable[str], message: str) -> dict[str, str]:
    """Attach the same *message* to several paths."""
    return {path: message for path in paths}


def map_errors(obj: Mapping[str, Any], path: str = "") -> dict[str, str]:
    """Convert a nested error structure into ``{path: message}``.

    List items may carry an explicit ``_index`` (position in the form array)
    and either field messages or a single ``error`` message.
    """
    result: dict[str, str] = {}
    for key, value in obj.items():
        current = join_path(path, str(key))
        if isinstance(value, list):
            for i, item in enumerate(value):
                index = item.get("_index", i) if isinstance(item, Mapping) else i
                item_path = join_path(current, index)
                if isinstance(item, Mapping):
                    fields = [k for k in item if k not in ("_index", "error")]
                    if fields:
                        for sub_key in item:
                            if sub_key != "_index":
                                result[join_path(item_path, sub_key)] = str(item[sub_key])
                    elif "error" in item:
                        result[item_path] = str(item["error"])
                    else:
                        result[item_path] = "Invalid value"
                elif item is not None and item != "":
                    result[item_path] = str(item)
                else:
                    result[item_path] = "Invalid value"
        elif isinstance(value, Mapping):
            result.update(map_errors(value, current))
        else:
            result[current] = str(value)
    return result
