"""Narrowing for decoded TOML and JSON.

Manifests, lockfiles, `monorel.toml`, forge responses and webhook payloads
all decode to plain `object`s. Everything below returns None (or an empty
container) instead of raising when the shape is wrong, so callers decide
which absences are errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeGuard

type StrDict = dict[str, object]
type ObjList = list[object]


def is_str_dict(obj: object) -> TypeGuard[StrDict]:
    # tomlkit tables and arrays subclass dict and list, so they pass too.
    return isinstance(obj, dict) and all(isinstance(key, str) for key in obj)


def as_str_dict(obj: object) -> StrDict | None:
    return obj if is_str_dict(obj) else None


def as_obj_list(obj: object) -> ObjList | None:
    return list(obj) if isinstance(obj, list) else None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """String value with surrounding whitespace removed; blank counts as missing."""
    match table.get(key):
        case str(text) if text.strip():
            return text.strip()
        case _:
            return None


def get_int(table: Mapping[str, object], key: str) -> int | None:
    match table.get(key):
        case bool():
            return None
        case int(number):
            return number
        case _:
            return None


def get_bool(table: Mapping[str, object], key: str) -> bool | None:
    value = table.get(key)
    return value if isinstance(value, bool) else None


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    return as_str_dict(table.get(key))


def get_nested(table: Mapping[str, object], *keys: str) -> StrDict:
    """Follow a chain of tables; an empty dict when any link is missing.

    `get_nested(payload, "pull_request", "head")` reads `payload.pull_request.head`.
    """
    current: Mapping[str, object] = table
    for key in keys:
        found = get_table(current, key)
        if found is None:
            return {}
        current = found
    return dict(current)


def get_list(table: Mapping[str, object], key: str) -> ObjList | None:
    return as_obj_list(table.get(key))


def get_str_list(table: Mapping[str, object], key: str) -> list[str]:
    """String items of a list value; other items are dropped."""
    return [item for item in get_list(table, key) or [] if isinstance(item, str)]
