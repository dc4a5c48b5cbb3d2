"""Structural copies of plain moment and state values.

Only a closed set of shapes is supported: immutable scalars are shared, while
mappings, sequences, sets, dataclass instances and pydantic models are rebuilt
recursively. Anything else is rejected so that a stored moment can never alias caller-owned objects.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

_IMMUTABLE_SCALARS: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    Decimal,
    Enum,
    datetime,
    date,
    time,
    timedelta,
)


def deep_copy(value: T) -> T:
    """Return an independent copy of ``value``.

    Raises ``TypeError`` for shapes outside the supported set.
    """

    if isinstance(value, _IMMUTABLE_SCALARS):
        return value
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)  # type: ignore[return-value]
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _copy_dataclass(value)
    if isinstance(value, Mapping):
        return {key: deep_copy(item) for key, item in value.items()}  # type: ignore[return-value]
    if isinstance(value, list):
        return [deep_copy(item) for item in value]  # type: ignore[return-value]
    if isinstance(value, tuple):
        items = [deep_copy(item) for item in value]
        if hasattr(value, "_fields"):
            return type(value)(*items)  # type: ignore[return-value]
        return tuple(items)  # type: ignore[return-value]
    if isinstance(value, frozenset):
        return frozenset(deep_copy(item) for item in value)  # type: ignore[return-value]
    if isinstance(value, set):
        return {deep_copy(item) for item in value}  # type: ignore[return-value]
    raise TypeError(f"cannot deep-copy value of type {type(value).__name__}")


def _copy_dataclass(value: T) -> T:
    changes = {
        f.name: deep_copy(getattr(value, f.name))
        for f in dataclasses.fields(value)  # type: ignore[arg-type]
        if f.init
    }
    return dataclasses.replace(value, **changes)  # type: ignore[type-var]


def copy_all(values: list[Any]) -> list[Any]:
    return [deep_copy(value) for value in values]


__all__ = ["copy_all", "deep_copy"]
