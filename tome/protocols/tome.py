"""Structural types for the collaborators a Tome calls back into."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from tome.core.subscriptions import TomeView

Moment: TypeAlias = dict[str, Any]


@runtime_checkable
class Reducer(Protocol):
    def __call__(self, accumulator: Any, moment: Moment, /) -> Any: ...


@runtime_checkable
class MomentPredicate(Protocol):
    def __call__(self, moment: Moment, /) -> bool: ...


@runtime_checkable
class MomentHook(Protocol):
    def __call__(self, moment: Moment, /) -> None: ...


@runtime_checkable
class Subscriber(Protocol):
    def __call__(self, view: TomeView, /) -> None: ...


@runtime_checkable
class Clock(Protocol):
    def __call__(self) -> datetime: ...


__all__ = [
    "Clock",
    "Moment",
    "MomentHook",
    "MomentPredicate",
    "Reducer",
    "Subscriber",
]
