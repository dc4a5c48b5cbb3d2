"""Multi-key comparison of moments."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from numbers import Number, Real
from typing import Any

from tome.models.sort import SortRule
from tome.protocols.tome import Moment


def compare_values(left: Any, right: Any) -> int:
    """Three-way compare of two key values; 0 when tied or unordered."""

    if left == right:
        return 0
    if left is None:
        return -1
    if right is None:
        return 1
    left, right = _align_timestamps(left, right)
    if isinstance(left, Number) and isinstance(right, Number):
        diff = left - right  # type: ignore[operator]
        if diff < 0:
            return -1
        if diff > 0:
            return 1
        return 0
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def _align_timestamps(left: Any, right: Any) -> tuple[Any, Any]:
    """Read a datetime as epoch milliseconds when the other side is a number."""

    if isinstance(left, datetime) and _is_epoch_ms(right):
        return left.timestamp() * 1000, right
    if isinstance(right, datetime) and _is_epoch_ms(left):
        return left, right.timestamp() * 1000
    return left, right


def _is_epoch_ms(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


class Comparator:
    """Orders moments by a list of sort rules, first non-tied rule wins.

    Moments that tie on every rule compare equal, which keeps sorting and
    insertion stable.
    """

    def __init__(self, rules: Sequence[SortRule]) -> None:
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[SortRule, ...]:
        return self._rules

    def __call__(self, a: Moment, b: Moment) -> int:
        for rule in self._rules:
            left, right = (a, b) if rule.direction == "asc" else (b, a)
            result = compare_values(rule.value_of(left), rule.value_of(right))
            if result:
                return result
        return 0


def build_comparator(rules: Sequence[SortRule], ts_key: str | None = None) -> Comparator:
    """Build a comparator, prepending an ascending ``ts_key`` rule when set."""

    ordered = list(rules)
    if ts_key:
        ordered.insert(0, SortRule(direction="asc", key=ts_key))
    return Comparator(ordered)


__all__ = ["Comparator", "build_comparator", "compare_values"]
