"""Retention policy evaluation.

``keep_count`` answers how many trailing moments a keep rule retains. It is a
pure function of its arguments, evaluated after every mutation, and its result
is always clamped to ``[0, len(moments)]``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from numbers import Real
from typing import Any

from tome.errors import TomeConfigError
from tome.models.keep import KeepRule, iter_rules
from tome.protocols.tome import Moment


def keep_count(
    ts_key: str | None,
    moments: Sequence[Moment],
    rule: KeepRule,
    now: datetime,
) -> int:
    total = len(moments)
    return max(0, min(total, _evaluate(ts_key, moments, rule, now)))


def _evaluate(ts_key: str | None, moments: Sequence[Moment], rule: KeepRule, now: datetime) -> int:
    total = len(moments)
    if rule.kind == "all":
        return total
    if rule.kind == "none":
        return 0
    if rule.kind == "count":
        return rule.n
    if rule.kind == "first":
        return _retain_from(moments, rule.predicate)
    if rule.kind == "since":
        if ts_key is None:
            raise TomeConfigError("since rule requires a ts_key")
        cutoff = now - rule.window
        return _retain_from(moments, lambda moment: _at_or_after(moment.get(ts_key), cutoff))
    if rule.kind == "min":
        return min(keep_count(ts_key, moments, child, now) for child in rule.rules)
    if rule.kind == "max":
        return max(keep_count(ts_key, moments, child, now) for child in rule.rules)
    raise TomeConfigError(f"unknown keep rule kind {rule.kind!r}")


def _retain_from(moments: Sequence[Moment], predicate: Any) -> int:
    for index, moment in enumerate(moments):
        if predicate(moment):
            return len(moments) - index
    return 0


def _at_or_after(timestamp: Any, cutoff: datetime) -> bool:
    """Numeric timestamps are epoch milliseconds."""

    if timestamp is None:
        return False
    if isinstance(timestamp, datetime):
        return timestamp >= cutoff
    if isinstance(timestamp, Real) and not isinstance(timestamp, bool):
        return timestamp >= cutoff.timestamp() * 1000
    raise TypeError(f"unsupported timestamp value {timestamp!r}")


def validate_keep(rule: KeepRule, ts_key: str | None) -> None:
    """Reject rule trees that can never be evaluated with these options."""

    if ts_key is None and any(child.kind == "since" for child in iter_rules(rule)):
        raise TomeConfigError("since rule requires a ts_key")


__all__ = ["keep_count", "validate_keep"]
