"""Sort rules defining the total order of a tome's moments."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from tome.errors import TomeConfigError

SortKey = str | Callable[[dict[str, Any]], Any]


class SortRule(BaseModel):
    """One ``(direction, key)`` pair.

    ``key`` is either a field name looked up on the moment or a callable that
    derives the value to compare.
    """

    model_config = ConfigDict(frozen=True)

    direction: Literal["asc", "desc"] = "asc"
    key: str | Callable[[dict[str, Any]], Any]

    def value_of(self, moment: dict[str, Any]) -> Any:
        if callable(self.key):
            return self.key(moment)
        return moment.get(self.key)


def parse_sort(value: object) -> list[SortRule]:
    """Normalize sort options into an ordered list of rules.

    Accepts ``None``, a single rule, a single ``(direction, key)`` pair, a
    ``{"direction": ..., "key": ...}`` mapping, or a list of any of those.
    """

    if value is None:
        return []
    if _is_single(value):
        return [_parse_rule(value)]
    if isinstance(value, Sequence) and not isinstance(value, str | bytes):
        return [_parse_rule(item) for item in value]
    raise TomeConfigError(f"invalid sort options {value!r}")


def _is_single(value: object) -> bool:
    if isinstance(value, SortRule | dict):
        return True
    # a list of rules never starts with a bare direction string
    return (
        isinstance(value, Sequence)
        and not isinstance(value, str | bytes)
        and len(value) == 2
        and isinstance(value[0], str)
        and value[0] in {"asc", "desc"}
    )


def _parse_rule(value: object) -> SortRule:
    if isinstance(value, SortRule):
        return value
    try:
        if isinstance(value, dict):
            return SortRule.model_validate(value)
        if isinstance(value, Sequence) and not isinstance(value, str | bytes) and len(value) == 2:
            direction, key = value
            return SortRule(direction=direction, key=key)
    except ValidationError as exc:
        raise TomeConfigError(f"invalid sort rule {value!r}: {exc}") from exc
    raise TomeConfigError(f"invalid sort rule {value!r}")


__all__ = ["SortKey", "SortRule", "parse_sort"]
