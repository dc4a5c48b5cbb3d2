"""Retention rules deciding how many trailing moments stay live.

A keep rule is a tagged union discriminated by ``kind``. The ``min`` and
``max`` variants nest further rules, so a policy such as "the last five
moments, but nothing older than a minute" reads as::

    KeepMin(rules=[KeepCount(n=5), KeepSince(window=timedelta(minutes=1))])

or, in the compact tuple form accepted by :func:`parse_keep`::

    ("min", [("count", 5), ("since", 60_000)])
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import timedelta
from typing import Annotated, Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from tome.errors import TomeConfigError


class _KeepBase(BaseModel):
    model_config = ConfigDict(frozen=True)


class KeepAll(_KeepBase):
    kind: Literal["all"] = "all"


class KeepNone(_KeepBase):
    kind: Literal["none"] = "none"


class KeepCount(_KeepBase):
    kind: Literal["count"] = "count"
    n: int = Field(ge=0)


class KeepFirst(_KeepBase):
    """Keep everything from the first moment matching ``predicate`` onward."""

    kind: Literal["first"] = "first"
    predicate: Callable[[dict[str, Any]], bool]


class KeepSince(_KeepBase):
    """Keep moments stamped within ``window`` of the evaluation time.

    Bare numbers are read as milliseconds.
    """

    kind: Literal["since"] = "since"
    window: timedelta

    @field_validator("window", mode="before")
    @classmethod
    def _milliseconds(cls, value: object) -> object:
        if isinstance(value, bool):
            return value
        if isinstance(value, int | float):
            return timedelta(milliseconds=value)
        return value

    @field_validator("window")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("since window must not be negative")
        return value


class KeepMin(_KeepBase):
    kind: Literal["min"] = "min"
    rules: list[KeepRule] = Field(min_length=1)


class KeepMax(_KeepBase):
    kind: Literal["max"] = "max"
    rules: list[KeepRule] = Field(min_length=1)


KeepRule: TypeAlias = Annotated[
    KeepAll | KeepNone | KeepCount | KeepFirst | KeepSince | KeepMin | KeepMax,
    Field(discriminator="kind"),
]

KeepMin.model_rebuild()
KeepMax.model_rebuild()

_KEEP_ADAPTER: TypeAdapter[KeepRule] = TypeAdapter(KeepRule)

_PARAM_FIELDS = {
    "count": "n",
    "first": "predicate",
    "since": "window",
}


def parse_keep(value: object) -> KeepRule:
    """Normalize a keep rule from a model, a mapping, or the compact tuple form.

    Compact forms: ``("all",)``, ``"none"``, ``("count", 5)``,
    ``("first", predicate)``, ``("since", 60_000)``, ``("min", [...])``.
    """

    if isinstance(value, _KeepBase):
        return value  # type: ignore[return-value]
    try:
        if isinstance(value, str):
            return _KEEP_ADAPTER.validate_python({"kind": value})
        if isinstance(value, Mapping):
            return _KEEP_ADAPTER.validate_python(_expand_mapping(value))
        if isinstance(value, Sequence) and value:
            return _KEEP_ADAPTER.validate_python(_expand_compact(value))
    except ValidationError as exc:
        raise TomeConfigError(f"invalid keep rule {value!r}: {exc}") from exc
    raise TomeConfigError(f"invalid keep rule {value!r}")


def _expand_mapping(value: Mapping[str, Any]) -> dict[str, Any]:
    data = dict(value)
    if data.get("kind") in {"min", "max"} and isinstance(data.get("rules"), list):
        data["rules"] = [parse_keep(rule) for rule in data["rules"]]
    return data


def _expand_compact(value: Sequence[Any]) -> dict[str, Any]:
    kind, *params = value
    if not isinstance(kind, str):
        raise TomeConfigError(f"keep rule kind must be a string, got {kind!r}")
    if kind in {"all", "none"}:
        if params:
            raise TomeConfigError(f"keep rule {kind!r} takes no parameter")
        return {"kind": kind}
    if len(params) != 1:
        raise TomeConfigError(f"keep rule {kind!r} takes exactly one parameter")
    (param,) = params
    if kind in {"min", "max"}:
        if isinstance(param, str | bytes) or not isinstance(param, Sequence):
            raise TomeConfigError(f"keep rule {kind!r} needs a list of rules")
        return {"kind": kind, "rules": [parse_keep(rule) for rule in param]}
    field = _PARAM_FIELDS.get(kind)
    if field is None:
        raise TomeConfigError(f"unknown keep rule kind {kind!r}")
    return {"kind": kind, field: param}


def iter_rules(rule: KeepRule) -> Iterator[KeepRule]:
    """Yield ``rule`` and every rule nested beneath it, depth first."""

    yield rule
    if rule.kind in {"min", "max"}:
        for child in rule.rules:  # type: ignore[union-attr]
            yield from iter_rules(child)


__all__ = [
    "KeepAll",
    "KeepCount",
    "KeepFirst",
    "KeepMax",
    "KeepMin",
    "KeepNone",
    "KeepRule",
    "KeepSince",
    "iter_rules",
    "parse_keep",
]
