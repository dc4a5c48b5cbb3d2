from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tome.errors import TomeConfigError
from tome.models.keep import KeepAll, KeepRule, iter_rules, parse_keep
from tome.models.sort import SortRule, parse_sort


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False

    @field_validator("level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class TelemetryConfig(BaseModel):
    """OpenTelemetry tracing configuration."""

    enabled: bool = False
    service_name: str = "tome"
    endpoint: str | None = None
    env: str = "dev"


class RetentionConfig(BaseModel):
    """Default keep/sort/ts_key options applied by ``Tome.from_settings``.

    ``first`` rules need a Python predicate and cannot be expressed here.
    """

    keep: KeepRule = Field(default_factory=KeepAll)
    sort: list[SortRule] = Field(default_factory=list)
    ts_key: str | None = None

    @field_validator("keep", mode="before")
    @classmethod
    def _parse_keep(cls, value: object) -> KeepRule:
        rule = parse_keep(value)
        if any(child.kind == "first" for child in iter_rules(rule)):
            raise TomeConfigError("first rules cannot be configured from settings")
        return rule

    @field_validator("sort", mode="before")
    @classmethod
    def _parse_sort(cls, value: object) -> list[SortRule]:
        rules = parse_sort(value)
        if any(callable(rule.key) for rule in rules):
            raise TomeConfigError("derived sort keys cannot be configured from settings")
        return rules


class TomeSettings(BaseSettings):
    name: str = "tome"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)

    model_config = SettingsConfigDict(
        env_prefix="TOME_",
        env_nested_delimiter="__",
        extra="ignore",
    )


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    prefix = "TOME_"
    for key, raw_value in os.environ.items():
        if not key.startswith(prefix):
            continue
        path = key[len(prefix) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/tome.yaml") -> TomeSettings:
    """Load settings from YAML, layering ``TOME_*`` environment overrides on top.

    The file may hold the settings at the top level or under a ``tome:`` key.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise TomeConfigError("config file must contain a top-level mapping")

    raw = loaded.get("tome", loaded)
    if not isinstance(raw, dict):
        raise TomeConfigError("tome config section must be a mapping")

    merged = _apply_env_overrides(raw)
    return TomeSettings.model_validate(merged)


__all__ = [
    "LoggingConfig",
    "RetentionConfig",
    "TelemetryConfig",
    "TomeSettings",
    "load_config",
]
