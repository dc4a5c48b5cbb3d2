from tome.models.keep import (
    KeepAll,
    KeepCount,
    KeepFirst,
    KeepMax,
    KeepMin,
    KeepNone,
    KeepRule,
    KeepSince,
    iter_rules,
    parse_keep,
)
from tome.models.sort import SortKey, SortRule, parse_sort

__all__ = [
    "KeepAll",
    "KeepCount",
    "KeepFirst",
    "KeepMax",
    "KeepMin",
    "KeepNone",
    "KeepRule",
    "KeepSince",
    "SortKey",
    "SortRule",
    "iter_rules",
    "parse_keep",
    "parse_sort",
]
