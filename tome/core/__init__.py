"""Core module: the Tome container and the engines it orchestrates."""

from tome.core.comparator import Comparator, build_comparator
from tome.core.copying import deep_copy
from tome.core.fold import FoldCache, FoldEngine
from tome.core.retention import keep_count, validate_keep
from tome.core.search import NOT_FOUND, find_index
from tome.core.subscriptions import SubscriptionRegistry, TomeView
from tome.core.tome import UNSET, Tome

__all__ = [
    "NOT_FOUND",
    "UNSET",
    "Comparator",
    "FoldCache",
    "FoldEngine",
    "SubscriptionRegistry",
    "Tome",
    "TomeView",
    "build_comparator",
    "deep_copy",
    "find_index",
    "keep_count",
    "validate_keep",
]
