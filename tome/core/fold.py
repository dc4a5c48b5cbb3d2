"""Reducer folds and the cached tome they maintain."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from tome.core.copying import deep_copy
from tome.protocols.tome import Moment, Reducer

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FoldCache:
    """Present-or-absent holder for the folded current state."""

    _value: Any = field(default=None, repr=False)
    _present: bool = False

    @property
    def present(self) -> bool:
        return self._present

    def get(self) -> Any:
        if not self._present:
            raise LookupError("fold cache is empty")
        return self._value

    def put(self, value: Any) -> None:
        self._value = value
        self._present = True

    def clear(self) -> None:
        self._value = None
        self._present = False

    def copy(self) -> FoldCache:
        return FoldCache(self._value, self._present)


class FoldEngine:
    """Orchestrates reducer calls; never skips or reorders moments."""

    def __init__(self, reducer: Reducer, relic_copy: Callable[[Any], Any] = deep_copy) -> None:
        self._reducer = reducer
        self._relic_copy = relic_copy

    @property
    def reducer(self) -> Reducer:
        return self._reducer

    def fold(self, accumulator: Any, moments: Iterable[Moment]) -> Any:
        for moment in moments:
            accumulator = self._reducer(accumulator, moment)
        return accumulator

    def collapse(self, relic: Any, moments: list[Moment], keep: int) -> tuple[Any, list[Moment]]:
        """Fold every moment before the last ``keep`` into ``relic``.

        The collapsed prefix is removed from ``moments`` in place and returned
        alongside the new relic.
        """

        collapse_count = len(moments) - keep
        if collapse_count <= 0:
            return relic, []
        collapsed = moments[:collapse_count]
        relic = self.fold(relic, collapsed)
        del moments[:collapse_count]
        logger.debug("collapsed %d moments into relic", collapse_count)
        return relic, collapsed

    def fold_into(self, cache: FoldCache, relic: Any, moments: Iterable[Moment]) -> None:
        start = cache.get() if cache.present else self._relic_copy(relic)
        cache.put(self.fold(start, moments))

    def rebuild(self, cache: FoldCache, relic: Any, moments: Iterable[Moment]) -> None:
        cache.clear()
        self.fold_into(cache, relic, moments)
        logger.debug("rebuilt tome from relic")


__all__ = ["FoldCache", "FoldEngine"]
