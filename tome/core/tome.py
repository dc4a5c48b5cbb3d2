"""The Tome container: an ordered moment log folded into current state.

A tome keeps three pieces of state:

- ``relic``: the fold of every moment that has been compacted out of the log,
- ``moments``: the live log, always sorted by the configured sort rules,
- ``tome``: the cached fold of ``relic`` followed by every live moment.

After every mutation the keep rule decides how many trailing moments stay
live; the rest are folded into the relic. Subscribers are notified once per
mutation with a read-through :class:`~tome.core.subscriptions.TomeView`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Final

from tome.core.comparator import build_comparator
from tome.core.copying import copy_all, deep_copy
from tome.core.fold import FoldCache, FoldEngine
from tome.core.metrics import (
    TOME_LIVE_MOMENTS,
    TOME_MOMENTS_ADDED_TOTAL,
    TOME_MOMENTS_COLLAPSED_TOTAL,
    TOME_MOMENTS_REMOVED_TOTAL,
    TOME_REBUILDS_TOTAL,
)
from tome.core.retention import keep_count, validate_keep
from tome.core.search import NOT_FOUND, find_index
from tome.core.subscriptions import SubscriptionRegistry, TomeView
from tome.core.telemetry import get_tracer, operation_span
from tome.errors import NotReadyError
from tome.models.keep import KeepAll, KeepRule, parse_keep
from tome.models.sort import SortRule, parse_sort
from tome.protocols.tome import Clock, Moment, MomentHook, MomentPredicate, Reducer, Subscriber

if TYPE_CHECKING:
    from tome.config import TomeSettings

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class _State:
    relic: Any
    moments: list[Moment]
    cache: FoldCache = field(default_factory=FoldCache)

    def stage(self) -> _State:
        """Copy the containers so a failed operation can be dropped unapplied."""
        return _State(self.relic, list(self.moments), self.cache.copy())


class Tome:
    """Ordered moment log with a reducer-folded current state.

    ``relic_copy`` produces the starting accumulator for a rebuild so reducers
    that mutate in place never touch the relic. The default handles plain data,
    dataclasses and pydantic models; pass another copier for other types.
    """

    def __init__(
        self,
        reducer: Reducer,
        initial: Any = UNSET,
        *,
        each: MomentHook | None = None,
        keep: KeepRule | object | None = None,
        sort: object = None,
        ts_key: str | None = None,
        clock: Clock | None = None,
        relic_copy: Callable[[Any], Any] = deep_copy,
        name: str = "tome",
    ) -> None:
        self._name = name
        self._fold = FoldEngine(reducer, relic_copy)
        self._each = each
        self._ts_key = ts_key
        self._keep: KeepRule = KeepAll() if keep is None else parse_keep(keep)
        validate_keep(self._keep, ts_key)
        self._comparator = build_comparator(parse_sort(sort), ts_key)
        self._clock: Clock = clock or _utc_now
        self._state: _State | None = None
        self._subscriptions = SubscriptionRegistry(name)
        self._view = TomeView(self)
        self._lock = threading.RLock()

        if initial is not UNSET:
            self.set(initial, [])

    @classmethod
    def from_settings(
        cls,
        reducer: Reducer,
        settings: TomeSettings,
        initial: Any = UNSET,
        **overrides: Any,
    ) -> Tome:
        """Build a tome whose keep/sort/ts_key defaults come from ``settings``."""
        options: dict[str, Any] = {
            "keep": settings.retention.keep,
            "sort": list(settings.retention.sort),
            "ts_key": settings.retention.ts_key,
            "name": settings.name,
        }
        options.update(overrides)
        return cls(reducer, initial, **options)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def keep(self) -> KeepRule:
        return self._keep

    @property
    def sort_rules(self) -> tuple[SortRule, ...]:
        """Effective sort rules, including the implicit ``ts_key`` rule."""
        return self._comparator.rules

    @property
    def ts_key(self) -> str | None:
        return self._ts_key

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            return self._subscriptions.subscribe(callback)

    def clear_subscribers(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(self, relic: Any, moments: Iterable[Moment]) -> None:
        """Replace relic and moments wholesale, e.g. when hydrating from storage."""
        with self._lock, operation_span(_tracer, self._name, "set") as span:
            staged = _State(relic, copy_all(list(moments)))
            if self._comparator.rules:
                staged.moments.sort(key=cmp_to_key(self._comparator))
            collapsed = self._collapse(staged)
            self._rebuild(staged)
            span.set_attribute("tome.moments", len(staged.moments))
            self._commit(staged, collapsed=len(collapsed))
            logger.debug(
                "set %d moments (%d collapsed into relic)",
                len(staged.moments),
                len(collapsed),
            )
            self._subscriptions.notify(self._view)

    def add(self, moments: Moment | Iterable[Moment]) -> None:
        """Insert one moment or a batch, in sort order.

        Inputs are deep-copied first. Subscribers are notified once per call.
        """
        with self._lock, operation_span(_tracer, self._name, "add") as span:
            state = self._require_state("add moments to")
            batch = self._prepare_batch(moments)
            if not batch:
                return

            staged = state.stage()
            collapsed = 0
            for moment in batch:
                self._stamp(moment)
                if self._each is not None:
                    self._each(moment)
                index = find_index(staged.moments, moment, self._comparator, lazy=True)
                staged.moments.insert(index, moment)
                if index == len(staged.moments) - 1:
                    if staged.cache.present:
                        self._fold.fold_into(staged.cache, staged.relic, [moment])
                else:
                    # an earlier position cannot be patched onto the cached fold
                    staged.cache.clear()
                collapsed += len(self._collapse(staged))

            span.set_attribute("tome.added", len(batch))
            self._commit(staged, collapsed=collapsed)
            TOME_MOMENTS_ADDED_TOTAL.labels(tome=self._name).inc(len(batch))
            logger.debug("added %d moments (%d collapsed into relic)", len(batch), collapsed)
            self._subscriptions.notify(self._view)

    def remove(self, predicate: MomentPredicate) -> int:
        """Drop every live moment matching ``predicate``.

        Removed moments are discarded rather than folded, so the relic is left
        untouched. Returns the number of moments removed.
        """
        with self._lock, operation_span(_tracer, self._name, "remove") as span:
            state = self._require_state("remove moments from")
            staged = state.stage()
            kept = [moment for moment in staged.moments if not predicate(moment)]
            removed = len(staged.moments) - len(kept)
            span.set_attribute("tome.removed", removed)
            if not removed:
                return 0

            staged.moments = kept
            self._discarded(staged, removed)
            return removed

    def discard(self, moment: Moment) -> bool:
        """Drop the live moment equal to ``moment``, located by binary search."""
        with self._lock, operation_span(_tracer, self._name, "discard"):
            state = self._require_state("remove moments from")
            index = find_index(state.moments, moment, self._comparator)
            if index == NOT_FOUND:
                return False

            staged = state.stage()
            del staged.moments[index]
            self._discarded(staged, 1)
            return True

    def update(self) -> int:
        """Re-run retention without new data; returns how many moments collapsed.

        Time-based keep rules shift with the clock alone, so hosts call this
        periodically. Subscribers are notified only when something collapsed.
        """
        with self._lock, operation_span(_tracer, self._name, "update") as span:
            state = self._require_state("update")
            staged = state.stage()
            collapsed = len(self._collapse(staged))
            span.set_attribute("tome.collapsed", collapsed)
            if not collapsed:
                return 0

            self._commit(staged, collapsed=collapsed)
            self._subscriptions.notify(self._view)
            return collapsed

    def invalidate(self) -> None:
        """Drop the cached tome; the next read rebuilds it from the relic."""
        with self._lock:
            self._require_state("invalidate").cache.clear()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def ready(self) -> bool:
        return self._state is not None

    @property
    def relic(self) -> Any:
        with self._lock:
            return self._require_state("get relic of").relic

    @property
    def moments(self) -> tuple[Moment, ...]:
        with self._lock:
            return tuple(self._require_state("get moments of").moments)

    @property
    def tome(self) -> Any:
        with self._lock:
            state = self._require_state("get output of")
            if not state.cache.present:
                with operation_span(_tracer, self._name, "rebuild"):
                    self._rebuild(state)
            return state.cache.get()

    def __repr__(self) -> str:
        count = len(self._state.moments) if self._state is not None else None
        return f"Tome(name={self._name!r}, ready={self.ready}, moments={count})"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_state(self, action: str) -> _State:
        if self._state is None:
            raise NotReadyError(action)
        return self._state

    def _prepare_batch(self, moments: Moment | Iterable[Moment]) -> list[Moment]:
        items = [moments] if isinstance(moments, Mapping) else list(moments)
        for item in items:
            if not isinstance(item, Mapping):
                raise TypeError(f"moments must be mappings, got {type(item).__name__}")
        return [deep_copy(item) for item in items]

    def _stamp(self, moment: Moment) -> None:
        if self._ts_key is not None and moment.get(self._ts_key) is None:
            moment[self._ts_key] = self._clock()

    def _collapse(self, staged: _State) -> list[Moment]:
        keep = keep_count(self._ts_key, staged.moments, self._keep, self._clock())
        staged.relic, collapsed = self._fold.collapse(staged.relic, staged.moments, keep)
        return collapsed

    def _rebuild(self, state: _State) -> None:
        self._fold.rebuild(state.cache, state.relic, state.moments)
        TOME_REBUILDS_TOTAL.labels(tome=self._name).inc()

    def _discarded(self, staged: _State, removed: int) -> None:
        staged.cache.clear()
        collapsed = len(self._collapse(staged))
        self._commit(staged, collapsed=collapsed)
        TOME_MOMENTS_REMOVED_TOTAL.labels(tome=self._name).inc(removed)
        logger.debug("removed %d moments (%d collapsed into relic)", removed, collapsed)
        self._subscriptions.notify(self._view)

    def _commit(self, staged: _State, *, collapsed: int) -> None:
        self._state = staged
        TOME_LIVE_MOMENTS.labels(tome=self._name).set(len(staged.moments))
        if collapsed:
            TOME_MOMENTS_COLLAPSED_TOTAL.labels(tome=self._name).inc(collapsed)


__all__ = ["UNSET", "Tome"]
