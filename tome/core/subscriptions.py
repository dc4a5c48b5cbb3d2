from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from tome.core.metrics import TOME_SUBSCRIBERS
from tome.core.telemetry import get_tracer
from tome.protocols.tome import Moment, Subscriber

if TYPE_CHECKING:
    from tome.core.tome import Tome

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class TomeView:
    """Read-through view handed to subscribers.

    Each property is re-derived from the container when read, so values
    reflect the container as of the read, not a frozen snapshot taken at
    notification time.
    """

    __slots__ = ("_tome",)

    def __init__(self, tome: Tome) -> None:
        self._tome = tome

    @property
    def relic(self) -> Any:
        return self._tome.relic

    @property
    def moments(self) -> tuple[Moment, ...]:
        return self._tome.moments

    @property
    def tome(self) -> Any:
        return self._tome.tome


class SubscriptionRegistry:
    def __init__(self, name: str = "tome") -> None:
        self._name = name
        self._subscribers: list[_Entry] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it.

        Calling the returned function more than once is a no-op.
        """

        entry = _Entry(callback)
        self._subscribers.append(entry)
        self._update_gauge()

        def unsubscribe() -> None:
            if entry.active:
                entry.active = False
                self._subscribers.remove(entry)
                self._update_gauge()

        return unsubscribe

    def notify(self, view: TomeView) -> int:
        """Call every subscriber with ``view``; exceptions propagate."""

        with _tracer.start_as_current_span("tome.notify") as span:
            targets = list(self._subscribers)
            span.set_attribute("subscribers", len(targets))
            for entry in targets:
                if entry.active:
                    entry(view)
            return len(targets)

    def clear(self) -> None:
        for entry in self._subscribers:
            entry.active = False
        self._subscribers.clear()
        self._update_gauge()
        logger.debug("dropped all subscribers")

    def __len__(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _update_gauge(self) -> None:
        TOME_SUBSCRIBERS.labels(tome=self._name).set(len(self._subscribers))


class _Entry:
    """Wraps a callback so the same function can be subscribed twice."""

    __slots__ = ("active", "callback")

    def __init__(self, callback: Subscriber) -> None:
        self.callback = callback
        self.active = True

    def __call__(self, view: TomeView) -> None:
        self.callback(view)


__all__ = ["SubscriptionRegistry", "TomeView"]
