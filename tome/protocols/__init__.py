from tome.protocols.tome import (
    Clock,
    Moment,
    MomentHook,
    MomentPredicate,
    Reducer,
    Subscriber,
)

__all__ = [
    "Clock",
    "Moment",
    "MomentHook",
    "MomentPredicate",
    "Reducer",
    "Subscriber",
]
