"""Binary search over a sorted moment list."""

from __future__ import annotations

from collections.abc import Sequence

from tome.core.comparator import Comparator
from tome.protocols.tome import Moment

NOT_FOUND = -1


def find_index(
    moments: Sequence[Moment],
    moment: Moment,
    comparator: Comparator,
    *,
    lazy: bool = False,
) -> int:
    """Locate ``moment`` in ``moments``, which must be sorted by ``comparator``.

    With ``lazy=True`` return the index at which ``moment`` should be inserted:
    after every entry that compares equal, so arrivals with identical keys keep
    their arrival order. Otherwise return the index of an entry equal to
    ``moment`` or ``NOT_FOUND``.
    """

    if lazy:
        return _upper_bound(moments, moment, comparator)

    index = _lower_bound(moments, moment, comparator)
    while index < len(moments) and comparator(moments[index], moment) == 0:
        if moments[index] == moment:
            return index
        index += 1
    return NOT_FOUND


def _lower_bound(moments: Sequence[Moment], moment: Moment, comparator: Comparator) -> int:
    lo, hi = 0, len(moments)
    while lo < hi:
        mid = (lo + hi) // 2
        if comparator(moments[mid], moment) < 0:
            lo = mid + 1
        else:
            hi = mid
    return lo


def _upper_bound(moments: Sequence[Moment], moment: Moment, comparator: Comparator) -> int:
    lo, hi = 0, len(moments)
    while lo < hi:
        mid = (lo + hi) // 2
        if comparator(moment, moments[mid]) < 0:
            hi = mid
        else:
            lo = mid + 1
    return lo


__all__ = ["NOT_FOUND", "find_index"]
