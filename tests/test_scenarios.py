"""End-to-end retention scenarios exercising sort, keep and fold together."""

from __future__ import annotations

from typing import Any

import pytest

from tome.core.tome import Tome
from tome.models.keep import KeepCount, KeepMin, KeepSince

from tests.fakes import FakeClock, append_values, fold_directly, sum_values


def _values(tome: Tome) -> list[Any]:
    return [moment["value"] for moment in tome.moments]


class TestCountRetention:
    def test_sum_with_last_two_kept(self) -> None:
        tome = Tome(sum_values, 0, keep=("count", 2))

        for value in (1, 2, 3, 4):
            tome.add({"value": value})

        assert _values(tome) == [3, 4]
        assert tome.relic == 3
        assert tome.tome == 10

    @pytest.mark.parametrize("n", [0, 1, 3, 10])
    def test_count_never_exceeds_n(self, n: int) -> None:
        tome = Tome(append_values, [], keep=KeepCount(n=n))

        for value in range(7):
            tome.add({"value": value})
            assert len(tome.moments) == min(n, value + 1)

        assert tome.tome == list(range(7))

    def test_batch_add_collapses_the_same_as_single_adds(self) -> None:
        single = Tome(append_values, [], keep=("count", 3))
        batch = Tome(append_values, [], keep=("count", 3))

        for value in range(6):
            single.add({"value": value})
        batch.add([{"value": value} for value in range(6)])

        assert single.relic == batch.relic == [0, 1, 2]
        assert single.moments == batch.moments
        assert single.tome == batch.tome


class TestSinceRetention:
    def test_stale_moment_is_folded_after_update(self, clock: FakeClock) -> None:
        tome = Tome(
            append_values,
            [],
            keep=("since", 1000),
            ts_key="t",
            sort=("asc", "t"),
            clock=clock,
        )

        tome.add({"value": "old", "t": clock.ago(milliseconds=2000)})
        tome.add({"value": "new", "t": clock.now})
        tome.update()

        assert _values(tome) == ["new"]
        assert tome.relic == ["old"]
        assert tome.tome == ["old", "new"]

    def test_moments_age_out_as_the_clock_advances(self, clock: FakeClock) -> None:
        tome = Tome(append_values, [], keep=KeepSince(window=1000), ts_key="t", clock=clock)
        tome.add({"value": "first"})
        clock.advance(milliseconds=600)
        tome.add({"value": "second"})

        clock.advance(milliseconds=600)
        assert tome.update() == 1
        assert _values(tome) == ["second"]

        clock.advance(milliseconds=600)
        assert tome.update() == 1
        assert tome.moments == ()
        assert tome.relic == ["first", "second"]

    def test_epoch_millisecond_timestamps(self, clock: FakeClock) -> None:
        now_ms = clock.now.timestamp() * 1000
        tome = Tome(append_values, [], keep=("since", 1000), ts_key="t", clock=clock)

        tome.add([{"value": "old", "t": now_ms - 5000}, {"value": "new", "t": now_ms}])

        assert _values(tome) == ["new"]
        assert tome.relic == ["old"]


class TestCombinedRetention:
    def _tome(self, clock: FakeClock) -> Tome:
        keep = KeepMin(rules=[KeepCount(n=5), KeepSince(window=60_000)])
        return Tome(append_values, [], keep=keep, ts_key="t", clock=clock)

    def test_count_binds_when_everything_is_recent(self, clock: FakeClock) -> None:
        tome = self._tome(clock)

        for value in range(8):
            tome.add({"value": value})
            clock.advance(seconds=1)

        assert _values(tome) == [3, 4, 5, 6, 7]
        assert tome.relic == [0, 1, 2]

    def test_window_binds_when_few_moments_are_recent(self, clock: FakeClock) -> None:
        tome = self._tome(clock)
        tome.add({"value": 0})
        clock.advance(seconds=30)
        tome.add([{"value": 1}, {"value": 2}])

        clock.advance(seconds=40)
        tome.update()

        assert _values(tome) == [1, 2]
        assert tome.relic == [0]

    def test_binding_rule_alternates(self, clock: FakeClock) -> None:
        tome = self._tome(clock)
        tome.add([{"value": value} for value in range(3)])

        clock.advance(seconds=61)
        tome.add([{"value": value} for value in range(3, 10)])
        assert _values(tome) == [5, 6, 7, 8, 9]

        clock.advance(seconds=61)
        tome.add({"value": 10})
        assert _values(tome) == [10]
        assert tome.tome == list(range(11))


class TestTwoKeySort:
    def test_secondary_key_breaks_ties(self) -> None:
        tome = Tome(append_values, [], sort=[("asc", "priority"), ("desc", "t")])

        tome.add({"priority": 2, "t": 10, "value": "c"})
        tome.add({"priority": 1, "t": 10, "value": "b"})
        tome.add({"priority": 1, "t": 30, "value": "a"})
        tome.add({"priority": 2, "t": 20, "value": "d"})

        assert [(m["priority"], m["t"]) for m in tome.moments] == [(1, 30), (1, 10), (2, 20), (2, 10)]
        assert tome.tome == ["a", "b", "d", "c"]

    def test_equal_keys_keep_arrival_order(self) -> None:
        tome = Tome(append_values, [], sort=[("asc", "priority"), ("desc", "t")])

        for value in ("x", "y", "z"):
            tome.add({"priority": 1, "t": 5, "value": value})

        assert _values(tome) == ["x", "y", "z"]

    def test_derived_sort_key(self) -> None:
        tome = Tome(append_values, [], sort=("desc", lambda moment: len(moment["value"])))

        tome.add([{"value": "aa"}, {"value": "a"}, {"value": "aaa"}])

        assert _values(tome) == ["aaa", "aa", "a"]


class TestFoldCorrectness:
    def test_fold_matches_direct_fold_after_mixed_operations(self, clock: FakeClock) -> None:
        tome = Tome(
            append_values,
            ["seed"],
            keep=("max", [("count", 4), ("since", 3000)]),
            ts_key="t",
            sort=("asc", "value"),
            clock=clock,
        )

        for step in range(12):
            tome.add({"value": step % 5, "t": clock.ago(seconds=step % 3)})
            clock.advance(seconds=1)
            if step % 4 == 3:
                tome.update()
            assert tome.tome == fold_directly(append_values, tome.relic, tome.moments)

        tome.remove(lambda moment: moment["value"] == 4)
        tome.invalidate()
        assert tome.tome == fold_directly(append_values, tome.relic, tome.moments)
