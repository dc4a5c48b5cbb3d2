from __future__ import annotations

import pytest

from tests.fakes import FakeClock, RecordingSubscriber


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def subscriber() -> RecordingSubscriber:
    return RecordingSubscriber()
