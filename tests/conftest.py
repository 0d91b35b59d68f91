"""Shared fixtures: controllable clocks and a no-wait sleep for retry tests."""

import pytest

from tests.support import FakeClock, RecordingSleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def no_sleep() -> RecordingSleep:
    return RecordingSleep()
