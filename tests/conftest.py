import pytest

from flipcap import logging_utils, service


class FakeClock:
    """Manually advanced clock with an ``asyncio.sleep`` compatible hook."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture(autouse=True)
def _reset_process_state():
    logging_utils.reset_warn_once_cache()
    service._SERVICE = None
    yield
    logging_utils.reset_warn_once_cache()
    service._SERVICE = None
