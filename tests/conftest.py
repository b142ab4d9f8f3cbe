import pytest

from newsproxy.cache import ExpiringCache


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    """Cache with the background sweeper disabled; expiry is driven by `clock`."""
    c = ExpiringCache(default_ttl=300, sweep_interval=None, clock=clock)
    yield c
    c.shutdown()
