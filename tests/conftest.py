"""Global pytest configuration for all tests."""

import os

import pytest

from fundtracker_common.kv_store import MemoryKeyValueStore


def pytest_configure(config):
    """Set environment variables before any test collection or execution."""
    os.environ.setdefault("AWS_REGION", "us-east-1")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryKeyValueStore(clock=clock)
