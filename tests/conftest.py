"""Shared test fixtures."""

from datetime import datetime

import pytest

from netmeter.config import AgentConfig, save_agent_config
from netmeter.core.ledger import TrafficLedger, TrafficSnapshot
from netmeter.core.reset_policy import ResetPolicy
from netmeter.errors import BootTimeError, CounterSourceError


class FakeCounterSource:
    """Counter source that replays queued samples; an Exception entry is raised."""

    def __init__(self, *samples):
        self.samples = list(samples)
        self.calls = 0

    def push(self, sample):
        self.samples.append(sample)

    def sample(self) -> TrafficSnapshot:
        self.calls += 1
        if not self.samples:
            raise CounterSourceError("no sample queued")
        item = self.samples.pop(0) if len(self.samples) > 1 else self.samples[0]
        if isinstance(item, Exception):
            raise item
        return item


class FakeBootTimeSource:
    def __init__(self, timestamp="2024-08-01 09:12:44"):
        self.timestamp = timestamp

    def current_boot_timestamp(self) -> str:
        if isinstance(self.timestamp, Exception):
            raise self.timestamp
        return self.timestamp


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.json"


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "traffic_data.json"


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 8, 10, 12, 0, 0))


@pytest.fixture
def make_policy(config_path, ledger_path, clock):
    """Build a ResetPolicy whose config is already on disk."""

    def _make(ledger: TrafficLedger, reset_day: int = 10, last_reset_date: str = "2024-07-15"):
        config = AgentConfig(reset_day=reset_day, last_reset_date=last_reset_date)
        save_agent_config(config_path, config)
        return ResetPolicy(
            config=config,
            config_path=config_path,
            ledger=ledger,
            ledger_path=ledger_path,
            clock=clock,
        )

    return _make


@pytest.fixture
def counter_source():
    return FakeCounterSource(TrafficSnapshot(bytes_sent=1_000, bytes_recv=5_000))


@pytest.fixture
def boot_time_source():
    return FakeBootTimeSource()


@pytest.fixture
def failing_counter_source():
    return FakeCounterSource(CounterSourceError("interface query failed"))


@pytest.fixture
def failing_boot_time_source():
    return FakeBootTimeSource(BootTimeError("uptime not available"))


@pytest.fixture
def counter_source_factory():
    return FakeCounterSource


@pytest.fixture
def boot_time_factory():
    return FakeBootTimeSource
