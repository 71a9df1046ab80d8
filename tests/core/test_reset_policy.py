"""Tests for the monthly reset policy."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest

from netmeter.config import load_or_create_agent_config
from netmeter.core.ledger import RESET_SUM_KEY, TrafficLedger, TrafficSnapshot
from netmeter.core.reset_policy import ARMED, FIRED, reset_boundary
from netmeter.errors import ConfigIOError, LedgerIOError


def snap(sent, recv):
    return TrafficSnapshot(bytes_sent=sent, bytes_recv=recv)


class TestResetBoundary:
    def test_midnight_of_reset_day(self):
        assert reset_boundary(10, 2024, 8) == datetime(2024, 8, 10)

    def test_clamped_to_end_of_february(self):
        assert reset_boundary(31, 2023, 2) == datetime(2023, 2, 28)
        assert reset_boundary(30, 2024, 2) == datetime(2024, 2, 29)

    def test_clamped_to_end_of_thirty_day_month(self):
        assert reset_boundary(31, 2024, 4) == datetime(2024, 4, 30)

    def test_invalid_day_rejected(self):
        with pytest.raises(ValueError):
            reset_boundary(0, 2024, 1)
        with pytest.raises(ValueError):
            reset_boundary(32, 2024, 1)


class TestShouldReset:
    def test_before_boundary_is_fired(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=10, last_reset_date="2024-07-15")
        assert policy.should_reset(datetime(2024, 8, 9, 23, 59, 59)) is False
        assert policy.state(datetime(2024, 8, 9, 23, 59, 59)) == FIRED

    def test_at_boundary_is_armed(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=10, last_reset_date="2024-07-15")
        assert policy.should_reset(datetime(2024, 8, 10, 0, 0, 0)) is True
        assert policy.state(datetime(2024, 8, 10)) == ARMED

    def test_empty_last_reset_date_fires_after_boundary(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=1, last_reset_date="")
        assert policy.should_reset(datetime(2024, 8, 1, 0, 0, 1)) is True

    def test_empty_last_reset_date_waits_for_boundary(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=20, last_reset_date="")
        assert policy.should_reset(datetime(2024, 8, 19)) is False

    def test_reset_later_in_month_still_counts(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=10, last_reset_date="2024-08-12")
        assert policy.should_reset(datetime(2024, 8, 25)) is False

    def test_day_31_fires_on_last_day_of_february(self, make_policy):
        policy = make_policy(TrafficLedger(), reset_day=31, last_reset_date="2024-01-31")
        assert policy.should_reset(datetime(2024, 2, 28, 23)) is False
        assert policy.should_reset(datetime(2024, 2, 29, 0, 5)) is True


class TestEvaluate:
    def test_scenario_reset_fires_on_boundary(self, make_policy, config_path, ledger_path):
        ledger = TrafficLedger({"sessA": snap(100, 200)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")

        absorbed = policy.evaluate(datetime(2024, 8, 10, 12, 0))

        assert absorbed == snap(100, 200)
        assert ledger.to_dict() == {RESET_SUM_KEY: {"total_bytes_sent": 100, "total_bytes_recv": 200}}
        assert policy.config.last_reset_date == "2024-08-10"
        assert TrafficLedger.load(ledger_path) == ledger
        assert load_or_create_agent_config(config_path).last_reset_date == "2024-08-10"

    def test_scenario_second_evaluation_same_day_is_noop(self, make_policy, config_path):
        ledger = TrafficLedger({"sessA": snap(100, 200)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")
        policy.evaluate(datetime(2024, 8, 10, 12, 0))

        ledger.upsert_session("sessA", snap(130, 260))
        assert policy.evaluate(datetime(2024, 8, 10, 18, 0)) is None

        assert ledger.baseline() == snap(100, 200)
        assert ledger.get("sessA") == snap(130, 260)
        assert ledger.aggregate() == snap(30, 60)
        assert policy.resets_applied == 1
        assert json.loads(config_path.read_text(encoding="utf-8"))["last_reset_date"] == "2024-08-10"

    def test_idempotent_within_boundary(self, make_policy):
        ledger = TrafficLedger({"sessA": snap(100, 200), "sessB": snap(5, 5)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")
        policy.evaluate(datetime(2024, 8, 10, 1))
        state_after_first = (ledger.to_dict(), policy.config)
        policy.evaluate(datetime(2024, 8, 10, 2))
        assert (ledger.to_dict(), policy.config) == state_after_first

    def test_conservation_across_reset(self, make_policy):
        ledger = TrafficLedger({
            "boot-1": snap(500, 700),
            "boot-2": snap(90, 10),
            RESET_SUM_KEY: snap(300, 400),
        })
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-10")
        aggregate_before = ledger.aggregate()
        baseline_before = ledger.baseline()

        policy.evaluate(datetime(2024, 8, 10, 0, 0, 3))

        assert ledger.baseline().saturating_sub(baseline_before) == aggregate_before
        assert ledger.sessions() == {}

    def test_fires_again_next_month(self, make_policy, clock):
        ledger = TrafficLedger({"sessA": snap(100, 200)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")
        policy.evaluate(datetime(2024, 8, 10))

        ledger.upsert_session("sessA", snap(400, 500))
        assert policy.evaluate(datetime(2024, 9, 9, 23)) is None
        absorbed = policy.evaluate(datetime(2024, 9, 10, 0, 1))

        assert absorbed == snap(300, 300)
        assert ledger.baseline() == snap(400, 500)
        assert policy.config.last_reset_date == "2024-09-10"

    def test_uses_clock_when_now_omitted(self, make_policy, clock):
        clock.now = datetime(2024, 8, 11, 8, 0)
        ledger = TrafficLedger({"sessA": snap(1, 1)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-10")
        policy.evaluate()
        assert policy.config.last_reset_date == "2024-08-11"

    def test_config_failure_raises_and_keeps_old_date(self, make_policy, ledger_path):
        ledger = TrafficLedger({"sessA": snap(100, 200)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")

        with patch("netmeter.core.reset_policy.save_agent_config", side_effect=ConfigIOError("read-only")):
            with pytest.raises(ConfigIOError):
                policy.evaluate(datetime(2024, 8, 10, 12))

        assert policy.config.last_reset_date == "2024-07-15"
        # ledger was committed first
        assert TrafficLedger.load(ledger_path).baseline() == snap(100, 200)

    def test_ledger_failure_raises_before_config_write(self, make_policy, config_path):
        ledger = TrafficLedger({"sessA": snap(100, 200)})
        policy = make_policy(ledger, reset_day=10, last_reset_date="2024-07-15")

        with patch.object(TrafficLedger, "persist", side_effect=LedgerIOError("disk full")):
            with pytest.raises(LedgerIOError):
                policy.evaluate(datetime(2024, 8, 10, 12))

        assert load_or_create_agent_config(config_path).last_reset_date == "2024-07-15"
        assert policy.should_reset(datetime(2024, 8, 10, 12, 0, 3)) is True
