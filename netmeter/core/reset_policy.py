"""Monthly reset policy.

Once per tick the policy checks whether this month's reset boundary (midnight
of ``reset_day``) has passed since the last recorded reset. If so, the
ledger's current aggregate is folded into the baseline, live sessions are
dropped and ``last_reset_date`` moves to today.

Reset days past the end of a short month are clamped to its last day, so a
``reset_day`` of 31 resets on February 28/29.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Optional

from ..config import AgentConfig, save_agent_config
from ..utils.logging import get_logger
from .ledger import TrafficLedger, TrafficSnapshot

logger = get_logger("core.reset_policy")

ARMED = "armed"
FIRED = "fired"


def reset_boundary(reset_day: int, year: int, month: int, tzinfo=None) -> datetime:
    """Midnight of ``reset_day`` in the given month, clamped to month end."""
    if not 1 <= reset_day <= 31:
        raise ValueError(f"reset_day must be within 1..31, got {reset_day}")
    days_in_month = calendar.monthrange(year, month)[1]
    return datetime(year, month, min(reset_day, days_in_month), tzinfo=tzinfo)


class ResetPolicy:
    """Armed/fired reset state machine backed by the config file.

    ``evaluate()`` is idempotent within one boundary: once ``last_reset_date``
    reaches the boundary the policy stays fired until next month's boundary
    passes.
    """

    def __init__(
        self,
        config: AgentConfig,
        config_path: str | Path,
        ledger: TrafficLedger,
        ledger_path: str | Path,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config
        self._config_path = Path(config_path)
        self._ledger = ledger
        self._ledger_path = Path(ledger_path)
        self._clock = clock
        self.resets_applied = 0

    @property
    def config(self) -> AgentConfig:
        return self._config

    def boundary(self, now: Optional[datetime] = None) -> datetime:
        now = now or self._clock()
        return reset_boundary(self._config.reset_day, now.year, now.month, tzinfo=now.tzinfo)

    def should_reset(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        boundary = self.boundary(now)
        if now < boundary:
            return False
        last: date | None = self._config.last_reset
        return last is None or last < boundary.date()

    def state(self, now: Optional[datetime] = None) -> str:
        return ARMED if self.should_reset(now) else FIRED

    def evaluate(self, now: Optional[datetime] = None) -> Optional[TrafficSnapshot]:
        """Apply the reset if the boundary has been crossed.

        Returns the absorbed traffic when a reset fired, else None. The ledger
        is persisted before the config: if the config write fails the next
        run still sees the old ``last_reset_date`` and re-evaluates instead of
        silently skipping a reset.

        Raises LedgerIOError if the ledger cannot be written and
        ConfigIOError if the config cannot be written.
        """
        now = now or self._clock()
        if not self.should_reset(now):
            return None

        boundary = self.boundary(now)
        absorbed = self._ledger.absorb_into_baseline()
        baseline = self._ledger.baseline()
        logger.info(
            "traffic_reset",
            boundary=boundary.date().isoformat(),
            previous_reset=self._config.last_reset_date or None,
            absorbed_sent=absorbed.bytes_sent,
            absorbed_recv=absorbed.bytes_recv,
            baseline_sent=baseline.bytes_sent,
            baseline_recv=baseline.bytes_recv,
        )

        self._ledger.persist(self._ledger_path)

        updated = self._config.with_last_reset(now.date())
        save_agent_config(self._config_path, updated)
        self._config = updated
        self.resets_applied += 1
        logger.info("reset_committed", last_reset_date=updated.last_reset_date)
        return absorbed
