"""Aggregate traffic totals for the HTTP query endpoint."""

import asyncio

from ..core.ledger import TrafficLedger
from ..core.reset_policy import ResetPolicy
from ..errors import CounterSourceError
from ..utils.logging import get_logger

logger = get_logger("services.query")

BYTES_PER_MB = 1024 * 1024
UNAVAILABLE = -1


def to_mb(value: int) -> float:
    if value < 0:
        return float(UNAVAILABLE)
    return round(value / BYTES_PER_MB, 3)


class QueryService:
    """Read-only view over the ledger plus an ad-hoc counter sample.

    Never mutates accounting state; the accounting loop is the only writer.
    """

    def __init__(self, ledger: TrafficLedger, counter_source, reset_policy: ResetPolicy):
        self._ledger = ledger
        self._counter_source = counter_source
        self._reset_policy = reset_policy

    async def sample_current(self) -> tuple[int, int]:
        """Current cumulative counters, or (-1, -1) if sampling fails."""
        loop = asyncio.get_running_loop()
        try:
            snapshot = await loop.run_in_executor(None, self._counter_source.sample)
        except CounterSourceError as e:
            logger.warning("current_traffic_unavailable", error=str(e))
            return UNAVAILABLE, UNAVAILABLE
        return snapshot.bytes_sent, snapshot.bytes_recv

    async def get_totals(self) -> dict:
        total = self._ledger.aggregate()
        current_sent, current_recv = await self.sample_current()
        config = self._reset_policy.config
        return {
            "total_bytes_sent": total.bytes_sent,
            "total_bytes_received": total.bytes_recv,
            "total_bytes_sent_mb": to_mb(total.bytes_sent),
            "total_bytes_received_mb": to_mb(total.bytes_recv),
            "current_bytes_sent": current_sent,
            "current_bytes_received": current_recv,
            "current_bytes_sent_mb": to_mb(current_sent),
            "current_bytes_received_mb": to_mb(current_recv),
            "reset_day": config.reset_day,
            "last_reset_date": config.last_reset_date or None,
        }
