"""Accounting Loop — samples interface counters into the traffic ledger.

Every ``tick_interval`` seconds, in a worker thread:

  1. sample cumulative counters (skip the tick on CounterSourceError)
  2. resolve the boot session (skip the tick on BootTimeError)
  3. upsert the session's snapshot into the ledger
  4. persist the ledger (LedgerIOError is logged, the tick goes on)
  5. evaluate the reset policy

A ConfigIOError raised while committing a reset is fatal: the loop stops and
hands the error to its fatal handler, since an unrecorded reset boundary
would fire again on every tick.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional

from ..core.boot_session import current_boot_session
from ..core.ledger import TrafficLedger, TrafficSnapshot
from ..core.reset_policy import ResetPolicy
from ..errors import BootTimeError, ConfigIOError, CounterSourceError, LedgerIOError
from .base_module import BaseModule


class AccountingLoop(BaseModule):
    """The agent's single ledger writer."""

    def __init__(
        self,
        ledger: TrafficLedger,
        ledger_path: str | Path,
        counter_source,
        boot_time_source,
        reset_policy: ResetPolicy,
        tick_interval: float = 3.0,
        on_fatal: Optional[Callable[[BaseException], None]] = None,
    ):
        super().__init__(name="accounting_loop")
        self._ledger = ledger
        self._ledger_path = Path(ledger_path)
        self._counter_source = counter_source
        self._boot_time_source = boot_time_source
        self._reset_policy = reset_policy
        self._tick_interval = tick_interval
        self._on_fatal = on_fatal

        self._poll_task: Optional[asyncio.Task] = None
        self.last_sample: Optional[TrafficSnapshot] = None
        self.last_session: Optional[str] = None
        self.ticks = 0
        self.skipped_ticks = 0
        self.persist_failures = 0
        self.fatal_error: Optional[BaseException] = None

    def set_fatal_handler(self, handler: Callable[[BaseException], None]) -> None:
        """Attach the handler invoked when a reset cannot be recorded."""
        self._on_fatal = handler

    async def start(self) -> None:
        self.running = True
        self.health_status = "running"
        self.logger.info(
            "accounting_loop_starting",
            interval=self._tick_interval,
            ledger=str(self._ledger_path),
        )
        self._poll_task = asyncio.create_task(self._poll_loop())
        self.heartbeat()

    async def stop(self) -> None:
        self.running = False
        if self._poll_task and not self._poll_task.done() and self._poll_task is not asyncio.current_task():
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
        if self.health_status != "failed":
            self.health_status = "stopped"
        self.logger.info("accounting_loop_stopped", ticks=self.ticks)

    async def health_check(self) -> dict:
        aggregate = self._ledger.aggregate()
        return {
            "status": self.health_status,
            "details": {
                "ticks": self.ticks,
                "skipped_ticks": self.skipped_ticks,
                "persist_failures": self.persist_failures,
                "boot_session": self.last_session,
                "sessions": len(self._ledger.sessions()),
                "aggregate_sent": aggregate.bytes_sent,
                "aggregate_recv": aggregate.bytes_recv,
                "reset_state": self._reset_policy.state(),
                "last_reset_date": self._reset_policy.config.last_reset_date or None,
                "fatal_error": str(self.fatal_error) if self.fatal_error else None,
                "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
                "heartbeat_age_seconds": self.heartbeat_age(),
            },
        }

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self.running:
            try:
                await loop.run_in_executor(None, self.tick)
                self.heartbeat()
            except asyncio.CancelledError:
                break
            except ConfigIOError as e:
                self._fail(e)
                break
            except Exception as e:
                self.logger.error("accounting_tick_error", error=str(e), exc_info=True)
            try:
                await asyncio.sleep(self._tick_interval)
            except asyncio.CancelledError:
                break

    def _fail(self, error: BaseException) -> None:
        self.fatal_error = error
        self.running = False
        self.health_status = "failed"
        self.logger.critical("reset_config_persist_failed", error=str(error))
        if self._on_fatal is not None:
            self._on_fatal(error)

    def tick(self) -> bool:
        """Run one accounting cycle. Returns False if the tick was skipped.

        Raises ConfigIOError if a reset fired but its config write failed.
        """
        self.ticks += 1

        try:
            snapshot = self._counter_source.sample()
        except CounterSourceError as e:
            self.skipped_ticks += 1
            self.logger.warning("counter_sample_failed", error=str(e))
            return False

        try:
            session = current_boot_session(self._boot_time_source)
        except BootTimeError as e:
            self.skipped_ticks += 1
            self.logger.warning("boot_session_failed", error=str(e))
            return False

        if session != self.last_session:
            self.logger.info("boot_session_active", session=session, known=session in self._ledger)

        self._ledger.upsert_session(session, snapshot)
        self.last_sample = snapshot
        self.last_session = session

        try:
            self._ledger.persist(self._ledger_path)
        except LedgerIOError as e:
            self.persist_failures += 1
            self.logger.error("ledger_persist_failed", error=str(e))

        try:
            self._reset_policy.evaluate()
        except LedgerIOError as e:
            self.persist_failures += 1
            self.logger.error("reset_ledger_persist_failed", error=str(e))

        return True
