"""Traffic accounting core: snapshots, ledger, boot sessions, reset policy."""

from .ledger import RESET_SUM_KEY, TrafficLedger, TrafficSnapshot

__all__ = ["RESET_SUM_KEY", "TrafficLedger", "TrafficSnapshot"]
