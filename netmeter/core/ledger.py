"""Traffic ledger: cumulative byte counters per boot session plus a reset baseline.

The ledger maps a boot-session key to the last cumulative counters observed
during that boot. Counters restart from zero on reboot, so each boot gets its
own entry and the host total is the sum of all entries. The reserved
``resetSum`` entry holds the traffic folded away by monthly resets and is
subtracted from that sum.

A reset drops every session entry but keeps their bytes in the baseline. If the
host rebooted earlier in the period, the total therefore reads zero after the
reset until the current boot's counters pass the whole pre-reset live sum.

On disk the ledger is a JSON object::

    {
      "2024-08-01 09:12:44": {"total_bytes_sent": 100, "total_bytes_recv": 200},
      "resetSum": {"total_bytes_sent": 40, "total_bytes_recv": 90}
    }
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path

from ..errors import LedgerIOError
from ..utils.jsonfile import read_json, write_json_atomic
from ..utils.logging import get_logger

logger = get_logger("core.ledger")

RESET_SUM_KEY = "resetSum"


@dataclass(frozen=True)
class TrafficSnapshot:
    """Cumulative sent/received bytes for one boot session."""

    bytes_sent: int = 0
    bytes_recv: int = 0

    def __post_init__(self):
        if self.bytes_sent < 0 or self.bytes_recv < 0:
            raise ValueError("byte counters cannot be negative")

    def __add__(self, other: TrafficSnapshot) -> TrafficSnapshot:
        return TrafficSnapshot(self.bytes_sent + other.bytes_sent, self.bytes_recv + other.bytes_recv)

    def saturating_sub(self, other: TrafficSnapshot) -> TrafficSnapshot:
        """Component-wise subtraction clamped at zero."""
        return TrafficSnapshot(
            max(self.bytes_sent - other.bytes_sent, 0),
            max(self.bytes_recv - other.bytes_recv, 0),
        )

    def to_dict(self) -> dict:
        return {"total_bytes_sent": self.bytes_sent, "total_bytes_recv": self.bytes_recv}

    @classmethod
    def from_dict(cls, data: dict) -> TrafficSnapshot:
        sent = data.get("total_bytes_sent", 0)
        recv = data.get("total_bytes_recv", 0)
        # bool is an int subclass; a JSON true is not a byte count
        for value in (sent, recv):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"byte counter must be an integer, got {value!r}")
        return cls(bytes_sent=sent, bytes_recv=recv)


ZERO = TrafficSnapshot()


class TrafficLedger:
    """Thread-safe in-memory ledger with JSON persistence.

    The accounting loop is the only writer; HTTP handlers read concurrently.
    Every access goes through ``_lock`` and readers only ever receive copies
    of the entry map.
    """

    def __init__(self, entries: dict[str, TrafficSnapshot] | None = None):
        self._entries: dict[str, TrafficSnapshot] = dict(entries or {})
        self._lock = threading.RLock()

    # --- Persistence ---

    @classmethod
    def load(cls, path: str | Path) -> TrafficLedger:
        """Load the ledger from ``path``, creating an empty ledger file if absent.

        Raises LedgerIOError if the file exists but cannot be read or parsed.
        """
        ledger_path = Path(path)
        if not ledger_path.exists():
            ledger = cls()
            ledger.persist(ledger_path)
            logger.info("ledger_created", path=str(ledger_path))
            return ledger

        try:
            raw = read_json(ledger_path)
        except (OSError, ValueError) as e:
            raise LedgerIOError(f"error reading ledger file {ledger_path}: {e}") from e

        try:
            ledger = cls.from_dict(raw)
        except (TypeError, ValueError) as e:
            raise LedgerIOError(f"invalid ledger file {ledger_path}: {e}") from e

        logger.info("ledger_loaded", path=str(ledger_path), sessions=len(ledger.sessions()))
        return ledger

    def persist(self, path: str | Path) -> None:
        """Write the full ledger to ``path`` via temp file, fsync and rename.

        Raises LedgerIOError on failure. The previous file is left intact.
        """
        data = self.to_dict()
        try:
            write_json_atomic(path, data)
        except (OSError, TypeError, ValueError) as e:
            raise LedgerIOError(f"error saving ledger file {path}: {e}") from e

    @classmethod
    def from_dict(cls, data: dict) -> TrafficLedger:
        if not isinstance(data, dict):
            raise TypeError("ledger must be a JSON object")
        entries = {}
        for key, value in data.items():
            if not isinstance(value, dict):
                raise TypeError(f"ledger entry {key!r} must be an object")
            entries[str(key)] = TrafficSnapshot.from_dict(value)
        return cls(entries)

    def to_dict(self) -> dict:
        with self._lock:
            return {key: snap.to_dict() for key, snap in self._entries.items()}

    # --- Mutation (accounting loop only) ---

    def upsert_session(self, key: str, snapshot: TrafficSnapshot) -> None:
        """Replace the snapshot for boot session ``key``.

        Counters are cumulative since boot, so the latest sample is the
        session total and is stored as-is.
        """
        if key == RESET_SUM_KEY:
            raise ValueError(f"{RESET_SUM_KEY!r} is reserved for the reset baseline")
        with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = snapshot
        if previous is not None and (
            snapshot.bytes_sent < previous.bytes_sent or snapshot.bytes_recv < previous.bytes_recv
        ):
            logger.warning(
                "session_counter_decreased",
                session=key,
                previous_sent=previous.bytes_sent,
                previous_recv=previous.bytes_recv,
                sent=snapshot.bytes_sent,
                recv=snapshot.bytes_recv,
            )

    def absorb_into_baseline(self) -> TrafficSnapshot:
        """Fold the current aggregate into the baseline and drop all live sessions.

        Runs as one locked mutation so no reader observes the ledger with
        sessions cleared but the baseline not yet updated. Returns the
        absorbed amount, which equals ``aggregate()`` just before the call.
        """
        with self._lock:
            baseline = self._entries.get(RESET_SUM_KEY, ZERO)
            absorbed = self._live_total_locked().saturating_sub(baseline)
            self._entries = {RESET_SUM_KEY: baseline + absorbed}
        return absorbed

    # --- Queries ---

    def _live_total_locked(self) -> TrafficSnapshot:
        total = ZERO
        for key, snap in self._entries.items():
            if key != RESET_SUM_KEY:
                total = total + snap
        return total

    def live_total(self) -> TrafficSnapshot:
        """Sum of every boot-session entry, baseline excluded."""
        with self._lock:
            return self._live_total_locked()

    def baseline(self) -> TrafficSnapshot:
        with self._lock:
            return self._entries.get(RESET_SUM_KEY, ZERO)

    def aggregate(self) -> TrafficSnapshot:
        """Traffic since the last reset: live total minus baseline, floored at zero."""
        with self._lock:
            return self._live_total_locked().saturating_sub(self._entries.get(RESET_SUM_KEY, ZERO))

    def sessions(self) -> dict[str, TrafficSnapshot]:
        """Copy of the live boot-session entries."""
        with self._lock:
            return {k: v for k, v in self._entries.items() if k != RESET_SUM_KEY}

    def get(self, key: str) -> TrafficSnapshot | None:
        with self._lock:
            return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TrafficLedger):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"TrafficLedger({self.to_dict()!r})"
