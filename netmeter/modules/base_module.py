"""Abstract base class for long-running agent modules."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from ..utils.logging import get_logger


class BaseModule(ABC):
    """Standard start/stop lifecycle and health reporting."""

    def __init__(self, name: str):
        self.name = name
        self.running = False
        self.health_status = "initialized"
        self.last_heartbeat: Optional[datetime] = None
        self.logger = get_logger(f"module.{name}")

    @abstractmethod
    async def start(self) -> None:
        """Start the module's processing loop."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Gracefully stop the module."""
        ...

    @abstractmethod
    async def health_check(self) -> dict:
        """Return module health status.

        Returns:
            dict with keys: status (str), details (dict)
        """
        ...

    def heartbeat(self) -> None:
        """Update the last heartbeat timestamp."""
        self.last_heartbeat = datetime.now(timezone.utc)

    def heartbeat_age(self) -> Optional[float]:
        """Seconds since the last heartbeat, or None before the first one."""
        if self.last_heartbeat is None:
            return None
        return (datetime.now(timezone.utc) - self.last_heartbeat).total_seconds()
