"""Boot session identification.

Interface counters restart at zero on every boot, so the ledger keys its
entries by the host's last-boot timestamp. The key is the timestamp rendered
as ``YYYY-MM-DD HH:MM:SS``, the same text ``uptime -s`` prints.
"""

import subprocess
import sys
from datetime import datetime

import psutil

from ..errors import BootTimeError
from ..utils.logging import get_logger

logger = get_logger("core.boot_session")

BOOT_KEY_FORMAT = "%Y-%m-%d %H:%M:%S"

WINDOWS_BOOT_TIME_COMMAND = [
    "powershell",
    "-NoProfile",
    "-Command",
    "(Get-CimInstance -Class Win32_OperatingSystem).LastBootUpTime",
]
POSIX_BOOT_TIME_COMMAND = ["uptime", "-s"]


class PsutilBootTimeSource:
    """Reads the boot time from psutil (``/proc/stat`` btime on Linux)."""

    def current_boot_timestamp(self) -> str:
        try:
            boot = psutil.boot_time()
        except (OSError, psutil.Error) as e:
            raise BootTimeError(f"error reading boot time: {e}") from e
        # Whole seconds only: the float can jitter between calls on some platforms
        return datetime.fromtimestamp(int(boot)).strftime(BOOT_KEY_FORMAT)


class CommandBootTimeSource:
    """Reads the boot time from ``uptime -s`` or PowerShell on Windows."""

    def __init__(self, timeout: float = 10.0, command: list[str] | None = None):
        self.timeout = timeout
        if command is None:
            command = WINDOWS_BOOT_TIME_COMMAND if sys.platform == "win32" else POSIX_BOOT_TIME_COMMAND
        self.command = command

    def current_boot_timestamp(self) -> str:
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise BootTimeError(f"boot time command not found: {self.command[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise BootTimeError(f"boot time command timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            raise BootTimeError(
                f"boot time command exited with {e.returncode}: {(e.stderr or '').strip()}"
            ) from e
        except OSError as e:
            raise BootTimeError(f"error executing boot time command: {e}") from e

        output = result.stdout.strip()
        if not output:
            raise BootTimeError("boot time command returned no output")
        return output


def make_boot_time_source(kind: str, timeout: float = 10.0):
    if kind == "command":
        return CommandBootTimeSource(timeout=timeout)
    if kind == "psutil":
        return PsutilBootTimeSource()
    raise ValueError(f"unknown boot time source: {kind}")


def current_boot_session(source) -> str:
    """Return the ledger key for the running boot. Raises BootTimeError."""
    key = source.current_boot_timestamp().strip()
    if not key:
        raise BootTimeError("empty boot timestamp")
    return key
