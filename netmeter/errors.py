"""Exception hierarchy for the traffic accounting agent."""


class NetmeterError(Exception):
    """Base class for all agent errors."""


class ConfigIOError(NetmeterError):
    """The agent config file could not be read, parsed, validated or written."""


class LedgerIOError(NetmeterError):
    """The traffic ledger file could not be read, parsed or written."""


class CounterSourceError(NetmeterError):
    """Interface byte counters could not be sampled."""


class BootTimeError(NetmeterError):
    """The host's last-boot timestamp could not be obtained."""
