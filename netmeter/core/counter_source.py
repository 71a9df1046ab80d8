"""Cumulative interface byte counters via psutil."""

import psutil

from ..errors import CounterSourceError
from .ledger import TrafficSnapshot


class PsutilCounterSource:
    """Sums ``bytes_sent``/``bytes_recv`` across matching interfaces.

    An empty ``interface_name`` counts every interface, loopback included.
    """

    def __init__(self, interface_name: str = ""):
        self.interface_name = interface_name or ""

    def sample(self) -> TrafficSnapshot:
        try:
            counters = psutil.net_io_counters(pernic=True)
        except (OSError, psutil.Error) as e:
            raise CounterSourceError(f"error reading interface counters: {e}") from e

        if self.interface_name:
            nic = counters.get(self.interface_name)
            if nic is None:
                raise CounterSourceError(f"interface {self.interface_name!r} not found")
            return TrafficSnapshot(bytes_sent=nic.bytes_sent, bytes_recv=nic.bytes_recv)

        sent = recv = 0
        for nic in counters.values():
            sent += nic.bytes_sent
            recv += nic.bytes_recv
        return TrafficSnapshot(bytes_sent=sent, bytes_recv=recv)
