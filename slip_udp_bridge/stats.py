from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class CounterSnapshot:
    """Point-in-time copy of the bridge counters."""

    messages_sent: int = 0
    bytes_sent: int = 0
    messages_received: int = 0
    bytes_received: int = 0

    def __sub__(self, other: "CounterSnapshot") -> "CounterSnapshot":
        return CounterSnapshot(
            messages_sent=self.messages_sent - other.messages_sent,
            bytes_sent=self.bytes_sent - other.bytes_sent,
            messages_received=self.messages_received - other.messages_received,
            bytes_received=self.bytes_received - other.bytes_received,
        )


class Counters:
    """
    Cumulative traffic counters shared by the pump threads.

    "Sent" is serial -> UDP (decoded frame bytes), "received" is
    UDP -> serial (encoded bytes written to the device). Counters live
    for the whole process and are never reset by a reconnect.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages_sent = 0
        self._bytes_sent = 0
        self._messages_received = 0
        self._bytes_received = 0

    def record_sent(self, nbytes: int) -> None:
        with self._lock:
            self._messages_sent += 1
            self._bytes_sent += nbytes

    def record_received(self, nbytes: int) -> None:
        with self._lock:
            self._messages_received += 1
            self._bytes_received += nbytes

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                messages_sent=self._messages_sent,
                bytes_sent=self._bytes_sent,
                messages_received=self._messages_received,
                bytes_received=self._bytes_received,
            )


def format_bytes(count: float, si: bool = False) -> str:
    """
    Render a byte count in human readable units.

    Args:
        count: Number of bytes
        si: Use powers of 1000 (kB, MB) instead of 1024 (KiB, MiB)
    Returns:
        e.g. '512 B', '1.5 KiB', '2.0 MB'
    """
    unit = 1000 if si else 1024
    if count < unit:
        return f"{int(count)} B"
    exp = min(int(math.log(count) / math.log(unit)), 6)
    prefix = ("kMGTPE" if si else "KMGTPE")[exp - 1] + ("" if si else "i")
    return f"{count / unit ** exp:.1f} {prefix}B"


def format_report(total: CounterSnapshot, delta: CounterSnapshot, interval: float = 1.0) -> List[str]:
    """Build the two throughput lines printed by the stats loop."""
    interval = interval if interval > 0 else 1.0
    return [
        f"Sent\t{total.messages_sent}\tmessages ({format_bytes(delta.bytes_sent / interval)}/sec. "
        f"{format_bytes(total.bytes_sent)} total)",
        f"Recv\t{total.messages_received}\tmessages ({format_bytes(delta.bytes_received / interval)}/sec. "
        f"{format_bytes(total.bytes_received)} total)",
    ]
