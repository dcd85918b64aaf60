"""Per spreading factor packet counters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import pandas as pd

SF_MIN = 7
SF_MAX = 12
NUM_BUCKETS = SF_MAX - SF_MIN + 1


class TransmissionObserver(Protocol):
    def on_transmission_started(self, sf: int) -> None: ...


class ReceptionObserver(Protocol):
    def on_packet_received(self, sf: int) -> None: ...


def bucket_index(sf: int) -> int:
    """Index 0 is SF7 (DR5, fastest), index 5 is SF12 (DR0, slowest)."""
    if not isinstance(sf, int) or not SF_MIN <= sf <= SF_MAX:
        raise ValueError(f"spreading factor out of range: {sf!r}")
    return sf - SF_MIN


@dataclass
class Bucket:
    sent: int = 0
    received: int = 0


@dataclass
class StatisticsTable:
    buckets: list[Bucket] = field(
        default_factory=lambda: [Bucket() for _ in range(NUM_BUCKETS)]
    )

    def __getitem__(self, sf: int) -> Bucket:
        return self.buckets[bucket_index(sf)]

    def rows(self) -> list[tuple[int, int]]:
        return [(b.sent, b.received) for b in self.buckets]

    @property
    def total_sent(self) -> int:
        return sum(b.sent for b in self.buckets)

    @property
    def total_received(self) -> int:
        return sum(b.received for b in self.buckets)

    def pdr(self, sf: int) -> float:
        b = self[sf]
        return b.received / b.sent if b.sent > 0 else 0.0

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "sf": list(range(SF_MIN, SF_MAX + 1)),
                "sent": [b.sent for b in self.buckets],
                "received": [b.received for b in self.buckets],
            }
        )


class StatisticsCollector:
    """Accumule les compteurs envoyés/reçus par SF.

    Registered as the transmission observer of the end devices and as the
    reception observer of the network server.
    """

    def __init__(self):
        self._table = StatisticsTable()

    def on_transmission_started(self, sf: int) -> None:
        self._table.buckets[bucket_index(sf)].sent += 1

    def on_packet_received(self, sf: int) -> None:
        self._table.buckets[bucket_index(sf)].received += 1

    def snapshot(self) -> StatisticsTable:
        """Copie des compteurs, utilisable à tout moment de la simulation."""
        return StatisticsTable(
            [Bucket(b.sent, b.received) for b in self._table.buckets]
        )


__all__ = [
    "TransmissionObserver",
    "ReceptionObserver",
    "StatisticsTable",
    "StatisticsCollector",
    "Bucket",
    "bucket_index",
    "NUM_BUCKETS",
]
