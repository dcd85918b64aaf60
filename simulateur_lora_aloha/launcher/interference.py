"""Collision matrices and outcome resolution for overlapping transmissions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .errors import ConfigurationError

logger = logging.getLogger(__name__)
diag_logger = logging.getLogger("diagnostics")

INF = float("inf")


@dataclass(frozen=True, slots=True)
class TransmissionRecord:
    """One uplink as seen by one gateway.

    ``start_time`` is the arrival time at the gateway (emission time plus
    propagation delay).  Intervals are half-open: ``[start_time, end_time)``.
    """

    packet_id: int
    sender_id: int
    sf: int
    start_time: float
    duration: float
    gateway_id: int = 0
    rx_power_dBm: float = 0.0

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def overlaps(self, other: "TransmissionRecord") -> bool:
        return self.start_time < other.end_time and other.start_time < self.end_time


class CollisionMatrix:
    """Signal-to-interference thresholds (dB) indexed by (victim SF, interferer SF).

    A victim is destroyed by an interferer when the SIR between them is below
    the threshold.  ``+inf`` always destroys, ``-inf`` never does.
    """

    def __init__(self, name: str, thresholds: dict[tuple[int, int], float]):
        self.name = name
        self.thresholds = dict(thresholds)

    def threshold(self, victim_sf: int, interferer_sf: int) -> float:
        try:
            return self.thresholds[(victim_sf, interferer_sf)]
        except KeyError:
            raise ValueError(
                f"no collision threshold for SF{victim_sf} vs SF{interferer_sf}"
            ) from None

    def interferes(self, victim_sf: int, interferer_sf: int, sir_dB: float = 0.0) -> bool:
        """Return True when the interferer destroys the victim."""
        return sir_dB < self.threshold(victim_sf, interferer_sf)

    @classmethod
    def from_name(cls, name: str) -> "CollisionMatrix":
        key = str(name).strip().lower()
        if key not in MATRICES:
            raise ConfigurationError(
                f"unknown interference matrix {name!r} (expected one of {sorted(MATRICES)})"
            )
        return MATRICES[key]

    def __repr__(self):
        return f"CollisionMatrix({self.name!r})"


_SFS = (7, 8, 9, 10, 11, 12)

# Any temporal overlap is destructive, whatever the spreading factors.
ALOHA = CollisionMatrix("aloha", {(v, i): INF for v in _SFS for i in _SFS})

# Goursaud et al., "Dedicated networks for IoT: PHY/MAC state of the art and
# challenges".  Rows: victim SF, columns: interferer SF.
_GOURSAUD_ROWS = [
    [6, -16, -18, -19, -19, -20],
    [-24, 6, -20, -22, -22, -22],
    [-27, -27, 6, -23, -25, -25],
    [-30, -30, -30, 6, -26, -28],
    [-33, -33, -33, -33, 6, -29],
    [-36, -36, -36, -36, -36, 6],
]
GOURSAUD = CollisionMatrix(
    "goursaud",
    {
        (v, i): float(_GOURSAUD_ROWS[vi][ii])
        for vi, v in enumerate(_SFS)
        for ii, i in enumerate(_SFS)
    },
)

MATRICES = {"aloha": ALOHA, "goursaud": GOURSAUD}


def resolve_outcome(
    closing: TransmissionRecord,
    records: Iterable[TransmissionRecord],
    matrix: CollisionMatrix = ALOHA,
) -> set[int]:
    """Return the packet ids received among ``closing`` and its overlapping records.

    Only records targeting the same gateway as ``closing`` and whose interval
    overlaps it are taken into account.  Each overlapping pair is checked in
    both directions with the matrix; a record that no overlapping record
    destroys is received.  The verdict is final for ``closing`` only: the
    other records may also overlap transmissions outside this group and are
    resolved when their own window closes.
    """
    group = [closing]
    for rec in records:
        if rec.packet_id == closing.packet_id or rec.gateway_id != closing.gateway_id:
            continue
        if rec.overlaps(closing):
            group.append(rec)

    received = set()
    for victim in group:
        destroyed_by = None
        for other in group:
            if other is victim or not other.overlaps(victim):
                continue
            sir = victim.rx_power_dBm - other.rx_power_dBm
            if matrix.interferes(victim.sf, other.sf, sir):
                destroyed_by = other
                break
        if destroyed_by is None:
            received.add(victim.packet_id)
        else:
            diag_logger.info(
                f"gw={victim.gateway_id} packet={victim.packet_id} SF{victim.sf} "
                f"destroyed by packet={destroyed_by.packet_id} SF{destroyed_by.sf} "
                f"matrix={matrix.name}"
            )
    if len(group) > 1:
        logger.debug(
            f"Gateway {closing.gateway_id}: packet {closing.packet_id} overlaps "
            f"{len(group) - 1} transmission(s), received={sorted(received)}"
        )
    return received


__all__ = [
    "TransmissionRecord",
    "CollisionMatrix",
    "ALOHA",
    "GOURSAUD",
    "MATRICES",
    "resolve_outcome",
]
