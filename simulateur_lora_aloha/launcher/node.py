# node.py
from __future__ import annotations

import math
from enum import Enum
from typing import NamedTuple


class Position(NamedTuple):
    """Coordonnées cartésiennes (mètres)."""

    x: float
    y: float
    z: float = 0.0

    def distance_to(self, other: "Position") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )


ORIGIN = Position(0.0, 0.0, 0.0)


class NodeRole(Enum):
    END_DEVICE = "end_device"
    GATEWAY = "gateway"
    NETWORK_SERVER = "network_server"


class DeviceState(Enum):
    IDLE = "idle"
    TRANSMITTING = "tx"


class EndDevice:
    """
    Représente un nœud LoRa (classe A, uplink uniquement).

    Attributs :
        id (int) : Identifiant unique du nœud (identique à celui de la trace de mobilité).
        position (Position) : Position courante, mise à jour par la trace de mobilité.
        initial_position (Position) : Position à la construction.
        sf (int | None) : Spreading factor attribué (``None`` avant allocation).
        tx_power (float) : Puissance d'émission (dBm).
        state (DeviceState) : ``IDLE`` ou ``TRANSMITTING``.
        disabled (bool) : Vrai après une violation de protocole ; plus aucune émission.
        packets_sent (int) : Nombre de transmissions démarrées.
    """

    role = NodeRole.END_DEVICE

    def __init__(
        self,
        node_id: int,
        position: Position = ORIGIN,
        sf: int | None = None,
        tx_power: float = 14.0,
    ):
        self.id = node_id
        self.initial_position = Position(*position)
        self.position = self.initial_position
        self.sf = sf
        self.tx_power = tx_power
        self.state = DeviceState.IDLE
        self.disabled = False
        self.current_end_time: float | None = None
        self.packets_sent = 0
        # Minuterie d'application (attribuée par le simulateur)
        self.traffic_timer = None

    @property
    def in_transmission(self) -> bool:
        return self.state is DeviceState.TRANSMITTING

    def start_transmission(self, end_time: float) -> None:
        self.state = DeviceState.TRANSMITTING
        self.current_end_time = end_time
        self.packets_sent += 1

    def end_transmission(self) -> None:
        self.state = DeviceState.IDLE
        self.current_end_time = None

    def distance_to(self, other) -> float:
        return self.position.distance_to(other.position)

    def __repr__(self):
        sf = f"SF{self.sf}" if self.sf is not None else "SF?"
        p = self.position
        return f"EndDevice(id={self.id}, {sf}, pos=({p.x:.1f},{p.y:.1f},{p.z:.1f}))"


__all__ = ["Position", "ORIGIN", "NodeRole", "DeviceState", "EndDevice"]
