from __future__ import annotations

import logging
from typing import Protocol

from .channel import Channel
from .errors import ProtocolViolation
from .interference import ALOHA, CollisionMatrix, TransmissionRecord, resolve_outcome
from .node import NodeRole, Position

logger = logging.getLogger(__name__)


class GatewayListener(Protocol):
    def on_gateway_reception(self, gateway: "Gateway", record: TransmissionRecord) -> None: ...


class Gateway:
    """Représente une passerelle LoRa recevant les paquets des nœuds."""

    role = NodeRole.GATEWAY

    def __init__(
        self,
        gateway_id: int,
        position: Position = Position(0.0, 0.0, 15.0),
        *,
        listeners: list[GatewayListener] | None = None,
        sensitivity_dBm: dict[int, float] | None = None,
    ):
        """
        Initialise une passerelle LoRa.
        :param gateway_id: Identifiant de la passerelle.
        :param position: Position fixe (mètres).
        :param listeners: Destinataires des paquets correctement décodés
            (en pratique le serveur réseau).
        :param sensitivity_dBm: Sensibilité par SF ; les paquets plus faibles
            ne sont jamais décodés mais brouillent les autres.
        """
        self.id = gateway_id
        self.position = Position(*position)
        self.listeners: list[GatewayListener] = list(listeners or [])
        self.sensitivity_dBm = dict(sensitivity_dBm or Channel.GATEWAY_SENSITIVITY)
        # Transmissions en cours indexées par identifiant de paquet
        self.in_flight: dict[int, TransmissionRecord] = {}
        # Transmissions terminées pouvant encore chevaucher une transmission en cours
        self.recent: list[TransmissionRecord] = []
        self.under_sensitivity: set[int] = set()
        self.packets_received = 0
        self.packets_lost = 0

    def add_listener(self, listener: GatewayListener) -> None:
        self.listeners.append(listener)

    def start_reception(self, record: TransmissionRecord) -> None:
        """
        Démarre la réception d'une transmission sur cette passerelle.
        :param record: Transmission telle que vue par la passerelle.
        :raises ProtocolViolation: si le même ``packet_id`` est déjà en cours de réception.
        """
        if record.packet_id in self.in_flight:
            raise ProtocolViolation(
                record.sender_id,
                f"packet {record.packet_id} already in flight at gateway {self.id}",
            )
        self.in_flight[record.packet_id] = record
        if record.rx_power_dBm < self.sensitivity_dBm.get(record.sf, -float("inf")):
            self.under_sensitivity.add(record.packet_id)
            logger.debug(
                f"Gateway {self.id}: packet {record.packet_id} from node {record.sender_id} "
                f"under sensitivity (SF{record.sf}, {record.rx_power_dBm:.1f} dBm)"
            )
        else:
            logger.debug(
                f"Gateway {self.id}: new transmission {record.packet_id} from node "
                f"{record.sender_id} (SF{record.sf}) started, RSSI={record.rx_power_dBm:.1f} dBm."
            )

    def end_reception(
        self, packet_id: int, matrix: CollisionMatrix = ALOHA
    ) -> bool:
        """
        Termine la réception d'une transmission et décide de son issue.
        :param packet_id: Identifiant du paquet dont la fenêtre se ferme.
        :param matrix: Matrice de collision à appliquer.
        :return: True si le paquet est décodé.
        """
        record = self.in_flight.pop(packet_id, None)
        if record is None:
            logger.warning(f"Gateway {self.id}: end of unknown packet {packet_id}")
            return False
        others = list(self.in_flight.values()) + self.recent
        received = packet_id in resolve_outcome(record, others, matrix)
        if packet_id in self.under_sensitivity:
            self.under_sensitivity.discard(packet_id)
            received = False
        self.recent.append(record)
        self._prune()

        if received:
            self.packets_received += 1
            logger.debug(
                f"Gateway {self.id}: successfully received packet {packet_id} from node {record.sender_id}."
            )
            for listener in self.listeners:
                listener.on_gateway_reception(self, record)
        else:
            self.packets_lost += 1
            logger.debug(
                f"Gateway {self.id}: packet {packet_id} from node {record.sender_id} was lost."
            )
        return received

    def _prune(self) -> None:
        # A closed record is only useful while an in-flight one started before it ended.
        if not self.in_flight:
            self.recent.clear()
            return
        earliest = min(r.start_time for r in self.in_flight.values())
        self.recent = [r for r in self.recent if r.end_time > earliest]

    def __repr__(self):
        p = self.position
        return f"Gateway(id={self.id}, pos=({p.x:.1f},{p.y:.1f},{p.z:.1f}))"


__all__ = ["Gateway", "GatewayListener"]
