from __future__ import annotations

import logging

from .interference import TransmissionRecord
from .node import NodeRole
from .statistics import ReceptionObserver

logger = logging.getLogger(__name__)


class NetworkServer:
    """Représente le serveur de réseau LoRa (collecte des paquets reçus)."""

    role = NodeRole.NETWORK_SERVER

    def __init__(
        self,
        server_id: int = 0,
        *,
        scheduler=None,
        backhaul_delay: float = 0.0,
        observers: list[ReceptionObserver] | None = None,
    ):
        """Initialise le serveur réseau.

        :param server_id: Identifiant du nœud serveur (sans position radio).
        :param scheduler: :class:`Scheduler` utilisé pour modéliser le délai du
            lien passerelle → serveur. ``None`` : livraison immédiate.
        :param backhaul_delay: Délai (s) du lien fiable passerelle → serveur.
        :param observers: Destinataires notifiés une fois par paquet unique.
        """
        self.id = server_id
        self.scheduler = scheduler
        self.backhaul_delay = backhaul_delay
        self.observers: list[ReceptionObserver] = list(observers or [])
        # Ensemble des identifiants de paquets déjà reçus (pour éviter les doublons)
        self.received_events: set[int] = set()
        # Passerelle ayant livré chaque paquet en premier
        self.event_gateway: dict[int, int] = {}
        self.packets_received = 0
        self.duplicate_packets = 0

    def add_observer(self, observer: ReceptionObserver) -> None:
        self.observers.append(observer)

    def on_gateway_reception(self, gateway, record: TransmissionRecord) -> None:
        """Paquet décodé par une passerelle, acheminé par le backhaul."""
        if self.scheduler is None:
            self.receive(record, gateway.id)
        else:
            self.scheduler.schedule(self.backhaul_delay, self.receive, record, gateway.id)

    def receive(self, record: TransmissionRecord, gateway_id: int) -> None:
        if record.packet_id in self.received_events:
            self.duplicate_packets += 1
            logger.debug(
                f"Network server: duplicate packet {record.packet_id} via gateway {gateway_id}"
            )
            return
        self.received_events.add(record.packet_id)
        self.event_gateway[record.packet_id] = gateway_id
        self.packets_received += 1
        for observer in self.observers:
            observer.on_packet_received(record.sf)

    def __repr__(self):
        return f"NetworkServer(id={self.id}, received={self.packets_received})"


__all__ = ["NetworkServer"]
