"""Event-driven LoRa ALOHA simulator."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from pathlib import Path

import pandas as pd

from traffic.rng_manager import RngManager

from .channel import Channel
from .config_loader import SimulationConfig
from .errors import ConfigurationError, ProtocolViolation
from .gateway import Gateway
from .interference import CollisionMatrix, TransmissionRecord
from .mobility import MobilityTrace, PositionMonitor, TracePlayer
from .node import ORIGIN, EndDevice, Position
from .scheduler import RepeatingTimer, Scheduler
from .server import NetworkServer
from .sf_allocation import assign_spreading_factors
from .statistics import StatisticsCollector, StatisticsTable, TransmissionObserver

logger = logging.getLogger(__name__)


class Simulator:
    """Gère la simulation du réseau LoRa (nœuds, passerelles, événements)."""

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        trace: MobilityTrace | None = None,
        matrix: CollisionMatrix | None = None,
        channel: Channel | None = None,
        collector: StatisticsCollector | None = None,
        observers: list[TransmissionObserver] | None = None,
        **overrides,
    ):
        """
        Initialise la simulation avec les entités et paramètres donnés.

        :param config: Paramètres du scénario (valeurs par défaut sinon).
        :param trace: Trace de mobilité déjà chargée ; prioritaire sur
            ``config.trace_file``.
        :param matrix: Matrice de collision ; par défaut celle nommée par
            ``config.interference_matrix``.
        :param channel: Modèle de canal ; construit depuis ``config`` sinon.
        :param collector: Collecteur de statistiques partagé.
        :param observers: Observateurs supplémentaires des débuts d'émission.
        :param overrides: Champs de :class:`SimulationConfig` à remplacer.
        """
        try:
            if config is None:
                config = SimulationConfig(**overrides)
            elif overrides:
                config = replace(config, **overrides)
        except TypeError as exc:
            raise ConfigurationError(f"invalid simulation parameter: {exc}") from exc
        self.config = config.validate()

        self.scheduler = Scheduler()
        self.channel = channel or Channel(
            path_loss_exp=config.path_loss_exp,
            reference_distance=config.reference_distance,
            reference_loss_dB=config.reference_loss_dB,
        )
        self.matrix = matrix or CollisionMatrix.from_name(config.interference_matrix)
        self.rng_manager = RngManager(config.seed)

        self.collector = collector or StatisticsCollector()
        self.observers: list[TransmissionObserver] = [self.collector, *(observers or [])]

        # Passerelles -> serveur réseau -> collecteur
        self.network_server = NetworkServer(
            scheduler=self.scheduler,
            backhaul_delay=config.backhaul_delay,
            observers=[self.collector],
        )

        # Identifiants : nœuds 0..n-1 (comme dans la trace ns-2), puis passerelles
        self.devices = [
            EndDevice(i, self._device_position(i), tx_power=config.tx_power_dBm)
            for i in range(config.n_devices)
        ]
        self.node_map = {d.id: d for d in self.devices}
        self.gateways = [
            Gateway(config.n_devices + i, pos, listeners=[self.network_server])
            for i, pos in enumerate(self._gateway_positions())
        ]

        if trace is None and config.trace_file:
            trace = MobilityTrace.load(config.trace_file)
        self.trace = trace
        self.monitor = PositionMonitor(
            self.scheduler, self.devices, config.position_check_interval
        )

        self.packet_id_counter = 0
        self.violations: list[ProtocolViolation] = []
        self.events_log: dict[int, dict] = {}
        self.setup_done = False
        self.finished = False

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    def _device_position(self, node_id: int) -> Position:
        radius = self.config.disc_radius
        if radius <= 0:
            return ORIGIN
        rng = self.rng_manager.get_stream("position", node_id)
        r = radius * math.sqrt(rng.random())
        theta = 2 * math.pi * rng.random()
        return Position(r * math.cos(theta), r * math.sin(theta), 0.0)

    def _gateway_positions(self) -> list[Position]:
        cfg = self.config
        if cfg.gateway_positions:
            return list(cfg.gateway_positions[: cfg.n_gateways])
        if cfg.n_gateways == 1:
            return [Position(0.0, 0.0, cfg.gateway_height)]
        ring = cfg.disc_radius / 2.0
        return [
            Position(
                ring * math.cos(2 * math.pi * i / cfg.n_gateways),
                ring * math.sin(2 * math.pi * i / cfg.n_gateways),
                cfg.gateway_height,
            )
            for i in range(cfg.n_gateways)
        ]

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------
    def setup(self) -> None:
        """Planifie les événements initiaux (mobilité, allocation SF, trafic)."""
        if self.setup_done:
            return
        cfg = self.config
        if self.trace is not None:
            TracePlayer(self.trace).install(self.devices, self.scheduler)
        # Waypoints at t=0 are queued first, so the allocation sees them
        self.scheduler.schedule(0.0, self.allocate_spreading_factors)
        # Queued before the traffic so that it wins ties at the stop instant
        self.scheduler.schedule(cfg.simulation_time, self.stop_applications)

        period = cfg.period
        for device in self.devices:
            rng = self.rng_manager.get_stream("traffic", device.id)
            offset = rng.random() * period
            device.traffic_timer = RepeatingTimer(
                self.scheduler, period, self.on_application_send, device
            )
            device.traffic_timer.start(offset)
            logger.debug(f"Node {device.id}: first transmission at t={offset:.3f}s")

        self.monitor.start()
        self.setup_done = True
        logger.debug("Completed configuration")

    def allocate_spreading_factors(self) -> dict[int, int]:
        assignment = assign_spreading_factors(self.devices, self.gateways, self.channel)
        per_sf: dict[int, int] = {}
        for sf in assignment.values():
            per_sf[sf] = per_sf.get(sf, 0) + 1
        logger.info(
            "SF allocation: "
            + ", ".join(f"SF{sf}={count}" for sf, count in sorted(per_sf.items()))
        )
        return assignment

    def stop_applications(self) -> None:
        for device in self.devices:
            if device.traffic_timer is not None:
                device.traffic_timer.cancel()
        logger.debug(f"Applications stopped at t={self.scheduler.now:.2f}s")

    # ------------------------------------------------------------------
    # Transceivers
    # ------------------------------------------------------------------
    def on_application_send(self, device: EndDevice) -> None:
        if device.disabled:
            return
        try:
            self.transmit(device)
        except ProtocolViolation as exc:
            self.record_violation(device, exc)

    def transmit(self, device: EndDevice) -> int:
        """Démarre une transmission ; retourne l'identifiant du paquet."""
        now = self.scheduler.now
        if device.sf is None:
            raise ProtocolViolation(device.id, "no spreading factor assigned")
        if device.in_transmission:
            raise ProtocolViolation(
                device.id, f"still transmitting until t={device.current_end_time:.3f}s"
            )
        sf = device.sf
        packet_id = self.packet_id_counter
        self.packet_id_counter += 1
        duration = self.channel.airtime(sf, payload_size=self.config.packet_size)
        device.start_transmission(now + duration)
        for observer in self.observers:
            observer.on_transmission_started(sf)

        for gw in self.gateways:
            delay = self.channel.propagation_delay(device, gw)
            record = TransmissionRecord(
                packet_id=packet_id,
                sender_id=device.id,
                sf=sf,
                start_time=now + delay,
                duration=duration,
                gateway_id=gw.id,
                rx_power_dBm=self.channel.rx_power(device.tx_power, device, gw),
            )
            self.scheduler.schedule(delay, self.on_reception_start, gw, device, record)
        self.scheduler.schedule(duration, self.on_transmission_end, device, packet_id)

        self.events_log[packet_id] = {
            "packet_id": packet_id,
            "node_id": device.id,
            "sf": sf,
            "start_time": now,
            "end_time": now + duration,
            "result": None,
            "gateway_id": None,
        }
        logger.debug(
            f"t={now:.3f}s node {device.id} sends packet {packet_id} (SF{sf}, {duration * 1000:.1f} ms)"
        )
        return packet_id

    def on_transmission_end(self, device: EndDevice, packet_id: int) -> None:
        device.end_transmission()

    def on_reception_start(self, gw: Gateway, device: EndDevice, record: TransmissionRecord) -> None:
        try:
            gw.start_reception(record)
        except ProtocolViolation as exc:
            self.record_violation(device, exc)
            return
        self.scheduler.schedule(record.duration, self.on_reception_end, gw, record.packet_id)

    def on_reception_end(self, gw: Gateway, packet_id: int) -> None:
        received = gw.end_reception(packet_id, self.matrix)
        entry = self.events_log.get(packet_id)
        if entry is None:
            return
        if received:
            entry["result"] = "Success"
            if entry["gateway_id"] is None:
                entry["gateway_id"] = gw.id
        elif entry["result"] is None:
            entry["result"] = "Lost"

    def record_violation(self, device: EndDevice, exc: ProtocolViolation) -> None:
        logger.error(f"Protocol violation: {exc}; node {device.id} disabled")
        self.violations.append(exc)
        device.disabled = True
        if device.traffic_timer is not None:
            device.traffic_timer.cancel()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def run(self, stop_time: float | None = None) -> StatisticsTable:
        """Exécute la simulation puis libère l'ordonnanceur."""
        self.setup()
        stop = stop_time if stop_time is not None else self.config.stop_time
        logger.info("Running simulation...")
        try:
            self.scheduler.run(stop)
        finally:
            self.teardown()
        return self.collector.snapshot()

    def teardown(self) -> None:
        if self.finished:
            return
        self.monitor.cancel()
        self.scheduler.destroy()
        self.finished = True

    def snapshot(self) -> StatisticsTable:
        return self.collector.snapshot()

    def get_metrics(self) -> dict:
        """Retourne un dictionnaire des métriques actuelles de la simulation."""
        table = self.collector.snapshot()
        sent = table.total_sent
        received = table.total_received
        return {
            "sent": sent,
            "received": received,
            "PDR": received / sent if sent > 0 else 0.0,
            "sent_by_sf": {sf: table[sf].sent for sf in range(7, 13)},
            "received_by_sf": {sf: table[sf].received for sf in range(7, 13)},
            "pdr_by_sf": {sf: table.pdr(sf) for sf in range(7, 13)},
            "duplicates": self.network_server.duplicate_packets,
            "violations": len(self.violations),
            "simulation_time": self.scheduler.now,
        }

    def get_events_dataframe(self) -> pd.DataFrame:
        """Journal des transmissions sous forme de :class:`pandas.DataFrame`."""
        columns = ["packet_id", "node_id", "sf", "start_time", "end_time", "result", "gateway_id"]
        return pd.DataFrame(list(self.events_log.values()), columns=columns)

    def dump_events(self, dest: str | Path) -> Path:
        path = Path(dest)
        self.get_events_dataframe().to_csv(path, index=False)
        return path


__all__ = ["Simulator"]
