# Init du package simulateur LoRa ALOHA
from .errors import (
    SimulationError,
    ConfigurationError,
    TraceParseError,
    UnknownNodeError,
    SchedulingError,
    ProtocolViolation,
)
from .scheduler import Event, Scheduler, RepeatingTimer
from .node import Position, NodeRole, DeviceState, EndDevice
from .gateway import Gateway
from .server import NetworkServer
from .channel import Channel
from .interference import (
    TransmissionRecord,
    CollisionMatrix,
    ALOHA,
    GOURSAUD,
    resolve_outcome,
)
from .sf_allocation import assign_spreading_factors
from .mobility import Waypoint, MobilityTrace, TracePlayer, PositionMonitor
from .statistics import StatisticsCollector, StatisticsTable
from .config_loader import SimulationConfig, load_config
from .simulator import Simulator

__all__ = [
    "SimulationError",
    "ConfigurationError",
    "TraceParseError",
    "UnknownNodeError",
    "SchedulingError",
    "ProtocolViolation",
    "Event",
    "Scheduler",
    "RepeatingTimer",
    "Position",
    "NodeRole",
    "DeviceState",
    "EndDevice",
    "Gateway",
    "NetworkServer",
    "Channel",
    "TransmissionRecord",
    "CollisionMatrix",
    "ALOHA",
    "GOURSAUD",
    "resolve_outcome",
    "assign_spreading_factors",
    "Waypoint",
    "MobilityTrace",
    "TracePlayer",
    "PositionMonitor",
    "StatisticsCollector",
    "StatisticsTable",
    "SimulationConfig",
    "load_config",
    "Simulator",
]
