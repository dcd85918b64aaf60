"""Top-level package for the LoRa ALOHA throughput simulator."""

from .launcher import (
    Simulator,
    SimulationConfig,
    Scheduler,
    MobilityTrace,
    CollisionMatrix,
    StatisticsCollector,
    StatisticsTable,
)

__all__ = [
    "Simulator",
    "SimulationConfig",
    "Scheduler",
    "MobilityTrace",
    "CollisionMatrix",
    "StatisticsCollector",
    "StatisticsTable",
]
