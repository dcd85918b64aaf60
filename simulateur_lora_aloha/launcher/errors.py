"""Exceptions raised by the simulator."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class of every error raised by the simulator."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid scenario parameter (counts, durations, matrix name...)."""


class TraceParseError(SimulationError, ValueError):
    """A mobility trace line could not be parsed."""

    def __init__(self, line_number: int, line: str, reason: str = "malformed line"):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"line {line_number}: {reason}: {line.strip()!r}")


class UnknownNodeError(SimulationError, KeyError):
    """The mobility trace references a node that does not exist."""

    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(node_id)

    def __str__(self) -> str:
        return f"unknown node id {self.node_id} in mobility trace"


class SchedulingError(SimulationError, RuntimeError):
    """Programming error detected by the event scheduler."""


class ProtocolViolation(SimulationError, RuntimeError):
    """A node broke the transceiver contract (missing SF, duplicate packet)."""

    def __init__(self, node_id: int, message: str):
        self.node_id = node_id
        super().__init__(f"node {node_id}: {message}")


__all__ = [
    "SimulationError",
    "ConfigurationError",
    "TraceParseError",
    "UnknownNodeError",
    "SchedulingError",
    "ProtocolViolation",
]
