"""Waypoint mobility driven by a trace file (plain or ns-2 format)."""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator

from .errors import TraceParseError, UnknownNodeError
from .node import ORIGIN, Position
from .scheduler import RepeatingTimer, Scheduler

logger = logging.getLogger(__name__)

_NS2_SET = re.compile(r"^\$node_\((\d+)\)\s+set\s+([XYZ])_\s+(\S+)$")
_NS2_AT = re.compile(r'^\$ns_\s+at\s+(\S+)\s+"\$node_\((\d+)\)\s+(.+)"$')
_NS2_SETDEST = re.compile(r"^setdest\s+(\S+)\s+(\S+)\s+(\S+)$")
_NS2_INNER_SET = re.compile(r"^set\s+([XYZ])_\s+(\S+)$")
_PLAIN_ID = re.compile(r"^[A-Za-z_]*(\d+)$")


@dataclass(frozen=True, slots=True)
class Waypoint:
    """Mise à jour de position ; un axe à ``None`` garde sa valeur courante."""

    time: float
    node_id: int
    x: float | None = None
    y: float | None = None
    z: float | None = None

    def apply_to(self, position: Position) -> Position:
        return Position(
            position.x if self.x is None else self.x,
            position.y if self.y is None else self.y,
            position.z if self.z is None else self.z,
        )

    def merge(self, later: "Waypoint") -> "Waypoint":
        """Combine two updates of the same instant, ``later`` winning per axis."""
        return Waypoint(
            self.time,
            self.node_id,
            self.x if later.x is None else later.x,
            self.y if later.y is None else later.y,
            self.z if later.z is None else later.z,
        )


class MobilityTrace:
    """Ordered, read-only list of waypoints parsed once at setup.

    Two line formats are understood, and may be mixed:

    * plain ``node_id time x y [z]`` separated by commas or blanks
      (``node0`` or ``n0`` are accepted for the identifier);
    * ns-2 movement files as written by ``setdest`` or BonnMotion::

        $node_(0) set X_ 150.0
        $ns_ at 5.0 "$node_(0) setdest 1.0 1.0 20.0"

      ``setdest`` moves the node instantaneously at the given time; the
      speed field is parsed but not used.  ns-2 updates only touch the axes
      they name, the others keep the node's current coordinates.  Commands
      that do not address a ``$node_`` (``$god_ set-dist`` ...) are skipped.

    Empty lines and ``#`` comments are skipped.  Waypoint times must be
    non-decreasing for each node.
    """

    def __init__(self, waypoints: Iterable[Waypoint] = ()):
        self.waypoints: list[Waypoint] = list(waypoints)
        self._by_node: dict[int, list[Waypoint]] = {}
        for wp in self.waypoints:
            self._by_node.setdefault(wp.node_id, []).append(wp)
        self._times = {
            nid: [wp.time for wp in wps] for nid, wps in self._by_node.items()
        }

    # ------------------------------------------------------------------
    @classmethod
    def load(cls, source: str | Path | Iterable[str]) -> "MobilityTrace":
        if isinstance(source, (str, Path)):
            path = Path(source)
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
            logger.info(f"Loading mobility trace {path}")
        else:
            lines = list(source)

        waypoints: list[Waypoint] = []
        last_time: dict[int, float] = {}
        last_index: dict[int, int] = {}

        for number, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("$"):
                if "$node_(" not in line:
                    logger.debug(f"Trace line {number}: skipping {line!r}")
                    continue
                wp = cls._parse_ns2(number, raw, line)
            else:
                wp = cls._parse_plain(number, raw, line)

            prev_time = last_time.get(wp.node_id)
            if prev_time is not None and wp.time < prev_time:
                raise TraceParseError(
                    number,
                    raw,
                    f"time {wp.time} goes backwards for node {wp.node_id} (previous {prev_time})",
                )
            if prev_time is not None and wp.time == prev_time:
                # Several updates at the same instant collapse into one waypoint
                idx = last_index[wp.node_id]
                waypoints[idx] = waypoints[idx].merge(wp)
            else:
                last_index[wp.node_id] = len(waypoints)
                waypoints.append(wp)
            last_time[wp.node_id] = wp.time
        return cls(waypoints)

    @staticmethod
    def _float(number: int, raw: str, value: str, what: str) -> float:
        try:
            result = float(value)
        except ValueError:
            raise TraceParseError(number, raw, f"invalid {what} {value!r}") from None
        if result != result or result in (float("inf"), -float("inf")):
            raise TraceParseError(number, raw, f"invalid {what} {value!r}")
        return result

    @classmethod
    def _parse_plain(cls, number: int, raw: str, line: str) -> Waypoint:
        fields = [f for f in re.split(r"[,\s]+", line) if f]
        if len(fields) not in (4, 5):
            raise TraceParseError(number, raw, f"expected 4 or 5 fields, got {len(fields)}")
        m = _PLAIN_ID.match(fields[0])
        if not m:
            raise TraceParseError(number, raw, f"invalid node id {fields[0]!r}")
        node_id = int(m.group(1))
        time = cls._float(number, raw, fields[1], "time")
        if time < 0:
            raise TraceParseError(number, raw, "negative time")
        coords = [cls._float(number, raw, v, "coordinate") for v in fields[2:]]
        return Waypoint(time, node_id, *Position(*coords))

    @classmethod
    def _axis(cls, number: int, raw: str, time: float, node_id: int, axis: str, value: str) -> Waypoint:
        coord = cls._float(number, raw, value, "coordinate")
        return Waypoint(time, node_id, **{axis.lower(): coord})

    @classmethod
    def _parse_ns2(cls, number: int, raw: str, line: str) -> Waypoint:
        m = _NS2_SET.match(line)
        if m:
            return cls._axis(number, raw, 0.0, int(m.group(1)), m.group(2), m.group(3))

        m = _NS2_AT.match(line)
        if not m:
            raise TraceParseError(number, raw, "unrecognised ns-2 command")
        time = cls._float(number, raw, m.group(1), "time")
        if time < 0:
            raise TraceParseError(number, raw, "negative time")
        node_id = int(m.group(2))
        command = m.group(3).strip()

        dest = _NS2_SETDEST.match(command)
        if dest:
            x = cls._float(number, raw, dest.group(1), "coordinate")
            y = cls._float(number, raw, dest.group(2), "coordinate")
            speed = cls._float(number, raw, dest.group(3), "speed")
            if speed < 0:
                raise TraceParseError(number, raw, "negative speed")
            return Waypoint(time, node_id, x, y)

        inner = _NS2_INNER_SET.match(command)
        if inner:
            return cls._axis(number, raw, time, node_id, inner.group(1), inner.group(2))

        raise TraceParseError(number, raw, f"unsupported ns-2 node command {command!r}")

    # ------------------------------------------------------------------
    @property
    def node_ids(self) -> set[int]:
        return set(self._by_node)

    def __len__(self) -> int:
        return len(self.waypoints)

    def __iter__(self) -> Iterator[Waypoint]:
        return iter(self.waypoints)

    def waypoints_for(self, node_id: int) -> list[Waypoint]:
        return list(self._by_node.get(node_id, []))

    def position_at(
        self, node_id: int, time: float, default: Position | None = None
    ) -> Position | None:
        """Position of ``node_id`` at ``time``.

        The waypoints reached by ``time`` are applied in order on top of
        ``default`` (the origin when ``default`` is ``None``).  ``default`` is
        returned as is when no waypoint has been reached yet.
        """
        times = self._times.get(node_id)
        reached = bisect.bisect_right(times, time) if times else 0
        if reached == 0:
            return default
        position = default if default is not None else ORIGIN
        for wp in self._by_node[node_id][:reached]:
            position = wp.apply_to(position)
        return position


class TracePlayer:
    """Schedules one position update per waypoint of a :class:`MobilityTrace`."""

    def __init__(self, trace: MobilityTrace):
        self.trace = trace
        self.handles = []

    def install(self, nodes: Iterable, scheduler: Scheduler) -> int:
        node_map = {node.id: node for node in nodes}
        for node_id in sorted(self.trace.node_ids):
            if node_id not in node_map:
                raise UnknownNodeError(node_id)
        for wp in self.trace:
            self.handles.append(
                scheduler.schedule_at(wp.time, self._apply, node_map[wp.node_id], wp)
            )
        logger.debug(f"Installed {len(self.handles)} waypoint event(s)")
        return len(self.handles)

    @staticmethod
    def _apply(node, wp: Waypoint) -> None:
        position = wp.apply_to(node.position)
        node.position = position
        logger.debug(f"Node {node.id} moved to {tuple(position)}")


class PositionMonitor:
    """Periodic diagnostic log of node positions; never changes them."""

    def __init__(self, scheduler: Scheduler, nodes: Iterable, interval: float = 10.0):
        self.nodes = list(nodes)
        self.timer = RepeatingTimer(scheduler, interval, self.check_positions)
        self.checks = 0

    def start(self, delay: float = 0.0) -> None:
        self.timer.start(delay)

    def check_positions(self) -> None:
        self.checks += 1
        for node in self.nodes:
            p = node.position
            logger.info(f"Node {node.id} position: {p.x:g}:{p.y:g}:{p.z:g}")

    def cancel(self) -> None:
        self.timer.cancel()


__all__ = ["Waypoint", "MobilityTrace", "TracePlayer", "PositionMonitor"]
