"""Event-driven scheduler shared by every actor of the simulation."""

from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import SchedulingError

logger = logging.getLogger(__name__)


# Event timestamps are plain ``float`` seconds.  Ties on ``time`` are broken by
# ``seq`` which grows monotonically with every call to ``schedule`` so that
# two events planned for the same instant fire in the order they were planned.
@dataclass(order=True, slots=True)
class Event:
    time: float
    seq: int
    action: Callable[..., Any] = field(compare=False)
    args: tuple = field(default=(), compare=False)
    cancelled: bool = field(default=False, compare=False)
    fired: bool = field(default=False, compare=False)


class Scheduler:
    """File de priorité d'événements datés (horloge virtuelle en secondes)."""

    def __init__(self):
        self.event_queue: list[Event] = []
        self.current_time = 0.0
        self.event_id_counter = 0
        self.dispatched = 0
        self.running = False
        self.destroyed = False

    @property
    def now(self) -> float:
        return self.current_time

    @property
    def pending(self) -> int:
        """Number of events still waiting to be dispatched."""
        return sum(1 for ev in self.event_queue if not ev.cancelled)

    def schedule(self, delay: float, action: Callable[..., Any], *args) -> Event:
        """Planifie ``action(*args)`` dans ``delay`` secondes.

        :param delay: Délai (s) à partir de l'instant courant, positif ou nul.
        :param action: Fonction appelée lors du déclenchement.
        :return: L'événement créé, utilisable comme poignée d'annulation.
        """
        if self.destroyed:
            raise SchedulingError("cannot schedule on a destroyed scheduler")
        if math.isnan(delay) or delay < 0:
            raise SchedulingError(f"negative scheduling delay: {delay!r}")
        event = Event(self.current_time + delay, self.event_id_counter, action, args)
        self.event_id_counter += 1
        heapq.heappush(self.event_queue, event)
        return event

    def schedule_at(self, time: float, action: Callable[..., Any], *args) -> Event:
        """Planifie ``action`` à l'instant absolu ``time``."""
        if time < self.current_time:
            raise SchedulingError(
                f"cannot schedule at t={time} before current time t={self.current_time}"
            )
        return self.schedule(time - self.current_time, action, *args)

    def cancel(self, event: Event | None) -> None:
        """Annule un événement pas encore déclenché (sans effet sinon)."""
        if event is None or event.fired:
            return
        event.cancelled = True

    def step(self) -> bool:
        """Exécute le prochain événement. Retourne False si la file est vide."""
        while self.event_queue:
            event = heapq.heappop(self.event_queue)
            if event.cancelled:
                continue
            self.current_time = event.time
            event.fired = True
            self.dispatched += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"t={event.time:.6f}s dispatch #{event.seq} {event.action!r}")
            event.action(*event.args)
            return True
        return False

    def _next_time(self) -> float | None:
        while self.event_queue and self.event_queue[0].cancelled:
            heapq.heappop(self.event_queue)
        return self.event_queue[0].time if self.event_queue else None

    def run(self, stop_time: float | None = None) -> None:
        """Traite les événements jusqu'à épuisement de la file, ``stop()`` ou ``stop_time``.

        Les événements planifiés exactement à ``stop_time`` sont exécutés, ceux
        qui sont postérieurs restent en file et sont abandonnés par
        :meth:`destroy`.
        """
        if self.destroyed:
            raise SchedulingError("cannot run a destroyed scheduler")
        self.running = True
        try:
            while self.running:
                next_time = self._next_time()
                if next_time is None:
                    break
                if stop_time is not None and next_time > stop_time:
                    self.current_time = max(self.current_time, stop_time)
                    break
                self.step()
        finally:
            self.running = False

    def stop(self) -> None:
        """Arrête la boucle ``run`` après l'action en cours."""
        self.running = False

    def destroy(self) -> None:
        """Abandonne les événements restants; toute planification ultérieure échoue."""
        dropped = self.pending
        self.event_queue.clear()
        self.destroyed = True
        self.running = False
        if dropped:
            logger.debug(f"Scheduler destroyed with {dropped} pending event(s)")


class RepeatingTimer:
    """Self-rescheduling action with an owned cancellation handle."""

    def __init__(
        self,
        scheduler: Scheduler,
        interval: float,
        action: Callable[..., Any],
        *args,
    ):
        if interval <= 0:
            raise SchedulingError(f"timer interval must be positive: {interval!r}")
        self.scheduler = scheduler
        self.interval = interval
        self.action = action
        self.args = args
        self.handle: Event | None = None
        self.fired = 0

    @property
    def running(self) -> bool:
        return self.handle is not None and not self.handle.cancelled

    def start(self, delay: float = 0.0) -> None:
        self.cancel()
        self.handle = self.scheduler.schedule(delay, self._fire)

    def _fire(self) -> None:
        # Re-arm first so that an action may cancel the timer it runs from.
        self.handle = self.scheduler.schedule(self.interval, self._fire)
        self.fired += 1
        self.action(*self.args)

    def cancel(self) -> None:
        if self.handle is not None:
            self.scheduler.cancel(self.handle)
            self.handle = None


__all__ = ["Event", "Scheduler", "RepeatingTimer"]
