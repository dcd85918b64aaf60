from __future__ import annotations

import hashlib
import random
import numpy as np
from typing import Dict, Tuple


class UncontrolledRandomError(RuntimeError):
    """Raised when an unmanaged RNG source is accessed."""


class RngManager:
    """Deterministic MT19937 streams keyed by ``(name, node_id)``.

    The simulator draws from two streams: ``"traffic"`` for the initial
    offset of each device's periodic application and ``"position"`` for the
    placement of devices on the deployment disc.  Two managers built with
    the same master seed hand out identical sequences, whatever the order in
    which the streams are requested.
    """

    def __init__(self, master_seed: int) -> None:
        self.master_seed = int(master_seed)
        self._streams: Dict[Tuple[str, int], np.random.Generator] = {}

    def get_stream(self, stream_name: str, node_id: int = 0) -> np.random.Generator:
        """Return the Generator for ``stream_name`` and ``node_id``."""
        key = (stream_name, node_id)
        if key not in self._streams:
            # ``hash()`` is salted per interpreter, hence the sha256 digest.
            digest = hashlib.sha256(f"{stream_name}:{node_id}".encode()).digest()
            stream_hash = int.from_bytes(digest[:8], "little")
            seed = (self.master_seed ^ stream_hash) & 0xFFFFFFFF
            gen = np.random.Generator(np.random.MT19937(seed))
            self._streams[key] = gen
        return self._streams[key]

    @property
    def streams(self) -> list[Tuple[str, int]]:
        return sorted(self._streams)


_hook_enabled = False
_orig_random_funcs: dict[str, object] = {}
_orig_numpy_funcs: dict[str, object] = {}

_RANDOM_FUNCS = [
    "random",
    "randrange",
    "randint",
    "choice",
    "shuffle",
    "uniform",
    "gauss",
    "expovariate",
    "normalvariate",
    "sample",
    "choices",
]
# Legacy global state of numpy, plus the factory of unmanaged Generators
_NUMPY_FUNCS = [
    "random",
    "rand",
    "randn",
    "randint",
    "normal",
    "uniform",
    "choice",
    "shuffle",
    "default_rng",
]


def _reject(*_: object, **__: object) -> None:
    raise UncontrolledRandomError(
        "Unmanaged random source: use RngManager.get_stream()"
    )


def activate_global_hooks() -> None:
    """Make every draw outside an :class:`RngManager` stream fail.

    Used by the reproducibility tests to prove that a run only depends on
    the master seed.
    """

    global _hook_enabled
    if _hook_enabled:
        return
    _hook_enabled = True

    for name in _RANDOM_FUNCS:
        if hasattr(random, name):
            _orig_random_funcs[name] = getattr(random, name)
            setattr(random, name, _reject)

    for name in _NUMPY_FUNCS:
        if hasattr(np.random, name):
            _orig_numpy_funcs[name] = getattr(np.random, name)
            setattr(np.random, name, _reject)


def deactivate_global_hooks() -> None:
    """Restore modules to their original state."""

    global _hook_enabled
    if not _hook_enabled:
        return

    for name, func in _orig_random_funcs.items():
        setattr(random, name, func)
    _orig_random_funcs.clear()

    for name, func in _orig_numpy_funcs.items():
        setattr(np.random, name, func)
    _orig_numpy_funcs.clear()

    _hook_enabled = False
