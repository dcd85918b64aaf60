import configparser
import math
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError
from .node import Position


@dataclass
class SimulationConfig:
    """Paramètres d'un scénario ALOHA."""

    n_devices: int = 50
    n_gateways: int = 1
    simulation_time: float = 50.0
    # ``None`` : période applicative égale à la durée de simulation
    app_period: float | None = None
    packet_size: int = 50
    interference_matrix: str = "aloha"
    trace_file: str | None = None
    seed: int = 0
    disc_radius: float = 0.0
    gateway_positions: list[Position] = field(default_factory=list)
    gateway_height: float = 15.0
    tx_power_dBm: float = 14.0
    path_loss_exp: float = 3.76
    reference_distance: float = 1.0
    reference_loss_dB: float = 7.7
    position_check_interval: float = 10.0
    # The run stops one hour after the applications, as in the reference scenario
    stop_margin: float = 3600.0
    backhaul_delay: float = 0.0

    @property
    def period(self) -> float:
        return self.app_period if self.app_period is not None else self.simulation_time

    @property
    def stop_time(self) -> float:
        return self.simulation_time + self.stop_margin

    def validate(self) -> "SimulationConfig":
        if self.n_devices < 1:
            raise ConfigurationError("nDevices must be >= 1")
        if self.n_gateways < 1:
            raise ConfigurationError("nGateways must be >= 1")
        if not _positive(self.simulation_time):
            raise ConfigurationError("simulationTime must be a positive number")
        if self.app_period is not None and not _positive(self.app_period):
            raise ConfigurationError("app_period must be a positive number")
        if self.packet_size < 1:
            raise ConfigurationError("packet_size must be >= 1")
        if not math.isfinite(self.disc_radius) or self.disc_radius < 0:
            raise ConfigurationError("radius must be >= 0")
        if not _positive(self.position_check_interval):
            raise ConfigurationError("position_check_interval must be positive")
        if self.stop_margin < 0 or self.backhaul_delay < 0:
            raise ConfigurationError("stop_margin and backhaul_delay must be >= 0")
        if self.gateway_positions and len(self.gateway_positions) < self.n_gateways:
            raise ConfigurationError(
                f"{self.n_gateways} gateways requested but only "
                f"{len(self.gateway_positions)} positions given"
            )
        return self


def _positive(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def _optional_float(value: str) -> float | None:
    return None if value.lower() in ("", "none") else float(value)


def _optional_str(value: str) -> str | None:
    return value or None


# INI keys accepted in the [simulation] and [channel] sections
_INI_TYPES = {
    "n_devices": int,
    "n_gateways": int,
    "simulation_time": float,
    "app_period": _optional_float,
    "packet_size": int,
    "interference_matrix": str,
    "trace_file": _optional_str,
    "seed": int,
    "disc_radius": float,
    "gateway_height": float,
    "tx_power_dbm": float,
    "path_loss_exp": float,
    "reference_distance": float,
    "reference_loss_db": float,
    "position_check_interval": float,
    "stop_margin": float,
    "backhaul_delay": float,
}

# configparser lower-cases keys
_FIELD_NAMES = {
    "tx_power_dbm": "tx_power_dBm",
    "reference_loss_db": "reference_loss_dB",
}


def _convert(name: str, value: str):
    try:
        return _INI_TYPES[name](value)
    except ValueError:
        raise ConfigurationError(f"invalid value for {name}: {value!r}") from None


def load_config(path: str | Path) -> dict:
    """Load scenario defaults from an INI file.

    ``[simulation]`` and ``[channel]`` hold :class:`SimulationConfig` field
    names (for instance ``n_devices = 100`` or ``path_loss_exp = 3.5``).
    An optional ``[gateways]`` section lists one gateway per key as
    ``x,y[,z]``; ``z`` defaults to 15 m.

    Returns a dictionary of keyword arguments for :class:`SimulationConfig`.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"configuration file not found: {path}")
    cp = configparser.ConfigParser()
    try:
        cp.read(path)
    except configparser.Error as exc:
        raise ConfigurationError(f"cannot parse {path}: {exc}") from exc

    values: dict = {}
    for section in ("simulation", "channel"):
        if not cp.has_section(section):
            continue
        for key, value in cp.items(section):
            if key not in _INI_TYPES:
                raise ConfigurationError(f"unknown key {key!r} in [{section}]")
            values[_FIELD_NAMES.get(key, key)] = _convert(key, value.strip())

    if cp.has_section("gateways"):
        positions = []
        for key, value in cp.items("gateways"):
            parts = [p.strip() for p in value.split(",")]
            if len(parts) not in (2, 3):
                raise ConfigurationError(f"gateway {key}: expected x,y[,z]")
            try:
                coords = [float(p) for p in parts]
            except ValueError:
                raise ConfigurationError(f"gateway {key}: invalid coordinates") from None
            if len(coords) == 2:
                coords.append(15.0)
            positions.append(Position(*coords))
        values["gateway_positions"] = positions
    return values


__all__ = ["SimulationConfig", "load_config"]
