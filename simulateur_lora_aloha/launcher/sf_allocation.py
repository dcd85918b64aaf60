"""Initial spreading factor allocation based on the best gateway link."""

from __future__ import annotations

import logging
from typing import Iterable

from .channel import Channel
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def assign_spreading_factors(
    devices: Iterable,
    gateways: Iterable,
    channel: Channel,
    tx_power_dBm: float | None = None,
    sensitivity_dBm: dict[int, float] | None = None,
) -> dict[int, int]:
    """Assign each device the lowest SF its best gateway link supports.

    The received power is estimated towards every gateway and the strongest
    one is kept.  SFs are tried from SF7 upwards and the first whose
    sensitivity is strictly exceeded wins; SF12 is used when none is.
    Calling it again simply overwrites ``device.sf``.

    :param tx_power_dBm: Transmit power used for the estimate; defaults to
        each device's own ``tx_power``.
    :return: Mapping ``device.id -> sf``.
    """
    gateways = list(gateways)
    if not gateways:
        raise ConfigurationError("cannot allocate spreading factors without gateways")
    sensitivity = sensitivity_dBm or Channel.DEVICE_SENSITIVITY
    sfs = sorted(sensitivity)

    assignment = {}
    for device in devices:
        power = tx_power_dBm if tx_power_dBm is not None else device.tx_power
        best_rx = max(channel.rx_power(power, device, gw) for gw in gateways)
        sf = sfs[-1]
        for candidate in sfs:
            if best_rx > sensitivity[candidate]:
                sf = candidate
                break
        device.sf = sf
        assignment[device.id] = sf
        logger.debug(f"Node {device.id}: best RX power {best_rx:.1f} dBm -> SF{sf}")
    return assignment


__all__ = ["assign_spreading_factors"]
