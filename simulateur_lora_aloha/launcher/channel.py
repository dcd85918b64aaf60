from __future__ import annotations

import math


class Channel:
    """Représente le canal de propagation radio pour LoRa (modèle log-distance)."""

    # Sensibilités (dBm) des récepteurs, indexées par SF
    DEVICE_SENSITIVITY = {7: -124.0, 8: -127.0, 9: -130.0, 10: -133.0, 11: -135.0, 12: -137.0}
    GATEWAY_SENSITIVITY = {7: -130.0, 8: -132.5, 9: -135.0, 10: -137.5, 11: -140.0, 12: -142.5}

    SPREADING_FACTORS = (7, 8, 9, 10, 11, 12)

    def __init__(
        self,
        path_loss_exp: float = 3.76,
        reference_distance: float = 1.0,
        reference_loss_dB: float = 7.7,
        propagation_speed: float = 299792458.0,
        *,
        frequency_hz: float = 868.1e6,
        bandwidth: float = 125e3,
        coding_rate: int = 1,
        preamble_symbols: int = 8,
        low_data_rate_threshold: int = 11,
        header_enabled: bool = True,
        crc_enabled: bool = True,
    ):
        """
        Initialise le canal radio avec paramètres de propagation.

        :param path_loss_exp: Exposant de perte de parcours (log-distance).
        :param reference_distance: Distance de référence d0 (m).
        :param reference_loss_dB: Perte à la distance de référence (dB).
        :param propagation_speed: Vitesse de propagation (m/s).
        :param bandwidth: Largeur de bande LoRa (Hz).
        :param coding_rate: Index de code (1=4/5 … 4=4/8).
        :param preamble_symbols: Nombre de symboles de préambule.
        :param low_data_rate_threshold: SF à partir duquel l'optimisation bas débit est active.
        """
        if path_loss_exp <= 0:
            raise ValueError("path_loss_exp must be positive")
        if reference_distance <= 0:
            raise ValueError("reference_distance must be positive")
        if propagation_speed <= 0:
            raise ValueError("propagation_speed must be positive")
        self.path_loss_exp = path_loss_exp
        self.reference_distance = reference_distance
        self.reference_loss_dB = reference_loss_dB
        self.propagation_speed = propagation_speed
        self.frequency_hz = frequency_hz
        self.bandwidth = bandwidth
        self.coding_rate = coding_rate
        self.preamble_symbols = preamble_symbols
        self.low_data_rate_threshold = low_data_rate_threshold
        self.header_enabled = header_enabled
        self.crc_enabled = crc_enabled

    @staticmethod
    def _distance(a, b) -> float:
        pa = getattr(a, "position", a)
        pb = getattr(b, "position", b)
        return pa.distance_to(pb)

    def path_loss_at(self, distance: float) -> float:
        """Calcule la perte de parcours (en dB) pour une distance donnée (m)."""
        d = max(distance, self.reference_distance)
        return self.reference_loss_dB + 10 * self.path_loss_exp * math.log10(
            d / self.reference_distance
        )

    def path_loss(self, a, b) -> float:
        """Perte de parcours entre deux nœuds (ou positions)."""
        return self.path_loss_at(self._distance(a, b))

    def propagation_delay(self, a, b) -> float:
        """Délai de propagation (s) entre deux nœuds (ou positions)."""
        return self._distance(a, b) / self.propagation_speed

    def rx_power(self, tx_power_dBm: float, a, b) -> float:
        """Puissance reçue (dBm) en ``b`` pour une émission de ``a``."""
        return tx_power_dBm - self.path_loss(a, b)

    def symbol_time(self, sf: int) -> float:
        return (2 ** sf) / self.bandwidth

    def airtime(self, sf: int, payload_size: int = 20) -> float:
        """Calcule l'airtime complet d'un paquet LoRa en secondes."""
        if sf not in self.SPREADING_FACTORS:
            raise ValueError(f"invalid spreading factor: {sf!r}")
        ts = self.symbol_time(sf)
        de = 1 if sf >= self.low_data_rate_threshold else 0
        h = 0 if self.header_enabled else 1
        crc = 1 if self.crc_enabled else 0
        cr_denom = self.coding_rate + 4
        numerator = 8 * payload_size - 4 * sf + 28 + 16 * crc - 20 * h
        denominator = 4 * (sf - 2 * de)
        n_payload = max(math.ceil(numerator / denominator) * cr_denom, 0) + 8
        t_preamble = (self.preamble_symbols + 4.25) * ts
        t_payload = n_payload * ts
        return t_preamble + t_payload

    def __repr__(self):
        return (
            f"Channel(n={self.path_loss_exp}, d0={self.reference_distance}m, "
            f"L0={self.reference_loss_dB}dB)"
        )


__all__ = ["Channel"]
