import logging

import pytest

from simulateur_lora_aloha.launcher.errors import ConfigurationError
from simulateur_lora_aloha.launcher.interference import (
    ALOHA,
    GOURSAUD,
    CollisionMatrix,
    TransmissionRecord,
    resolve_outcome,
)


def rec(pid, sf=7, start=0.0, duration=1.0, gw=0, rx=-60.0):
    return TransmissionRecord(pid, pid, sf, start, duration, gateway_id=gw, rx_power_dBm=rx)


def test_overlap_is_half_open():
    a = rec(1, start=0.0, duration=1.0)
    assert a.overlaps(rec(2, start=0.5))
    assert not a.overlaps(rec(2, start=1.0))
    assert not rec(2, start=1.0).overlaps(a)


def test_lone_transmission_received():
    a = rec(1)
    assert resolve_outcome(a, [], ALOHA) == {1}
    assert resolve_outcome(a, [], GOURSAUD) == {1}


def test_aloha_overlap_destroys_both():
    a, b = rec(1, sf=7), rec(2, sf=12, start=0.2)
    assert resolve_outcome(a, [b], ALOHA) == set()
    assert resolve_outcome(b, [a], ALOHA) == set()


def test_goursaud_different_sf_coexist():
    a, b = rec(1, sf=7), rec(2, sf=9, start=0.2)
    assert resolve_outcome(a, [b], GOURSAUD) == {1, 2}


def test_goursaud_same_sf_equal_power_destroys_both():
    a, b = rec(1, sf=8), rec(2, sf=8, start=0.1)
    assert resolve_outcome(a, [b], GOURSAUD) == set()


def test_goursaud_same_sf_capture():
    strong = rec(1, sf=7, rx=-50.0)
    weak = rec(2, sf=7, start=0.1, rx=-60.0)
    assert resolve_outcome(strong, [weak], GOURSAUD) == {1}
    assert resolve_outcome(weak, [strong], GOURSAUD) == {1}


def test_goursaud_strong_interferer_on_other_sf():
    # SIR of -30 dB is below the SF7 vs SF8 threshold (-16 dB)
    victim = rec(1, sf=7, rx=-100.0)
    interferer = rec(2, sf=8, start=0.1, rx=-70.0)
    assert resolve_outcome(victim, [interferer], GOURSAUD) == {2}


def test_other_gateway_and_disjoint_records_ignored():
    a = rec(1)
    other_gw = rec(2, start=0.1, gw=1)
    later = rec(3, start=5.0)
    assert resolve_outcome(a, [other_gw, later], ALOHA) == {1}


def test_matrix_lookup_and_names():
    assert GOURSAUD.threshold(7, 7) == 6
    assert GOURSAUD.threshold(12, 7) == -36
    assert GOURSAUD.threshold(7, 12) == -20
    assert ALOHA.interferes(7, 12, sir_dB=100.0)
    assert CollisionMatrix.from_name(" Goursaud ") is GOURSAUD
    with pytest.raises(ConfigurationError):
        CollisionMatrix.from_name("unknown")
    with pytest.raises(ValueError):
        GOURSAUD.threshold(6, 7)


def test_collisions_logged_to_diagnostics(caplog):
    a, b = rec(1), rec(2, start=0.5)
    with caplog.at_level(logging.INFO, logger="diagnostics"):
        resolve_outcome(a, [b], ALOHA)
    assert "packet=1 SF7 destroyed by packet=2" in caplog.text
