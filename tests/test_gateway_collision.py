import logging

import pytest

from simulateur_lora_aloha.launcher.errors import ProtocolViolation
from simulateur_lora_aloha.launcher.gateway import Gateway
from simulateur_lora_aloha.launcher.interference import ALOHA, GOURSAUD, TransmissionRecord
from simulateur_lora_aloha.launcher.server import NetworkServer
from simulateur_lora_aloha.launcher.statistics import StatisticsCollector


def rec(pid, sf=7, start=0.0, duration=1.0, rx=-60.0, gw=0):
    return TransmissionRecord(pid, pid, sf, start, duration, gateway_id=gw, rx_power_dBm=rx)


def make_gateway():
    collector = StatisticsCollector()
    server = NetworkServer(observers=[collector])
    gw = Gateway(0, listeners=[server])
    return gw, server, collector


def test_collision_between_two_packets():
    gw, server, collector = make_gateway()
    gw.start_reception(rec(1, start=0.0))
    gw.start_reception(rec(2, start=0.5))
    assert not gw.end_reception(1, ALOHA)
    assert not gw.end_reception(2, ALOHA)
    assert server.packets_received == 0
    assert collector.snapshot()[7].received == 0
    assert gw.packets_lost == 2


def test_packet_closing_last_sees_closed_overlap():
    gw, server, _ = make_gateway()
    gw.start_reception(rec(1, start=0.0, duration=1.0))
    gw.start_reception(rec(2, start=0.9, duration=1.0))
    assert not gw.end_reception(1, ALOHA)
    gw.start_reception(rec(3, start=1.5, duration=0.1))
    assert not gw.end_reception(3, ALOHA)
    assert not gw.end_reception(2, ALOHA)
    assert server.packets_received == 0


def test_sequential_packets_received():
    gw, server, collector = make_gateway()
    for pid in range(3):
        gw.start_reception(rec(pid, start=float(pid)))
        assert gw.end_reception(pid, ALOHA)
    assert server.packets_received == 3
    assert collector.snapshot()[7].received == 3
    assert gw.recent == []


def test_goursaud_keeps_different_spreading_factors():
    gw, server, collector = make_gateway()
    gw.start_reception(rec(1, sf=7, start=0.0))
    gw.start_reception(rec(2, sf=10, start=0.1))
    assert gw.end_reception(1, GOURSAUD)
    assert gw.end_reception(2, GOURSAUD)
    table = collector.snapshot()
    assert table[7].received == 1
    assert table[10].received == 1


def test_under_sensitivity_is_lost_but_interferes():
    gw, server, _ = make_gateway()
    gw.start_reception(rec(1, sf=7, rx=-135.0))
    gw.start_reception(rec(2, sf=7, start=0.2, rx=-60.0))
    assert not gw.end_reception(1, GOURSAUD)
    # -60 vs -135 dBm on SF7: SIR is 75 dB, capture succeeds
    assert gw.end_reception(2, GOURSAUD)
    assert server.packets_received == 1


def test_duplicate_packet_id_is_a_protocol_violation():
    gw, _, _ = make_gateway()
    gw.start_reception(rec(1))
    with pytest.raises(ProtocolViolation) as excinfo:
        gw.start_reception(rec(1))
    assert excinfo.value.node_id == 1


def test_end_of_unknown_packet_warns(caplog):
    gw, _, _ = make_gateway()
    with caplog.at_level(logging.WARNING):
        assert gw.end_reception(42) is False
    assert "unknown packet 42" in caplog.text
