import pytest

from simulateur_lora_aloha.launcher.channel import Channel
from simulateur_lora_aloha.launcher.errors import ConfigurationError
from simulateur_lora_aloha.launcher.gateway import Gateway
from simulateur_lora_aloha.launcher.node import EndDevice, Position
from simulateur_lora_aloha.launcher.sf_allocation import assign_spreading_factors


def test_close_devices_get_sf7():
    ch = Channel()
    devices = [EndDevice(i) for i in range(3)]
    gw = Gateway(3, Position(0, 0, 15))
    assert assign_spreading_factors(devices, [gw], ch) == {0: 7, 1: 7, 2: 7}
    assert all(d.sf == 7 for d in devices)


def test_sf_grows_with_distance():
    ch = Channel()
    gw = Gateway(10, Position(0, 0, 0))
    distances = [10, 1000, 2500, 3000, 4000, 5000, 6000, 20000]
    devices = [EndDevice(i, Position(d, 0, 0)) for i, d in enumerate(distances)]
    result = assign_spreading_factors(devices, [gw], ch)
    sfs = [result[d.id] for d in devices]
    assert sfs == sorted(sfs)
    assert sfs[0] == 7
    # 3 km: -124.4 dBm, just below the SF7 sensitivity
    assert sfs[3] == 8
    # Out of range devices still get the slowest rate
    assert sfs[-1] == 12


def test_best_gateway_wins():
    ch = Channel()
    dev = EndDevice(0, Position(5000, 0, 0))
    far = Gateway(1, Position(0, 0, 0))
    near = Gateway(2, Position(5000, 10, 0))
    assert assign_spreading_factors([dev], [far, near], ch) == {0: 7}


def test_reallocation_overwrites():
    ch = Channel()
    gw = Gateway(1, Position(0, 0, 0))
    dev = EndDevice(0, Position(10, 0, 0), sf=12)
    assign_spreading_factors([dev], [gw], ch)
    assert dev.sf == 7
    dev.position = Position(3000, 0, 0)
    assign_spreading_factors([dev], [gw], ch)
    assert dev.sf == 8


def test_no_gateway_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        assign_spreading_factors([EndDevice(0)], [], Channel())
