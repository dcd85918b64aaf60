import random

import pytest

from simulateur_lora_aloha.launcher.config_loader import SimulationConfig
from simulateur_lora_aloha.launcher.errors import ConfigurationError, UnknownNodeError
from simulateur_lora_aloha.launcher.mobility import MobilityTrace
from simulateur_lora_aloha.launcher.node import Position
from simulateur_lora_aloha.launcher.simulator import Simulator
from traffic.rng_manager import (
    RngManager,
    UncontrolledRandomError,
    activate_global_hooks,
    deactivate_global_hooks,
)


def test_default_scenario_sends_one_packet_per_device():
    sim = Simulator(SimulationConfig())
    table = sim.run()
    assert len(table.rows()) == 6
    assert table.total_sent == 50
    # Every device sits next to the gateway
    assert table[7].sent == 50
    assert all(d.packets_sent == 1 for d in sim.devices)
    for sent, received in table.rows():
        assert received <= sent


def test_lone_device_is_received():
    table = Simulator(n_devices=1).run()
    assert table.rows()[0] == (1, 1)
    assert table.total_sent == 1


def test_same_seed_same_results():
    cfg = SimulationConfig(n_devices=40, disc_radius=5000, seed=7)
    sim_a = Simulator(cfg)
    sim_b = Simulator(cfg)
    assert sim_a.run().rows() == sim_b.run().rows()
    assert sim_a.get_events_dataframe().equals(sim_b.get_events_dataframe())


def test_goursaud_never_receives_less_than_aloha():
    results = {}
    for matrix in ("aloha", "goursaud"):
        sim = Simulator(
            n_devices=80, disc_radius=7500, seed=3, app_period=5.0, interference_matrix=matrix
        )
        results[matrix] = sim.run()
    assert results["aloha"].total_sent == results["goursaud"].total_sent
    for sf in range(7, 13):
        assert results["goursaud"][sf].received >= results["aloha"][sf].received


def test_stop_time_drops_later_sends():
    seed = 11
    sim = Simulator(n_devices=20, seed=seed)
    table = sim.run(stop_time=25.0)
    rng = RngManager(seed)
    expected = sum(
        1 for i in range(20) if rng.get_stream("traffic", i).random() * 50.0 <= 25.0
    )
    assert table.total_sent == expected
    assert sim.scheduler.now == 25.0


def test_trace_drives_sf_allocation():
    trace = MobilityTrace.load(["0 0 3000 0", "1 0 10 0"])
    sim = Simulator(n_devices=2, trace=trace)
    sim.run()
    assert sim.devices[0].sf == 8
    assert sim.devices[1].sf == 7
    assert sim.devices[0].position == Position(3000.0, 0.0, 0.0)


def test_trace_file_with_unknown_node(trace_file):
    path = trace_file("0 0 1 1\n4 0 1 1\n")
    sim = Simulator(n_devices=2, trace_file=str(path))
    with pytest.raises(UnknownNodeError):
        sim.setup()


def test_missing_sf_is_recorded_without_aborting():
    sim = Simulator(n_devices=5, seed=2)
    sim.setup()
    # Runs right after the allocation at t=0
    sim.scheduler.schedule(0.0, setattr, sim.devices[0], "sf", None)
    table = sim.run()
    assert len(sim.violations) == 1
    assert sim.violations[0].node_id == 0
    assert sim.devices[0].disabled
    assert table.total_sent == 4


def test_send_while_transmitting_is_a_violation():
    sim = Simulator(n_devices=1, simulation_time=1.0, app_period=0.01)
    table = sim.run()
    assert table.total_sent == 1
    assert len(sim.violations) == 1
    assert "still transmitting" in str(sim.violations[0])


def test_events_dataframe_matches_statistics():
    sim = Simulator(n_devices=30, disc_radius=3000, seed=5)
    table = sim.run()
    df = sim.get_events_dataframe()
    assert list(df.columns) == [
        "packet_id",
        "node_id",
        "sf",
        "start_time",
        "end_time",
        "result",
        "gateway_id",
    ]
    assert len(df) == table.total_sent
    assert set(df["result"]) <= {"Success", "Lost"}
    assert (df["result"] == "Success").sum() == table.total_received


def test_dump_events(tmp_path):
    sim = Simulator(n_devices=3)
    sim.run()
    path = sim.dump_events(tmp_path / "events.csv")
    assert path.read_text().splitlines()[0].startswith("packet_id,node_id,sf")


def test_multiple_gateways_deduplicate():
    sim = Simulator(n_devices=30, n_gateways=2, disc_radius=2000, seed=4)
    table = sim.run()
    metrics = sim.get_metrics()
    gw_total = sum(gw.packets_received for gw in sim.gateways)
    assert metrics["received"] == sim.network_server.packets_received
    assert gw_total == metrics["received"] + metrics["duplicates"]
    assert table.total_received <= table.total_sent


def test_get_metrics():
    sim = Simulator(n_devices=1)
    sim.run()
    metrics = sim.get_metrics()
    assert metrics["sent"] == 1
    assert metrics["PDR"] == 1.0
    assert metrics["sent_by_sf"][7] == 1
    assert metrics["violations"] == 0
    assert metrics["simulation_time"] == pytest.approx(3650.0)


def test_invalid_configuration():
    with pytest.raises(ConfigurationError):
        Simulator(n_devices=0)
    with pytest.raises(ConfigurationError):
        Simulator(interference_matrix="bogus")


def test_run_only_uses_managed_streams():
    activate_global_hooks()
    try:
        with pytest.raises(UncontrolledRandomError):
            random.random()
        table = Simulator(n_devices=20, disc_radius=4000, seed=9).run()
    finally:
        deactivate_global_hooks()
    assert table.total_sent == 20


def test_partial_trace_keeps_placement_on_other_axes():
    trace = MobilityTrace.load(["$node_(0) set X_ 100.0"])
    sim = Simulator(n_devices=1, disc_radius=5000, seed=1, trace=trace)
    placed = sim.devices[0].position
    sim.run()
    assert sim.devices[0].position == Position(100.0, placed.y, placed.z)


def test_failing_action_still_tears_down():
    sim = Simulator(n_devices=2)
    sim.setup()

    def broken():
        raise RuntimeError("boom")

    sim.scheduler.schedule(1.0, broken)
    with pytest.raises(RuntimeError, match="boom"):
        sim.run()
    assert sim.finished
    assert sim.scheduler.destroyed
    assert not sim.scheduler.running
    assert not sim.monitor.timer.running


def test_unknown_override_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        Simulator(n_device=3)
    with pytest.raises(ConfigurationError):
        Simulator(SimulationConfig(), unknown_field=1)
