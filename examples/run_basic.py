"""Exemple basique : scénario ALOHA avec trace de mobilité ns-2."""

import os
import sys
import argparse

# Ajoute le répertoire parent pour pouvoir importer le package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from simulateur_lora_aloha.launcher import Simulator, SimulationConfig

HERE = os.path.dirname(os.path.abspath(__file__))

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Exemple basique de simulation LoRa ALOHA")
    parser.add_argument("--nodes", type=int, default=3, help="Nombre de nœuds")
    parser.add_argument(
        "--matrix", default="goursaud", help="Matrice d'interférence (aloha, goursaud)"
    )
    parser.add_argument(
        "--trace",
        default=os.path.join(HERE, "ns2mobility.tcl"),
        help="Trace de mobilité ns-2",
    )
    args = parser.parse_args()

    sim = Simulator(
        SimulationConfig(
            n_devices=args.nodes,
            simulation_time=50.0,
            interference_matrix=args.matrix,
            trace_file=args.trace,
            seed=1,
        )
    )
    sim.run()
    print(sim.get_metrics())
    print(sim.get_events_dataframe())
