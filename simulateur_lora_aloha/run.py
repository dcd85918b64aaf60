import argparse
import logging
import sys
from pathlib import Path

from .launcher.config_loader import SimulationConfig, load_config
from .launcher.errors import (
    ConfigurationError,
    TraceParseError,
    UnknownNodeError,
)
from .launcher.interference import MATRICES
from .launcher.simulator import Simulator
from .launcher.statistics import StatisticsTable

logger = logging.getLogger("simulateur_lora_aloha")
# Logger dédié aux diagnostics (collisions, etc.)
diag_logger = logging.getLogger("diagnostics")


def simulate(config: SimulationConfig, **kwargs) -> StatisticsTable:
    """Construit et exécute un scénario ; retourne la table des statistiques."""
    sim = Simulator(config, **kwargs)
    return sim.run()


def format_table(table: StatisticsTable) -> str:
    """Une ligne ``<sent> <received>`` par SF, de SF7 (DR5) à SF12 (DR0)."""
    return "\n".join(f"{sent} {received}" for sent, received in table.rows())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulateur LoRa ALOHA – débit par spreading factor"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Fichier INI de configuration des paramètres",
    )
    parser.add_argument(
        "--nDevices",
        dest="n_devices",
        type=int,
        help="Number of end devices to include in the simulation",
    )
    parser.add_argument(
        "--nGateways", dest="n_gateways", type=int, help="Nombre de gateways"
    )
    parser.add_argument(
        "--simulationTime",
        dest="simulation_time",
        type=float,
        help="Simulation Time (s); also the application period",
    )
    parser.add_argument(
        "--interferenceMatrix",
        dest="interference_matrix",
        type=str,
        help="Interference matrix to use [aloha, goursaud]",
    )
    parser.add_argument(
        "--traceFile",
        dest="trace_file",
        type=str,
        help="The path to the NS2 movement trace file",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Graine aléatoire pour reproduire les résultats",
    )
    parser.add_argument(
        "--radius",
        dest="disc_radius",
        type=float,
        help="Rayon (m) du disque de placement des nœuds sans trace",
    )
    parser.add_argument(
        "--packetSize",
        dest="packet_size",
        type=int,
        help="Taille du payload applicatif (octets)",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Fichier CSV pour sauvegarder les résultats (optionnel)",
    )
    parser.add_argument(
        "--events",
        type=str,
        help="Fichier CSV du journal des transmissions (optionnel)",
    )
    parser.add_argument(
        "--diagnostics",
        type=str,
        help="Fichier de journalisation des collisions (optionnel)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Journalisation détaillée de chaque événement",
    )
    return parser


def _resolve_config(args) -> SimulationConfig:
    values = load_config(args.config) if args.config else {}
    for name in (
        "n_devices",
        "n_gateways",
        "simulation_time",
        "trace_file",
        "seed",
        "disc_radius",
        "packet_size",
    ):
        value = getattr(args, name)
        if value is not None:
            values[name] = value

    matrix = args.interference_matrix
    if matrix is not None:
        if matrix.strip().lower() in MATRICES:
            values["interference_matrix"] = matrix.strip().lower()
        else:
            logger.warning(
                f"Unknown interference matrix {matrix!r}, keeping "
                f"{values.get('interference_matrix', 'aloha')!r}"
            )
    return SimulationConfig(**values).validate()


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    if args.diagnostics:
        handler = logging.FileHandler(args.diagnostics, mode="w")
        handler.setFormatter(logging.Formatter("%(message)s"))
        diag_logger.addHandler(handler)
        diag_logger.setLevel(logging.INFO)

    try:
        config = _resolve_config(args)
        logger.info(
            f"Simulation d'un réseau LoRa : {config.n_devices} nœuds, "
            f"{config.n_gateways} gateways, durée={config.simulation_time}s, "
            f"matrice={config.interference_matrix}, trace={config.trace_file}"
        )
        sim = Simulator(config)
        sim.setup()
    except (ConfigurationError, TraceParseError, UnknownNodeError) as exc:
        logger.error(f"Configuration invalide : {exc}")
        return 1
    except OSError as exc:
        logger.error(f"Impossible de lire la trace : {exc}")
        return 1

    table = sim.run()
    logger.info("Computing performance metrics...")
    if sim.violations:
        logger.warning(f"{len(sim.violations)} protocol violation(s) recorded")

    print(format_table(table))

    if args.output:
        table.to_dataframe().to_csv(Path(args.output), index=False)
        logger.info(f"Résultats enregistrés dans {args.output}")
    if args.events:
        sim.dump_events(args.events)
        logger.info(f"Journal des transmissions enregistré dans {args.events}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
