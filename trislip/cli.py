import argparse
import sys
from pathlib import Path

from loguru import logger

from trislip.core.config import InversionConfig
from trislip.core.inversion import InversionOrchestrator, SlipDistribution
from trislip.core.physics import CutdeCpuEngine
from trislip.utils.parsers import MeshParser, StationParser


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Invert station displacements for slip on a triangular mesh."
    )
    parser.add_argument("config_file_name", type=str, help="Name of *_config.json file")
    parser.add_argument(
        "--station_file_name",
        type=str,
        default=None,
        required=False,
        help="Name of station file (.csv or .sta.data)",
    )
    parser.add_argument(
        "--mesh_file_name",
        type=str,
        default=None,
        required=False,
        help="Name of mesh file (.mat or any meshio format)",
    )
    parser.add_argument(
        "--kernel_file",
        type=str,
        default=None,
        required=False,
        help="HDF5 file to load the elastic kernel from or save it to",
    )
    parser.add_argument(
        "--beta",
        type=float,
        nargs="+",
        default=None,
        required=False,
        help="Smoothing strength, one value or one per sub-region",
    )
    parser.add_argument(
        "--noise",
        type=float,
        default=None,
        required=False,
        help="Synthetic noise as a fraction of the station uncertainties",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        required=False,
        help="Seed for the synthetic noise",
    )
    parser.add_argument(
        "--output_path",
        type=str,
        default=None,
        required=False,
        help="Directory for slip.csv and predicted_stations.csv",
    )
    return parser.parse_args(argv)


def process_args(config: InversionConfig, args: argparse.Namespace) -> InversionConfig:
    """Overrides config fields with command line values that were given."""
    updates = {}
    for key in ("station_file_name", "mesh_file_name", "kernel_file", "output_path"):
        value = getattr(args, key)
        if value is not None:
            logger.warning(f"Replacing {key}: {getattr(config, key)} -> {value}")
            updates[key] = Path(value)
    for key in ("noise", "seed"):
        value = getattr(args, key)
        if value is not None:
            logger.warning(f"Replacing {key}: {getattr(config, key)} -> {value}")
            updates[key] = value
    if args.beta is not None:
        updates["beta"] = args.beta[0] if len(args.beta) == 1 else args.beta
    return InversionConfig(**{**config.model_dump(), **updates})


def write_output(result: SlipDistribution, output_path: Path):
    output_path.mkdir(parents=True, exist_ok=True)
    result.to_dataframe().to_csv(output_path / "slip.csv", index=False)
    result.predicted.to_dataframe().to_csv(output_path / "predicted_stations.csv", index=False)
    logger.success(f"Wrote results to {output_path}")


def main(argv=None) -> int:
    args = parse_args(argv)
    config = process_args(InversionConfig.from_file(args.config_file_name), args)

    if config.station_file_name is None or config.mesh_file_name is None:
        logger.error("Both station_file_name and mesh_file_name must be given.")
        return 1

    logger.info("Loading input data")
    stations = StationParser.read(
        config.station_file_name, config.origin_lon, config.origin_lat
    )
    mesh = MeshParser.read(config.mesh_file_name, n_elements=config.n_elements)
    logger.info(
        f"Loaded {len(stations)} stations and {mesh.num_patches()} elements "
        f"in {mesh.num_regions()} sub-regions"
    )

    orchestrator = InversionOrchestrator()
    orchestrator.set_stations(stations)
    orchestrator.set_mesh(mesh)
    orchestrator.set_engine(CutdeCpuEngine(poisson_ratio=config.poisson_ratio))
    result = orchestrator.run_inversion(config)

    if config.output_path is not None:
        write_output(result, config.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
