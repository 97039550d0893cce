"""
Command-line entry point: load, validate, train and export in one run.

Example:
    kohonen3d train AfroTrain.csv --validate AfroTest.csv --batch-size 100
"""
import argparse
import sys
from dataclasses import asdict

from .config import SOMConfig
from .errors import EmptyDataset, SOMError
from .io import export_visualization, load_dataset, validate_dataset
from .log import get_logger, setup_logging
from .som import SOM

logger = get_logger(__name__)

DEFAULT_OUTPUT = "som_output.txt"
DEFAULT_BATCH_SIZE = 100


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kohonen3d",
                                     description="Train a 3D Self-Organizing Map on labeled CSV data.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    train = subparsers.add_parser("train", help="Train a SOM and export it for visualization")
    train.add_argument("train_path", help="Training CSV (label followed by feature columns)")
    train.add_argument("--validate", dest="validate_path", help="Dataset to validate before training")
    train.add_argument("--labels", dest="labels_path",
                       help="Labeled dataset used to infer neuron labels (default: training file)")
    train.add_argument("--output", default=DEFAULT_OUTPUT, help=f"Export path (default: {DEFAULT_OUTPUT})")
    train.add_argument("--config", dest="config_path", help="YAML file with SOMConfig fields")
    train.add_argument("--grid", nargs=3, type=int, metavar=("X", "Y", "Z"))
    train.add_argument("--input-size", type=int)
    train.add_argument("--epochs", type=int)
    train.add_argument("--learning-rate", type=float)
    train.add_argument("--sigma", type=float)
    train.add_argument("--seed", type=int)
    train.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                       help="Samples per progress batch; 0 trains without batching")
    train.add_argument("-v", "--verbose", action="store_true", help="Debug logging and progress bars")
    return parser


def config_from_args(args: argparse.Namespace) -> SOMConfig:
    """Merges a YAML config, if given, with explicit command-line overrides."""
    values = {}
    if args.config_path:
        values.update(asdict(SOMConfig.from_yaml(args.config_path)))
    if args.grid:
        values["grid_x"], values["grid_y"], values["grid_z"] = args.grid
    overrides = {
        "input_size": args.input_size,
        "epochs": args.epochs,
        "initial_learning_rate": args.learning_rate,
        "initial_sigma": args.sigma,
        "random_seed": args.seed,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SOMConfig.from_dict(values)


def run_train(args: argparse.Namespace) -> int:
    config = config_from_args(args)
    som = SOM(config)
    logger.info(f"Initialized {som}")

    try:
        dataset = load_dataset(args.train_path, config.input_size)
    except SOMError as e:
        logger.error(f"Failed to load training data: {e}")
        return 1

    if args.validate_path:
        try:
            report = validate_dataset(args.validate_path, config.input_size)
            if not report.ok:
                logger.error(f"Validation failed with {len(report.issues)} issue(s), "
                             "proceeding with training anyway")
        except SOMError as e:
            logger.error(f"Validation failed: {e}; proceeding with training anyway")

    try:
        if args.batch_size == 0:
            som.train(dataset, verbose=args.verbose)
        else:
            som.train_with_batches(dataset, args.batch_size, verbose=args.verbose)
    except EmptyDataset as e:
        logger.error(f"{e}; skipping training")

    export_visualization(som, args.output, args.labels_path or args.train_path)
    logger.info("Process completed successfully")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        if args.command == "train":
            return run_train(args)
    except SOMError as e:
        logger.error(str(e))
        return 1
    return 2


if __name__ == "__main__":
    sys.exit(main())
