import logging
import sys
from pathlib import Path

# Allow running as: python experiments/<script>.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from data_structures import Claset, read_claset


def setup_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Console logging plus an optional log file for the experiment scripts."""
    format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
        handlers=[logging.StreamHandler()],
    )
    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string))
        logging.getLogger().addHandler(file_handler)
    return logging.getLogger("experiments")


def add_dataset_arguments(parser) -> None:
    parser.add_argument("--train", type=str, required=True, help="Delimited training file")
    parser.add_argument("--delimiter", type=str, default=",")
    parser.add_argument(
        "--class-column",
        type=str,
        default=None,
        help="Name of the class column (default: last column)",
    )
    parser.add_argument(
        "--class-values",
        type=str,
        default=None,
        help="Comma separated class value space, e.g. '1,0'",
    )
    parser.add_argument("--config", type=str, default=None, help="JSON parameter file")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log-level", type=str, default="INFO")
    parser.add_argument("--log-file", type=str, default=None)


def load_claset(path: str, args) -> Claset:
    class_values = None
    if args.class_values:
        class_values = [v.strip() for v in args.class_values.split(",") if v.strip()]
    return read_claset(
        path,
        delimiter=args.delimiter,
        class_column=args.class_column,
        class_values=class_values,
    )
