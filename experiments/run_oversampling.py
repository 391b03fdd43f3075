import argparse

from common import add_dataset_arguments, load_claset, setup_logging

from dsv import write_rows
from lnsmote import LnSmoteEngine, LnSmoteParams
from mining_config import load_params
from smote import SmoteEngine, SmoteParams


def main():
    parser = argparse.ArgumentParser(description="Oversample the minority class with SMOTE or LNSMOTE.")
    add_dataset_arguments(parser)
    parser.add_argument("--method", type=str, default="smote", choices=["smote", "lnsmote"])
    parser.add_argument("--percentover", type=int, default=None)
    parser.add_argument("--knn", type=int, default=None)
    parser.add_argument("--classminor", type=str, default=None)
    parser.add_argument("--syntheticfile", type=str, default=None)
    parser.add_argument("--outliersfile", type=str, default=None)
    parser.add_argument(
        "--merge",
        action="store_true",
        help="Write the original rows after the synthetic ones",
    )
    args = parser.parse_args()

    logger = setup_logging(args.log_level, args.log_file)
    dataset = load_claset(args.train, args)
    logger.info("dataset: %r minority=%s", dataset, dataset.minority_class)

    overrides = {
        "percent_over": args.percentover,
        "k": args.knn,
        "class_index": dataset.class_index,
        "random_state": args.seed,
    }

    if args.method == "smote":
        engine = SmoteEngine(load_params(SmoteParams, args.config, overrides))
        synthetics = engine.resampling(dataset.minority_rows())
    else:
        overrides["class_minor"] = args.classminor
        overrides["outliers_file"] = args.outliersfile
        engine = LnSmoteEngine(load_params(LnSmoteParams, args.config, overrides))
        synthetics = engine.resampling(dataset)
        logger.info("outliers: %d", len(engine.outliers))

    logger.info("synthetic rows: %d", len(synthetics))

    if args.syntheticfile:
        rows = list(synthetics)
        if args.merge:
            rows.extend(dataset.rows)
        n = write_rows(args.syntheticfile, rows, delimiter=args.delimiter)
        logger.info("wrote %d rows to %s", n, args.syntheticfile)


if __name__ == "__main__":
    main()
