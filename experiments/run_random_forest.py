import argparse
import time

from common import add_dataset_arguments, load_claset, setup_logging

from mining_config import load_params
from random_forest import ForestParams, RandomForest


def main():
    parser = argparse.ArgumentParser(description="Train a random forest and optionally test it.")
    add_dataset_arguments(parser)
    parser.add_argument("--test", type=str, default=None, help="Delimited test file")
    parser.add_argument("--ntree", type=int, default=None)
    parser.add_argument("--nrandomfeature", type=int, default=None)
    parser.add_argument("--percentboot", type=int, default=None)
    parser.add_argument("--oob", action="store_true", help="Compute out-of-bag statistics")
    parser.add_argument("--oobstatsfile", type=str, default=None)
    parser.add_argument("--perffile", type=str, default=None)
    parser.add_argument("--statfile", type=str, default=None)
    args = parser.parse_args()

    logger = setup_logging(args.log_level, args.log_file)

    params = load_params(
        ForestParams,
        args.config,
        overrides={
            "n_tree": args.ntree,
            "n_random_feature": args.nrandomfeature,
            "percent_boot": args.percentboot,
            "run_oob": True if args.oob else None,
            "oob_stats_file": args.oobstatsfile,
            "perf_file": args.perffile,
            "stat_file": args.statfile,
            "random_state": args.seed,
        },
    )

    train = load_claset(args.train, args)
    logger.info("training samples: %r", train)

    t0 = time.perf_counter()
    forest = RandomForest(params).build(train)
    logger.info("built %d trees in %.3fs", len(forest), time.perf_counter() - t0)
    if forest.oob_stats:
        logger.info(
            "OOB per tree: mean error %.4f, mean TP rate %.4f, mean TN rate %.4f",
            forest.oob_stats.oob_errors().mean(),
            forest.oob_stats.tp_rates().mean(),
            forest.oob_stats.tn_rates().mean(),
        )

    if args.test:
        test = load_claset(args.test, args)
        predicts, cm, probs = forest.classify_set(test)
        logger.info("confusion matrix:\n%s", cm)
        forest.log_stat(forest.last_stat)
        forest.performance(test, probs)
        forest.write_performance()
        logger.info("AUC: %.4f", forest.perfs[-1].auc)


if __name__ == "__main__":
    main()
