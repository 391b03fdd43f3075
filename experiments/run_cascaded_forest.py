import argparse
import time

from common import add_dataset_arguments, load_claset, setup_logging

from cascaded_forest import CascadedForest, CascadeParams
from mining_config import load_params


def main():
    parser = argparse.ArgumentParser(description="Train a cascaded random forest and optionally test it.")
    add_dataset_arguments(parser)
    parser.add_argument("--test", type=str, default=None, help="Delimited test file")
    parser.add_argument("--nstage", type=int, default=None)
    parser.add_argument("--ntree", type=int, default=None)
    parser.add_argument("--nrandomfeature", type=int, default=None)
    parser.add_argument("--percentboot", type=int, default=None)
    parser.add_argument("--tprate", type=float, default=None)
    parser.add_argument("--tnrate", type=float, default=None)
    parser.add_argument("--positive", type=str, default=None, help="Positive class label")
    parser.add_argument("--oobstatsfile", type=str, default=None)
    parser.add_argument("--perffile", type=str, default=None)
    parser.add_argument("--statfile", type=str, default=None)
    args = parser.parse_args()

    logger = setup_logging(args.log_level, args.log_file)

    params = load_params(
        CascadeParams,
        args.config,
        overrides={
            "n_stage": args.nstage,
            "n_tree": args.ntree,
            "n_random_feature": args.nrandomfeature,
            "percent_boot": args.percentboot,
            "tp_rate": args.tprate,
            "tn_rate": args.tnrate,
            "positive_class": args.positive,
            "oob_stats_file": args.oobstatsfile,
            "perf_file": args.perffile,
            "stat_file": args.statfile,
            "random_state": args.seed,
        },
    )

    train = load_claset(args.train, args)
    logger.info("training samples: %r", train)

    t0 = time.perf_counter()
    cascade = CascadedForest(params).build(train)
    logger.info("built %d stages in %.3fs", len(cascade.stages), time.perf_counter() - t0)
    stages = cascade.oob_stats
    logger.info("stage f-measures: %s", " ".join(f"{v:.4f}" for v in stages.f_measures()))
    logger.info(
        "stage precision %.4f, FP rate %.4f, accuracy %.4f (means)",
        stages.precisions().mean(),
        stages.fp_rates().mean(),
        stages.accuracies().mean(),
    )

    if args.test:
        test = load_claset(args.test, args)
        predicts, cm, probs = cascade.classify_by_weight(test)
        logger.info("confusion matrix:\n%s", cm)
        cascade.log_stat(cascade.last_stat)
        cascade.performance(test, probs)
        cascade.write_performance()
        logger.info("AUC: %.4f", cascade.perfs[-1].auc)


if __name__ == "__main__":
    main()
