# -*- coding: utf-8 -*-
"""Unified CLI for salesman.
Commands: run, solve, project.
"""
from __future__ import annotations
import sys, argparse, logging, os
from pathlib import Path
from typing import List, Optional

# Ensure in-repo execution works without PYTHONPATH tweaks.
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from salesman import config as _config
from salesman.errors import SalesmanError
from salesman.logging_setup import setup_logging


def _setup_logging(verbosity: int = 1):
    setup_logging({0: "WARNING", 1: "INFO"}.get(verbosity, "DEBUG"))


def _load_matrix(args):
    from salesman.matrix import DistanceMatrix
    import numpy as np
    if getattr(args, "matrix", None):
        rows = [[float(x) for x in row.split(",")] for row in args.matrix.split(";") if row.strip()]
        return DistanceMatrix(rows)
    if getattr(args, "random", False):
        return DistanceMatrix.random(args.nodes, np.random.default_rng(args.seed),
                                     low=_config.DISTANCE_LOW, high=_config.DISTANCE_HIGH)
    return DistanceMatrix.reference()


# ---------------- commands ----------------
def cmd_run(args, rest: List[str]):
    # 延迟导入，避免其它子命令受依赖影响
    from scripts import run_experiment
    run_experiment.main(rest)


def cmd_solve(args, rest: List[str]):
    import numpy as np
    from salesman.config import ExperimentConfig
    from salesman.harness import ExperimentHarness
    d = _load_matrix(args)
    conf = ExperimentConfig(
        node_count=d.size, seed=args.seed,
        embedding_variant=args.embedding_variant or _config.EMBEDDING_VARIANT,
    )
    losses: List[float] = []
    embedding = {}

    def _observer(event, payload):
        if event == "embedding":
            losses[:] = payload.get("losses", [])
            embedding["values"] = payload.get("embedding")
        if args.verbosity >= 2:
            logging.debug("[%s] %s", event, payload)

    conf.observer = _observer
    harness = ExperimentHarness(conf)
    trial = harness.run_trial(0, np.random.default_rng(args.seed), matrix=d)

    print("matrix:")
    for row in d.tolist():
        print("  " + " ".join(f"{v:g}" for v in row))
    print(f"{'exact':<18}{trial.exact.cost:>10g}  {list(trial.exact.tour)}")
    for name, o in trial.outcomes.items():
        mark = "=" if o.agrees else " "
        print(f"{name:<18}{o.cost:>10g}{mark} {list(o.tour)}")

    if args.report:
        from salesman.spectral import factorize
        from salesman.viz import plot_loss_curve, plot_projection
        out_dir = str(args.out_dir)
        os.makedirs(out_dir, exist_ok=True)
        ranks = factorize(d).right.real
        rep = plot_projection(ranks, "results", out_dir=out_dir, style=args.style)
        print("  projection:", rep["png"], rep["dat"])
        if losses:
            print("  loss curve:", plot_loss_curve(losses, "cost", out_dir=out_dir, style=args.style))
        if embedding.get("values") is not None:
            rep = plot_projection(embedding["values"], "embedding", out_dir=out_dir, style=args.style)
            print("  embedding :", rep["png"])


def cmd_project(args, rest: List[str]):
    import numpy as np
    from salesman.spectral import partition_spectral_embedding
    from salesman.viz import plot_projection
    d = _load_matrix(args)
    clusters = partition_spectral_embedding(d, k=args.clusters, seed=args.seed)
    for c in range(args.clusters):
        print(f"Centered at x: {clusters.centers[c].tolist()}")
        print(f"Matching data points: {clusters.members(c)}")
    # 中心与成员一起投影，便于对照
    points = np.vstack([clusters.centers, clusters.coordinates])
    rep = plot_projection(points, "kmeans", out_dir=str(args.out_dir), style=args.style)
    print("  projection:", rep["png"], rep["dat"])


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="salesman", description="salesman experiments")
    p.add_argument("-v", "--verbosity", type=int, default=1, help="0 quiet, 1 info, 2 debug")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("run", help="Monte-Carlo agreement experiment (flags forwarded to run_experiment)")
    sp.set_defaults(func=cmd_run)

    def _matrix_flags(sp):
        sp.add_argument("--matrix", type=str, default=None, help="rows separated by ';', entries by ','")
        sp.add_argument("--random", action="store_true", help="random matrix instead of the reference one")
        sp.add_argument("--nodes", type=int, default=_config.NODE_COUNT)
        sp.add_argument("--seed", type=int, default=_config.SEED)
        sp.add_argument("--out-dir", type=Path, default=_config.RESULTS_ROOT / "figs")
        sp.add_argument("--style", type=str, default="default")

    sp = sub.add_parser("solve", help="run every solver on one matrix and print costs/tours")
    _matrix_flags(sp)
    sp.add_argument("--embedding-variant", type=str, default=None)
    sp.add_argument("--report", action="store_true", help="write projection plots and loss curve")
    sp.set_defaults(func=cmd_solve)

    sp = sub.add_parser("project", help="kmeans + PCA projection of the spectral embedding")
    _matrix_flags(sp)
    sp.add_argument("--clusters", type=int, default=_config.KMEANS_CLUSTERS)
    sp.set_defaults(func=cmd_project)
    return p


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args, rest = parser.parse_known_args(argv)
    if rest and args.cmd != "run":
        parser.error(f"unrecognized arguments: {' '.join(rest)}")
    _setup_logging(args.verbosity)
    try:
        args.func(args, rest)
    except SalesmanError as exc:
        logging.exception("[%s] failed in component '%s'", args.cmd, exc.component or "?")
        sys.exit(2)


if __name__ == "__main__":
    main()
