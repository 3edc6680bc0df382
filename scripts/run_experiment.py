"""
Experiment CLI: random distance matrices, exact search vs. every heuristic,
agreement fractions persisted under ``<out-dir>/<run-tag>/``.

Features
- Accept JSON/YAML config files plus CLI overrides.
- Logs to stdout and ``<run-tag>.log`` through salesman.runtime.RunContext.
- Progress via tqdm plus a heartbeat file.
- Persist results to CSV + JSONL (``summary.*``; ``trials.jsonl`` on request).
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any, Dict, Iterable, Optional

import yaml
from tqdm import tqdm

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from salesman import config as salesman_config
from salesman.config import ExperimentConfig
from salesman.errors import SalesmanError
from salesman.harness import AgreementStatistics, ExperimentHarness
from salesman.runtime import RunContext
from salesman.utils_io import ensure_dir, make_run_tag, slugify, write_csv, write_jsonl


LOGGER = logging.getLogger("run_experiment")
DEFAULT_OUT_ROOT = salesman_config.RESULTS_ROOT / "experiments"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(path: Optional[str]) -> Dict[str, Any]:
    if path is None:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return json.loads(text or "{}")
    # .yaml / .yml / 其它后缀：YAML 是 JSON 的超集
    return yaml.safe_load(text) or {}


def _build_config(args: argparse.Namespace, cfg: Dict[str, Any]) -> ExperimentConfig:
    return ExperimentConfig.from_mapping(
        cfg,
        trials=args.trials,
        node_count=args.nodes,
        seed=args.seed,
        heuristics=args.heuristics,
        embedding_variant=args.embedding_variant,
        embedding_steps=args.embedding_steps,
        spectral_part=args.spectral_part,
        workers=args.workers,
        debug=True if args.debug else None,
    ).validate()


def run_experiment(args: argparse.Namespace) -> AgreementStatistics:
    cfg_file = _load_config(args.config)
    conf = _build_config(args, cfg_file)

    out_dir = Path(args.out_dir or cfg_file.get("out_dir") or DEFAULT_OUT_ROOT)
    run_tag = args.run_tag or cfg_file.get("run_tag") or make_run_tag(conf.trials, conf.node_count, conf.seed)
    run_dir = ensure_dir(out_dir / slugify(run_tag))
    log_level = args.log_level or cfg_file.get("log_level") or ("DEBUG" if conf.debug else salesman_config.LOG_LEVEL)

    ctx = RunContext(run_tag=slugify(run_tag), run_dir=run_dir, log_level=log_level, seed=conf.seed)
    ctx.configure_logging()
    LOGGER.info("experiment config | %s", conf.as_dict())

    bar = tqdm(total=conf.trials, desc="trials", unit="trial", disable=not args.progress_bar)
    state = {"done": 0}

    def _progress(done: int, total: int) -> None:
        bar.update(done - state["done"])
        state["done"] = done
        if args.heartbeat > 0 and (done % args.heartbeat == 0 or done == total):
            ctx.heartbeat(f"{done}/{total}")

    harness = ExperimentHarness(conf, progress=_progress, keep_trials=args.save_trials)
    try:
        stats = harness.run(conf.trials, conf.node_count)

        rows = [{"run_tag": run_tag, "seed": conf.seed, "nodes": conf.node_count, **r} for r in stats.as_rows()]
        csv_path = write_csv(run_dir / "summary.csv", rows)
        jsonl_path = write_jsonl(run_dir / "summary.jsonl", rows)
        if args.save_trials:
            write_jsonl(run_dir / "trials.jsonl", [t.as_row() for t in harness.trials])
        with open(run_dir / "config.json", "w", encoding="utf-8") as f:
            json.dump(conf.as_dict(), f, ensure_ascii=False, indent=2, default=str)

        LOGGER.info("experiment finished -> %s trials (csv=%s, jsonl=%s)", stats.trials_run, csv_path, jsonl_path)
    finally:
        bar.close()
        ctx.close()
    return stats


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="salesman heuristic-equivalence experiment")
    parser.add_argument("--config", type=str, help="JSON/YAML config path", default=None)
    parser.add_argument("--trials", type=int, help="number of random trials", default=None)
    parser.add_argument("--nodes", type=int, help="node count per matrix", default=None)
    parser.add_argument("--seed", type=int, help="seed for the shared random stream", default=None)
    parser.add_argument("--heuristics", type=str, help="comma-separated heuristics to score", default=None)
    parser.add_argument("--embedding-variant", type=str, dest="embedding_variant",
                        help="embedding variant (pairwise|autoencoder)", default=None)
    parser.add_argument("--embedding-steps", type=int, dest="embedding_steps",
                        help="max gradient steps for the embedding", default=None)
    parser.add_argument("--spectral-part", type=str, dest="spectral_part",
                        help="spectral coordinate comparison (abs|real)", default=None)
    parser.add_argument("--workers", type=int, help="worker processes (1 = serial)", default=None)
    parser.add_argument("--debug", action="store_true", help="fixed reference matrix and DEBUG intermediate values")
    parser.add_argument("--run-tag", type=str, help="run tag for output dir", default=None)
    parser.add_argument("--out-dir", type=str, help="output root directory", default=None)
    parser.add_argument("--heartbeat", type=int, help="trials between heartbeat file updates (0 = off)", default=64)
    parser.add_argument("--log-level", type=str, help="logging level (INFO/DEBUG)", default=None)
    parser.add_argument("--save-trials", action="store_true", help="also write per-trial rows to trials.jsonl")
    parser.add_argument("--no-progress-bar", action="store_false", dest="progress_bar", help="disable tqdm bar")
    return parser


def main(argv: Optional[Iterable[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        stats = run_experiment(args)
    except SalesmanError as exc:
        LOGGER.error("experiment aborted in component '%s': %s", exc.component or "?", exc)
        sys.exit(2)
    for name, frac in stats.fractions().items():
        print(f"{name}\t{frac:.6f}")


if __name__ == "__main__":
    main()
