# -*- coding: utf-8 -*-
"""
salesman/harness.py
Monte-Carlo 对照实验：每次试验生成随机距离矩阵，精确解 + 各启发式各跑一次，
统计启发式代价与最优代价一致的比例。

- 每个试验从 SeedSequence(seed).spawn(...) 拿到独立的随机流：第 t 个试验永远消费第 t 个流，
  因此串行与多进程结果逐位一致。
- 分解 / 聚类失败是致命错误：记录试验编号后直接向上抛出，不保留部分统计。
"""

from __future__ import annotations
import dataclasses
import math
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import ExperimentConfig
from .embedding import EmbeddingHeuristic
from .errors import SalesmanError
from .exact import ExactSolver
from .greedy import NearestNeighborHeuristic
from .logging_setup import get_logger
from .matrix import DistanceMatrix, TourResult
from .pagerank import PageRankHeuristic
from .spectral import SpectralHeuristic, SpectralRankHeuristic

logger = get_logger(__name__)

__all__ = [
    "HEURISTICS",
    "make_heuristic",
    "costs_agree",
    "HeuristicOutcome",
    "TrialResult",
    "AgreementStatistics",
    "ExperimentHarness",
    "log_observer",
]

HEURISTICS = {
    "nearest_neighbor": NearestNeighborHeuristic,
    "pagerank": PageRankHeuristic,
    "spectral": SpectralHeuristic,
    "spectral_rank": SpectralRankHeuristic,
    "embedding": EmbeddingHeuristic,
}

# 需要随机流的启发式
_RNG_HEURISTICS = {"spectral", "spectral_rank", "embedding"}


def make_heuristic(name: str, config: ExperimentConfig, rng: Optional[np.random.Generator] = None):
    cls = HEURISTICS[name]
    if name in _RNG_HEURISTICS:
        return cls(config, rng=rng)
    return cls(config)


def costs_agree(heuristic_cost: float, exact_cost: float, integral: bool = True) -> bool:
    """整数距离时先四舍五入再比较，避免浮点累加误差；否则用 isclose。"""
    if integral:
        return int(round(heuristic_cost)) == int(round(exact_cost))
    return math.isclose(heuristic_cost, exact_cost, rel_tol=1e-9, abs_tol=1e-9)


@dataclass
class HeuristicOutcome:
    cost: float
    tour: Tuple[int, ...]
    agrees: bool


@dataclass
class TrialResult:
    index: int
    matrix: DistanceMatrix
    exact: TourResult
    outcomes: Dict[str, HeuristicOutcome] = field(default_factory=dict)

    def as_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "trial": self.index,
            "matrix": self.matrix.tolist(),
            "exact_cost": self.exact.cost,
            "exact_tour": list(self.exact.tour),
        }
        for name, o in self.outcomes.items():
            row[f"{name}_cost"] = o.cost
            row[f"{name}_tour"] = list(o.tour)
            row[f"{name}_agrees"] = o.agrees
        return row


@dataclass
class AgreementStatistics:
    heuristics: Tuple[str, ...]
    trials_run: int = 0
    agreement_counts: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        for name in self.heuristics:
            self.agreement_counts.setdefault(name, 0)

    def record(self, trial: TrialResult) -> None:
        self.trials_run += 1
        for name, outcome in trial.outcomes.items():
            if outcome.agrees:
                self.agreement_counts[name] = self.agreement_counts.get(name, 0) + 1

    def merge(self, other: "AgreementStatistics") -> "AgreementStatistics":
        self.trials_run += other.trials_run
        for name, count in other.agreement_counts.items():
            self.agreement_counts[name] = self.agreement_counts.get(name, 0) + count
        return self

    def fractions(self) -> Dict[str, float]:
        denom = float(self.trials_run)
        if denom == 0:
            return {name: float("nan") for name in self.heuristics}
        return {name: self.agreement_counts.get(name, 0) / denom for name in self.heuristics}

    def as_rows(self) -> List[Dict[str, Any]]:
        fr = self.fractions()
        return [
            {
                "heuristic": name,
                "trials": self.trials_run,
                "agreements": self.agreement_counts.get(name, 0),
                "fraction": fr[name],
            }
            for name in self.heuristics
        ]


def log_observer(event: str, payload: Dict[str, Any]) -> None:
    """debug 模式下挂上的观察者：把中间结果打到 DEBUG 日志。"""
    logger.debug("[%s] %s", event, payload)


class ExperimentHarness:
    """
    run(trial_count, node_count) -> AgreementStatistics

    progress(done, total) 可选回调，CLI 用它写心跳文件。
    """

    def __init__(self, config: Optional[ExperimentConfig] = None,
                 progress: Optional[Callable[[int, int], None]] = None,
                 keep_trials: bool = False):
        self.config = (config or ExperimentConfig()).validate()
        if self.config.debug and self.config.observer is None:
            self.config.observer = log_observer
        self.progress = progress
        self.keep_trials = keep_trials
        self.trials: List[TrialResult] = []
        self.exact = ExactSolver(self.config)

    # --------------------- single trial ---------------------
    def make_matrix(self, node_count: int, rng: np.random.Generator) -> DistanceMatrix:
        if self.config.debug:
            return DistanceMatrix.reference()
        return DistanceMatrix.random(node_count, rng,
                                     low=self.config.distance_low, high=self.config.distance_high)

    def run_trial(self, index: int, rng: np.random.Generator,
                  node_count: Optional[int] = None,
                  matrix: Optional[DistanceMatrix] = None) -> TrialResult:
        cfg = self.config
        n = int(node_count if node_count is not None else cfg.node_count)
        d = matrix if matrix is not None else self.make_matrix(n, rng)
        cfg.emit("matrix", trial=index, matrix=d.tolist())

        exact = self.exact.solve(d)
        trial = TrialResult(index=index, matrix=d, exact=exact)
        integral = d.is_integral
        for name in cfg.heuristics:
            try:
                cost, tour = make_heuristic(name, cfg, rng).solve(d)
            except SalesmanError as exc:
                logger.error("trial %d: heuristic '%s' failed fatally: %s", index, name, exc)
                raise
            outcome = HeuristicOutcome(cost=cost, tour=tour, agrees=costs_agree(cost, exact.cost, integral))
            trial.outcomes[name] = outcome
            cfg.emit("heuristic", trial=index, name=name, cost=cost, tour=tour, agrees=outcome.agrees)
        cfg.emit("trial", trial=index, exact_cost=exact.cost,
                 agrees={k: v.agrees for k, v in trial.outcomes.items()})
        return trial

    # --------------------- full run ---------------------
    def _streams(self, trial_count: int) -> List[np.random.SeedSequence]:
        return np.random.SeedSequence(self.config.seed).spawn(int(trial_count))

    def _run_chunk(self, indices: Sequence[int], seeds: Sequence[np.random.SeedSequence],
                   node_count: int) -> Tuple[AgreementStatistics, List[TrialResult]]:
        stats = AgreementStatistics(self.config.heuristics)
        kept: List[TrialResult] = []
        for idx, ss in zip(indices, seeds):
            trial = self.run_trial(idx, np.random.default_rng(ss), node_count=node_count)
            stats.record(trial)
            if self.keep_trials:
                kept.append(trial)
        return stats, kept

    def run(self, trial_count: Optional[int] = None, node_count: Optional[int] = None) -> AgreementStatistics:
        cfg = self.config
        total = int(trial_count if trial_count is not None else cfg.trials)
        n = int(node_count if node_count is not None else cfg.node_count)
        if n != cfg.node_count:
            cfg = self.config = dataclasses.replace(cfg, node_count=n).validate()
            self.exact = ExactSolver(cfg)
        logger.info("experiment start | trials=%d nodes=%d seed=%d heuristics=%s workers=%d",
                    total, n, cfg.seed, ",".join(cfg.heuristics), cfg.workers)

        seeds = self._streams(total)
        self.trials = []
        if cfg.workers > 1 and total > 1:
            stats = self._run_parallel(seeds, n)
        else:
            stats = AgreementStatistics(cfg.heuristics)
            for idx, ss in enumerate(seeds):
                trial = self.run_trial(idx, np.random.default_rng(ss), node_count=n)
                stats.record(trial)
                if self.keep_trials:
                    self.trials.append(trial)
                self._report_progress(idx + 1, total)

        for name, frac in stats.fractions().items():
            logger.info("agreement %-16s %d/%d = %.4f", name, stats.agreement_counts[name], stats.trials_run, frac)
        return stats

    def _run_parallel(self, seeds: List[np.random.SeedSequence], node_count: int) -> AgreementStatistics:
        cfg = self.config
        workers = min(cfg.workers, len(seeds))
        chunks: List[List[int]] = [list(range(w, len(seeds), workers)) for w in range(workers)]
        # observer 往往是闭包，不能跨进程
        worker_cfg = dataclasses.replace(cfg, observer=None, workers=1)
        stats = AgreementStatistics(cfg.heuristics)
        kept: List[TrialResult] = []
        done = 0
        with ProcessPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(_run_chunk_in_worker, worker_cfg, idxs, [seeds[i] for i in idxs], node_count,
                            self.keep_trials)
                for idxs in chunks
            ]
            # 按 worker 顺序合并部分和
            for fut in futures:
                part, trials = fut.result()
                stats.merge(part)
                kept.extend(trials)
                done += part.trials_run
                self._report_progress(done, len(seeds))
        if self.keep_trials:
            self.trials = sorted(kept, key=lambda t: t.index)
        return stats

    def _report_progress(self, done: int, total: int) -> None:
        every = self.config.progress_every
        if every > 0 and (done % every == 0 or done == total):
            logger.info("progress %s/%s (%.1f%%)", done, total, 100 * done / max(1, total))
        if self.progress is not None:
            self.progress(done, total)


def _run_chunk_in_worker(cfg: ExperimentConfig, indices: Sequence[int],
                         seeds: Sequence[np.random.SeedSequence], node_count: int,
                         keep_trials: bool) -> Tuple[AgreementStatistics, List[TrialResult]]:
    harness = ExperimentHarness(cfg, keep_trials=keep_trials)
    return harness._run_chunk(indices, seeds, node_count)
