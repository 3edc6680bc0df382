# -*- coding: utf-8 -*-
"""
salesman/pagerank.py
PageRank 启发式：距离作为有向边权，按平稳分布排序节点，
以得分最高的节点为起点、再按得分升序访问全部节点（末尾自然回到起点）。
"""
from __future__ import annotations
from typing import Dict, List, Tuple

import networkx as nx

from .config import DAMPING, PAGERANK_MAX_ITER, PAGERANK_TOL
from .errors import DecompositionFailure
from .logging_setup import get_logger
from .matrix import TourResult, as_array, tour_cost

__all__ = ["PageRankHeuristic", "build_graph", "rank_scores", "rank_order"]

logger = get_logger(__name__)


def build_graph(a) -> nx.DiGraph:
    a = as_array(a)
    n = a.shape[0]
    graph = nx.DiGraph()
    graph.add_nodes_from(range(n))
    graph.add_weighted_edges_from(
        (i, j, float(a[i, j])) for i in range(n) for j in range(n) if i != j
    )
    return graph


def rank_scores(a, damping: float = DAMPING, tol: float = PAGERANK_TOL,
                max_iter: int = PAGERANK_MAX_ITER) -> Dict[int, float]:
    """Stationary score per node; the values sum to 1."""
    graph = build_graph(a)
    try:
        scores = nx.pagerank(graph, alpha=damping, tol=tol, max_iter=max_iter, weight="weight")
    except nx.PowerIterationFailedConvergence as exc:
        raise DecompositionFailure(f"power iteration did not converge: {exc}", component="pagerank") from exc
    return {int(node): float(score) for node, score in scores.items()}


def rank_order(scores: Dict[int, float]) -> List[Tuple[int, float]]:
    # 稳定排序：得分相同按节点编号
    return sorted(scores.items(), key=lambda kv: (kv[1], kv[0]))


class PageRankHeuristic:
    name = "pagerank"

    def __init__(self, config=None):
        self.config = config

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        cfg = self.config
        damping = cfg.damping if cfg is not None else DAMPING
        tol = cfg.pagerank_tol if cfg is not None else PAGERANK_TOL
        max_iter = cfg.pagerank_max_iter if cfg is not None else PAGERANK_MAX_ITER

        cities = rank_order(rank_scores(a, damping=damping, tol=tol, max_iter=max_iter))
        logger.debug("[pagerank] ranks=%s", cities)
        nodes = [cities[-1][0]] + [node for node, _ in cities]
        tour = tuple(int(x) for x in nodes)
        total = tour_cost(a, tour)
        if cfg is not None:
            cfg.emit("pagerank", ranks=dict(cities), cost=total, tour=tour)
        return TourResult(total, tour)
