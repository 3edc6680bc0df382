# -*- coding: utf-8 -*-
"""
salesman/greedy.py
共享的贪心构造：任意 N×N "亲和度" 矩阵决定下一步走向，
回路代价始终用原始距离矩阵计算，从每个起点各构造一次并保留最优。
"""
from __future__ import annotations
import math
from typing import List, Optional, Tuple

import numpy as np

from .logging_setup import get_logger
from .matrix import TourResult, as_array, tour_cost

__all__ = ["GreedyTourBuilder", "NearestNeighborHeuristic", "greedy_cycle"]

logger = get_logger(__name__)


def greedy_cycle(affinity: np.ndarray, start: int) -> Tuple[int, ...]:
    """
    N-1 步贪心：每步选亲和度最小的未访问节点（并列取编号最小），最后闭合回起点。
    非有限值（nan/inf）不会阻塞：若没有可比较的候选，取第一个未访问节点。
    """
    n = affinity.shape[0]
    visited = [False] * n
    visited[start] = True
    state = start
    loop: List[int] = [start]
    for _ in range(n - 1):
        best: Optional[float] = None
        k = -1
        for j in range(n):
            if visited[j]:
                continue
            v = float(affinity[state, j])
            if k < 0:
                k = j
                best = v if math.isfinite(v) else None
                continue
            if math.isfinite(v) and (best is None or v < best):
                best, k = v, j
        state = k
        visited[state] = True
        loop.append(state)
    loop.append(loop[0])
    return tuple(loop)


class GreedyTourBuilder:
    """Greedy nearest-neighbour cycle from every start offset, scored on the true distances."""

    def build(self, affinity, true_distance) -> TourResult:
        a = as_array(true_distance)
        aff = np.asarray(affinity, dtype=np.float64)
        n = a.shape[0]
        if aff.shape != (n, n):
            raise ValueError(f"affinity shape {aff.shape} does not match distance shape {(n, n)}")
        min_total, min_loop = math.inf, ()
        for offset in range(n):
            loop = greedy_cycle(aff, offset)
            total = tour_cost(a, loop)
            if total < min_total:
                min_total, min_loop = total, loop
        return TourResult(float(min_total), min_loop)


class NearestNeighborHeuristic:
    """Plain nearest neighbour: the true distances drive the greedy walk."""

    name = "nearest_neighbor"

    def __init__(self, config=None):
        self.config = config
        self.builder = GreedyTourBuilder()

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        result = self.builder.build(a, a)
        logger.debug("[nearest_neighbor] cost=%s tour=%s", result.cost, result.tour)
        return result
