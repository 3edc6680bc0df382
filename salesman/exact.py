# -*- coding: utf-8 -*-
"""
salesman/exact.py
小规模精确解：对所有哈密顿回路做深度优先穷举，作为各启发式的对照基准。
状态 = (当前节点, 已访问位集, 路径)，全部是不可变值；O(N!)，只适用于 N 很小的情形。
"""
from __future__ import annotations
import math
from typing import Optional, Tuple

import numpy as np

from .errors import ConfigurationError
from .logging_setup import get_logger
from .matrix import TourResult, as_array

__all__ = ["ExactSolver", "search_from"]

logger = get_logger(__name__)


def search_from(a: np.ndarray, start: int) -> Tuple[float, Tuple[int, ...]]:
    """
    从 start 出发枚举全部回路，返回 (最小代价, 回路)。
    并列时保留搜索顺序中第一个出现的回路（严格 <）。
    """
    n = a.shape[0]
    full = (1 << n) - 1

    def dfs(total: float, node: int, visited: int, path: Tuple[int, ...]):
        if visited == full:
            # 所有节点都访问过：闭合回起点
            return total + float(a[node, path[0]]), path + (path[0],)
        best, best_path = math.inf, path
        for j in range(n):
            if visited & (1 << j):
                continue
            value, cand = dfs(total + float(a[node, j]), j, visited | (1 << j), path + (j,))
            if value < best:
                best, best_path = value, cand
        return best, best_path

    return dfs(0.0, start, 1 << start, (start,))


class ExactSolver:
    """Exhaustive Hamiltonian-cycle search from every start node."""

    name = "exact"

    def __init__(self, config=None):
        self.config = config

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        n = a.shape[0]
        if n == 0:
            raise ConfigurationError("exact search needs at least one node", component=self.name)
        best: Optional[float] = None
        best_tour: Tuple[int, ...] = ()
        # 非对称输入时不同起点结果可能不同，因此每个起点都搜一遍
        for start in range(n):
            cost, tour = search_from(a, start)
            if best is None or cost < best:
                best, best_tour = cost, tour
        logger.debug("[exact] cost=%s tour=%s", best, best_tour)
        if self.config is not None:
            self.config.emit("exact", cost=best, tour=best_tour)
        return TourResult(float(best), best_tour)
