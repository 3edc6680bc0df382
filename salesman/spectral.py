# -*- coding: utf-8 -*-
"""
salesman/spectral.py
谱方法启发式：

- SpectralHeuristic：特征值加权的左右特征向量坐标 → 谱距离（以原距离门控）
  → 贪心构造，左右两套各一次，取真实代价较低者。
- SpectralRankHeuristic：按特征向量分量绝对值排序节点，滑动起点取首次出现顺序。
- partition_spectral_embedding：谱坐标 min-max 缩放后做 KMeans 划分（调试/报告用）。
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import scipy.linalg
from sklearn.cluster import KMeans

from .config import KMEANS_CLUSTERS, SPECTRAL_PART, normalize_spectral_part
from .errors import DecompositionFailure, PartitionFailure
from .greedy import GreedyTourBuilder
from .logging_setup import get_logger
from .matrix import TourResult, as_array, tour_cost

__all__ = [
    "Eigenpairs",
    "SpectralClusters",
    "factorize",
    "spectral_coordinates",
    "spectral_distance",
    "SpectralHeuristic",
    "SpectralRankHeuristic",
    "rank_order_nodes",
    "partition_spectral_embedding",
]

logger = get_logger(__name__)


@dataclass
class Eigenpairs:
    values: np.ndarray   # (N,) complex
    right: np.ndarray    # (N, N) complex, column k pairs with values[k]
    left: np.ndarray     # (N, N) complex


@dataclass
class SpectralClusters:
    centers: np.ndarray
    labels: np.ndarray
    coordinates: np.ndarray

    def members(self, cluster: int) -> List[int]:
        return [int(i) for i in np.flatnonzero(self.labels == cluster)]


def factorize(a) -> Eigenpairs:
    """General (non-symmetric) eigendecomposition with both left and right vectors."""
    m = np.asarray(a, dtype=np.float64)
    try:
        w, vl, vr = scipy.linalg.eig(m, left=True, right=True)
    except (np.linalg.LinAlgError, ValueError) as exc:
        raise DecompositionFailure(f"eigendecomposition failed: {exc}", component="spectral") from exc
    w = np.asarray(w, dtype=np.complex128)
    vl = np.asarray(vl, dtype=np.complex128)
    vr = np.asarray(vr, dtype=np.complex128)
    if not (np.all(np.isfinite(w)) and np.all(np.isfinite(vl)) and np.all(np.isfinite(vr))):
        raise DecompositionFailure("eigendecomposition produced non-finite values", component="spectral")
    return Eigenpairs(values=w, right=vr, left=vl)


def spectral_coordinates(values: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    # coords[i, k] = λ_k · v[i, k]
    return vectors * values[np.newaxis, :]


def spectral_distance(a, values: np.ndarray, vectors: np.ndarray, part: str = SPECTRAL_PART) -> np.ndarray:
    """
    spectral_distance[i][j] = sqrt(sum_k |λ_k v[i,k] - λ_k v[j,k]|^2) * a[i][j]

    part="real" 只比较实部；对角线恒为 0。
    """
    a = as_array(a)
    part = normalize_spectral_part(part)
    coords = spectral_coordinates(values, vectors)
    if part == "real":
        coords = coords.real
    n = a.shape[0]
    out = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            diff = coords[i] - coords[j]
            out[i, j] = math.sqrt(float(np.sum(np.abs(diff) ** 2))) * a[i, j]
    return out


def _perturbed(a: np.ndarray, amplitude: float, rng: Optional[np.random.Generator]) -> np.ndarray:
    if amplitude <= 0 or rng is None:
        return a
    noise = rng.uniform(0.0, amplitude, size=a.shape)
    np.fill_diagonal(noise, 0.0)
    return a + noise


class SpectralHeuristic:
    name = "spectral"

    def __init__(self, config=None, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.rng = rng
        self.builder = GreedyTourBuilder()

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        cfg = self.config
        part = cfg.spectral_part if cfg is not None else SPECTRAL_PART
        amplitude = cfg.spectral_perturbation if cfg is not None else 0.0

        eig = factorize(_perturbed(a, amplitude, self.rng))
        logger.debug("[spectral] values=%s |values|=%s phase=%s",
                     eig.values, np.abs(eig.values), np.angle(eig.values))

        right = spectral_distance(a, eig.values, eig.right, part=part)
        left = spectral_distance(a, eig.values, eig.left, part=part)
        logger.debug("[spectral] right distances=\n%s\nleft distances=\n%s", right, left)

        best = self.builder.build(right, a)
        cand = self.builder.build(left, a)
        if cand.cost < best.cost:
            best = cand
        if cfg is not None:
            cfg.emit("spectral", values=eig.values, right=right, left=left, cost=best.cost, tour=best.tour)
        return best


def rank_order_nodes(eig: Eigenpairs) -> List[Tuple[int, float]]:
    """(node, |Re v[i,j]|) for every entry of both vector sets, ascending by rank."""
    n = eig.right.shape[0]
    nodes: List[Tuple[int, float]] = []
    for i in range(n):
        for j in range(n):
            nodes.append((i, abs(float(eig.right[i, j].real))))
            nodes.append((i, abs(float(eig.left[i, j].real))))
    return sorted(nodes, key=lambda item: item[1])


class SpectralRankHeuristic:
    name = "spectral_rank"

    def __init__(self, config=None, rng: Optional[np.random.Generator] = None):
        self.config = config
        self.rng = rng

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        n = a.shape[0]
        amplitude = self.config.spectral_perturbation if self.config is not None else 0.0
        nodes = rank_order_nodes(factorize(_perturbed(a, amplitude, self.rng)))

        total, loop = math.inf, ()
        for offset in range(len(nodes)):
            seen, order = set(), []
            for node, _ in nodes[offset:]:
                if len(seen) == n:
                    break
                if node in seen:
                    continue
                seen.add(node)
                order.append(node)
            # 余下序列已覆盖不了全部节点，再往后只会更少
            if len(seen) < n:
                break
            order.append(order[0])
            cost = tour_cost(a, order)
            if cost < total:
                total, loop = cost, tuple(order)
        logger.debug("[spectral_rank] cost=%s tour=%s", total, loop)
        return TourResult(float(total), loop)


def partition_spectral_embedding(distance, k: int = KMEANS_CLUSTERS, seed: int = 0) -> SpectralClusters:
    """KMeans over min-max scaled Re(λ_k v[i,k]) rows (right eigenvectors)."""
    a = as_array(distance)
    eig = factorize(a)
    coords = spectral_coordinates(eig.values, eig.right).real
    lo, hi = float(coords.min()), float(coords.max())
    scale = (hi - lo) or 1.0
    coords = (coords - lo) / scale
    if coords.shape[0] < k:
        raise PartitionFailure(
            f"cannot form {k} clusters from {coords.shape[0]} points", component="kmeans"
        )
    try:
        km = KMeans(n_clusters=k, n_init=10, random_state=seed).fit(coords)
    except ValueError as exc:
        raise PartitionFailure(f"kmeans partition failed: {exc}", component="kmeans") from exc
    clusters = SpectralClusters(centers=km.cluster_centers_, labels=km.labels_, coordinates=coords)
    for c in range(k):
        logger.debug("[kmeans] center=%s members=%s", clusters.centers[c], clusters.members(c))
    return clusters
