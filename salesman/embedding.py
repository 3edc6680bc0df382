# -*- coding: utf-8 -*-
"""
salesman/embedding.py
Gradient-trained node embeddings.

Two variants share one momentum / norm-clipped training loop:

``autoencoder``
    ``A`` is loaded from the distance matrix and frozen; ``X`` (scale·N × N)
    and the bias ``B`` are trained so that ``sigmoid(X Aᵀ + B)`` reproduces
    ``X``. Node ``i`` is column ``i`` of ``X``.
``pairwise``
    A one-hidden-layer network maps the one-hot pair encoding of ``(i, j)``
    to ``d[i][j]``; node ``i`` is embedded as ``(aw[i] + ab[i]) * bw[i]``.

After training, pairwise Euclidean distances between node embeddings drive
:class:`~salesman.greedy.GreedyTourBuilder`.
"""
from __future__ import annotations
import math
from collections import OrderedDict
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np
import torch

from .config import (
    EMBEDDING_LOSS_THRESHOLDS,
    EMBEDDING_SCALE,
    EMBEDDING_STEPS,
    EMBEDDING_VARIANT,
    LEARNING_RATE,
    MOMENTUM,
    SEED,
    normalize_embedding_variant,
)
from .greedy import GreedyTourBuilder
from .logging_setup import get_logger
from .matrix import TourResult, as_array

__all__ = [
    "ParameterSet",
    "train_momentum",
    "pair_encoding",
    "euclidean_distances",
    "EmbeddingHeuristic",
]

logger = get_logger(__name__)

DTYPE = torch.float64


class ParameterSet:
    """
    Named tensor blocks with a per-block ``trainable`` flag.

    Frozen blocks take part in the forward graph but never receive updates.
    """

    def __init__(self, dtype: torch.dtype = DTYPE):
        self.dtype = dtype
        self._blocks: "OrderedDict[str, Tuple[torch.Tensor, bool]]" = OrderedDict()

    def add(self, name: str, values, trainable: bool = True) -> torch.Tensor:
        if name in self._blocks:
            raise KeyError(f"parameter block '{name}' already exists")
        t = torch.as_tensor(np.array(values, dtype=np.float64), dtype=self.dtype).clone()
        t.requires_grad_(trainable)
        self._blocks[name] = (t, trainable)
        return t

    def get(self, name: str) -> torch.Tensor:
        return self._blocks[name][0]

    def __getitem__(self, name: str) -> torch.Tensor:
        return self.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._blocks

    def is_trainable(self, name: str) -> bool:
        return self._blocks[name][1]

    def trainable(self) -> Iterator[Tuple[str, torch.Tensor]]:
        for name, (t, flag) in self._blocks.items():
            if flag:
                yield name, t

    def zero(self) -> None:
        for _, t in self.trainable():
            t.grad = None

    def numpy(self, name: str) -> np.ndarray:
        return self.get(name).detach().cpu().numpy().copy()


def train_momentum(params: ParameterSet,
                   loss_fn: Callable[[], torch.Tensor],
                   steps: int = EMBEDDING_STEPS,
                   threshold: float = 0.01,
                   momentum: float = MOMENTUM,
                   lr: float = LEARNING_RATE) -> List[float]:
    """
    v ← momentum·v − lr·grad·scaling；p ← p + v。
    scaling = 1/‖grad‖ 当全局梯度范数 > 1，否则为 1。
    返回每一步（更新前）的损失。
    """
    deltas: Dict[str, torch.Tensor] = {name: torch.zeros_like(t) for name, t in params.trainable()}
    losses: List[float] = []
    for _ in range(int(steps)):
        params.zero()
        loss = loss_fn()
        loss.backward()
        total = float(loss.item())
        with torch.no_grad():
            sq = 0.0
            for _, t in params.trainable():
                if t.grad is not None:
                    sq += float(torch.sum(t.grad * t.grad).item())
            norm = math.sqrt(sq)
            scaling = 1.0 / norm if norm > 1 else 1.0
            for name, t in params.trainable():
                if t.grad is None:
                    continue
                d = deltas[name]
                d.mul_(momentum).sub_(lr * scaling * t.grad)
                t.add_(d)
        losses.append(total)
        if total < threshold:
            break
    return losses


def pair_encoding(n: int) -> np.ndarray:
    """Row i*n+j has ones at i and j (a single one when i == j)."""
    enc = np.zeros((n * n, n), dtype=np.float64)
    for i in range(n):
        for j in range(n):
            enc[i * n + j, i] = 1.0
            enc[i * n + j, j] = 1.0
    return enc


def euclidean_distances(embedding: np.ndarray) -> np.ndarray:
    """embedding: (N, D) one row per node."""
    n = embedding.shape[0]
    out = np.zeros((n, n), dtype=np.float64)
    for i in range(n):
        for j in range(n):
            if i == j:
                continue
            diff = embedding[i] - embedding[j]
            out[i, j] = math.sqrt(float(np.dot(diff, diff)))
    return out


def _he_normal(rng: np.random.Generator, shape, fan: int) -> np.ndarray:
    return rng.standard_normal(shape) * math.sqrt(2.0 / float(fan))


class EmbeddingHeuristic:
    name = "embedding"

    def __init__(self, config=None, rng: Optional[np.random.Generator] = None):
        self.config = config
        seed = config.seed if config is not None else SEED
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.builder = GreedyTourBuilder()
        self.last_losses: List[float] = []
        self.last_embedding: Optional[np.ndarray] = None

    # ---------------- settings ----------------
    @property
    def variant(self) -> str:
        if self.config is not None:
            return self.config.embedding_variant
        return normalize_embedding_variant(EMBEDDING_VARIANT)

    def _train_kwargs(self) -> dict:
        cfg = self.config
        if cfg is None:
            return {
                "steps": EMBEDDING_STEPS,
                "threshold": EMBEDDING_LOSS_THRESHOLDS[self.variant],
                "momentum": MOMENTUM,
                "lr": LEARNING_RATE,
            }
        return {
            "steps": cfg.embedding_steps,
            "threshold": cfg.embedding_loss_threshold,
            "momentum": cfg.momentum,
            "lr": cfg.learning_rate,
        }

    # ---------------- variants ----------------
    def _autoencoder(self, a: np.ndarray) -> np.ndarray:
        n = a.shape[0]
        scale = self.config.embedding_scale if self.config is not None else EMBEDDING_SCALE
        params = ParameterSet()
        A = params.add("A", a, trainable=False)
        X = params.add("X", _he_normal(self.rng, (scale * n, n), n))
        B = params.add("B", np.zeros(n))

        def loss_fn():
            l1 = torch.sigmoid(X @ A.T + B)
            return torch.mean((l1 - X) ** 2)

        self.last_losses = train_momentum(params, loss_fn, **self._train_kwargs())
        # 第 i 个节点 = X 的第 i 列
        return params.numpy("X").T

    def _pairwise(self, a: np.ndarray) -> np.ndarray:
        n = a.shape[0]
        nodes = torch.as_tensor(pair_encoding(n), dtype=DTYPE)
        targets = torch.tensor(np.array(a, dtype=np.float64).reshape(-1), dtype=DTYPE)

        params = ParameterSet()
        aw = params.add("aw", _he_normal(self.rng, (n, n), n))
        bw = params.add("bw", _he_normal(self.rng, (1, n), n))
        ab = params.add("ab", np.zeros(n))
        bb = params.add("bb", np.zeros(1))

        def loss_fn():
            l1 = torch.sigmoid(nodes @ aw.T + ab)
            l2 = (l1 @ bw.T + bb).squeeze(1)
            return torch.mean((l2 - targets) ** 2)

        self.last_losses = train_momentum(params, loss_fn, **self._train_kwargs())
        aw_np, bw_np, ab_np = params.numpy("aw"), params.numpy("bw"), params.numpy("ab")
        return (aw_np + ab_np[:, np.newaxis]) * bw_np[0][:, np.newaxis]

    def solve(self, distance) -> TourResult:
        a = as_array(distance)
        if self.variant == "autoencoder":
            embedding = self._autoencoder(a)
        else:
            embedding = self._pairwise(a)
        self.last_embedding = embedding
        distances = euclidean_distances(embedding)
        logger.debug("[embedding] variant=%s steps=%d final_loss=%.6g\n%s",
                     self.variant, len(self.last_losses),
                     self.last_losses[-1] if self.last_losses else float("nan"), distances)
        result = self.builder.build(distances, a)
        if self.config is not None:
            self.config.emit("embedding", variant=self.variant, losses=list(self.last_losses),
                             embedding=embedding, cost=result.cost, tour=result.tour)
        return result
