# -*- coding: utf-8 -*-
"""
salesman/config.py
全局轻量配置：试验次数、节点数、随机种子、各启发式的超参数、输出目录等。
所有默认值都可以用 SALESMAN_* 环境变量覆盖，CLI 再覆盖环境变量。
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
import os

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .matrix import REFERENCE_ROWS

# 实验规模
TRIALS = int(os.getenv("SALESMAN_TRIALS", "1024"))
NODE_COUNT = int(os.getenv("SALESMAN_NODES", "4"))
SEED = int(os.getenv("SALESMAN_SEED", "1"))

# 精确解是 O(N!)，超过这个规模直接拒绝
MAX_EXACT_NODES = int(os.getenv("SALESMAN_MAX_EXACT_NODES", "10"))

# 随机距离矩阵：上三角每个元素 ~ U{low..high}
DISTANCE_LOW = int(os.getenv("SALESMAN_DISTANCE_LOW", "1"))
DISTANCE_HIGH = int(os.getenv("SALESMAN_DISTANCE_HIGH", "8"))

# PageRank
DAMPING = float(os.getenv("SALESMAN_DAMPING", "0.85"))
PAGERANK_TOL = float(os.getenv("SALESMAN_PAGERANK_TOL", "1e-6"))
PAGERANK_MAX_ITER = int(os.getenv("SALESMAN_PAGERANK_MAX_ITER", "1000"))

# 谱方法：abs 使用复数模，real 只取实部
SPECTRAL_PART = os.getenv("SALESMAN_SPECTRAL_PART", "abs")
SPECTRAL_PERTURBATION = float(os.getenv("SALESMAN_SPECTRAL_PERTURBATION", "0.0"))
KMEANS_CLUSTERS = int(os.getenv("SALESMAN_KMEANS_CLUSTERS", "2"))

# 可微嵌入
EMBEDDING_VARIANT = os.getenv("SALESMAN_EMBEDDING_VARIANT", "pairwise")  # pairwise|autoencoder
EMBEDDING_SCALE = int(os.getenv("SALESMAN_EMBEDDING_SCALE", "4"))
EMBEDDING_STEPS = int(os.getenv("SALESMAN_EMBEDDING_STEPS", "1024"))
MOMENTUM = float(os.getenv("SALESMAN_MOMENTUM", "0.3"))
LEARNING_RATE = float(os.getenv("SALESMAN_LEARNING_RATE", "0.3"))

# 参与比较的启发式（逗号分隔）
HEURISTICS = os.getenv("SALESMAN_HEURISTICS", "nearest_neighbor,pagerank,spectral,spectral_rank,embedding")

# 并行 worker 数；1 表示串行
WORKERS = int(os.getenv("SALESMAN_WORKERS", "1"))
PROGRESS_EVERY = int(os.getenv("SALESMAN_PROGRESS_EVERY", "128"))

# 结果根目录（各 CLI 可覆盖）
RESULTS_ROOT = Path(os.getenv("SALESMAN_RESULTS_ROOT", "./results")).resolve()
LOG_LEVEL = os.getenv("SALESMAN_LOG_LEVEL", "INFO")

# 各变体的训练停止阈值
EMBEDDING_LOSS_THRESHOLDS = {"autoencoder": 0.01, "pairwise": 1e-4}

# -------------------------
# 参数规范化 / 校验
# -------------------------

_SPECTRAL_PART_CHOICES = {"abs", "real"}
_EMBEDDING_CHOICES = {"autoencoder", "pairwise"}
HEURISTIC_CHOICES = ("nearest_neighbor", "pagerank", "spectral", "spectral_rank", "embedding")


def normalize_spectral_part(part: Optional[str]) -> str:
    p = (part or SPECTRAL_PART).strip().lower()
    if p in ("modulus", "complex", "magnitude"):
        p = "abs"
    if p not in _SPECTRAL_PART_CHOICES:
        raise ConfigurationError(f"spectral_part must be one of {sorted(_SPECTRAL_PART_CHOICES)}, got '{part}'")
    return p


def normalize_embedding_variant(variant: Optional[str]) -> str:
    v = (variant or EMBEDDING_VARIANT).strip().lower().replace("-", "_")
    if v in ("ae", "identity", "neural"):
        v = "autoencoder"
    elif v in ("pair", "onehot", "neural2"):
        v = "pairwise"
    if v not in _EMBEDDING_CHOICES:
        raise ConfigurationError(f"embedding_variant must be one of {sorted(_EMBEDDING_CHOICES)}, got '{variant}'")
    return v


def normalize_heuristics(names: Optional[Iterable[str] | str]) -> Tuple[str, ...]:
    if names is None:
        names = HEURISTICS
    if isinstance(names, str):
        names = names.split(",")
    out: List[str] = []
    for raw in names:
        n = str(raw).strip().lower().replace("-", "_")
        if not n:
            continue
        if n in ("nn", "nearest"):
            n = "nearest_neighbor"
        if n not in HEURISTIC_CHOICES:
            raise ConfigurationError(f"unknown heuristic '{raw}', expected one of {list(HEURISTIC_CHOICES)}")
        if n not in out:
            out.append(n)
    if not out:
        raise ConfigurationError("at least one heuristic must be enabled")
    return tuple(out)


@dataclass
class ExperimentConfig:
    """
    单一配置对象，显式传入每个组件（代替散落各处的 debug 判断）。
    observer(event, payload) 可选，用于接收中间结果。
    """

    trials: int = TRIALS
    node_count: int = NODE_COUNT
    seed: int = SEED
    distance_low: int = DISTANCE_LOW
    distance_high: int = DISTANCE_HIGH
    damping: float = DAMPING
    pagerank_tol: float = PAGERANK_TOL
    pagerank_max_iter: int = PAGERANK_MAX_ITER
    spectral_part: str = SPECTRAL_PART
    spectral_perturbation: float = SPECTRAL_PERTURBATION
    kmeans_clusters: int = KMEANS_CLUSTERS
    embedding_variant: str = EMBEDDING_VARIANT
    embedding_scale: int = EMBEDDING_SCALE
    embedding_steps: int = EMBEDDING_STEPS
    momentum: float = MOMENTUM
    learning_rate: float = LEARNING_RATE
    heuristics: Tuple[str, ...] = field(default_factory=lambda: normalize_heuristics(HEURISTICS))
    workers: int = WORKERS
    progress_every: int = PROGRESS_EVERY
    debug: bool = False
    observer: Optional[Callable[[str, Dict[str, Any]], None]] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.spectral_part = normalize_spectral_part(self.spectral_part)
        self.embedding_variant = normalize_embedding_variant(self.embedding_variant)
        self.heuristics = normalize_heuristics(self.heuristics)

    @property
    def embedding_loss_threshold(self) -> float:
        return EMBEDDING_LOSS_THRESHOLDS[self.embedding_variant]

    def validate(self) -> "ExperimentConfig":
        if int(self.node_count) < 1:
            raise ConfigurationError(f"node_count must be >= 1, got {self.node_count}")
        if int(self.node_count) > MAX_EXACT_NODES:
            raise ConfigurationError(
                f"node_count={self.node_count} exceeds exact-search limit {MAX_EXACT_NODES}"
            )
        if int(self.trials) < 0:
            raise ConfigurationError(f"trials must be >= 0, got {self.trials}")
        if self.distance_low < 1 or self.distance_high < self.distance_low:
            raise ConfigurationError(
                f"distance range must satisfy 1 <= low <= high, got [{self.distance_low}, {self.distance_high}]"
            )
        if not (0.0 < self.damping < 1.0):
            raise ConfigurationError(f"damping must be in (0, 1), got {self.damping}")
        if self.pagerank_tol <= 0:
            raise ConfigurationError(f"pagerank_tol must be > 0, got {self.pagerank_tol}")
        if self.pagerank_max_iter < 1:
            raise ConfigurationError(f"pagerank_max_iter must be >= 1, got {self.pagerank_max_iter}")
        if self.spectral_perturbation < 0:
            raise ConfigurationError(f"spectral_perturbation must be >= 0, got {self.spectral_perturbation}")
        if self.kmeans_clusters < 1:
            raise ConfigurationError(f"kmeans_clusters must be >= 1, got {self.kmeans_clusters}")
        if self.embedding_scale < 1 or self.embedding_steps < 1:
            raise ConfigurationError("embedding_scale and embedding_steps must be >= 1")
        if self.learning_rate <= 0 or not (0.0 <= self.momentum < 1.0):
            raise ConfigurationError(
                f"learning_rate must be > 0 and momentum in [0, 1), got lr={self.learning_rate} momentum={self.momentum}"
            )
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.debug and int(self.node_count) != len(REFERENCE_ROWS):
            raise ConfigurationError(
                f"debug mode runs on the {len(REFERENCE_ROWS)}-node reference matrix, got node_count={self.node_count}"
            )
        return self

    def emit(self, event: str, **payload) -> None:
        if self.observer is not None:
            self.observer(event, payload)

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d.pop("observer", None)
        d["heuristics"] = ",".join(self.heuristics)
        return d

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]], **overrides) -> "ExperimentConfig":
        """Build a config from a JSON/YAML mapping; unknown keys are ignored, ``None`` overrides are skipped."""
        known = {f.name for f in fields(cls)} - {"observer"}
        kwargs: Dict[str, Any] = {k: v for k, v in (data or {}).items() if k in known}
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


__all__ = [
    "TRIALS",
    "NODE_COUNT",
    "SEED",
    "MAX_EXACT_NODES",
    "DISTANCE_LOW",
    "DISTANCE_HIGH",
    "DAMPING",
    "PAGERANK_TOL",
    "PAGERANK_MAX_ITER",
    "SPECTRAL_PART",
    "SPECTRAL_PERTURBATION",
    "KMEANS_CLUSTERS",
    "EMBEDDING_VARIANT",
    "EMBEDDING_SCALE",
    "EMBEDDING_STEPS",
    "MOMENTUM",
    "LEARNING_RATE",
    "HEURISTICS",
    "HEURISTIC_CHOICES",
    "WORKERS",
    "PROGRESS_EVERY",
    "RESULTS_ROOT",
    "LOG_LEVEL",
    "EMBEDDING_LOSS_THRESHOLDS",
    "normalize_spectral_part",
    "normalize_embedding_variant",
    "normalize_heuristics",
    "ExperimentConfig",
]
