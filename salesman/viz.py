# -*- coding: utf-8 -*-
from __future__ import annotations
import os
from typing import Dict, Optional, Sequence

import numpy as np
import matplotlib as mpl
import matplotlib.pyplot as plt
from sklearn.decomposition import PCA

from .errors import DecompositionFailure
from .logging_setup import get_logger

logger = get_logger(__name__)

# ---------------- 样式 ----------------
_STYLES = {
    "default": {"figure.dpi":120,"savefig.dpi":170,"font.size":10,"axes.titlesize":11,"axes.labelsize":10,
                "legend.fontsize":9,"xtick.labelsize":9,"ytick.labelsize":9,"axes.spines.top":False,
                "axes.spines.right":False,"axes.grid":True,"grid.alpha":0.25,"lines.linewidth":1.3,
                "lines.markersize":4.5,"legend.frameon":False},
    "ieee":    {"figure.dpi":120,"savefig.dpi":200,"font.size":9,"axes.titlesize":10,"axes.labelsize":9,
                "legend.fontsize":8,"xtick.labelsize":8,"ytick.labelsize":8,"axes.spines.top":False,
                "axes.spines.right":False,"axes.grid":True,"grid.alpha":0.25,"lines.linewidth":1.2,
                "lines.markersize":4.0,"legend.frameon":False},
}
def apply_style(style:str="default"): mpl.rcParams.update(_STYLES.get(style,_STYLES["default"]))
apply_style("default")

# ---------------- 工具 ----------------
def _unique_path(path:str)->str:
    if not os.path.exists(path): return path
    b,e = os.path.splitext(path); i=1
    while True:
        cand=f"{b}_{i}{e}"
        if not os.path.exists(cand): return cand
        i+=1

def pairwise_distances_2d(proj: np.ndarray) -> np.ndarray:
    r = proj.shape[0]
    out = np.zeros((r, r), dtype=np.float64)
    for i in range(r):
        for j in range(r):
            if i == j: continue
            dx, dy = proj[i,0]-proj[j,0], proj[i,1]-proj[j,1]
            out[i,j] = float(np.sqrt(dx*dx + dy*dy))
    return out

# ---------------- (A) 主成分投影 ----------------
def project(points, k: int = 2) -> np.ndarray:
    """
    把每一行（一个节点/观测）投影到前 k 个主成分。
    主成分不足 k 个时（例如只有一行）补零列，保证输出恒为 (rows, k)。
    """
    X = np.asarray(points, dtype=np.float64)
    if X.ndim != 2 or X.shape[0] == 0:
        raise DecompositionFailure(f"cannot project array of shape {X.shape}", component="pca")
    n_comp = max(1, min(k, X.shape[0], X.shape[1]))
    try:
        proj = PCA(n_components=n_comp).fit_transform(X)
    except (ValueError, np.linalg.LinAlgError) as exc:
        raise DecompositionFailure(f"principal components failed: {exc}", component="pca") from exc
    if not np.all(np.isfinite(proj)):
        raise DecompositionFailure("principal components produced non-finite values", component="pca")
    if proj.shape[1] < k:
        proj = np.hstack([proj, np.zeros((proj.shape[0], k - proj.shape[1]))])
    return proj

def plot_projection(points, name: str, out_dir: str = "./out_fig", style: str = "default") -> Dict[str, object]:
    """
    主成分投影到 2-D，写出散点图 <name>.png 与坐标文件 <name>.dat（每行 "x y"）。
    返回 {"png", "dat", "projection", "distances"}。
    """
    apply_style(style); os.makedirs(out_dir, exist_ok=True)
    proj = project(points, k=2)
    distances = pairwise_distances_2d(proj)
    for i in range(proj.shape[0]):
        logger.debug("[projection] %d (%.6f, %.6f) dist=%s", i, proj[i,0], proj[i,1], np.round(distances[i], 6).tolist())

    fig, ax = plt.subplots(figsize=(8, 8))
    ax.scatter(proj[:,0], proj[:,1], s=36, marker="o")
    for i in range(proj.shape[0]):
        ax.annotate(str(i), (proj[i,0], proj[i,1]), textcoords="offset points", xytext=(4,4))
    ax.set_xlabel("x"); ax.set_ylabel("y")
    ax.set_title("x vs y")
    fig.tight_layout()
    p_png = _unique_path(os.path.join(out_dir, f"{name}.png"))
    fig.savefig(p_png); plt.close(fig)

    p_dat = _unique_path(os.path.join(out_dir, f"{name}.dat"))
    with open(p_dat, "w", encoding="utf-8") as f:
        for x, y in proj[:, :2]:
            f.write(f"{x:f} {y:f}\n")
    return {"png": p_png, "dat": p_dat, "projection": proj, "distances": distances}

# ---------------- (B) 训练曲线 ----------------
def plot_loss_curve(losses: Sequence[float], name: str = "cost", out_dir: str = "./out_fig",
                    style: str = "default", logy: bool = False) -> Optional[str]:
    apply_style(style); os.makedirs(out_dir, exist_ok=True)
    ys = np.asarray(list(losses), dtype=float)
    if ys.size == 0:
        return None
    xs = np.arange(ys.size, dtype=float)
    fig, ax = plt.subplots(figsize=(8, 8))
    ax.scatter(xs, ys, s=2, marker="o")
    if logy and np.all(ys > 0): ax.set_yscale("log")
    ax.set_xlabel("epochs"); ax.set_ylabel("cost")
    ax.set_title("epochs vs cost")
    fig.tight_layout()
    p = _unique_path(os.path.join(out_dir, f"{name}.png"))
    fig.savefig(p); plt.close(fig)
    return p

__all__ = ["apply_style", "project", "pairwise_distances_2d", "plot_projection", "plot_loss_curve"]
