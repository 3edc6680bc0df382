# -*- coding: utf-8 -*-
"""
salesman/utils_io.py
通用 I/O 工具：目录创建、CSV / JSONL 写出、run_tag 生成。
"""

from __future__ import annotations
import datetime
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
import csv, re

import numpy as np

def ensure_dir(p: str | Path) -> Path:
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p

def _to_serializable(obj: Any):
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, tuple):
        return list(obj)
    return obj

def write_csv(path: str | Path, rows: List[Dict], fieldnames: Optional[List[str]] = None) -> str:
    path = str(path)
    if not rows:
        # 如果给了表头，写 header；否则写空文件
        with open(path, "w", newline="", encoding="utf-8") as f:
            if fieldnames:
                w = csv.DictWriter(f, fieldnames=fieldnames); w.writeheader()
        return path
    if fieldnames is None:
        fieldnames = []
        for r in rows:
            for k in r.keys():
                if k not in fieldnames:
                    fieldnames.append(k)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames)
        w.writeheader(); w.writerows(rows)
    return path

def write_jsonl(path: str | Path, rows: List[Dict]) -> str:
    path = str(path)
    with open(path, "w", encoding="utf-8") as f:
        for r in rows:
            f.write(json.dumps({k: _to_serializable(v) for k, v in r.items()}, ensure_ascii=False) + "\n")
    return path

def slugify(s: str) -> str:
    s = s.strip().lower()
    s = re.sub(r"[^0-9a-zA-Z_]+", "_", s)
    s = re.sub(r"_{2,}", "_", s).strip("_")
    return s or "run"

def make_run_tag(trials: int, n: int, seed: int, add_timestamp: bool = True, suffix: str = "") -> str:
    """
    run_tag 生成：
      - 复现实验时：add_timestamp=False（目录名稳定）
      - 新运行：add_timestamp=True
    """
    base = f"t{trials}_n{n}_s{seed}"
    if add_timestamp:
        ts = datetime.datetime.now().strftime("%Y-%m-%d_%H-%M")
        tag = f"{base}_{ts}"
    else:
        tag = f"{base}"
    if suffix:
        tag += f"_{suffix}"
    return tag
