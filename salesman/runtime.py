# -*- coding: utf-8 -*-
"""
统一运行上下文：日志（stdout + 文件）、心跳、运行目录与随机种子。
"""

from __future__ import annotations

import logging
import os
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import numpy as np
import torch

from . import config


class RunContext:
    """
    提供统一的运行上下文，封装：
    - 日志（stdout + 文件，单一格式）
    - 心跳文件（周期性覆盖）
    - 运行目录管理
    - 随机种子统一设置
    """

    def __init__(
        self,
        run_tag: str,
        run_dir: str | Path | None = None,
        log_name: str = "salesman",
        log_level: str = config.LOG_LEVEL,
        seed: Optional[int] = None,
    ):
        self.run_tag = run_tag
        self.run_dir = Path(run_dir) if run_dir is not None else config.RESULTS_ROOT / run_tag
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.log_name = log_name
        self.log_level = log_level
        self.log_path = self.run_dir / f"{self.run_tag}.log"
        self.heartbeat_path = self.run_dir / "heartbeat.txt"
        self._logging_configured = False
        if seed is not None:
            self.set_seed(seed)

    # --------------------- logging ---------------------
    def configure_logging(self) -> logging.Logger:
        """
        配置 stdout + 文件双通道日志；重复调用时自动去重 handler。
        """

        root = logging.getLogger()
        lvl = getattr(logging, self.log_level.upper(), logging.INFO)
        root.setLevel(lvl)

        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        def _has_handler(cls, target):
            for h in root.handlers:
                if cls is logging.FileHandler:
                    if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == os.path.abspath(target):
                        return True
                elif type(h) is cls:
                    return True
            return False

        if not _has_handler(logging.StreamHandler, None):
            sh = logging.StreamHandler()
            sh.setLevel(lvl)
            sh.setFormatter(formatter)
            root.addHandler(sh)

        log_path_str = str(self.log_path)
        if not _has_handler(logging.FileHandler, log_path_str):
            fh = logging.FileHandler(log_path_str, mode="a", encoding="utf-8")
            fh.setLevel(lvl)
            fh.setFormatter(formatter)
            root.addHandler(fh)

        self._logging_configured = True
        return logging.getLogger(self.log_name)

    def close(self) -> None:
        """Detach and close the file handler created for this run."""
        root = logging.getLogger()
        target = os.path.abspath(str(self.log_path))
        for h in list(root.handlers):
            if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
                root.removeHandler(h)
                h.close()
        self._logging_configured = False

    # --------------------- seed ---------------------
    def set_seed(self, seed: int) -> None:
        # 实验本身只用显式传入的 Generator；这里统一全局状态，避免第三方库取到未播种的流
        random.seed(seed)
        np.random.seed(seed)
        torch.manual_seed(seed)

    # --------------------- heartbeat ---------------------
    def heartbeat(self, note: str = "") -> Path:
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        payload = f"{ts}Z {note}".strip()
        with open(self.heartbeat_path, "w", encoding="utf-8") as f:
            f.write(payload + "\n")
        return self.heartbeat_path


__all__ = ["RunContext"]
