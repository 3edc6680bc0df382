# -*- coding: utf-8 -*-
"""
salesman/logging_setup.py
基础日志配置：在 CLI 入口处调用 setup_logging(level="INFO")
"""

import logging, sys

def setup_logging(level: str = "INFO"):
    lvl = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stdout
    )
    logging.getLogger().setLevel(lvl)

def get_logger(name: str = "salesman") -> logging.Logger:
    return logging.getLogger(name)
