# -*- coding: utf-8 -*-
"""
salesman/errors.py
错误分类：分解失败 / 聚类失败 / 配置错误。
启发式给出次优解不是错误，而是实验要统计的结果。
"""

from __future__ import annotations

from typing import Optional


class SalesmanError(Exception):
    """Base class for every fatal condition raised by the experiment."""

    def __init__(self, message: str, component: Optional[str] = None):
        super().__init__(message)
        self.component = component

    def __str__(self) -> str:
        msg = super().__str__()
        if self.component:
            return f"[{self.component}] {msg}"
        return msg


class DecompositionFailure(SalesmanError, RuntimeError):
    """Eigen / principal-component factorization or stationary ranking did not converge."""


class PartitionFailure(SalesmanError, RuntimeError):
    """Clustering could not form the requested number of clusters."""


class ConfigurationError(SalesmanError, ValueError):
    """Malformed node count, non-square matrix, negative distances or bad options."""


__all__ = ["SalesmanError", "DecompositionFailure", "PartitionFailure", "ConfigurationError"]
