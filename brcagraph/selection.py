"""
selection.py
------------
Top-N most variable genes across the patients of one scenario.
"""

from __future__ import annotations

import logging

import numpy as np

from .config import N_TOP_GENES
from .matrix import ExpressionMatrix

log = logging.getLogger(__name__)


def gene_variance(matrix: ExpressionMatrix) -> np.ndarray:
    """Sample variance (ddof=1) of every gene across patients."""
    return matrix.frame.to_numpy(dtype=np.float64).var(axis=1, ddof=1)


def top_variance_order(variance: np.ndarray, n: int) -> np.ndarray:
    """
    Row positions of the n largest variances, descending, ties kept in
    original row order.
    """
    order = np.argsort(-variance, kind="stable")
    return order[:n]


class GeneSelector:
    """Keep the n_top genes with greatest variance (clamped to the row count)."""

    def __init__(self, n_top: int = N_TOP_GENES):
        if n_top < 1:
            raise ValueError("n_top must be at least 1.")
        self.n_top = int(n_top)

    def select(self, matrix: ExpressionMatrix) -> ExpressionMatrix:
        n = min(self.n_top, matrix.n_genes)
        if n < self.n_top:
            log.info(f"  n_top={self.n_top:,} exceeds {matrix.n_genes:,} genes "
                     f"— keeping all")
        variance = gene_variance(matrix)
        idx = top_variance_order(variance, n)
        selected = ExpressionMatrix(matrix.frame.iloc[idx])
        log.info(f"  Variance filter: {matrix.n_genes:,} genes → top {n:,}")
        return selected
