"""
reduction.py
------------
Exact principal component projection of patients.

Pipeline
────────
  1. Drop the lowest-variance 10 % of genes
       keep max(1, floor(n_genes × 0.9)) highest-variance genes
  2. Centre each gene across patients  (never scaled to unit variance)
  3. Full SVD  (sklearn PCA, svd_solver="full"; no randomised solver)
  4. Coordinates for min(n_axes, n_patients, n_genes_kept) axes, with the
     percent of total variance each axis explains
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .config import N_AXES, REMOVE_VAR
from .errors import DegenerateInputError
from .matrix import ExpressionMatrix, ReducedCoordinates
from .selection import gene_variance

log = logging.getLogger(__name__)


def remove_low_variance(matrix: ExpressionMatrix, fraction: float) -> ExpressionMatrix:
    """Keep the top (1 - fraction) genes by variance, original order preserved."""
    variance = gene_variance(matrix)
    n_keep = max(1, int(matrix.n_genes * (1.0 - fraction)))
    keep = np.sort(np.argsort(-variance, kind="stable")[:n_keep])
    return ExpressionMatrix(matrix.frame.iloc[keep])


class DimensionalityReducer:
    """Centred, unscaled PCA with a low-variance pre-filter."""

    def __init__(self, n_axes: int = N_AXES, remove_var: float = REMOVE_VAR):
        if n_axes < 1:
            raise ValueError("n_axes must be at least 1.")
        if not 0.0 <= remove_var < 1.0:
            raise ValueError("remove_var must be in [0, 1).")
        self.n_axes = int(n_axes)
        self.remove_var = float(remove_var)

    def reduce(self, matrix: ExpressionMatrix) -> ReducedCoordinates:
        if matrix.n_patients < 2:
            raise DegenerateInputError(
                f"PCA needs at least 2 patients, got {matrix.n_patients}")

        kept = remove_low_variance(matrix, self.remove_var)
        log.info(f"  Low-variance removal ({self.remove_var:.0%}): "
                 f"{matrix.n_genes:,} → {kept.n_genes:,} genes")

        X = kept.patients_by_genes()            # patients × genes
        total_var = float(X.var(axis=0, ddof=1).sum())
        if not np.isfinite(total_var) or total_var <= 0.0:
            raise DegenerateInputError(
                "All genes left after variance filtering have zero variance")

        centred = StandardScaler(with_mean=True, with_std=False).fit_transform(X)

        n_components = min(self.n_axes, X.shape[0], X.shape[1])
        pca = PCA(n_components=n_components, svd_solver="full")
        scores = pca.fit_transform(centred)

        pct = pca.explained_variance_ / total_var * 100.0
        cols = [f"PC{i + 1}" for i in range(n_components)]
        coords = pd.DataFrame(scores, index=list(matrix.patients), columns=cols)
        coords.index.name = "patient"

        log.info(f"  PCA: {n_components} axes on {X.shape[0]} patients × "
                 f"{X.shape[1]} genes")
        log.info(f"  Variance explained PC1..PC{min(5, n_components)}: "
                 + "  ".join(f"{v:.2f}%" for v in pct[:5])
                 + f"  (cumulative {pct.sum():.2f}%)")
        return ReducedCoordinates(coords, pct, kept.genes)
