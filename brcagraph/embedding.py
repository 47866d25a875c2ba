"""
embedding.py
------------
2D visualisation coordinates. Display only: nothing here feeds back into
the neighbour graph or the communities.

  t-SNE  sklearn TSNE, perplexity 20, PCA initialisation, seeded
  UMAP   umap-learn, n_neighbors 20, min_dist 0.1, spread 1.0, seeded

Neighbourhoods that do not fit in the cohort raise InsufficientDataError
instead of being shrunk by the library.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.manifold import TSNE
from umap import UMAP

from .config import (N_THREADS, PERPLEXITY, SEED, UMAP_MIN_DIST,
                     UMAP_NEIGHBOURS, UMAP_SPREAD)
from .errors import InsufficientDataError
from .matrix import ExpressionMatrix

log = logging.getLogger(__name__)


def _as_patient_rows(data) -> tuple:
    """Accept an ExpressionMatrix (genes × patients) or a patients × features frame."""
    if isinstance(data, ExpressionMatrix):
        return data.patients_by_genes(), list(data.patients)
    if isinstance(data, pd.DataFrame):
        return data.to_numpy(dtype=np.float64), list(data.index)
    raise TypeError(f"Unsupported embedding input: {type(data).__name__}")


class EmbeddingProjector:
    """Seeded t-SNE and UMAP projections of patients to two dimensions."""

    def __init__(
        self,
        perplexity: float = PERPLEXITY,
        n_neighbors: int = UMAP_NEIGHBOURS,
        min_dist: float = UMAP_MIN_DIST,
        spread: float = UMAP_SPREAD,
        seed: Optional[int] = SEED,
        n_jobs: int = N_THREADS,
    ):
        self.perplexity = float(perplexity)
        self.n_neighbors = int(n_neighbors)
        self.min_dist = float(min_dist)
        self.spread = float(spread)
        self.seed = seed
        self.n_jobs = int(n_jobs)

    def tsne(self, data) -> pd.DataFrame:
        X, patients = _as_patient_rows(data)
        n = X.shape[0]
        # Barnes-Hut uses 3 × perplexity neighbours per point
        if n - 1 < 3 * self.perplexity:
            raise InsufficientDataError(
                f"t-SNE perplexity={self.perplexity:g} needs at least "
                f"{int(np.ceil(3 * self.perplexity)) + 1} patients, got {n}")
        log.info(f"Computing t-SNE (n_components=2, perplexity={self.perplexity:g})…")
        tsne = TSNE(
            n_components=2,
            perplexity=self.perplexity,
            init="pca",
            learning_rate="auto",
            random_state=self.seed,
            n_jobs=self.n_jobs,
        )
        emb = tsne.fit_transform(X)
        log.info(f"  t-SNE done: shape={emb.shape}  KL={tsne.kl_divergence_:.4f}")
        return pd.DataFrame(emb, index=patients, columns=["tsne_1", "tsne_2"])

    def umap(self, data) -> pd.DataFrame:
        X, patients = _as_patient_rows(data)
        n = X.shape[0]
        if self.n_neighbors >= n:
            raise InsufficientDataError(
                f"UMAP n_neighbors={self.n_neighbors} needs more than "
                f"{self.n_neighbors} patients, got {n}")
        log.info(f"Computing UMAP (n_components=2, n_neighbors={self.n_neighbors}, "
                 f"min_dist={self.min_dist}, spread={self.spread})…")
        reducer = UMAP(
            n_components=2,
            n_neighbors=self.n_neighbors,
            min_dist=self.min_dist,
            spread=self.spread,
            metric="euclidean",
            random_state=self.seed,
            # umap-learn forces a single thread whenever it is seeded
            n_jobs=1 if self.seed is not None else self.n_jobs,
            verbose=False,
        )
        emb = reducer.fit_transform(X)
        log.info(f"  UMAP done: shape={emb.shape}")
        return pd.DataFrame(emb, index=patients, columns=["umap_1", "umap_2"])

    def project(self, data) -> pd.DataFrame:
        """Both embeddings side by side, one row per patient."""
        frame = self.tsne(data).join(self.umap(data))
        frame.index.name = "patient"
        return frame
