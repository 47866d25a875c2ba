"""
graph.py
--------
Shared-neighbour patient graph in principal-component space.

Pipeline
────────
  1. Exact k-nearest neighbours on the first npc axes
       Euclidean distance via cdist in row blocks, self excluded,
       ties broken by patient index (stable sort)
  2. Directed Jaccard weight for every j ∈ N(i):
       w(i→j) = |N(i) ∩ N(j)| / |N(i) ∪ N(j)|
     All intersections come from one sparse product A·Aᵀ of the kNN
     indicator matrix A, so no pair is intersected twice
  3. Undirected weight = max(w(i→j), w(j→i)); zero weights dropped
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import networkx as nx
import numpy as np
import pandas as pd
from scipy import sparse
from scipy.spatial.distance import cdist

from .config import K_NEIGHBOURS, N_PC
from .errors import InsufficientDataError
from .matrix import ReducedCoordinates

log = logging.getLogger(__name__)

BLOCK_ROWS = 1024    # query rows per cdist call


@dataclass(frozen=True)
class NeighborGraph:
    """
    Weighted undirected graph over the patients of one scenario.

    Attributes
    ----------
    patients:
        Node order; node i of the adjacency is patients[i].
    neighbors:
        (n, k) kNN indices, nearest first, self excluded.
    adjacency:
        Symmetric CSR matrix, weights in (0, 1], empty diagonal.
    """

    patients: Tuple[str, ...]
    neighbors: np.ndarray
    adjacency: sparse.csr_matrix

    @property
    def n_nodes(self) -> int:
        return len(self.patients)

    @property
    def n_edges(self) -> int:
        return int(sparse.triu(self.adjacency, k=1).nnz)

    @property
    def k(self) -> int:
        return self.neighbors.shape[1]

    def weight(self, i: int, j: int) -> float:
        return float(self.adjacency[i, j])

    def edges(self) -> pd.DataFrame:
        """Upper-triangle edge list with patient ids."""
        upper = sparse.triu(self.adjacency, k=1).tocoo()
        ids = np.asarray(self.patients, dtype=object)
        return pd.DataFrame({
            "source": ids[upper.row],
            "target": ids[upper.col],
            "weight": upper.data,
        })

    def to_networkx(self) -> nx.Graph:
        """Integer-labelled graph; every patient is a node, isolated or not."""
        G = nx.Graph()
        G.add_nodes_from(range(self.n_nodes))
        upper = sparse.triu(self.adjacency, k=1).tocoo()
        G.add_weighted_edges_from(
            zip(upper.row.tolist(), upper.col.tolist(), upper.data.tolist()),
            weight="weight",
        )
        return G


def knn_indices(data: np.ndarray, k: int, block_rows: int = BLOCK_ROWS) -> np.ndarray:
    """
    Exact k nearest neighbours of every row, self excluded.
    Returns (n, k) int array ordered by distance, ties by index.
    """
    n = data.shape[0]
    if n <= k:
        raise InsufficientDataError(
            f"k={k} neighbours requested but only {n} patients available")

    out = np.empty((n, k), dtype=np.int64)
    for start in range(0, n, block_rows):
        stop = min(start + block_rows, n)
        D = cdist(data[start:stop], data, metric="euclidean")
        D[np.arange(stop - start), np.arange(start, stop)] = np.inf
        out[start:stop] = np.argsort(D, axis=1, kind="stable")[:, :k]
    return out


def jaccard_weights(neighbors: np.ndarray) -> sparse.csr_matrix:
    """
    Directed Jaccard weights on the kNN edges.

    With A the n × n indicator of neighbour sets, (A·Aᵀ)[i, j] is
    |N(i) ∩ N(j)|; every set has k members, so the union is 2k minus that.
    """
    n, k = neighbors.shape
    rows = np.repeat(np.arange(n), k)
    cols = neighbors.ravel()
    A = sparse.csr_matrix((np.ones(rows.size), (rows, cols)), shape=(n, n))
    shared = (A @ A.T).tocsr()
    inter = np.asarray(shared[rows, cols]).ravel()
    weights = inter / (2.0 * k - inter)
    W = sparse.csr_matrix((weights, (rows, cols)), shape=(n, n))
    W.eliminate_zeros()
    return W


def symmetrise_max(W: sparse.csr_matrix) -> sparse.csr_matrix:
    """Undirected weight = larger of the two directed weights."""
    S = W.maximum(W.T).tocsr()
    S.eliminate_zeros()
    return S


class NeighborGraphBuilder:
    """kNN + Jaccard graph on the first npc principal axes."""

    def __init__(self, k: int = K_NEIGHBOURS, npc: int = N_PC):
        if k < 1:
            raise ValueError("k must be at least 1.")
        if npc < 1:
            raise ValueError("npc must be at least 1.")
        self.k = int(k)
        self.npc = int(npc)

    def build(self, reduced: ReducedCoordinates) -> NeighborGraph:
        npc = min(self.npc, reduced.n_axes)
        if npc < self.npc:
            log.warning(f"  npc={self.npc} requested but only {reduced.n_axes} "
                        f"axes available — using {npc}")
        data = reduced.first_axes(npc)
        log.info(f"Building kNN graph: {data.shape[0]} patients, "
                 f"{npc} axes, k={self.k}")

        neighbors = knn_indices(data, self.k)
        directed = jaccard_weights(neighbors)
        adjacency = symmetrise_max(directed)

        graph = NeighborGraph(reduced.patients, neighbors, adjacency)
        degrees = np.diff(adjacency.indptr)
        n_isolated = int((degrees == 0).sum())
        log.info(f"  Edges: {graph.n_edges:,} undirected  "
                 f"(directed non-zero: {directed.nnz:,})")
        if adjacency.nnz:
            log.info(f"  Weight range: [{adjacency.data.min():.4f}, "
                     f"{adjacency.data.max():.4f}]  mean degree "
                     f"{degrees.mean():.1f}")
        if n_isolated:
            log.warning(f"  {n_isolated} isolated patients (all Jaccard weights 0)")
        return graph
