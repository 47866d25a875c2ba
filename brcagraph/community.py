"""
community.py
------------
Louvain community detection on the shared-neighbour graph.

Multilevel greedy modularity optimisation with a resolution knob
(networkx louvain_partitions): local node moves, then contraction of
communities into super-nodes, repeated until no level improves modularity
by more than the threshold. The last level is the flat partition.

Node visiting order is drawn from the seed, so a run is reproducible for a
fixed (seed, input order) pair. Labels are renumbered by descending
community size, ties by smallest member index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from networkx.algorithms import community as nx_community
import numpy as np
import pandas as pd

from .config import RESOLUTION, RESOLUTION_SWEEP, SEED, SWEEP_TRIALS
from .graph import NeighborGraph

log = logging.getLogger(__name__)

LOUVAIN_THRESHOLD = 1e-7


@dataclass(frozen=True)
class Clustering:
    """Flat community label per patient for one (subset, resolution) run."""

    labels: pd.Series
    resolution: float
    seed: Optional[int]
    modularity: float
    n_levels: int
    level_sizes: tuple = field(default_factory=tuple)

    @property
    def n_communities(self) -> int:
        return int(self.labels.nunique())

    def sizes(self) -> pd.Series:
        return self.labels.value_counts().sort_index()


def relabel_by_size(communities: Iterable[Iterable[int]], n_nodes: int) -> np.ndarray:
    """Integer label per node, 0 = largest community."""
    groups = sorted((sorted(c) for c in communities), key=lambda c: (-len(c), c[0]))
    labels = np.full(n_nodes, -1, dtype=np.int64)
    for label, members in enumerate(groups):
        labels[members] = label
    if (labels < 0).any():
        raise RuntimeError("Partition does not cover every node")
    return labels


class CommunityDetector:
    """Seeded Louvain with resolution-scaled modularity."""

    def __init__(self, resolution: float = RESOLUTION, seed: Optional[int] = SEED,
                 threshold: float = LOUVAIN_THRESHOLD):
        if resolution <= 0:
            raise ValueError("resolution must be positive.")
        self.resolution = float(resolution)
        self.seed = seed
        self.threshold = threshold

    def detect(self, graph: NeighborGraph, seed: Optional[int] = None) -> Clustering:
        seed = self.seed if seed is None else seed
        G = graph.to_networkx()
        n = graph.n_nodes

        if G.number_of_edges() == 0:
            log.warning("  Graph has no edges — every patient is its own community")
            series = pd.Series(np.arange(n), index=list(graph.patients),
                               name="cluster")
            series.index.name = "patient"
            return Clustering(series, self.resolution, seed, float("nan"), 0, (n,))

        levels: List[List[set]] = list(nx_community.louvain_partitions(
            G, weight="weight", resolution=self.resolution,
            threshold=self.threshold, seed=seed,
        ))
        final = levels[-1]
        modularity = nx_community.modularity(
            G, final, weight="weight", resolution=self.resolution)

        labels = relabel_by_size(final, n)
        series = pd.Series(labels, index=list(graph.patients), name="cluster")
        series.index.name = "patient"
        return Clustering(series, self.resolution, seed, float(modularity),
                          len(levels), tuple(len(p) for p in levels))


@dataclass(frozen=True)
class SweepResult:
    """Community counts over a resolution grid and repeated seeds."""

    table: pd.DataFrame
    labels: Dict[float, pd.Series]

    def mean_counts(self) -> pd.Series:
        return self.table.groupby("resolution")["n_communities"].mean()


def trial_seeds(seed: Optional[int], n_trials: int) -> List[int]:
    """Independent per-trial seeds drawn from one base seed."""
    rng = np.random.default_rng(seed)
    return [int(s) for s in rng.integers(0, 2**31 - 1, size=n_trials)]


def resolution_sweep(
    graph: NeighborGraph,
    resolutions: Sequence[float] = RESOLUTION_SWEEP,
    *,
    n_trials: int = SWEEP_TRIALS,
    seed: Optional[int] = SEED,
) -> SweepResult:
    """
    Run Louvain at every resolution with n_trials seeds. Trial t uses the
    same seed at every resolution so counts are paired across the grid.
    Labels of the first trial are kept for each resolution.
    """
    if n_trials < 1:
        raise ValueError("n_trials must be at least 1.")
    seeds = trial_seeds(seed, n_trials)
    rows = []
    labels: Dict[float, pd.Series] = {}
    for res in resolutions:
        detector = CommunityDetector(resolution=res)
        for trial, s in enumerate(seeds):
            clustering = detector.detect(graph, seed=s)
            rows.append({
                "resolution": float(res),
                "trial": trial,
                "seed": s,
                "n_communities": clustering.n_communities,
                "modularity": clustering.modularity,
            })
            if trial == 0:
                labels[float(res)] = clustering.labels
        counts = [r["n_communities"] for r in rows if r["resolution"] == float(res)]
        log.info(f"  resolution={res:<5} communities: "
                 f"mean={np.mean(counts):.1f}  range={min(counts)}–{max(counts)}")
    return SweepResult(pd.DataFrame(rows), labels)
