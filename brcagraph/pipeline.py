"""
pipeline.py
-----------
Per-scenario orchestration of the clustering stages.

  subset → GeneSelector → DimensionalityReducer → NeighborGraphBuilder
         → CommunityDetector → labels
  gene-selected matrix → EmbeddingProjector → t-SNE / UMAP coordinates

Every scenario owns its matrix subset, graph and seed. A SubtypingError
aborts only the scenario that raised it; the result is marked "failed" and
carries no labels. Anything else is a bug and propagates.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from .community import Clustering, CommunityDetector
from .config import ClusteringParams
from .embedding import EmbeddingProjector
from .errors import InsufficientDataError, SubtypingError
from .graph import NeighborGraph, NeighborGraphBuilder
from .matrix import ExpressionMatrix, ReducedCoordinates
from .reduction import DimensionalityReducer
from .scenarios import Scenario
from .selection import GeneSelector

log = logging.getLogger(__name__)

COMPLETED = "completed"
FAILED = "failed"


@dataclass(frozen=True)
class ScenarioResult:
    scenario: Scenario
    status: str
    params: ClusteringParams
    error: str = ""
    n_genes: int = 0
    reduced: Optional[ReducedCoordinates] = None
    graph: Optional[NeighborGraph] = None
    clustering: Optional[Clustering] = None
    embeddings: Optional[pd.DataFrame] = None
    elapsed: float = field(default=0.0, compare=False)

    @property
    def ok(self) -> bool:
        return self.status == COMPLETED

    @property
    def labels(self) -> Optional[pd.Series]:
        return self.clustering.labels if self.clustering is not None else None


class SubtypingPipeline:
    """Stage objects configured once from a ClusteringParams."""

    def __init__(self, params: Optional[ClusteringParams] = None):
        self.params = params or ClusteringParams()
        p = self.params
        self.selector = GeneSelector(p.n_top)
        self.reducer = DimensionalityReducer(p.n_axes, p.remove_var)
        self.graph_builder = NeighborGraphBuilder(p.k, p.npc)
        self.detector = CommunityDetector(p.resolution, seed=p.seed)
        self.embedder = EmbeddingProjector(
            perplexity=p.perplexity, n_neighbors=p.n_neighbors,
            min_dist=p.min_dist, spread=p.spread, seed=p.seed, n_jobs=p.n_jobs,
        )

    def run(self, matrix: ExpressionMatrix, scenario: Scenario) -> ScenarioResult:
        """Run every stage; raises SubtypingError on a fatal stage failure."""
        t0 = time.time()
        log.info("=" * 60)
        log.info(f"SCENARIO {scenario.name} — {scenario.description} "
                 f"({scenario.n_patients} patients)")
        log.info("=" * 60)

        if scenario.n_patients <= self.params.k:
            raise InsufficientDataError(
                f"k={self.params.k} neighbours requested but scenario has only "
                f"{scenario.n_patients} patients")
        subset = matrix.subset_patients(scenario.patients)
        selected = self.selector.select(subset)
        reduced = self.reducer.reduce(selected)
        graph = self.graph_builder.build(reduced)
        clustering = self.detector.detect(graph)
        log.info(f"  Louvain (resolution={clustering.resolution}): "
                 f"{clustering.n_communities} communities over "
                 f"{clustering.n_levels} levels, modularity={clustering.modularity:.4f}")
        log.info(f"  Community sizes: {clustering.sizes().tolist()}")

        embeddings = self.embedder.project(selected)

        elapsed = time.time() - t0
        log.info(f"  Scenario {scenario.name} complete in {elapsed:.1f}s")
        return ScenarioResult(
            scenario=scenario,
            status=COMPLETED,
            params=self.params,
            n_genes=selected.n_genes,
            reduced=reduced,
            graph=graph,
            clustering=clustering,
            embeddings=embeddings,
            elapsed=elapsed,
        )

    def run_safely(self, matrix: ExpressionMatrix, scenario: Scenario) -> ScenarioResult:
        """Like run(), but a fatal stage error becomes a failed result."""
        try:
            return self.run(matrix, scenario)
        except SubtypingError as exc:
            log.error(f"  Scenario {scenario.name} FAILED — "
                      f"{type(exc).__name__}: {exc}")
            return ScenarioResult(
                scenario=scenario,
                status=FAILED,
                params=self.params,
                error=f"{type(exc).__name__}: {exc}",
            )


def _run_isolated(args) -> ScenarioResult:
    subset, scenario, params = args
    return SubtypingPipeline(params).run_safely(subset, scenario)


def run_scenarios(
    matrix: ExpressionMatrix,
    scenarios: Sequence[Scenario],
    params: Optional[ClusteringParams] = None,
    max_workers: int = 1,
) -> List[ScenarioResult]:
    """
    Run scenarios independently, in input order. With max_workers > 1 each
    scenario runs in its own process on its own matrix subset.
    """
    params = params or ClusteringParams()
    if max_workers <= 1:
        pipeline = SubtypingPipeline(params)
        results = [pipeline.run_safely(matrix, sc) for sc in scenarios]
    else:
        jobs = [(matrix.subset_patients(sc.patients), sc, params) for sc in scenarios]
        # spawn: forked children deadlock on thread pools the parent already started
        ctx = mp.get_context("spawn")
        with ProcessPoolExecutor(max_workers=max_workers, mp_context=ctx) as pool:
            results = list(pool.map(_run_isolated, jobs))

    n_ok = sum(r.ok for r in results)
    log.info(f"Scenarios completed: {n_ok}/{len(results)}")
    for r in results:
        if not r.ok:
            log.warning(f"  {r.scenario.name}: {r.error}")
    return results


def scenario_summary(results: Sequence[ScenarioResult]) -> pd.DataFrame:
    """One row per scenario: status, sizes, community count, modularity, error."""
    rows = []
    for r in results:
        rows.append({
            "scenario": r.scenario.name,
            "description": r.scenario.description,
            "status": r.status,
            "n_patients": r.scenario.n_patients,
            "n_genes": r.n_genes,
            "n_edges": r.graph.n_edges if r.graph is not None else np.nan,
            "n_communities": r.clustering.n_communities if r.ok else np.nan,
            "modularity": r.clustering.modularity if r.ok else np.nan,
            "resolution": r.params.resolution,
            "k": r.params.k,
            "npc": r.params.npc,
            "seed": r.params.seed,
            "error": r.error,
        })
    return pd.DataFrame(rows)
