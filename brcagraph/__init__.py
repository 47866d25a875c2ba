"""
Graph-based molecular subtyping of a breast-cancer expression cohort.

The package holds the stage objects of the clustering pipeline (replicate
averaging, variance gene selection, PCA, shared-neighbour graph, Louvain,
t-SNE/UMAP) and the reporting helpers. The numbered step scripts under
scripts/ drive them end to end.
"""

from .config import ClusteringParams
from .errors import (
    DegenerateInputError,
    InsufficientDataError,
    MalformedPairingError,
    MissingAnnotationWarning,
    SubtypingError,
)
from .matrix import ExpressionMatrix, ReducedCoordinates
from .io import load_averaged, load_expression, load_metadata, write_if_absent, write_table
from .replicates import ReplicateResult, pair_replicates, validate_and_average
from .selection import GeneSelector
from .reduction import DimensionalityReducer
from .graph import NeighborGraph, NeighborGraphBuilder
from .community import Clustering, CommunityDetector, SweepResult, resolution_sweep
from .embedding import EmbeddingProjector
from .scenarios import Scenario, build_scenarios
from .pipeline import ScenarioResult, SubtypingPipeline, run_scenarios, scenario_summary
from .report import (
    biomarker_crosstab,
    biomarker_summary,
    build_result_table,
    subtype_agreement,
    survival_by_cluster,
)

__version__ = "0.1.0"

__all__ = [
    "ClusteringParams",
    "SubtypingError",
    "MalformedPairingError",
    "InsufficientDataError",
    "DegenerateInputError",
    "MissingAnnotationWarning",
    "ExpressionMatrix",
    "ReducedCoordinates",
    "load_expression",
    "load_averaged",
    "load_metadata",
    "write_if_absent",
    "write_table",
    "ReplicateResult",
    "pair_replicates",
    "validate_and_average",
    "GeneSelector",
    "DimensionalityReducer",
    "NeighborGraph",
    "NeighborGraphBuilder",
    "Clustering",
    "CommunityDetector",
    "SweepResult",
    "resolution_sweep",
    "EmbeddingProjector",
    "Scenario",
    "build_scenarios",
    "ScenarioResult",
    "SubtypingPipeline",
    "run_scenarios",
    "scenario_summary",
    "build_result_table",
    "biomarker_crosstab",
    "biomarker_summary",
    "subtype_agreement",
    "survival_by_cluster",
]
