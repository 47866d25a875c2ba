"""
config.py
---------
Locked defaults for the subtyping pipeline plus the run-time parameter set.

The module-level constants are the reference configuration. Step scripts
build a ClusteringParams from them and let argparse override individual
values; library code only ever sees the ClusteringParams instance.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from pathlib import Path

# ──────────────────────────────────────────────────────────────────────────────
# Paths
# ──────────────────────────────────────────────────────────────────────────────
RAW_DIR     = Path("data/raw")
PROCESSED   = Path("data/processed")
TABLE_OUT   = Path("results/tables")
FIG_OUT     = Path("results/figures")
LOG_DIR     = Path("logs")

EXPRESSION_CSV   = RAW_DIR / "expression_matrix.csv.gz"
METADATA_CSV     = RAW_DIR / "patient_metadata.csv"
AVERAGED_OUT     = PROCESSED / "expression_averaged.parquet"
REPLICATE_QC_OUT = TABLE_OUT / "replicate_qc.tsv"

# ──────────────────────────────────────────────────────────────────────────────
# Replicates
# ──────────────────────────────────────────────────────────────────────────────
REPLICATE_SUFFIX   = "repl"
INFORMATIVE_RHO    = 0.90     # rounded Spearman rho needed to call a pair informative
SIGNIFICANCE_ALPHA = 0.05

# ──────────────────────────────────────────────────────────────────────────────
# Clustering hyperparameters (reference configuration)
# ──────────────────────────────────────────────────────────────────────────────
N_TOP_GENES   = 5_000     # genes retained by variance
REMOVE_VAR    = 0.10      # lowest-variance fraction dropped before PCA
N_AXES        = 50        # principal axes computed
N_PC          = 25        # axes used for the neighbour graph
K_NEIGHBOURS  = 20        # graph k-nearest-neighbours (self excluded)
RESOLUTION    = 1.0       # Louvain resolution
PERPLEXITY    = 20.0      # t-SNE
UMAP_NEIGHBOURS = 20
UMAP_MIN_DIST = 0.1
UMAP_SPREAD   = 1.0
N_THREADS     = 10        # worker threads for the embedding libraries
SEED          = 42

RESOLUTION_SWEEP = (0.1, 0.25, 0.5, 0.75, 1.0, 1.25, 1.5)
SWEEP_TRIALS     = 5

# ──────────────────────────────────────────────────────────────────────────────
# Clinical fields
# ──────────────────────────────────────────────────────────────────────────────
PATIENT_ID_COL  = "patient_id"
SAMPLE_NAME_COL = "sample_name"

BIOMARKERS = ("er_status", "pgr_status", "her2_status", "ki67_status", "nhg")
BINARY_BIOMARKERS = ("er_status", "pgr_status", "her2_status", "ki67_status")

CLINICAL_FIELDS = (
    "er_status", "pgr_status", "her2_status", "ki67_status", "nhg",
    "tumor_size", "lymph_node_group", "lymph_node_status",
    "endocrine_treated", "chemo_treated",
    "overall_survival_days", "overall_survival_event",
    "pam50_subtype",
)
OS_TIME_COL  = "overall_survival_days"
OS_EVENT_COL = "overall_survival_event"
SUBTYPE_COL  = "pam50_subtype"

UNKNOWN = "unknown"
MISSING_SENTINELS = ("NA", "N/A", "")


@dataclass(frozen=True)
class ClusteringParams:
    """Run-time values for one clustering scenario."""

    n_top: int = N_TOP_GENES
    remove_var: float = REMOVE_VAR
    n_axes: int = N_AXES
    npc: int = N_PC
    k: int = K_NEIGHBOURS
    resolution: float = RESOLUTION
    perplexity: float = PERPLEXITY
    n_neighbors: int = UMAP_NEIGHBOURS
    min_dist: float = UMAP_MIN_DIST
    spread: float = UMAP_SPREAD
    n_jobs: int = N_THREADS
    seed: int = SEED

    def __post_init__(self) -> None:
        if self.n_top < 1:
            raise ValueError("n_top must be at least 1.")
        if not 0.0 <= self.remove_var < 1.0:
            raise ValueError("remove_var must be in [0, 1).")
        if self.npc < 1 or self.n_axes < 1:
            raise ValueError("npc and n_axes must be at least 1.")
        if self.k < 1:
            raise ValueError("k must be at least 1.")
        if self.resolution <= 0:
            raise ValueError("resolution must be positive.")
        if self.perplexity <= 0:
            raise ValueError("perplexity must be positive.")
        if self.n_neighbors < 2:
            raise ValueError("n_neighbors must be at least 2.")
        if self.min_dist > self.spread:
            raise ValueError("min_dist must not exceed spread.")

    def with_overrides(self, **overrides) -> "ClusteringParams":
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def as_dict(self) -> dict:
        return asdict(self)
