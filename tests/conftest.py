"""
Shared synthetic cohorts for the test suite.

All data is generated in memory; nothing touches the network or the
project's data/ directory.
"""

import numpy as np
import pandas as pd
import pytest

from brcagraph.config import ClusteringParams
from brcagraph.matrix import ExpressionMatrix


def make_blob_matrix(n_blobs=2, per_blob=8, n_genes=120, shift=8.0, seed=0):
    """
    Genes × patients matrix with n_blobs well separated patient groups.

    Blob b is shifted by `shift` on its own block of genes, so patients of
    one blob are far closer to each other than to anyone else.

    Returns the matrix and the true blob of every patient.
    """
    rng = np.random.default_rng(seed)
    n = n_blobs * per_blob
    data = rng.normal(0.0, 1.0, size=(n_genes, n))
    block = n_genes // n_blobs
    truth = np.repeat(np.arange(n_blobs), per_blob)
    for b in range(n_blobs):
        data[b * block:(b + 1) * block, truth == b] += shift
    genes = [f"GENE{i}" for i in range(n_genes)]
    patients = [f"F{i + 1}" for i in range(n)]
    frame = pd.DataFrame(data, index=genes, columns=patients)
    return ExpressionMatrix(frame), pd.Series(truth, index=patients)


def make_metadata(patients, seed=0, missing=None):
    """
    Clinical table for the given patients, indexed by sample name.
    `missing` maps a column to the patients whose value is blanked.
    """
    rng = np.random.default_rng(seed)
    n = len(patients)
    meta = pd.DataFrame({
        "patient_id": [f"PT{i:03d}" for i in range(n)],
        "sample_name": list(patients),
        "er_status": rng.integers(0, 2, n).astype(float),
        "pgr_status": rng.integers(0, 2, n).astype(float),
        "her2_status": rng.integers(0, 2, n).astype(float),
        "ki67_status": rng.integers(0, 2, n).astype(float),
        "nhg": rng.integers(1, 4, n).astype(float),
        "tumor_size": rng.uniform(5, 50, n).round(1),
        "lymph_node_group": rng.choice(["NodeNegative", "1to3", "4toX"], n),
        "lymph_node_status": rng.choice(["NodeNegative", "NodePositive"], n),
        "endocrine_treated": rng.integers(0, 2, n),
        "chemo_treated": rng.integers(0, 2, n),
        "overall_survival_days": rng.integers(100, 3000, n).astype(float),
        "overall_survival_event": rng.integers(0, 2, n).astype(float),
        "pam50_subtype": rng.choice(["LumA", "LumB", "Her2", "Basal", "Normal"], n),
    }, index=list(patients))
    for col, ids in (missing or {}).items():
        meta.loc[list(ids), col] = np.nan
    return meta


@pytest.fixture
def two_blob():
    return make_blob_matrix(n_blobs=2, per_blob=8)


@pytest.fixture
def small_params():
    """Parameters scaled down to a 16-patient cohort."""
    return ClusteringParams(
        n_top=100, n_axes=10, npc=5, k=7,
        perplexity=3.0, n_neighbors=5, n_jobs=1, seed=7,
    )


@pytest.fixture
def blob_factory():
    return make_blob_matrix


@pytest.fixture
def metadata_factory():
    return make_metadata
