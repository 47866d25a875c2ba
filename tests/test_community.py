"""Tests for seeded Louvain and the resolution sweep."""

import numpy as np
import pandas as pd
import pytest
from scipy import sparse

from brcagraph.community import (CommunityDetector, relabel_by_size,
                                 resolution_sweep, trial_seeds)
from brcagraph.graph import NeighborGraph, NeighborGraphBuilder
from brcagraph.matrix import ExpressionMatrix
from brcagraph.reduction import DimensionalityReducer


def _graph(matrix, k=7, npc=5):
    reduced = DimensionalityReducer(n_axes=10).reduce(matrix)
    return NeighborGraphBuilder(k=k, npc=npc).build(reduced)


class TestRelabel:

    def test_largest_community_is_zero(self):
        labels = relabel_by_size([{4}, {0, 2}, {1, 3, 5}], 6)
        assert labels.tolist() == [1, 0, 1, 0, 2, 0]

    def test_equal_sizes_ordered_by_smallest_member(self):
        labels = relabel_by_size([{2, 3}, {0, 1}], 4)
        assert labels.tolist() == [0, 0, 1, 1]

    def test_incomplete_partition_raises(self):
        with pytest.raises(RuntimeError):
            relabel_by_size([{0, 1}], 3)


class TestCommunityDetector:

    def test_recovers_separated_blobs(self, blob_factory):
        matrix, truth = blob_factory(n_blobs=2, per_blob=8)
        clustering = CommunityDetector(resolution=1.0, seed=1).detect(_graph(matrix))
        assert clustering.n_communities == 2
        ct = pd.crosstab(clustering.labels, truth.reindex(clustering.labels.index))
        assert ((ct > 0).sum(axis=1) == 1).all()
        assert clustering.modularity > 0.3

    def test_two_blobs_with_k5(self, blob_factory):
        matrix, truth = blob_factory(n_blobs=2, per_blob=6, n_genes=100)
        clustering = CommunityDetector(resolution=1.0, seed=0).detect(
            _graph(matrix, k=5))
        assert clustering.n_communities == 2
        ct = pd.crosstab(clustering.labels, truth.reindex(clustering.labels.index))
        assert ((ct > 0).sum(axis=1) == 1).all()

    def test_labels_indexed_by_patient(self, blob_factory):
        matrix, _ = blob_factory()
        clustering = CommunityDetector(seed=1).detect(_graph(matrix))
        assert tuple(clustering.labels.index) == matrix.patients
        assert clustering.labels.name == "cluster"
        assert clustering.sizes().sum() == matrix.n_patients

    def test_same_seed_same_labels(self, blob_factory):
        matrix, _ = blob_factory(n_blobs=3, per_blob=15, seed=5)
        graph = _graph(matrix, k=6)
        a = CommunityDetector(seed=11).detect(graph)
        b = CommunityDetector(seed=11).detect(graph)
        pd.testing.assert_series_equal(a.labels, b.labels)
        assert a.modularity == b.modularity

    def test_graph_without_edges(self):
        graph = NeighborGraph(("A", "B", "C"), np.zeros((3, 0), dtype=int),
                              sparse.csr_matrix((3, 3)))
        clustering = CommunityDetector().detect(graph)
        assert clustering.n_communities == 3
        assert np.isnan(clustering.modularity)

    def test_invalid_resolution(self):
        with pytest.raises(ValueError):
            CommunityDetector(resolution=0.0)


class TestResolutionSweep:

    def test_trial_seeds_reproducible(self):
        assert trial_seeds(42, 5) == trial_seeds(42, 5)
        assert len(set(trial_seeds(42, 5))) == 5

    def test_table_shape(self, blob_factory):
        matrix, _ = blob_factory(n_blobs=2, per_blob=8)
        sweep = resolution_sweep(_graph(matrix), (0.5, 1.0), n_trials=3, seed=0)
        assert len(sweep.table) == 6
        assert set(sweep.labels) == {0.5, 1.0}
        # same trial seeds at every resolution
        seeds = sweep.table.groupby("resolution")["seed"].apply(list)
        assert seeds.loc[0.5] == seeds.loc[1.0]

    def test_disconnected_cliques_stable_across_resolutions(self, blob_factory):
        matrix, _ = blob_factory(n_blobs=4, per_blob=8, n_genes=160)
        sweep = resolution_sweep(_graph(matrix), (0.1, 0.5, 1.0, 1.5),
                                 n_trials=2, seed=3)
        assert (sweep.table["n_communities"] == 4).all()

    def test_more_communities_at_higher_resolution(self):
        rng = np.random.default_rng(9)
        frame = pd.DataFrame(rng.normal(size=(50, 80)),
                             index=[f"G{i}" for i in range(50)],
                             columns=[f"P{j}" for j in range(80)])
        graph = _graph(ExpressionMatrix(frame), k=10, npc=5)
        means = resolution_sweep(graph, (0.1, 1.5), n_trials=3, seed=0).mean_counts()
        assert means.loc[0.1] < means.loc[1.5]
