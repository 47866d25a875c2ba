"""End-to-end scenario runs on small synthetic cohorts."""

import warnings

import numpy as np
import pandas as pd
import pytest

from brcagraph.config import ClusteringParams
from brcagraph.errors import InsufficientDataError, MissingAnnotationWarning
from brcagraph.pipeline import (COMPLETED, FAILED, SubtypingPipeline,
                                run_scenarios, scenario_summary)
from brcagraph.scenarios import Scenario, build_scenarios, full_cohort


class TestClusteringParams:

    def test_defaults(self):
        p = ClusteringParams()
        assert (p.n_top, p.npc, p.k, p.resolution) == (5000, 25, 20, 1.0)
        assert (p.perplexity, p.n_neighbors, p.min_dist, p.spread) == (20.0, 20, 0.1, 1.0)

    def test_overrides_skip_none(self):
        p = ClusteringParams().with_overrides(k=10, resolution=None)
        assert p.k == 10 and p.resolution == 1.0

    @pytest.mark.parametrize("field, value", [
        ("k", 0), ("resolution", 0.0), ("remove_var", 1.0),
        ("perplexity", -1.0), ("n_neighbors", 1), ("min_dist", 2.0),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValueError):
            ClusteringParams(**{field: value})


class TestSubtypingPipeline:

    def test_full_cohort_run(self, two_blob, small_params):
        matrix, truth = two_blob
        result = SubtypingPipeline(small_params).run(matrix, full_cohort(matrix))

        assert result.ok and result.status == COMPLETED
        assert result.n_genes == 100
        assert result.clustering.n_communities == 2
        ct = pd.crosstab(result.labels, truth.reindex(result.labels.index))
        assert ((ct > 0).sum(axis=1) == 1).all()
        assert tuple(result.embeddings.index) == matrix.patients
        assert result.graph.n_nodes == matrix.n_patients

    def test_reproducible(self, two_blob, small_params):
        matrix, _ = two_blob
        a = SubtypingPipeline(small_params).run(matrix, full_cohort(matrix))
        b = SubtypingPipeline(small_params).run(matrix, full_cohort(matrix))
        pd.testing.assert_series_equal(a.labels, b.labels)
        pd.testing.assert_frame_equal(a.embeddings, b.embeddings)

    def test_too_small_scenario_raises(self, two_blob, small_params):
        matrix, _ = two_blob
        tiny = Scenario("C_x", "tiny", matrix.patients[:5], "x")
        with pytest.raises(InsufficientDataError):
            SubtypingPipeline(small_params).run(matrix, tiny)

    def test_run_safely_marks_failure(self, two_blob, small_params):
        matrix, _ = two_blob
        tiny = Scenario("C_x", "tiny", matrix.patients[:5], "x")
        result = SubtypingPipeline(small_params).run_safely(matrix, tiny)
        assert result.status == FAILED
        assert result.labels is None
        assert "InsufficientDataError" in result.error


class TestRunScenarios:

    def test_failure_is_isolated(self, two_blob, small_params, metadata_factory):
        matrix, _ = two_blob
        # er_status known for five patients only, so C_er_status is too small
        unknown = list(matrix.patients[5:])
        meta = metadata_factory(matrix.patients, missing={"er_status": unknown})
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MissingAnnotationWarning)
            scenarios = build_scenarios(matrix, meta)
        results = run_scenarios(matrix, scenarios, small_params)

        status = {r.scenario.name: r.status for r in results}
        assert status["A"] == COMPLETED
        assert status["B"] == FAILED
        assert status["C_er_status"] == FAILED
        assert status["C_pgr_status"] == COMPLETED
        assert [r.scenario.name for r in results] == [s.name for s in scenarios]

        summary = scenario_summary(results)
        failed = summary.set_index("scenario").loc["C_er_status"]
        assert np.isnan(failed["n_communities"])
        assert failed["error"].startswith("InsufficientDataError")
        assert summary.set_index("scenario").loc["A", "n_communities"] == 2

    def test_process_pool_matches_sequential(self, two_blob, small_params):
        matrix, _ = two_blob
        scenarios = [full_cohort(matrix),
                     Scenario("A2", "first ten", matrix.patients[:10])]
        seq = run_scenarios(matrix, scenarios, small_params, max_workers=1)
        par = run_scenarios(matrix, scenarios, small_params, max_workers=2)
        assert [r.status for r in seq] == [r.status for r in par]
        pd.testing.assert_series_equal(seq[0].labels, par[0].labels)

    def test_process_pool_after_embedding_in_parent(self, two_blob, small_params):
        matrix, _ = two_blob
        SubtypingPipeline(small_params).run(matrix, full_cohort(matrix))
        scenarios = [full_cohort(matrix),
                     Scenario("C_x", "too small", matrix.patients[:3], "x")]
        results = run_scenarios(matrix, scenarios, small_params, max_workers=2)
        assert [r.status for r in results] == [COMPLETED, FAILED]
        assert results[0].clustering.n_communities == 2
