"""Tests for replicate pairing, correlation QC and averaging."""

import numpy as np
import pandas as pd
import pytest

from brcagraph.errors import MalformedPairingError
from brcagraph.matrix import ExpressionMatrix
from brcagraph.replicates import (QC_COLUMNS, pair_replicates,
                                  replicate_correlation, validate_and_average)
from brcagraph.utils import natural_key


def _matrix_with_replicate(replicate_values):
    genes = [f"G{i}" for i in range(10)]
    rng = np.random.default_rng(1)
    frame = pd.DataFrame(rng.normal(size=(10, 5)), index=genes,
                         columns=["S1", "S2", "S3", "S4", "S5"])
    frame["S3"] = np.arange(1.0, 11.0)
    frame["S3repl"] = replicate_values
    return ExpressionMatrix(frame)


class TestNaturalKey:

    def test_numbers_compare_numerically(self):
        assert sorted(["S10", "S2", "S1"], key=natural_key) == ["S1", "S2", "S10"]

    def test_replicate_sorts_after_its_sample(self):
        names = ["F12repl", "F1", "F12", "F1repl"]
        assert sorted(names, key=natural_key) == ["F1", "F1repl", "F12", "F12repl"]


class TestPairReplicates:

    def test_pairs_independent_of_column_order(self):
        pairs = pair_replicates(["S10repl", "S2", "X", "S10", "S2repl"])
        assert pairs == [("S2", "S2repl"), ("S10", "S10repl")]

    def test_no_replicates(self):
        assert pair_replicates(["S1", "S2", "S3"]) == []

    def test_orphan_replicate_raises(self):
        with pytest.raises(MalformedPairingError):
            pair_replicates(["S1", "S2repl"])

    def test_odd_pairable_count_raises(self):
        with pytest.raises(MalformedPairingError):
            pair_replicates(["S1", "S1repl", "S1replrepl"])

    def test_custom_suffix(self):
        assert pair_replicates(["A", "A_r"], suffix="_r") == [("A", "A_r")]


class TestValidateAndAverage:

    def test_near_identical_pair_is_informative_and_averaged(self):
        repl = np.array([2, 1, 4, 3, 6, 5, 8, 7, 9, 10], dtype=float)
        result = validate_and_average(_matrix_with_replicate(repl))

        assert result.n_pairs == 1
        assert result.matrix.patients == ("S1", "S2", "S3", "S4", "S5")
        np.testing.assert_allclose(
            result.matrix.frame["S3"].to_numpy(),
            [1.5, 1.5, 3.5, 3.5, 5.5, 5.5, 7.5, 7.5, 9.0, 10.0],
        )

        row = result.qc.iloc[0]
        assert list(result.qc.columns) == QC_COLUMNS
        assert row["sample"] == "S3" and row["replicate"] == "S3repl"
        assert row["spearman_rho"] == pytest.approx(1 - 48 / 990)
        assert row["informative"]
        assert row["significant"]

    def test_reversed_pair_is_not_informative_but_still_averaged(self):
        repl = np.arange(10.0, 0.0, -1.0)
        result = validate_and_average(_matrix_with_replicate(repl))

        row = result.qc.iloc[0]
        assert row["spearman_rho"] == pytest.approx(-1.0)
        assert not row["informative"]
        np.testing.assert_allclose(result.matrix.frame["S3"].to_numpy(), 5.5)

    def test_threshold_applies_to_rounded_rho(self):
        repl = np.array([2, 1, 4, 3, 6, 5, 8, 7, 9, 10], dtype=float)
        matrix = _matrix_with_replicate(repl)
        # rho = 0.9515 but rounds to 0.95
        assert not validate_and_average(matrix, informative_rho=0.951).qc.loc[0, "informative"]
        assert validate_and_average(matrix, informative_rho=0.95).qc.loc[0, "informative"]

    def test_correlation_of_identical_vectors(self):
        rho, p = replicate_correlation(np.arange(50.0), np.arange(50.0))
        assert rho == pytest.approx(1.0)
        assert p < 0.05

    def test_identical_pair(self):
        result = validate_and_average(_matrix_with_replicate(np.arange(1.0, 11.0)))
        row = result.qc.iloc[0]
        assert row["spearman_rho"] == pytest.approx(1.0)
        assert row["informative"]
        np.testing.assert_array_equal(result.matrix.frame["S3"].to_numpy(),
                                      np.arange(1.0, 11.0))

    def test_other_columns_untouched(self):
        repl = np.arange(1.0, 11.0)
        matrix = _matrix_with_replicate(repl)
        result = validate_and_average(matrix)
        pd.testing.assert_series_equal(result.matrix.frame["S1"], matrix.frame["S1"])

    def test_without_replicates_matrix_is_unchanged(self, two_blob):
        matrix, _ = two_blob
        result = validate_and_average(matrix)
        assert result.n_pairs == 0
        assert result.qc.empty
        assert result.matrix is matrix

    def test_malformed_pairing_propagates(self):
        frame = pd.DataFrame(np.ones((3, 2)), columns=["S1", "S9repl"])
        with pytest.raises(MalformedPairingError):
            validate_and_average(ExpressionMatrix(frame))
