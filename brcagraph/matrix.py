"""
matrix.py
---------
Containers for the expression matrix and the per-stage outputs that are
threaded through a clustering scenario.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class ExpressionMatrix:
    """
    Genes (rows) × patients (columns) expression values.

    Attributes
    ----------
    frame:
        DataFrame indexed by gene id with one column per patient sample.
        Ids are unique on both axes and every cell holds a finite number.
    """

    frame: pd.DataFrame

    def __post_init__(self) -> None:
        frame = self.frame
        if frame.index.has_duplicates:
            dup = frame.index[frame.index.duplicated()].unique().tolist()[:5]
            raise ValueError(f"Duplicate gene identifiers: {dup}")
        if frame.columns.has_duplicates:
            dup = frame.columns[frame.columns.duplicated()].unique().tolist()[:5]
            raise ValueError(f"Duplicate patient identifiers: {dup}")
        non_numeric = [c for c in frame.columns
                       if not pd.api.types.is_numeric_dtype(frame[c])]
        if non_numeric:
            raise ValueError(f"Non-numeric patient columns: {non_numeric[:5]}")
        values = frame.to_numpy(dtype=np.float64)
        if np.isnan(values).any():
            raise ValueError("Expression matrix contains missing values.")
        if not np.isfinite(values).all():
            raise ValueError("Expression matrix contains infinite values.")

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "ExpressionMatrix":
        frame = frame.copy()
        frame.index = frame.index.astype(str)
        frame.columns = frame.columns.astype(str)
        return cls(frame.astype(np.float64))

    @property
    def genes(self) -> Tuple[str, ...]:
        return tuple(self.frame.index)

    @property
    def patients(self) -> Tuple[str, ...]:
        return tuple(self.frame.columns)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.frame.shape

    @property
    def n_genes(self) -> int:
        return self.frame.shape[0]

    @property
    def n_patients(self) -> int:
        return self.frame.shape[1]

    def subset_patients(self, patient_ids: Iterable[str]) -> "ExpressionMatrix":
        """Restrict to the given patients, in the order given."""
        ids = list(patient_ids)
        missing = [p for p in ids if p not in self.frame.columns]
        if missing:
            raise KeyError(f"{len(missing)} patients not in matrix, e.g. {missing[:3]}")
        return ExpressionMatrix(self.frame.loc[:, ids])

    def subset_genes(self, gene_ids: Sequence[str]) -> "ExpressionMatrix":
        return ExpressionMatrix(self.frame.loc[list(gene_ids), :])

    def patients_by_genes(self) -> np.ndarray:
        """Samples × features array, the orientation the estimators expect."""
        return self.frame.to_numpy(dtype=np.float64).T


@dataclass(frozen=True)
class ReducedCoordinates:
    """
    Per-patient principal-axis coordinates.

    Attributes
    ----------
    coordinates:
        DataFrame (patients × PC1..PCn).
    variance_explained:
        Percent of total variance captured by each axis, descending.
    genes_used:
        Genes that survived the low-variance filter.
    """

    coordinates: pd.DataFrame
    variance_explained: np.ndarray
    genes_used: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.coordinates.shape[1] != len(self.variance_explained):
            raise ValueError("variance_explained must have one entry per axis.")

    @property
    def n_axes(self) -> int:
        return self.coordinates.shape[1]

    @property
    def patients(self) -> Tuple[str, ...]:
        return tuple(self.coordinates.index)

    def first_axes(self, n: int) -> np.ndarray:
        return self.coordinates.iloc[:, :n].to_numpy(dtype=np.float64)
