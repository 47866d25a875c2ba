"""
scenarios.py
------------
Patient subsets that are clustered independently.

  A  full cohort            every patient of the averaged matrix
  B  annotated cohort       patients annotated for every biomarker
  C  per-biomarker runs     one subset per biomarker, patients annotated
                            for that biomarker  (C_er_status, C_nhg, …)

Biomarkers only decide who is in a subset; they are never clustering
inputs. Patients without a value are excluded from B and C with a
MissingAnnotationWarning, and kept as "unknown" in A.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import pandas as pd

from .config import BIOMARKERS
from .errors import MissingAnnotationWarning
from .matrix import ExpressionMatrix

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    patients: Tuple[str, ...]
    biomarker: str = ""

    @property
    def n_patients(self) -> int:
        return len(self.patients)


def _aligned_metadata(matrix: ExpressionMatrix, metadata: pd.DataFrame,
                      fields: Sequence[str]) -> pd.DataFrame:
    """Metadata rows in matrix column order; absent patients become all-NaN."""
    missing_fields = [f for f in fields if f not in metadata.columns]
    if missing_fields:
        raise KeyError(f"Metadata lacks biomarker columns: {missing_fields}")
    aligned = metadata.reindex(list(matrix.patients))[list(fields)]
    n_absent = int((~pd.Index(matrix.patients).isin(metadata.index)).sum())
    if n_absent:
        log.warning(f"  {n_absent} matrix patients have no metadata row")
    return aligned


def _annotated(matrix: ExpressionMatrix, metadata: pd.DataFrame,
               fields: Sequence[str], label: str) -> Tuple[str, ...]:
    aligned = _aligned_metadata(matrix, metadata, fields)
    mask = aligned.notna().all(axis=1)
    n_dropped = int((~mask).sum())
    if n_dropped:
        warnings.warn(
            f"{label}: {n_dropped} patients lack annotation for "
            f"{', '.join(fields)} and are excluded",
            MissingAnnotationWarning,
            stacklevel=3,
        )
        log.info(f"  {label}: excluded {n_dropped} unannotated patients")
    return tuple(aligned.index[mask.to_numpy()])


def full_cohort(matrix: ExpressionMatrix) -> Scenario:
    return Scenario("A", "full cohort", matrix.patients)


def annotated_cohort(matrix: ExpressionMatrix, metadata: pd.DataFrame,
                     biomarkers: Sequence[str] = BIOMARKERS) -> Scenario:
    patients = _annotated(matrix, metadata, biomarkers, "B")
    return Scenario("B", "complete biomarker annotation", patients)


def biomarker_cohorts(matrix: ExpressionMatrix, metadata: pd.DataFrame,
                      biomarkers: Sequence[str] = BIOMARKERS) -> List[Scenario]:
    out = []
    for marker in biomarkers:
        name = f"C_{marker}"
        patients = _annotated(matrix, metadata, [marker], name)
        out.append(Scenario(name, f"annotated for {marker}", patients, marker))
    return out


def build_scenarios(matrix: ExpressionMatrix, metadata: pd.DataFrame,
                    biomarkers: Sequence[str] = BIOMARKERS) -> List[Scenario]:
    """Scenario A, B and every C run, in that order."""
    scenarios = [full_cohort(matrix), annotated_cohort(matrix, metadata, biomarkers)]
    scenarios.extend(biomarker_cohorts(matrix, metadata, biomarkers))
    for sc in scenarios:
        log.info(f"  Scenario {sc.name:<16} {sc.n_patients:>5} patients  "
                 f"({sc.description})")
    return scenarios
