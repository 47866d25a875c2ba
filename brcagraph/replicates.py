"""
replicates.py
-------------
Technical replicate validation and averaging.

Pipeline
────────
  1. Pairable columns = every column ending in the replicate suffix plus
     the column it names (F12 ↔ F12repl)
  2. Natural sort (S2 < S10, S1 < S1repl) → pair positions (0,1), (2,3), …
     Any pair that is not exactly (name, name + suffix) aborts the step
  3. Spearman rank correlation per pair
       informative  ⇔ round(rho, 2) ≥ 0.90
       significant  ⇔ p < 0.05
  4. Element-wise mean of each pair written under the sample name; the
     replicate column is dropped
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np
import pandas as pd
from scipy.stats import spearmanr

from .config import INFORMATIVE_RHO, REPLICATE_SUFFIX, SIGNIFICANCE_ALPHA
from .errors import MalformedPairingError
from .matrix import ExpressionMatrix
from .utils import natural_key

log = logging.getLogger(__name__)

QC_COLUMNS = ["sample", "replicate", "spearman_rho", "p_value",
              "informative", "significant"]


@dataclass(frozen=True)
class ReplicateResult:
    """Averaged matrix plus the per-pair QC table."""

    matrix: ExpressionMatrix
    qc: pd.DataFrame
    pairs: Tuple[Tuple[str, str], ...]

    @property
    def n_pairs(self) -> int:
        return len(self.pairs)


def pair_replicates(columns, suffix: str = REPLICATE_SUFFIX) -> List[Tuple[str, str]]:
    """
    Pair each sample column with its replicate column.

    Pairing is positional after natural sorting, then verified: the step must
    fail rather than average two unrelated patients.
    """
    columns = [str(c) for c in columns]
    present = set(columns)
    replicates = [c for c in columns if c.endswith(suffix) and len(c) > len(suffix)]

    orphans = [r for r in replicates if r[: -len(suffix)] not in present]
    if orphans:
        raise MalformedPairingError(
            f"{len(orphans)} replicate columns have no matching sample column, "
            f"e.g. {orphans[:3]}"
        )

    pairable = sorted(set(replicates) | {r[: -len(suffix)] for r in replicates},
                      key=natural_key)
    if len(pairable) % 2:
        raise MalformedPairingError(
            f"Odd number of pairable columns ({len(pairable)}) — "
            f"cannot pair samples with replicates 1:1"
        )

    pairs = []
    for i in range(0, len(pairable), 2):
        sample, replicate = pairable[i], pairable[i + 1]
        if replicate != sample + suffix:
            raise MalformedPairingError(
                f"Positional pair {i // 2} is ({sample}, {replicate}); "
                f"expected ({sample}, {sample}{suffix})"
            )
        pairs.append((sample, replicate))
    return pairs


def replicate_correlation(x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
    """Spearman rho and two-sided p-value for one sample/replicate pair."""
    rho, p = spearmanr(x, y)
    return float(rho), float(p)


def validate_and_average(
    matrix: ExpressionMatrix,
    *,
    suffix: str = REPLICATE_SUFFIX,
    informative_rho: float = INFORMATIVE_RHO,
    alpha: float = SIGNIFICANCE_ALPHA,
) -> ReplicateResult:
    """
    Check replicate consistency and merge each pair into a single column.

    Returns the averaged matrix (one fewer patient per pair, averaged values
    in the sample column's position) and the QC table.
    """
    pairs = pair_replicates(matrix.patients, suffix=suffix)
    if not pairs:
        log.info("No replicate columns found — matrix unchanged")
        return ReplicateResult(matrix, pd.DataFrame(columns=QC_COLUMNS), ())

    log.info(f"Validating {len(pairs)} replicate pairs (suffix '{suffix}')")
    frame = matrix.frame.copy()
    rows = []
    for sample, replicate in pairs:
        x = frame[sample].to_numpy()
        y = frame[replicate].to_numpy()
        rho, p = replicate_correlation(x, y)
        rows.append({
            "sample": sample,
            "replicate": replicate,
            "spearman_rho": rho,
            "p_value": p,
            "informative": bool(round(rho, 2) >= informative_rho),
            "significant": bool(p < alpha),
        })
        frame[sample] = (x + y) / 2.0

    frame = frame.drop(columns=[r for _, r in pairs])
    qc = pd.DataFrame(rows, columns=QC_COLUMNS)

    n_inf = int(qc["informative"].sum())
    n_sig = int(qc["significant"].sum())
    log.info(f"  Spearman rho range: {qc['spearman_rho'].min():.4f} – "
             f"{qc['spearman_rho'].max():.4f}")
    log.info(f"  Informative pairs (rho ≥ {informative_rho:.2f}): {n_inf}/{len(qc)}")
    log.info(f"  Significant pairs (p < {alpha}): {n_sig}/{len(qc)}")
    if n_inf < len(qc):
        weak = qc.loc[~qc["informative"], "sample"].tolist()
        log.warning(f"  {len(weak)} pairs below the informative threshold, "
                    f"averaged anyway: {weak[:10]}")
    log.info(f"  Patients: {matrix.n_patients} → {frame.shape[1]}")

    return ReplicateResult(ExpressionMatrix(frame), qc, tuple(pairs))
