"""
io.py
-----
Loading of the expression and metadata tables, and checkpointed writers.

Both tables are owned by upstream collaborators; nothing here transforms
values beyond parsing. Writers follow the do-not-overwrite policy: an
existing output is left untouched and reported as a checkpoint hit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import pandas as pd

from .config import MISSING_SENTINELS, SAMPLE_NAME_COL
from .matrix import ExpressionMatrix
from .utils import checkpoint_exists

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def load_expression(path: PathLike) -> ExpressionMatrix:
    """
    Read a comma-separated genes × patients table (first column = gene id).
    Compression is inferred from the extension (.gz, .bz2, .zip, .xz).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    log.info(f"Loading expression table — {path}")
    frame = pd.read_csv(path, index_col=0)
    frame.index.name = "gene"
    log.info(f"  Shape (genes × patients): {frame.shape}")
    return ExpressionMatrix.from_frame(frame)


def load_averaged(path: PathLike) -> ExpressionMatrix:
    """Read the averaged matrix written by the replicate step."""
    frame = pd.read_parquet(path)
    log.info(f"Loaded averaged expression {path}: {frame.shape}")
    return ExpressionMatrix.from_frame(frame)


def load_metadata(path: PathLike, index_col: str = SAMPLE_NAME_COL) -> pd.DataFrame:
    """
    Read the clinical table, one row per patient, indexed by sample name so
    it joins onto expression columns. Missing annotation stays NaN.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    meta = pd.read_csv(path, na_values=list(MISSING_SENTINELS),
                       keep_default_na=True)
    if index_col not in meta.columns:
        raise ValueError(f"Metadata has no '{index_col}' column")
    meta[index_col] = meta[index_col].astype(str)
    if meta[index_col].duplicated().any():
        raise ValueError(f"Duplicate values in metadata column '{index_col}'")
    meta = meta.set_index(index_col, drop=False)
    meta.index.name = None
    log.info(f"Loaded metadata {path}: {meta.shape[0]} patients, "
             f"{meta.shape[1]} fields")
    return meta


def write_if_absent(frame: pd.DataFrame, path: PathLike) -> bool:
    """
    Write frame to path unless it already exists. Parquet by default, TSV
    for a .tsv suffix. Returns True when a file was written.
    """
    path = Path(path)
    if checkpoint_exists(path):
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".tsv":
        frame.to_csv(path, sep="\t", float_format="%.6g")
    else:
        frame.to_parquet(path)
    log.info(f"  Saved → {path}")
    return True


def write_table(frame: pd.DataFrame, path: PathLike, index: bool = False) -> Path:
    """Result tables are regenerated on every run."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, sep="\t", index=index, float_format="%.4f")
    log.info(f"  Table saved → {path}")
    return path
