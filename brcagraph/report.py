"""
report.py
---------
Joins cluster labels and embeddings with clinical metadata and summarises
how communities line up with biomarkers, the consensus subtype and survival.

Clinical fields are never clustering inputs; everything here runs after the
labels are fixed.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from lifelines import KaplanMeierFitter
from lifelines.statistics import multivariate_logrank_test
from scipy.stats import chi2_contingency
from sklearn.metrics import adjusted_rand_score, normalized_mutual_info_score

from .config import (BINARY_BIOMARKERS, CLINICAL_FIELDS, OS_EVENT_COL,
                     OS_TIME_COL, PATIENT_ID_COL, SAMPLE_NAME_COL,
                     SUBTYPE_COL, UNKNOWN)
from .pipeline import ScenarioResult

log = logging.getLogger(__name__)

STATUS_NAMES = {0: "negative", 1: "positive"}
GRADE_NAMES  = {1: "G1", 2: "G2", 3: "G3"}


def render_biomarkers(meta: pd.DataFrame) -> pd.DataFrame:
    """
    Human-readable biomarker categories: 0/1 → negative/positive,
    grade 1-3 → G1-G3, missing → "unknown".
    """
    out = meta.copy()
    for col in BINARY_BIOMARKERS:
        if col in out.columns:
            out[col] = out[col].map(STATUS_NAMES).fillna(UNKNOWN)
    if "nhg" in out.columns:
        out["nhg"] = out["nhg"].map(GRADE_NAMES).fillna(UNKNOWN)
    if SUBTYPE_COL in out.columns:
        out[SUBTYPE_COL] = out[SUBTYPE_COL].fillna(UNKNOWN)
    return out


def build_result_table(
    result: ScenarioResult,
    metadata: pd.DataFrame,
    fields: Sequence[str] = CLINICAL_FIELDS,
) -> pd.DataFrame:
    """
    One row per patient of a completed scenario: ids, cluster, t-SNE and
    UMAP coordinates and the selected clinical fields.
    """
    if not result.ok:
        raise ValueError(f"Scenario {result.scenario.name} did not complete: "
                         f"{result.error}")
    patients = list(result.scenario.patients)
    table = pd.DataFrame(index=pd.Index(patients, name="sample"))

    meta = metadata.reindex(patients)
    # patient id falls back to the sample name when metadata has none
    ids = (meta[PATIENT_ID_COL] if PATIENT_ID_COL in meta.columns
           else pd.Series(np.nan, index=patients, dtype=object))
    table[PATIENT_ID_COL] = ids.astype(object).fillna(pd.Series(patients, index=patients))
    table[SAMPLE_NAME_COL] = patients
    table["cluster"] = result.clustering.labels.reindex(patients).to_numpy()
    table = table.join(result.embeddings)

    present = [f for f in fields if f in meta.columns]
    absent = [f for f in fields if f not in meta.columns]
    if absent:
        log.warning(f"  Metadata lacks fields {absent} — omitted from report")
    table = table.join(render_biomarkers(meta[present]))
    return table.reset_index(drop=True)


def biomarker_crosstab(table: pd.DataFrame, field: str) -> Dict[str, object]:
    """
    Cluster × biomarker status counts over annotated patients and the
    chi-squared test of independence. p is NaN when the table has a single
    row or column.
    """
    known = table[table[field] != UNKNOWN]
    ct = pd.crosstab(known["cluster"], known[field])
    if ct.shape[0] < 2 or ct.shape[1] < 2:
        p = float("nan")
    else:
        _, p, *_ = chi2_contingency(ct)
        p = float(p)
    fractions = ct.div(ct.sum(axis=1), axis=0)
    log.info(f"  {field}: {len(known)} annotated patients, chi2 p="
             + (f"{p:.2e}" if np.isfinite(p) else "n/a"))
    return {"field": field, "counts": ct, "fractions": fractions,
            "n": int(len(known)), "chi2_p": p}


def biomarker_summary(table: pd.DataFrame, fields: Sequence[str]) -> pd.DataFrame:
    """Long table of per-cluster category counts and fractions with the chi-squared p."""
    rows = []
    for field in fields:
        if field not in table.columns:
            continue
        res = biomarker_crosstab(table, field)
        for cluster, row in res["fractions"].iterrows():
            for category, frac in row.items():
                rows.append({
                    "field": field,
                    "cluster": cluster,
                    "category": category,
                    "count": int(res["counts"].loc[cluster, category]),
                    "fraction": float(frac),
                    "chi2_p": res["chi2_p"],
                })
    return pd.DataFrame(rows)


def subtype_agreement(table: pd.DataFrame,
                      subtype_col: str = SUBTYPE_COL) -> Dict[str, float]:
    """ARI and NMI between communities and the consensus subtype label."""
    labelled = table[table[subtype_col] != UNKNOWN]
    if labelled.empty:
        return {"n": 0, "ari": float("nan"), "nmi": float("nan")}
    ari = adjusted_rand_score(labelled[subtype_col], labelled["cluster"])
    nmi = normalized_mutual_info_score(labelled[subtype_col], labelled["cluster"],
                                       average_method="arithmetic")
    log.info(f"  Clusters vs {subtype_col} ({len(labelled)} patients): "
             f"ARI={ari:.4f}  NMI={nmi:.4f}")
    return {"n": int(len(labelled)), "ari": float(ari), "nmi": float(nmi)}


def survival_by_cluster(
    table: pd.DataFrame,
    time_col: str = OS_TIME_COL,
    event_col: str = OS_EVENT_COL,
) -> Optional[Dict[str, object]]:
    """
    Median overall survival per cluster (Kaplan-Meier) and the multivariate
    log-rank p-value. Patients without survival data are skipped; returns
    None when fewer than two clusters have any.
    """
    if time_col not in table or event_col not in table:
        return None
    surv = table[["cluster", time_col, event_col]].dropna()
    if surv["cluster"].nunique() < 2:
        return None

    rows = []
    for cid in sorted(surv["cluster"].unique()):
        sub = surv[surv["cluster"] == cid]
        kmf = KaplanMeierFitter()
        kmf.fit(sub[time_col], event_observed=sub[event_col])
        rows.append({
            "cluster": cid,
            "n": len(sub),
            "events": int(sub[event_col].sum()),
            "median_os": float(kmf.median_survival_time_),
        })
    lr = multivariate_logrank_test(surv[time_col], surv["cluster"], surv[event_col])
    per_cluster = pd.DataFrame(rows)
    log.info(f"  Survival: {len(surv)} patients, log-rank p={lr.p_value:.4g}")
    return {"per_cluster": per_cluster, "logrank_p": float(lr.p_value)}
