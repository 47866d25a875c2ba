"""
plots.py
--------
PDF figures for one scenario and for the cohort-level QC.

  embedding_scatter      t-SNE / UMAP coloured by cluster or a clinical field
  composition_heatmap    cluster × category, row-normalised
  km_plot                Kaplan-Meier per cluster with log-rank p
  sweep_plot             communities vs resolution (mean ± range over trials)
  replicate_histogram    Spearman rho of replicate pairs with the threshold
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from lifelines import KaplanMeierFitter

from .config import INFORMATIVE_RHO, OS_EVENT_COL, OS_TIME_COL, UNKNOWN

log = logging.getLogger(__name__)

plt.rcParams.update({
    "font.family": "sans-serif",
    "font.size": 9,
    "axes.titlesize": 10,
    "axes.labelsize": 9,
    "xtick.labelsize": 8,
    "ytick.labelsize": 8,
    "legend.fontsize": 8,
    "figure.dpi": 150,
    "pdf.fonttype": 42,
    "ps.fonttype": 42,
    "axes.spines.top": False,
    "axes.spines.right": False,
})

UNKNOWN_COLOR = "#AAAAAA"
STATUS_COLORS = {"positive": "#D65F5F", "negative": "#4878D0", UNKNOWN: UNKNOWN_COLOR}


def _palette(categories) -> dict:
    colours = plt.cm.tab20.colors
    out = {}
    for i, cat in enumerate(c for c in categories if c != UNKNOWN):
        out[cat] = STATUS_COLORS.get(cat, colours[i % len(colours)])
    out[UNKNOWN] = UNKNOWN_COLOR
    return out


def _save(fig, out_path: Path) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, bbox_inches="tight")
    plt.close(fig)
    log.info(f"  Figure saved → {out_path}")
    return out_path


def embedding_scatter(table: pd.DataFrame, colour_by: str, out_path: Path,
                      title: str = "") -> Path:
    """Side-by-side t-SNE and UMAP panels coloured by one column."""
    values = table[colour_by].astype(str) if colour_by != "cluster" else table[colour_by]
    categories = sorted(values.unique(), key=str)
    palette = _palette(categories)

    fig, axes = plt.subplots(1, 2, figsize=(10, 4.5))
    for ax, (x, y, name) in zip(axes, [("tsne_1", "tsne_2", "t-SNE"),
                                       ("umap_1", "umap_2", "UMAP")]):
        # unknown first so annotated points are drawn on top
        for cat in sorted(categories, key=lambda c: (c != UNKNOWN, str(c))):
            mask = (values == cat).to_numpy()
            ax.scatter(table.loc[mask, x], table.loc[mask, y], s=6,
                       c=[palette[cat]], alpha=0.8, linewidths=0,
                       label=f"{cat} (n={int(mask.sum())})")
        ax.set_xlabel(f"{name} 1")
        ax.set_ylabel(f"{name} 2")
        ax.set_title(name)
    handles, labels = axes[1].get_legend_handles_labels()
    fig.legend(handles, labels, title=colour_by, loc="center left",
               bbox_to_anchor=(1.0, 0.5), markerscale=2, frameon=False)
    if title:
        fig.suptitle(title)
    plt.tight_layout()
    return _save(fig, out_path)


def composition_heatmap(counts: pd.DataFrame, field: str, out_path: Path,
                        p_value: Optional[float] = None) -> Path:
    """Row-normalised cluster × category heatmap annotated with counts."""
    matrix = counts.to_numpy(dtype=float)
    row_sums = matrix.sum(axis=1, keepdims=True)
    row_sums = np.where(row_sums == 0, 1, row_sums)
    normed = matrix / row_sums

    fig, ax = plt.subplots(figsize=(max(4, counts.shape[1] * 1.2),
                                    max(3, counts.shape[0] * 0.5)))
    im = ax.imshow(normed, aspect="auto", cmap="Blues", vmin=0, vmax=1)
    ax.set_xticks(range(counts.shape[1]))
    ax.set_xticklabels([str(c) for c in counts.columns], rotation=30, ha="right")
    ax.set_yticks(range(counts.shape[0]))
    ax.set_yticklabels([f"Cluster {c}" for c in counts.index])
    ax.set_xlabel(field)
    ax.set_ylabel("Community")
    title = f"Cluster vs {field} (row-normalised)"
    if p_value is not None and np.isfinite(p_value):
        title += f"\nχ² p = {p_value:.2e}"
    ax.set_title(title)
    for ci in range(counts.shape[0]):
        for pi in range(counts.shape[1]):
            val = normed[ci, pi]
            ax.text(pi, ci, f"{val:.2f}\n(n={int(matrix[ci, pi])})",
                    ha="center", va="center", fontsize=6,
                    color="white" if val > 0.55 else "black")
    plt.colorbar(im, ax=ax, label="Fraction of cluster")
    plt.tight_layout()
    return _save(fig, out_path)


def km_plot(table: pd.DataFrame, logrank_p: float, out_path: Path,
            time_col: str = OS_TIME_COL, event_col: str = OS_EVENT_COL) -> Path:
    """Kaplan-Meier curves per cluster with 95% CI and log-rank p."""
    surv = table[["cluster", time_col, event_col]].dropna()
    fig, ax = plt.subplots(figsize=(7, 5))
    colours = plt.cm.tab10.colors
    for cid in sorted(surv["cluster"].unique()):
        sub = surv[surv["cluster"] == cid]
        kmf = KaplanMeierFitter()
        kmf.fit(sub[time_col], event_observed=sub[event_col],
                label=f"Cluster {cid} (n={len(sub)})")
        kmf.plot_survival_function(ax=ax, ci_show=True,
                                   color=colours[int(cid) % len(colours)])
    ax.set_xlabel("Time (days)")
    ax.set_ylabel("Overall survival probability")
    p_str = f"p = {logrank_p:.4f}" if logrank_p >= 0.0001 else "p < 0.0001"
    ax.set_title(f"Kaplan-Meier by community\nLog-rank {p_str}")
    ax.set_ylim(0, 1.05)
    ax.legend(loc="lower left", fontsize=7)
    plt.tight_layout()
    return _save(fig, out_path)


def sweep_plot(sweep_table: pd.DataFrame, out_path: Path) -> Path:
    """Community count against Louvain resolution."""
    grouped = sweep_table.groupby("resolution")["n_communities"]
    stats = grouped.agg(["mean", "min", "max"]).reset_index()

    fig, ax = plt.subplots(figsize=(5, 3.5))
    ax.fill_between(stats["resolution"], stats["min"], stats["max"],
                    color="#4878D0", alpha=0.2, label="range over trials")
    ax.plot(stats["resolution"], stats["mean"], "o-", color="#4878D0",
            lw=1.5, ms=4, label="mean")
    ax.set_xlabel("Louvain resolution")
    ax.set_ylabel("Communities")
    ax.set_title("Resolution sweep")
    ax.legend(loc="upper left")
    plt.tight_layout()
    return _save(fig, out_path)


def replicate_histogram(qc: pd.DataFrame, out_path: Path,
                        threshold: float = INFORMATIVE_RHO) -> Path:
    """Distribution of replicate-pair Spearman correlations."""
    fig, ax = plt.subplots(figsize=(5, 3.5))
    ax.hist(qc["spearman_rho"], bins=min(30, max(5, len(qc))), color="#4878D0",
            edgecolor="white")
    ax.axvline(threshold, ls="--", lw=1.0, color="#D65F5F",
               label=f"informative ≥ {threshold:.2f}")
    n_bad = int((~qc["informative"]).sum()) if len(qc) else 0
    ax.set_xlabel("Spearman ρ (sample vs replicate)")
    ax.set_ylabel("Pairs")
    ax.set_title(f"Technical replicates (n={len(qc)}, non-informative={n_bad})")
    ax.legend(loc="upper left")
    plt.tight_layout()
    return _save(fig, out_path)
