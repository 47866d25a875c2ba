"""Smoke tests: every figure renders to a non-empty PDF."""

import pandas as pd

from brcagraph.plots import (composition_heatmap, embedding_scatter, km_plot,
                             replicate_histogram, sweep_plot)
from brcagraph.report import biomarker_crosstab


def _table():
    return pd.DataFrame({
        "cluster": [0, 0, 0, 1, 1, 1],
        "tsne_1": [0.0, 0.1, 0.2, 5.0, 5.1, 5.2],
        "tsne_2": [0.0, 0.2, 0.1, 5.0, 5.2, 5.1],
        "umap_1": [1.0, 1.1, 1.2, 9.0, 9.1, 9.2],
        "umap_2": [1.0, 1.2, 1.1, 9.0, 9.2, 9.1],
        "er_status": ["positive", "positive", "unknown",
                      "negative", "negative", "positive"],
        "overall_survival_days": [100, 400, 800, 300, 900, 1200],
        "overall_survival_event": [1, 0, 1, 1, 0, 0],
    })


def test_embedding_scatter(tmp_path):
    for col in ("cluster", "er_status"):
        out = embedding_scatter(_table(), col, tmp_path / f"emb_{col}.pdf")
        assert out.stat().st_size > 0


def test_composition_heatmap(tmp_path):
    res = biomarker_crosstab(_table(), "er_status")
    out = composition_heatmap(res["counts"], "er_status", tmp_path / "h.pdf",
                              p_value=res["chi2_p"])
    assert out.stat().st_size > 0


def test_km_plot(tmp_path):
    assert km_plot(_table(), 0.03, tmp_path / "km.pdf").stat().st_size > 0


def test_sweep_plot(tmp_path):
    sweep = pd.DataFrame({"resolution": [0.5, 0.5, 1.0, 1.0],
                          "n_communities": [2, 3, 4, 4]})
    assert sweep_plot(sweep, tmp_path / "sweep.pdf").stat().st_size > 0


def test_replicate_histogram(tmp_path):
    qc = pd.DataFrame({"spearman_rho": [0.97, 0.95, 0.85],
                       "informative": [True, True, False]})
    out = replicate_histogram(qc, tmp_path / "nested" / "rho.pdf")
    assert out.stat().st_size > 0
