"""
03_figures.py
-------------
Figures for every completed scenario, drawn from the step 2 tables.

Outputs (results/figures/<scenario>/):
  embedding_cluster.pdf          t-SNE + UMAP coloured by community
  embedding_<marker>.pdf         t-SNE + UMAP coloured by biomarker status
  composition_<marker>.pdf       cluster × status heatmap with χ² p
  composition_pam50.pdf          cluster × PAM50 heatmap
  km_overall_survival.pdf        Kaplan-Meier per community

Outputs (results/figures/):
  resolution_sweep.pdf           communities vs Louvain resolution

Run from project root:
  python scripts/03_figures.py
"""

import sys

import pandas as pd

from brcagraph.config import BIOMARKERS, FIG_OUT, SUBTYPE_COL, TABLE_OUT
from brcagraph.plots import (composition_heatmap, embedding_scatter, km_plot,
                             sweep_plot)
from brcagraph.report import biomarker_crosstab, survival_by_cluster
from brcagraph.utils import banner, setup_logging

log = setup_logging("03_figures")

SCENARIO_TAB = TABLE_OUT / "scenarios"
SUMMARY_IN   = TABLE_OUT / "scenario_summary.tsv"
SWEEP_IN     = TABLE_OUT / "resolution_sweep.tsv"


def scenario_figures(name: str, table: pd.DataFrame) -> int:
    out_dir = FIG_OUT / name
    n = 0
    embedding_scatter(table, "cluster", out_dir / "embedding_cluster.pdf",
                      title=f"Scenario {name}: communities")
    n += 1
    for marker in [m for m in BIOMARKERS if m in table.columns]:
        embedding_scatter(table, marker, out_dir / f"embedding_{marker}.pdf",
                          title=f"Scenario {name}: {marker}")
        res = biomarker_crosstab(table, marker)
        if not res["counts"].empty:
            composition_heatmap(res["counts"], marker,
                                out_dir / f"composition_{marker}.pdf",
                                p_value=res["chi2_p"])
            n += 1
        n += 1
    if SUBTYPE_COL in table.columns:
        res = biomarker_crosstab(table, SUBTYPE_COL)
        if not res["counts"].empty:
            composition_heatmap(res["counts"], SUBTYPE_COL,
                                out_dir / "composition_pam50.pdf")
            n += 1
    surv = survival_by_cluster(table)
    if surv is not None:
        km_plot(table, surv["logrank_p"], out_dir / "km_overall_survival.pdf")
        n += 1
    return n


def main():
    banner(log, "STEP 3: FIGURES")

    if not SUMMARY_IN.exists():
        log.error(f"{SUMMARY_IN} not found — run 02_cluster_scenarios.py first")
        sys.exit(1)
    summary = pd.read_csv(SUMMARY_IN, sep="\t")

    n_figs = 0
    for name in summary.loc[summary["status"] == "completed", "scenario"]:
        path = SCENARIO_TAB / f"{name}_result.tsv"
        if not path.exists():
            log.warning(f"  {path} missing — skipping scenario {name}")
            continue
        log.info(f"Scenario {name}")
        table = pd.read_csv(path, sep="\t", keep_default_na=False,
                            na_values=[""])
        n_figs += scenario_figures(name, table)

    if SWEEP_IN.exists():
        sweep_plot(pd.read_csv(SWEEP_IN, sep="\t"), FIG_OUT / "resolution_sweep.pdf")
        n_figs += 1

    log.info("")
    banner(log, "STEP 3 COMPLETE")
    log.info(f"  {n_figs} figures → {FIG_OUT}/")


if __name__ == "__main__":
    main()
