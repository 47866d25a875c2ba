"""
02_cluster_scenarios.py
-----------------------
Clusters every patient scenario of the averaged cohort and joins the
communities with clinical annotation for evaluation.

Pipeline
────────
  1.  Load averaged matrix (step 1) + patient metadata
  2.  Build scenarios: A full cohort, B complete biomarker annotation,
      C_<marker> one per biomarker
  3.  Per scenario (independent, failures isolated):
        top-5000 variance genes → drop lowest-variance 10 %, exact PCA (50 axes)
        → kNN (k=20) on 25 PCs → Jaccard shared-neighbour graph
        → Louvain (resolution 1.0, seeded)
        → t-SNE (perplexity 20) + UMAP (n_neighbors 20) of the selected genes
  4.  Result table per completed scenario: ids, cluster, embeddings,
      clinical fields (never used for clustering)
  5.  Evaluation: biomarker χ² cross tabs, ARI/NMI vs PAM50, KM + log-rank
  6.  Resolution sweep on scenario A's graph (5 seeded trials per value)

Outputs
───────
  results/tables/
    scenario_summary.tsv           one row per scenario, incl. failures
    scenarios/<name>_result.tsv    per-patient result table
    scenarios/<name>_biomarkers.tsv  cluster × status counts + χ² p
    scenarios/<name>_survival.tsv  per-cluster n, events, median OS
    resolution_sweep.tsv           resolution, trial, seed, communities, Q

Run from project root:
  python scripts/02_cluster_scenarios.py [--k 20 --resolution 1.0 ...]
"""

import argparse
import sys
from pathlib import Path

import pandas as pd

from brcagraph.community import resolution_sweep
from brcagraph.config import (AVERAGED_OUT, BIOMARKERS, METADATA_CSV,
                              RESOLUTION_SWEEP, SUBTYPE_COL, SWEEP_TRIALS,
                              TABLE_OUT, ClusteringParams)
from brcagraph.io import load_averaged, load_metadata, write_table
from brcagraph.pipeline import run_scenarios, scenario_summary
from brcagraph.report import (biomarker_summary, build_result_table,
                              subtype_agreement, survival_by_cluster)
from brcagraph.scenarios import build_scenarios
from brcagraph.utils import banner, setup_logging

log = setup_logging("02_cluster_scenarios")

SCENARIO_TAB = TABLE_OUT / "scenarios"
SUMMARY_OUT  = TABLE_OUT / "scenario_summary.tsv"
SWEEP_OUT    = TABLE_OUT / "resolution_sweep.tsv"


def parse_args(argv=None):
    defaults = ClusteringParams()
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0],
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--matrix", type=Path, default=AVERAGED_OUT)
    parser.add_argument("--metadata", type=Path, default=METADATA_CSV)
    parser.add_argument("--n-top", type=int, help=f"default {defaults.n_top}")
    parser.add_argument("--npc", type=int, help=f"default {defaults.npc}")
    parser.add_argument("--k", type=int, help=f"default {defaults.k}")
    parser.add_argument("--resolution", type=float, help=f"default {defaults.resolution}")
    parser.add_argument("--perplexity", type=float, help=f"default {defaults.perplexity}")
    parser.add_argument("--n-neighbors", type=int, help=f"default {defaults.n_neighbors}")
    parser.add_argument("--min-dist", type=float, help=f"default {defaults.min_dist}")
    parser.add_argument("--spread", type=float, help=f"default {defaults.spread}")
    parser.add_argument("--seed", type=int, help=f"default {defaults.seed}")
    parser.add_argument("--max-workers", type=int, default=1,
                        help="Scenarios run in parallel processes when > 1")
    parser.add_argument("--sweep-trials", type=int, default=SWEEP_TRIALS)
    parser.add_argument("--no-sweep", action="store_true",
                        help="Skip the resolution sweep on scenario A")
    return parser.parse_args(argv)


def params_from_args(args) -> ClusteringParams:
    return ClusteringParams().with_overrides(
        n_top=args.n_top, npc=args.npc, k=args.k, resolution=args.resolution,
        perplexity=args.perplexity, n_neighbors=args.n_neighbors,
        min_dist=args.min_dist, spread=args.spread, seed=args.seed,
    )


def evaluate(result, metadata: pd.DataFrame) -> dict:
    """Write the per-scenario tables; return the headline metrics."""
    name = result.scenario.name
    log.info("")
    log.info(f"── Evaluation: scenario {name} " + "─" * 30)
    table = build_result_table(result, metadata)
    write_table(table, SCENARIO_TAB / f"{name}_result.tsv")

    markers = [m for m in BIOMARKERS if m in table.columns]
    cross = biomarker_summary(table, markers)
    if not cross.empty:
        write_table(cross, SCENARIO_TAB / f"{name}_biomarkers.tsv")

    metrics = {"scenario": name}
    agreement = subtype_agreement(table) if SUBTYPE_COL in table else None
    if agreement is not None:
        metrics.update({"pam50_n": agreement["n"], "pam50_ari": agreement["ari"],
                        "pam50_nmi": agreement["nmi"]})
    surv = survival_by_cluster(table)
    if surv is not None:
        write_table(surv["per_cluster"], SCENARIO_TAB / f"{name}_survival.tsv")
        metrics["logrank_p"] = surv["logrank_p"]
    return metrics


def main(argv=None):
    args = parse_args(argv)
    params = params_from_args(args)

    banner(log, "STEP 2: SCENARIO CLUSTERING + EVALUATION")
    for key, value in params.as_dict().items():
        log.info(f"  {key:<12} {value}")

    for path, step in [(args.matrix, "01_average_replicates.py"),
                       (args.metadata, None)]:
        if not path.exists():
            hint = f"run {step} first" if step else "metadata table missing"
            log.error(f"{path} not found — {hint}")
            sys.exit(1)

    matrix = load_averaged(args.matrix)
    metadata = load_metadata(args.metadata)

    log.info("")
    log.info("Building scenarios...")
    scenarios = build_scenarios(matrix, metadata)
    results = run_scenarios(matrix, scenarios, params, max_workers=args.max_workers)

    summary = scenario_summary(results)
    metrics = pd.DataFrame([evaluate(r, metadata) for r in results if r.ok])
    if not metrics.empty:
        summary = summary.merge(metrics, on="scenario", how="left")
    write_table(summary, SUMMARY_OUT)

    primary = results[0]
    if args.no_sweep:
        log.info("Resolution sweep skipped (--no-sweep)")
    elif not primary.ok:
        log.warning(f"Scenario {primary.scenario.name} failed — no resolution sweep")
    else:
        log.info("")
        log.info("=" * 60)
        log.info(f"RESOLUTION SWEEP — scenario {primary.scenario.name}, "
                 f"{args.sweep_trials} trials per value")
        log.info("=" * 60)
        sweep = resolution_sweep(primary.graph, RESOLUTION_SWEEP,
                                 n_trials=args.sweep_trials, seed=params.seed)
        write_table(sweep.table, SWEEP_OUT)

    n_ok = int(summary["status"].eq("completed").sum())
    log.info("")
    banner(log, "STEP 2 COMPLETE")
    log.info(f"  Scenarios completed: {n_ok}/{len(summary)}")
    log.info(f"  Tables → {TABLE_OUT}/")


if __name__ == "__main__":
    main()
