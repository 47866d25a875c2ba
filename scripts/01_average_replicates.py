"""
01_average_replicates.py
------------------------
Validates technical replicates in the raw expression table and writes the
averaged genes × patients matrix used by every later step.

Pipeline
────────
  1.  Load data/raw/expression_matrix.csv.gz (genes × samples, gene symbols)
  2.  Pair each F<n>repl column with F<n> (natural sort, verified 1:1)
  3.  Spearman rho per pair → informative (rounded rho ≥ 0.90),
      significant (p < 0.05)
  4.  Average each pair into the sample column, drop the replicate
  5.  Save averaged matrix (written once, never overwritten) + QC table

Outputs
───────
  data/processed/
    expression_averaged.parquet   genes × patients, replicate pairs merged
  results/tables/
    replicate_qc.tsv              sample, replicate, rho, p, flags
  results/figures/
    replicate_correlation.pdf     histogram of pair correlations

Run from project root:
  python scripts/01_average_replicates.py
"""

import argparse
import sys
from pathlib import Path

from brcagraph.config import (AVERAGED_OUT, EXPRESSION_CSV, FIG_OUT,
                              INFORMATIVE_RHO, REPLICATE_QC_OUT,
                              REPLICATE_SUFFIX, SIGNIFICANCE_ALPHA)
from brcagraph.errors import MalformedPairingError
from brcagraph.io import load_expression, write_if_absent, write_table
from brcagraph.plots import replicate_histogram
from brcagraph.replicates import validate_and_average
from brcagraph.utils import banner, checkpoint_exists, setup_logging

log = setup_logging("01_average_replicates")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.split("\n\n")[0],
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--expression", type=Path, default=EXPRESSION_CSV,
                        help="Raw genes × samples CSV (optionally gzipped)")
    parser.add_argument("--out", type=Path, default=AVERAGED_OUT,
                        help="Averaged matrix parquet")
    parser.add_argument("--qc-out", type=Path, default=REPLICATE_QC_OUT)
    parser.add_argument("--suffix", default=REPLICATE_SUFFIX)
    parser.add_argument("--informative-rho", type=float, default=INFORMATIVE_RHO)
    parser.add_argument("--alpha", type=float, default=SIGNIFICANCE_ALPHA)
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    banner(log, "STEP 1: REPLICATE VALIDATION + AVERAGING")

    if checkpoint_exists(args.out):
        log.info("Averaged matrix already present — nothing to do")
        return

    if not args.expression.exists():
        log.error(f"{args.expression} not found — place the expression table "
                  f"under {args.expression.parent}/ first")
        sys.exit(1)

    matrix = load_expression(args.expression)
    try:
        result = validate_and_average(
            matrix,
            suffix=args.suffix,
            informative_rho=args.informative_rho,
            alpha=args.alpha,
        )
    except MalformedPairingError as exc:
        log.error(f"Replicate pairing failed — {exc}")
        sys.exit(1)

    write_if_absent(result.matrix.frame, args.out)
    write_table(result.qc, args.qc_out)
    if result.n_pairs:
        replicate_histogram(result.qc, FIG_OUT / "replicate_correlation.pdf",
                            threshold=args.informative_rho)

    log.info("")
    banner(log, "STEP 1 COMPLETE")
    log.info(f"  Pairs averaged: {result.n_pairs}")
    log.info(f"  Matrix:         {result.matrix.n_genes} genes × "
             f"{result.matrix.n_patients} patients → {args.out}")


if __name__ == "__main__":
    main()
