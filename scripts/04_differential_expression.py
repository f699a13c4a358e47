#!/usr/bin/env python3
"""
Script 04: Sex-differential expression of the filtered genes.

This script:
1. Loads the output of 02_preprocess.py
2. Runs a per-gene rank test (female vs male) with FDR correction
3. Saves the full result table and the significant gene lists
4. Draws a volcano plot and a heatmap of the top genes

Usage:
    python scripts/04_differential_expression.py [--alpha 0.05] [--n-jobs 4]
"""

import os
import sys
import argparse

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gtex_kidney.differential_expression import (
    run_differential_expression,
    split_by_direction,
)
from gtex_kidney.utils import load_results, store_results
from gtex_kidney.visualization import plot_volcano, plot_gene_heatmap
from gtex_kidney.config import (
    AnalysisConfig, RESULTS_DIR, PLOT_DPI,
    ALPHA, L2FC, FDR_METHOD, FDR_METHODS, TEST_ALTERNATIVE, TEST_ALTERNATIVES, N_JOBS,
)


def main():
    parser = argparse.ArgumentParser(description='Sex-differential expression analysis')
    parser.add_argument(
        '--data-dir',
        type=str,
        default=RESULTS_DIR,
        help='Directory with preprocessed data'
    )
    parser.add_argument('--alpha', type=float, default=ALPHA)
    parser.add_argument('--l2fc', type=float, default=L2FC)
    parser.add_argument(
        '--fdr-method',
        type=str,
        default=FDR_METHOD,
        choices=sorted(FDR_METHODS),
    )
    parser.add_argument(
        '--alternative',
        type=str,
        default=TEST_ALTERNATIVE,
        choices=TEST_ALTERNATIVES,
    )
    parser.add_argument(
        '--n-jobs',
        type=int,
        default=N_JOBS,
        help='Workers for the per-gene tests'
    )
    parser.add_argument(
        '--n-heatmap',
        type=int,
        default=50,
        help='Number of lowest-FDR genes in the heatmap'
    )
    args = parser.parse_args()

    results = load_results(args.data_dir)
    if 'fpkm' not in results:
        raise FileNotFoundError(
            f"No preprocessed data in {args.data_dir}. Run 02_preprocess.py first."
        )

    config = AnalysisConfig(
        fdr_method=args.fdr_method,
        test_alternative=args.alternative,
        alpha=args.alpha,
        l2fc=args.l2fc,
        n_jobs=args.n_jobs,
    )

    X = results['fpkm']
    metadata = results['metadata']

    print(f"\n{'='*60}")
    print("Differential expression: female vs male")
    print(f"{'='*60}")

    res = run_differential_expression(X, metadata, config)
    store_results({'de_results': res}, args.data_dir)

    lists = split_by_direction(res, alpha=config.alpha, l2fc=config.l2fc)
    for name, genes in lists.items():
        with open(os.path.join(args.data_dir, f'{name}.txt'), 'w') as f:
            f.write('\n'.join(str(g) for g in genes))
        print(f"  {name}: {len(genes)}")

    print("\nTop 10 genes by FDR:")
    print(res.head(10))

    plot = plot_volcano(res, alpha=config.alpha, l2fc=config.l2fc)
    plot.savefig(os.path.join(args.data_dir, 'volcano.png'), dpi=PLOT_DPI)
    plot.close()

    plot = plot_gene_heatmap(X, metadata, list(res.index[:args.n_heatmap]))
    plot.savefig(os.path.join(args.data_dir, 'heatmap_top_genes.png'), dpi=PLOT_DPI)
    plot.close()

    print("\nDifferential expression complete!")


if __name__ == '__main__':
    main()
