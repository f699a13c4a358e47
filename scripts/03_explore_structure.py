#!/usr/bin/env python3
"""
Script 03: Principal component analysis of the filtered matrix.

Loads the output of 02_preprocess.py, runs PCA on standardized genes and
saves scores, explained variance, loadings and figures.

Usage:
    python scripts/03_explore_structure.py [--data-dir RESULTS_DIR] [--log]
"""

import os
import sys
import argparse

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gtex_kidney.decomposition import run_pca
from gtex_kidney.utils import load_results, store_results
from gtex_kidney.visualization import plot_2d_pca, plot_scree
from gtex_kidney.config import RESULTS_DIR, PLOT_DPI


def main():
    parser = argparse.ArgumentParser(description='PCA of the filtered expression matrix')
    parser.add_argument(
        '--data-dir',
        type=str,
        default=RESULTS_DIR,
        help='Directory with preprocessed data'
    )
    parser.add_argument(
        '--log',
        action='store_true',
        help='Apply log2(FPKM+1) before standardizing'
    )
    args = parser.parse_args()

    results = load_results(args.data_dir)
    if 'fpkm' not in results:
        raise FileNotFoundError(
            f"No preprocessed data in {args.data_dir}. Run 02_preprocess.py first."
        )

    X = results['fpkm']
    metadata = results['metadata']

    print(f"\n{'='*60}")
    print(f"PCA: {X.shape[0]} genes x {X.shape[1]} samples")
    print(f"{'='*60}")

    pca = run_pca(X, log=args.log)
    store_results({'pca': pca}, args.data_dir)

    plot = plot_2d_pca(pca, metadata)
    plot.savefig(os.path.join(args.data_dir, 'pca_sex.png'), dpi=PLOT_DPI)
    plot.close()

    plot = plot_scree(pca)
    plot.savefig(os.path.join(args.data_dir, 'pca_scree.png'), dpi=PLOT_DPI)
    plot.close()

    print("\nPCA complete!")


if __name__ == '__main__':
    main()
