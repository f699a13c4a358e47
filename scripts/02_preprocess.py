#!/usr/bin/env python3
"""
Script 02: Normalize and filter the cached study.

This script:
1. Loads the cached counts, metadata and gene lengths
2. Converts counts to FPKM
3. Relabels sex, keeps one tissue subsite and one sample per subject
4. Drops zero-variance genes and keeps the top-K genes by hyper-variance
5. Saves the filtered matrix, metadata and variance profile

Usage:
    python scripts/02_preprocess.py [--tissue "Kidney - Cortex"] [--top-k 5000]
"""

import os
import sys
import argparse

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gtex_kidney.data_loading import load_dataset
from gtex_kidney.normalization import compute_fpkm
from gtex_kidney.preprocessing import run_filter_data
from gtex_kidney.utils import store_results, summarize_samples
from gtex_kidney.visualization import plot_mean_variance
from gtex_kidney.config import (
    AnalysisConfig, STUDY_ID, DATA_DIR, RESULTS_DIR,
    TISSUE_SUBSITE, TOP_K_GENES, NORMALIZATION, print_config,
)


def preprocess_study(config, data_dir, output_dir):
    """
    Run normalization and filtering for the configured study.

    Args:
        config (AnalysisConfig): Run options
        data_dir (str): Directory with the cached dataset
        output_dir (str): Directory to save preprocessed data
    """
    counts, metadata, gene_lengths = load_dataset(data_dir, config.study_id)
    print(f"  Raw counts (genes x samples): {counts.shape}")

    print("\n[1/2] Computing FPKM...")
    fpkm = compute_fpkm(counts, gene_lengths, method=config.normalization)

    print("\n[2/2] Running filtering pipeline...")
    X, metadata, profile = run_filter_data(fpkm, metadata, config)

    print("\nSamples by age bracket and sex:")
    print(summarize_samples(metadata))

    store_results(
        {'fpkm': X, 'metadata': metadata, 'variance_profile': profile},
        output_dir,
    )
    plot_mean_variance(profile, os.path.join(output_dir, 'mean_variance'))

    return X, metadata, profile


def main():
    parser = argparse.ArgumentParser(description='Normalize and filter RNA-seq data')
    parser.add_argument('--study', type=str, default=STUDY_ID)
    parser.add_argument(
        '--tissue',
        type=str,
        default=TISSUE_SUBSITE,
        help='Tissue subsite to keep'
    )
    parser.add_argument(
        '--top-k',
        type=int,
        default=TOP_K_GENES,
        help='Number of genes kept by the hyper-variance ranking'
    )
    parser.add_argument(
        '--normalization',
        type=str,
        default=NORMALIZATION,
        choices=['robust', 'total'],
        help='Library size model for FPKM'
    )
    parser.add_argument('--data-dir', type=str, default=DATA_DIR)
    parser.add_argument('--output-dir', type=str, default=RESULTS_DIR)
    args = parser.parse_args()

    config = AnalysisConfig(
        study_id=args.study,
        tissue_subsite=args.tissue,
        top_k_genes=args.top_k,
        normalization=args.normalization,
    )
    print_config(config)

    preprocess_study(config, args.data_dir, args.output_dir)

    print("\nPreprocessing complete!")


if __name__ == '__main__':
    main()
