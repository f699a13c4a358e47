#!/usr/bin/env python3
"""
Script 01: Download and cache the recount3 study.

Downloads:
- Gene-level raw count matrix
- GTEx sample metadata
- Gene lengths from the recount3 gene annotation

Usage:
    python scripts/01_download_data.py [--study KIDNEY] [--data-dir DATA_DIR]
"""

import os
import sys
import argparse

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gtex_kidney.data_loading import fetch_study, save_dataset, dataset_cached
from gtex_kidney.config import STUDY_ID, DATA_SOURCE, ANNOTATION, DATA_DIR


def main():
    parser = argparse.ArgumentParser(description='Download recount3 study data')
    parser.add_argument(
        '--study',
        type=str,
        default=STUDY_ID,
        help='Study identifier in the recount3 catalog'
    )
    parser.add_argument(
        '--data-source',
        type=str,
        default=DATA_SOURCE,
        help='recount3 data source (gtex, sra, tcga)'
    )
    parser.add_argument(
        '--annotation',
        type=str,
        default=ANNOTATION,
        help='Gene annotation code'
    )
    parser.add_argument(
        '--data-dir',
        type=str,
        default=DATA_DIR,
        help='Directory to save downloaded data'
    )
    parser.add_argument(
        '--force',
        action='store_true',
        help='Download even if a cached copy exists'
    )
    args = parser.parse_args()

    print("=" * 60)
    print("recount3 Data Download")
    print("=" * 60)

    if dataset_cached(args.data_dir, args.study) and not args.force:
        print(f"Dataset {args.study} already cached in {args.data_dir}")
        return

    counts, metadata, gene_lengths = fetch_study(
        args.study,
        data_source=args.data_source,
        annotation=args.annotation,
    )
    save_dataset(counts, metadata, gene_lengths, args.data_dir, args.study)

    print("\n" + "=" * 60)
    print("Download complete!")
    print(f"Data saved to: {os.path.abspath(args.data_dir)}")
    print("=" * 60)


if __name__ == '__main__':
    main()
