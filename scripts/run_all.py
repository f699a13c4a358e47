#!/usr/bin/env python3
"""
Main orchestration script - runs the complete analysis pipeline.

This script coordinates all pipeline steps:
1. Download data (optional, if not cached)
2. Normalize and filter
3. PCA
4. Differential expression

Usage:
    # Run the reference analysis
    python scripts/run_all.py

    # Skip download step (data already cached)
    python scripts/run_all.py --skip-download

    # Other tissue subsite and gene count
    python scripts/run_all.py --tissue "Kidney - Medulla" --top-k 2000
"""

import os
import sys
import argparse
import subprocess
from datetime import datetime

# Add package root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gtex_kidney.config import (
    STUDY_ID, TISSUE_SUBSITE, TOP_K_GENES, RESULTS_DIR, DATA_DIR, print_config,
)


def run_step(script_name, args_list, step_name):
    """Run a pipeline step as a subprocess."""
    print(f"\n{'='*60}")
    print(f"STEP: {step_name}")
    print(f"{'='*60}")

    script_path = os.path.join(os.path.dirname(__file__), script_name)
    cmd = [sys.executable, script_path] + args_list

    print(f"Running: {' '.join(cmd)}\n")

    result = subprocess.run(cmd, capture_output=False)

    if result.returncode != 0:
        print(f"  Error: {step_name} returned exit code {result.returncode}")
        return False

    return True


def run_analysis(study, tissue, top_k, data_dir, results_dir, skip_download=False,
                 n_jobs=1):
    """Run the steps in order, stopping at the first failure."""
    steps = []

    if not skip_download:
        steps.append((
            '01_download_data.py',
            ['--study', study, '--data-dir', data_dir],
            'Download Data',
        ))

    steps += [
        (
            '02_preprocess.py',
            ['--study', study, '--tissue', tissue, '--top-k', str(top_k),
             '--data-dir', data_dir, '--output-dir', results_dir],
            f'Preprocess ({tissue}, top {top_k})',
        ),
        (
            '03_explore_structure.py',
            ['--data-dir', results_dir],
            'PCA',
        ),
        (
            '04_differential_expression.py',
            ['--data-dir', results_dir, '--n-jobs', str(n_jobs)],
            'Differential Expression',
        ),
    ]

    for script_name, args_list, step_name in steps:
        if not run_step(script_name, args_list, step_name):
            return step_name

    return None


def main():
    parser = argparse.ArgumentParser(
        description='GTEx Kidney Sex-Differential Expression Pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the reference analysis
  python scripts/run_all.py

  # Show configuration
  python scripts/run_all.py --show-config
        """
    )

    parser.add_argument('--study', type=str, default=STUDY_ID)
    parser.add_argument('--tissue', type=str, default=TISSUE_SUBSITE)
    parser.add_argument('--top-k', type=int, default=TOP_K_GENES)
    parser.add_argument('--data-dir', type=str, default=DATA_DIR)
    parser.add_argument('--results-dir', type=str, default=RESULTS_DIR)
    parser.add_argument('--n-jobs', type=int, default=1)
    parser.add_argument(
        '--skip-download',
        action='store_true',
        help='Skip data download step'
    )
    parser.add_argument(
        '--show-config',
        action='store_true',
        help='Show current configuration and exit'
    )

    args = parser.parse_args()

    if args.show_config:
        print_config()
        return

    start_time = datetime.now()

    print("\n" + "=" * 60)
    print("GTEx Kidney Sex-Differential Expression Pipeline")
    print("=" * 60)
    print(f"Start time: {start_time}")

    failed = run_analysis(
        study=args.study,
        tissue=args.tissue,
        top_k=args.top_k,
        data_dir=args.data_dir,
        results_dir=args.results_dir,
        skip_download=args.skip_download,
        n_jobs=args.n_jobs,
    )

    print("\n" + "=" * 60)
    print(f"Duration: {datetime.now() - start_time}")

    if failed:
        print(f"Pipeline stopped at step: {failed}")
        sys.exit(1)

    print("Pipeline complete!")


if __name__ == '__main__':
    main()
