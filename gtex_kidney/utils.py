"""
Utility functions for the kidney expression pipeline.

This module provides general-purpose utilities including:
- Results storage and loading
- Sample summaries
"""

import os

import pandas as pd

from .decomposition import PCAResult

RESULT_FILES = {
    'fpkm': 'fpkm_filtered.csv',
    'metadata': 'metadata.csv',
    'variance_profile': 'variance_profile.csv',
    'pca_scores': 'pca_scores.csv',
    'pca_explained_variance': 'pca_explained_variance.csv',
    'pca_loadings': 'pca_loadings.csv',
    'de_results': 'de_results.csv',
}


def store_results(results, loc):
    """
    Save analysis results to disk.

    Args:
        results (dict): Any of the keys 'fpkm', 'metadata',
                        'variance_profile', 'pca', 'de_results'
        loc (str): Output directory path
    """
    os.makedirs(loc, exist_ok=True)

    if results.get('fpkm') is not None:
        results['fpkm'].to_csv(os.path.join(loc, RESULT_FILES['fpkm']))

    if results.get('metadata') is not None:
        results['metadata'].to_csv(os.path.join(loc, RESULT_FILES['metadata']),
                                   index=False)

    if results.get('variance_profile') is not None:
        results['variance_profile'].to_csv(
            os.path.join(loc, RESULT_FILES['variance_profile'])
        )

    pca = results.get('pca')
    if pca is not None:
        pca.scores.to_csv(os.path.join(loc, RESULT_FILES['pca_scores']))
        pca.explained_variance_ratio.to_csv(
            os.path.join(loc, RESULT_FILES['pca_explained_variance'])
        )
        pca.loadings.to_csv(os.path.join(loc, RESULT_FILES['pca_loadings']))

    if results.get('de_results') is not None:
        results['de_results'].to_csv(os.path.join(loc, RESULT_FILES['de_results']))

    print(f"Results saved to {loc}")


def load_results(loc):
    """
    Load previously saved analysis results.

    Args:
        loc (str): Directory containing saved results

    Returns:
        dict: Same keys as accepted by store_results, for the files found
    """
    results = {}

    def path(key):
        return os.path.join(loc, RESULT_FILES[key])

    if os.path.exists(path('fpkm')):
        results['fpkm'] = pd.read_csv(path('fpkm'), index_col=0)

    if os.path.exists(path('metadata')):
        results['metadata'] = pd.read_csv(path('metadata'), dtype=str)

    if os.path.exists(path('variance_profile')):
        results['variance_profile'] = pd.read_csv(path('variance_profile'), index_col=0)

    if os.path.exists(path('pca_scores')):
        scores = pd.read_csv(path('pca_scores'), index_col=0)
        ratio = pd.read_csv(path('pca_explained_variance'), index_col=0).iloc[:, 0]
        loadings = pd.read_csv(path('pca_loadings'), index_col=0)
        results['pca'] = PCAResult(scores, ratio, loadings)

    if os.path.exists(path('de_results')):
        results['de_results'] = pd.read_csv(path('de_results'), index_col=0)

    return results


def summarize_samples(metadata):
    """Counts of samples per age bracket and sex, with totals."""
    return pd.crosstab(metadata['age'], metadata['sex'], margins=True, margins_name='total')
