"""
End-to-end analysis: fetch -> FPKM -> filter -> PCA and differential expression.
"""

from functools import partial

from .config import AnalysisConfig
from .data_loading import fetch_study
from .decomposition import run_pca
from .differential_expression import run_differential_expression
from .errors import DegenerateInputError
from .normalization import compute_fpkm
from .preprocessing import run_filter_data


def run_pipeline(config=None, fetch=None):
    """
    Run all stages of the analysis in order.

    PCA and differential expression both consume the filtered matrix and
    do not depend on each other: a DegenerateInputError in one of them is
    recorded under 'errors' and the other still runs. Every other error
    propagates.

    Args:
        config (AnalysisConfig): Run options, defaults to the reference run
        fetch (callable): fetch(study_id) -> (counts, metadata, gene_lengths);
                          defaults to the recount3 fetcher

    Returns:
        dict: 'fpkm' (filtered matrix), 'metadata', 'variance_profile',
              'pca' (PCAResult or None), 'de_results' (DataFrame or None),
              'errors' (stage name -> exception)
    """
    if config is None:
        config = AnalysisConfig()
    if fetch is None:
        fetch = partial(fetch_study, data_source=config.data_source,
                        annotation=config.annotation)

    print("\n[1/5] Data acquisition")
    counts, metadata, gene_lengths = fetch(config.study_id)

    print("\n[2/5] Normalization")
    fpkm = compute_fpkm(counts, gene_lengths, method=config.normalization)

    print("\n[3/5] Sample and gene filtering")
    X, metadata, profile = run_filter_data(fpkm, metadata, config)

    results = {
        'fpkm': X,
        'metadata': metadata,
        'variance_profile': profile,
        'pca': None,
        'de_results': None,
        'errors': {},
    }

    print("\n[4/5] PCA")
    try:
        results['pca'] = run_pca(X, log=config.pca_log_transform)
    except DegenerateInputError as e:
        print(f"  Warning: PCA skipped: {e}")
        results['errors']['pca'] = e

    print("\n[5/5] Differential expression")
    try:
        results['de_results'] = run_differential_expression(X, metadata, config)
    except DegenerateInputError as e:
        print(f"  Warning: differential expression skipped: {e}")
        results['errors']['de_results'] = e

    return results
