"""
Principal component analysis of the filtered expression matrix.
"""

from collections import namedtuple

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from .errors import DegenerateInputError
from .normalization import log_transform

PCAResult = namedtuple('PCAResult', ['scores', 'explained_variance_ratio', 'loadings'])


def run_pca(df, log=False):
    """
    PCA on standardized genes.

    Args:
        df (pd.DataFrame): Expression matrix (genes x samples)
        log (bool): Apply log2(x+1) before standardizing

    Returns:
        PCAResult:
            - scores: samples x components ('PC1', 'PC2', ...)
            - explained_variance_ratio: pd.Series per component, descending,
              summing to 1
            - loadings: genes x components

    Raises:
        DegenerateInputError: Fewer than 2 samples or constant genes
    """
    if log:
        df = log_transform(df)

    # samples x genes
    X = df.T
    if X.shape[0] < 2:
        raise DegenerateInputError(f"PCA needs at least 2 samples, got {X.shape[0]}")
    if X.shape[1] < 1:
        raise DegenerateInputError("PCA needs at least 1 gene")

    constant = X.columns[X.max(axis=0) == X.min(axis=0)]
    if len(constant) > 0:
        raise DegenerateInputError(
            f"{len(constant)} genes are constant across samples, e.g. {list(constant[:5])}"
        )

    X_scaled = StandardScaler().fit_transform(X.to_numpy(dtype=float))

    n_components = min(X_scaled.shape)
    pca = PCA(n_components=n_components, svd_solver='full')
    X_r = pca.fit_transform(X_scaled)

    components = [f'PC{i + 1}' for i in range(n_components)]
    scores = pd.DataFrame(X_r, index=X.index, columns=components)
    ratio = pd.Series(pca.explained_variance_ratio_, index=components,
                      name='explained_variance_ratio')
    loadings = pd.DataFrame(pca.components_.T, index=X.columns, columns=components)

    print(f"  PCA explained variance ratio (first 5): "
          f"{np.round(ratio.values[:5], 4)}")

    return PCAResult(scores, ratio, loadings)
