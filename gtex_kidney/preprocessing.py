"""
Preprocessing utilities for gene expression data.

This module provides functions for:
- Sample filtering (sex relabeling, tissue subsite, one sample per subject)
- Aligning the expression matrix to the retained samples
- Gene filtering (zero variance, mean-adjusted variance ranking)
"""

import numbers

import numpy as np
import pandas as pd
from statsmodels.gam.api import GLMGam, BSplines

from .config import AnalysisConfig, SEX_CODES, SPLINE_DF, SPLINE_DEGREE, SPLINE_ALPHA
from .errors import InvalidInputError, AlignmentError, DegenerateInputError


def _sex_code(value):
    if isinstance(value, numbers.Number) and not isinstance(value, bool):
        if np.isfinite(value) and float(value).is_integer():
            return str(int(value))
    return str(value).strip()


def relabel_sex(metadata, codes=SEX_CODES):
    """
    Recode numeric sex codes to labels ('1' -> 'male', '2' -> 'female').

    Args:
        metadata (pd.DataFrame): Sample metadata with a 'sex' column
        codes (dict): Code -> label mapping

    Returns:
        pd.DataFrame: Copy of metadata with relabeled 'sex' column

    Raises:
        InvalidInputError: If any sample carries an unknown code
    """
    raw = metadata['sex'].map(_sex_code)
    labels = raw.map(codes)

    unknown = raw[labels.isna()]
    if len(unknown) > 0:
        raise InvalidInputError(
            f"Unknown sex codes: {sorted(set(unknown))} "
            f"(expected one of {sorted(codes)})"
        )

    metadata = metadata.copy()
    metadata['sex'] = labels
    return metadata


def filter_tissue(metadata, tissue):
    """Keep only samples from the given tissue subsite."""
    kept = metadata[metadata['tissue'] == tissue]
    if kept.empty:
        print(f"  Warning: no samples with tissue '{tissue}'")
    return kept


def deduplicate_subjects(metadata):
    """
    Keep the first sample of every subject, in metadata order.

    Args:
        metadata (pd.DataFrame): Sample metadata with a 'subject_id' column

    Returns:
        pd.DataFrame: Metadata with exactly one row per subject
    """
    return metadata.drop_duplicates(subset='subject_id', keep='first')


def align_columns(df, metadata):
    """
    Subset and reorder matrix columns to the metadata sample order.

    Args:
        df (pd.DataFrame): Expression matrix (genes x samples)
        metadata (pd.DataFrame): Sample metadata with 'sample_id' column

    Returns:
        tuple: (aligned matrix, metadata with a fresh index)

    Raises:
        AlignmentError: If a retained sample has no matrix column
    """
    sample_ids = list(metadata['sample_id'])

    if len(set(sample_ids)) != len(sample_ids):
        raise AlignmentError("Metadata sample IDs are not unique")

    missing = [s for s in sample_ids if s not in df.columns]
    if missing:
        raise AlignmentError(
            f"{len(missing)} samples have no expression column, e.g. {missing[:5]}"
        )

    aligned = df[sample_ids]
    metadata = metadata.reset_index(drop=True)

    return aligned, metadata


def drop_zero_variance(df):
    """
    Remove genes whose variance across samples is exactly zero.

    Raises:
        DegenerateInputError: With fewer than two samples
    """
    if df.shape[1] < 2:
        raise DegenerateInputError(
            f"Variance needs at least 2 samples, got {df.shape[1]}"
        )
    # constancy on raw values; var() leaves rounding noise for values like 0.1
    constant = df.max(axis=1) == df.min(axis=1)
    return df[~constant]


def fit_mean_variance_trend(log_mean, log_var, df=SPLINE_DF, alpha=SPLINE_ALPHA):
    """
    Fit a penalized B-spline GAM of log2(variance) on log2(mean).

    Args:
        log_mean (array-like): log2 mean expression per gene
        log_var (array-like): log2 variance per gene
        df (int): Degrees of freedom of the spline basis
        alpha (float): Smoothing penalty weight

    Returns:
        np.ndarray: Fitted log2 variance per gene
    """
    x = np.asarray(log_mean, dtype=float).reshape(-1, 1)
    y = np.asarray(log_var, dtype=float)

    n_unique = len(np.unique(x))
    if n_unique < SPLINE_DEGREE + 2:
        raise DegenerateInputError(
            f"Mean-variance trend needs at least {SPLINE_DEGREE + 2} distinct "
            f"mean values, got {n_unique}"
        )
    df = min(int(df), n_unique - 1)

    smoother = BSplines(x, df=[df], degree=[SPLINE_DEGREE])
    gam = GLMGam(y, exog=np.ones((len(y), 1)), smoother=smoother, alpha=[alpha])
    result = gam.fit()

    return np.asarray(result.fittedvalues, dtype=float)


def compute_variance_profile(df, spline_df=SPLINE_DF, spline_alpha=SPLINE_ALPHA):
    """
    Compute mean-adjusted (hyper-)variance for every gene.

    Highly expressed genes show larger raw variance, so each gene's
    deviations are scaled by the standard deviation expected at its
    mean expression level before summing.

    Args:
        df (pd.DataFrame): Expression matrix (genes x samples) without
                           zero-variance genes
        spline_df (int): Spline degrees of freedom of the trend
        spline_alpha (float): Smoothing penalty of the trend

    Returns:
        pd.DataFrame: Indexed by gene with columns 'mean', 'variance',
                      'expected_sd' and 'hyper_variance'
    """
    n_samples = df.shape[1]
    if n_samples < 2:
        raise DegenerateInputError(
            f"Variance needs at least 2 samples, got {n_samples}"
        )

    means = df.mean(axis=1)
    variances = df.var(axis=1)
    if (df.max(axis=1) == df.min(axis=1)).any():
        raise DegenerateInputError(
            "Zero-variance genes must be removed before variance modeling"
        )

    fitted = fit_mean_variance_trend(
        np.log2(means), np.log2(variances), df=spline_df, alpha=spline_alpha
    )
    expected_sd = pd.Series(np.sqrt(np.power(2.0, fitted)), index=df.index)

    residuals = df.sub(means, axis=0).div(expected_sd, axis=0)
    hyper_variance = (residuals ** 2).sum(axis=1) / (n_samples - 1)

    return pd.DataFrame({
        'mean': means,
        'variance': variances,
        'expected_sd': expected_sd,
        'hyper_variance': hyper_variance,
    })


def select_top_k(profile, k):
    """
    Rank genes by ascending hyper-variance and keep the first k.

    Ties keep the original gene order, so the selection is reproducible.

    Args:
        profile (pd.DataFrame): Output of compute_variance_profile
        k (int): Number of genes to keep

    Returns:
        pd.Index: Selected gene identifiers in rank order
    """
    if k < 1:
        raise InvalidInputError(f"k must be positive, got {k}")

    ranked = profile.sort_values('hyper_variance', ascending=True, kind='mergesort')
    return ranked.index[:k]


def filter_samples(metadata, tissue):
    """Relabel sex, keep one tissue subsite and one sample per subject."""
    metadata = relabel_sex(metadata)
    print(f"  Samples after sex relabeling: {len(metadata)}")

    metadata = filter_tissue(metadata, tissue)
    print(f"  Samples after tissue filter ({tissue}): {len(metadata)}")

    metadata = deduplicate_subjects(metadata)
    print(f"  Samples after subject deduplication: {len(metadata)}")

    return metadata


def run_filter_data(fpkm, metadata, config=None):
    """
    Execute the complete sample and gene filtering pipeline.

    Pipeline order:
    1. Relabel sex codes
    2. Keep the configured tissue subsite
    3. Keep the first sample per subject
    4. Align matrix columns to the retained samples
    5. Drop zero-variance genes
    6. Keep the top-K genes by ascending hyper-variance

    Args:
        fpkm (pd.DataFrame): FPKM matrix (genes x samples)
        metadata (pd.DataFrame): Harmonized sample metadata
        config (AnalysisConfig): Run options

    Returns:
        tuple: (filtered FPKM matrix, aligned metadata, variance profile)
    """
    if config is None:
        config = AnalysisConfig()

    metadata = filter_samples(metadata, config.tissue_subsite)

    X, metadata = align_columns(fpkm, metadata)
    print(f"  X shape after column alignment: {X.shape}")

    X = drop_zero_variance(X)
    print(f"  X shape after filter zero variance: {X.shape}")

    profile = compute_variance_profile(
        X, spline_df=config.spline_df, spline_alpha=config.spline_alpha
    )
    selected = select_top_k(profile, config.top_k_genes)
    profile['selected'] = profile.index.isin(selected)

    X = X.loc[selected]
    print(f"  X shape after top-{config.top_k_genes} hyper-variance: {X.shape}")

    return X, metadata, profile
