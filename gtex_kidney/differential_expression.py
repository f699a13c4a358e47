"""
Differential expression between sexes.

This module provides a per-gene Mann-Whitney rank test, multiple testing
correction across all tested genes and log2 fold changes, plus helpers to
filter and rank the resulting table.
"""

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy.stats import mannwhitneyu, norm
from statsmodels.stats.multitest import multipletests

from .config import AnalysisConfig, FDR_METHODS, GROUPS
from .errors import InvalidInputError, DegenerateInputError
from .normalization import log_transform

RESULT_COLUMNS = ['statistic', 'pvalue', 'fdr', 'logFC', 'mean_female', 'mean_male']


def rank_test(values_1, values_2, alternative='two-sided'):
    """
    Two-sample Mann-Whitney U test, normal approximation without tie or
    continuity correction.

    Args:
        values_1 (array-like): Values of the first group
        values_2 (array-like): Values of the second group
        alternative (str): 'two-sided', 'less' or 'greater'

    Returns:
        tuple: (U statistic of the first group, p-value)
    """
    n1, n2 = len(values_1), len(values_2)
    u1 = float(mannwhitneyu(values_1, values_2, alternative=alternative,
                            method='asymptotic').statistic)

    # all values tied
    if np.ptp(np.concatenate([values_1, values_2])) == 0:
        return u1, 1.0

    # variance of U ignoring ties
    sigma = np.sqrt(n1 * n2 * (n1 + n2 + 1) / 12.0)
    z = (u1 - n1 * n2 / 2.0) / sigma

    if alternative == 'greater':
        pvalue = norm.sf(z)
    elif alternative == 'less':
        pvalue = norm.cdf(z)
    else:
        pvalue = 2 * norm.sf(abs(z))
    return u1, float(min(pvalue, 1.0))


def adjust_pvalues(pvalues, method='fdr'):
    """
    Correct p-values for multiple testing.

    Args:
        pvalues (array-like): Raw p-values
        method (str): R p.adjust name ('fdr', 'BH', 'BY', 'bonferroni',
                      'holm', 'hochberg', 'none')

    Returns:
        np.ndarray: Adjusted p-values in input order
    """
    if method not in FDR_METHODS:
        raise InvalidInputError(f"Unknown fdr_method: {method}")

    pvalues = np.asarray(pvalues, dtype=float)
    if len(pvalues) == 0 or FDR_METHODS[method] is None:
        return pvalues.copy()

    _, adjusted, _, _ = multipletests(pvalues, method=FDR_METHODS[method])
    return adjusted


def log_fold_change(df, group_1, group_2):
    """
    log2 fold change as mean(log2(x+1)) of group_1 minus group_2.

    Args:
        df (pd.DataFrame): Expression matrix (genes x samples)
        group_1 (list): Sample IDs of the first group
        group_2 (list): Sample IDs of the second group

    Returns:
        tuple: (logFC, mean_1, mean_2) as pd.Series indexed by gene
    """
    log_df = log_transform(df)
    mean_1 = log_df[group_1].mean(axis=1)
    mean_2 = log_df[group_2].mean(axis=1)
    return mean_1 - mean_2, mean_1, mean_2


def split_samples_by_sex(metadata, groups=GROUPS):
    """Sample IDs per sex label, in metadata order."""
    return {
        label: list(metadata.loc[metadata['sex'] == label, 'sample_id'])
        for label in groups
    }


def run_differential_expression(df, metadata, config=None):
    """
    Test every gene for a difference between female and male samples.

    Args:
        df (pd.DataFrame): FPKM matrix (genes x samples), columns aligned
                           with metadata
        metadata (pd.DataFrame): Sample metadata with 'sample_id' and 'sex'
        config (AnalysisConfig): Run options (alternative, fdr_method, n_jobs)

    Returns:
        pd.DataFrame: Indexed by gene with columns statistic, pvalue, fdr,
                      logFC, mean_female, mean_male; sorted by ascending fdr

    Raises:
        DegenerateInputError: If a sex group has no samples
    """
    if config is None:
        config = AnalysisConfig()

    groups = split_samples_by_sex(metadata)
    female, male = groups['female'], groups['male']
    if not female or not male:
        raise DegenerateInputError(
            f"Both sexes are needed, got {len(female)} female and {len(male)} male samples"
        )

    print(f"  [DE] {len(female)} female vs {len(male)} male samples, "
          f"{df.shape[0]} genes")

    female_values = df[female].to_numpy(dtype=float)
    male_values = df[male].to_numpy(dtype=float)

    tests = Parallel(n_jobs=config.n_jobs)(
        delayed(rank_test)(female_values[i], male_values[i], config.test_alternative)
        for i in range(df.shape[0])
    )
    statistics, pvalues = zip(*tests) if tests else ((), ())

    res = pd.DataFrame(
        {'statistic': statistics, 'pvalue': pvalues},
        index=df.index,
        dtype=float,
    )
    res['fdr'] = adjust_pvalues(res['pvalue'].to_numpy(), config.fdr_method)

    logfc, mean_female, mean_male = log_fold_change(df, female, male)
    res['logFC'] = logfc
    res['mean_female'] = mean_female
    res['mean_male'] = mean_male

    res = res[RESULT_COLUMNS].sort_values(['fdr', 'pvalue'], kind='mergesort')

    n_sig = int((res['fdr'] < config.alpha).sum())
    print(f"  [DE] {n_sig} genes with {config.fdr_method} < {config.alpha}")

    return res


def get_sig_genes(res, alpha=0.05, l2fc=0):
    """
    Filter for significantly differentially expressed genes.

    Args:
        res (pd.DataFrame): Differential expression results
        alpha (float): Adjusted p-value threshold
        l2fc (float): Log2 fold change threshold (absolute value)

    Returns:
        pd.DataFrame: Filtered results with significant genes only
    """
    return res[(res['fdr'] < alpha) & (res['logFC'].abs() > l2fc)]


def get_de_ranked_genes(res):
    """Genes ranked by signed -log10(pvalue), female-biased first."""
    score = -np.log10(res['pvalue'].clip(lower=np.finfo(float).tiny)) * np.sign(res['logFC'])
    return score.rename('score').sort_values(ascending=False)


def split_by_direction(res, alpha=0.05, l2fc=0):
    """
    Separate significant genes by the sign of their fold change.

    Returns:
        dict: 'sig_genes', 'female_biased' (logFC > 0) and 'male_biased'
              (logFC < 0) gene lists, each ordered by fdr
    """
    sig = get_sig_genes(res, alpha=alpha, l2fc=l2fc)
    return {
        'sig_genes': sig.index.tolist(),
        'female_biased': sig[sig['logFC'] > 0].index.tolist(),
        'male_biased': sig[sig['logFC'] < 0].index.tolist(),
    }
