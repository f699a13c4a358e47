"""
Visualization utilities for the kidney expression analysis.

This module provides plotting functions for:
- PCA visualizations (sample scores, scree plot)
- Mean-variance trend of the gene filter
- Volcano plot and heatmap of differential expression results
"""

import os

import numpy as np
import matplotlib.pyplot as plt

from .config import SEX_COLORS, PLOT_DPI
from .normalization import log_transform


def plot_mean_variance(profile, plot_name, include_text=False):
    """
    Create a mean-variance scatter plot with the fitted trend.

    Plots all genes in log2 mean/variance space, overlays the expected
    variance from the fitted trend and highlights the genes kept by the
    hyper-variance filter.

    Args:
        profile (pd.DataFrame): Variance profile with 'mean', 'variance',
                                'expected_sd' and optional 'selected' columns
        plot_name (str): Output path for the plot (without extension)
        include_text (bool): Whether to annotate the 10 highest-mean
                             selected genes

    Returns:
        None (saves plot to file)
    """
    log_mean = np.log2(profile['mean'])
    log_var = np.log2(profile['variance'])
    log_expected = np.log2(profile['expected_sd'] ** 2)

    fig, ax = plt.subplots(figsize=(10, 10))
    ax.set_xlabel('log2 mean', fontsize=20)
    ax.set_ylabel('log2 variance', fontsize=20)

    plot_title = os.path.basename(plot_name)
    fig.suptitle(plot_title, fontsize=24)

    ax.scatter(x=log_mean, y=log_var, alpha=0.3, s=5, color='grey', label='all genes')

    if 'selected' in profile:
        selected = profile['selected']
        ax.scatter(x=log_mean[selected], y=log_var[selected], alpha=0.5, s=5,
                   color='red', label='selected')

        if include_text:
            top10 = profile[selected].sort_values('mean', ascending=False).head(10)
            for gene in top10.index:
                ax.annotate(str(gene), (log_mean[gene], log_var[gene]), fontsize=10)

    order = np.argsort(log_mean.to_numpy())
    ax.plot(log_mean.to_numpy()[order], log_expected.to_numpy()[order],
            color='navy', lw=2, label='fitted trend')
    ax.legend(loc='best')

    plt.savefig(plot_name + '.png', dpi=PLOT_DPI)
    plt.close(fig)


def plot_2d_pca(pca_result, metadata, colors=SEX_COLORS, field='sex'):
    """
    Create a 2D PCA scatter plot colored by a metadata field.

    Args:
        pca_result (PCAResult): Output of run_pca
        metadata (pd.DataFrame): Sample metadata with 'sample_id'
        colors (dict): Field value -> color
        field (str): Metadata column used for coloring

    Returns:
        matplotlib.pyplot: Plot object for saving
    """
    scores = pca_result.scores
    ratio = pca_result.explained_variance_ratio
    labels = metadata.set_index('sample_id')[field].reindex(scores.index)

    fig = plt.figure(figsize=(8, 6))
    for value, color in colors.items():
        mask = (labels == value).to_numpy()
        plt.scatter(
            scores.iloc[mask, 0], scores.iloc[mask, 1],
            color=color, alpha=0.8, lw=2, label=value
        )

    plt.legend(loc="best", shadow=False, scatterpoints=1, fontsize=12)
    plt.xlabel(f'PC1 ({ratio.iloc[0]:.1%})', fontsize=14)
    if scores.shape[1] > 1:
        plt.ylabel(f'PC2 ({ratio.iloc[1]:.1%})', fontsize=14)

    return plt


def plot_scree(pca_result, n_components=20):
    """Bar plot of the explained variance of the leading components."""
    ratio = pca_result.explained_variance_ratio.iloc[:n_components]

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.bar(range(1, len(ratio) + 1), ratio.values, color='navy')
    ax.plot(range(1, len(ratio) + 1), np.cumsum(ratio.values), color='red', marker='o')
    ax.set_xlabel('Principal component', fontsize=12)
    ax.set_ylabel('Proportion of variance explained', fontsize=12)
    plt.tight_layout()

    return plt


def plot_volcano(res, alpha=0.05, l2fc=0, n_labels=10, gene_names=None):
    """
    Volcano plot of differential expression results.

    Args:
        res (pd.DataFrame): Results with 'logFC', 'pvalue' and 'fdr'
        alpha (float): FDR threshold for coloring
        l2fc (float): Absolute log2 fold change threshold for coloring
        n_labels (int): Number of lowest-FDR genes to annotate
        gene_names (pd.Series): Optional gene ID -> symbol mapping

    Returns:
        matplotlib.pyplot: Plot object for saving
    """
    neg_log_p = -np.log10(res['pvalue'].clip(lower=np.finfo(float).tiny))
    sig = (res['fdr'] < alpha) & (res['logFC'].abs() > l2fc)

    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(res.loc[~sig, 'logFC'], neg_log_p[~sig], s=5, alpha=0.4, color='grey')
    ax.scatter(res.loc[sig & (res['logFC'] > 0), 'logFC'],
               neg_log_p[sig & (res['logFC'] > 0)],
               s=8, alpha=0.8, color=SEX_COLORS['female'], label='female-biased')
    ax.scatter(res.loc[sig & (res['logFC'] < 0), 'logFC'],
               neg_log_p[sig & (res['logFC'] < 0)],
               s=8, alpha=0.8, color=SEX_COLORS['male'], label='male-biased')

    for gene in res.sort_values('fdr').index[:n_labels]:
        label = gene_names.get(gene, gene) if gene_names is not None else gene
        ax.annotate(str(label), (res.loc[gene, 'logFC'], neg_log_p[gene]), fontsize=8)

    ax.axvline(0, color='black', lw=0.5)
    ax.set_xlabel('log2 fold change (female - male)', fontsize=12)
    ax.set_ylabel('-log10 p-value', fontsize=12)
    ax.legend(loc='best')
    plt.tight_layout()

    return plt


def plot_gene_heatmap(X, metadata, gene_list, cmap='RdBu_r'):
    """
    Heatmap of scaled log2 expression for the given genes, samples grouped by sex.

    Args:
        X (pd.DataFrame): FPKM matrix (genes x samples)
        metadata (pd.DataFrame): Sample metadata with 'sample_id' and 'sex'
        gene_list (list): Genes to include
        cmap (str): Colormap name

    Returns:
        matplotlib.pyplot: Plot object
    """
    import seaborn as sns

    genes = [g for g in gene_list if g in X.index]
    order = metadata.sort_values('sex', kind='mergesort')['sample_id']

    log_X = log_transform(X.loc[genes, order])
    z = log_X.sub(log_X.mean(axis=1), axis=0).div(log_X.std(axis=1) + 1e-8, axis=0)

    fig, ax = plt.subplots(figsize=(12, 8))
    sns.heatmap(z, cmap=cmap, center=0, xticklabels=False, yticklabels=True, ax=ax)
    plt.xlabel('Samples (grouped by sex)', fontsize=12)
    plt.ylabel('Genes', fontsize=12)
    plt.tight_layout()

    return plt
