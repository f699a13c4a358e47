"""
Count normalization for gene expression data.

This module converts raw gene counts into FPKM values:

    FPKM[g, s] = count[g, s] / (length[g] * library_size[s] / 1e9)

Library sizes are either plain column sums or DESeq2 size factors scaled
to the geometric mean of the column sums (robust FPKM).
"""

import numpy as np
import pandas as pd
from pydeseq2.preprocessing import deseq2_norm

from .errors import InvalidInputError, AlignmentError, DegenerateInputError


def validate_counts(counts):
    """
    Check that a count matrix is numeric and non-negative.

    Args:
        counts (pd.DataFrame): Raw count matrix (genes x samples)

    Returns:
        pd.DataFrame: The counts as floats

    Raises:
        InvalidInputError: On non-numeric, missing or negative values,
            or duplicated gene identifiers
    """
    if counts.index.duplicated().any():
        dupes = list(counts.index[counts.index.duplicated()])[:5]
        raise InvalidInputError(f"Duplicated gene identifiers: {dupes}")

    numeric = counts.apply(pd.to_numeric, errors='coerce')
    bad = numeric.isna() & ~counts.isna()
    if bad.any().any():
        raise InvalidInputError("Count matrix contains non-numeric values")
    if numeric.isna().any().any():
        raise InvalidInputError("Count matrix contains missing values")
    if (numeric < 0).any().any():
        raise InvalidInputError("Count matrix contains negative counts")

    return numeric.astype(float)


def size_factors(counts):
    """
    DESeq2 median-of-ratios size factors.

    Args:
        counts (pd.DataFrame): Raw count matrix (genes x samples)

    Returns:
        pd.Series: One size factor per sample

    Raises:
        DegenerateInputError: If no gene is expressed in every sample
    """
    if not (counts > 0).all(axis=1).any():
        raise DegenerateInputError(
            "Size factors need at least one gene with non-zero counts in every sample"
        )

    _, factors = deseq2_norm(counts.T.to_numpy())
    return pd.Series(np.asarray(factors, dtype=float), index=counts.columns,
                     name='size_factor')


def library_sizes(counts, method='robust'):
    """
    Per-sample library sizes.

    Args:
        counts (pd.DataFrame): Raw count matrix (genes x samples)
        method (str): 'total' for column sums, 'robust' for size factors
                      times the geometric mean of the column sums

    Returns:
        pd.Series: Library size per sample
    """
    totals = counts.sum(axis=0)
    if (totals <= 0).any():
        empty = list(totals.index[totals <= 0])
        raise DegenerateInputError(f"Samples without any counts: {empty}")

    if method == 'total':
        return totals.rename('library_size')
    if method == 'robust':
        geo_mean = np.exp(np.mean(np.log(totals)))
        return (size_factors(counts) * geo_mean).rename('library_size')

    raise InvalidInputError(f"Unknown library size method: {method}")


def compute_fpkm(counts, gene_lengths, method='robust'):
    """
    Convert raw counts to FPKM.

    Args:
        counts (pd.DataFrame): Raw count matrix (genes x samples)
        gene_lengths (pd.Series): Gene length in bp, indexed by gene ID
        method (str): Library size model, see library_sizes

    Returns:
        pd.DataFrame: FPKM matrix with the same shape and labels as counts

    Raises:
        InvalidInputError: Malformed counts or non-positive lengths
        AlignmentError: Genes without a length
    """
    counts = validate_counts(counts)

    lengths = pd.Series(gene_lengths).reindex(counts.index)
    missing = lengths.index[lengths.isna()]
    if len(missing) > 0:
        raise AlignmentError(
            f"{len(missing)} genes have no length annotation, e.g. {list(missing[:5])}"
        )
    lengths = lengths.astype(float)
    if (lengths <= 0).any():
        raise InvalidInputError("Gene lengths must be positive")

    lib_sizes = library_sizes(counts, method=method)

    fpkm = counts.div(lengths, axis=0).div(lib_sizes, axis=1) * 1e9
    print(f"  [FPKM] {method} library sizes, matrix (genes x samples): {fpkm.shape}")
    return fpkm


def compute_fpkm_from_gtf(counts, gtf_path):
    """
    Convert raw counts to FPKM with gene lengths taken from a GTF file.

    Gene lengths are the union of exon lengths, as computed by rnanorm.

    Args:
        counts (pd.DataFrame): Raw count matrix (genes x samples)
        gtf_path (str): Path to a GTF (optionally gzipped) annotation

    Returns:
        pd.DataFrame: FPKM matrix (genes x samples)
    """
    from rnanorm import FPKM

    counts = validate_counts(counts)

    fpkm_calculator = FPKM(gtf=gtf_path)
    fpkm_calculator.set_output(transform="pandas")
    fpkm = fpkm_calculator.fit_transform(counts.T)
    return fpkm.T


def log_transform(fpkm):
    """Log2(x+1) transformation."""
    return np.log2(fpkm + 1)
