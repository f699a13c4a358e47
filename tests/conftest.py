"""Shared synthetic datasets for the pipeline tests."""

import matplotlib

matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

N_PER_SEX = 10
N_GENES = 100
SHIFTED_GENES = [f'GENE{i:03d}' for i in range(5)]


def make_metadata(n_per_sex=N_PER_SEX):
    """Cortex samples (one per subject) plus medulla and repeat samples."""
    rows = []
    for i in range(2 * n_per_sex):
        rows.append({
            'sample_id': f'S{i:02d}',
            'subject_id': f'GTEX-{i:03d}',
            'age': ['20-29', '40-49', '60-69'][i % 3],
            'sex': '2' if i < n_per_sex else '1',
            'tissue': 'Kidney - Cortex',
        })
    # second cortex sample of subject 0, dropped by deduplication
    rows.append({'sample_id': 'S90', 'subject_id': 'GTEX-000', 'age': '20-29',
                 'sex': '2', 'tissue': 'Kidney - Cortex'})
    # medulla samples, dropped by the tissue filter
    rows.append({'sample_id': 'S91', 'subject_id': 'GTEX-001', 'age': '40-49',
                 'sex': '2', 'tissue': 'Kidney - Medulla'})
    rows.append({'sample_id': 'S92', 'subject_id': 'GTEX-100', 'age': '60-69',
                 'sex': '1', 'tissue': 'Kidney - Medulla'})
    return pd.DataFrame(rows)


def make_counts(metadata, seed=0):
    """
    Counts with 5 genes strictly higher in female samples, one all-zero gene
    and the rest without any group difference.
    """
    rng = np.random.default_rng(seed)
    samples = list(metadata['sample_id'])
    female = (metadata['sex'] == '2').to_numpy()

    genes = [f'GENE{i:03d}' for i in range(N_GENES)]
    counts = rng.integers(100, 600, size=(N_GENES, len(samples)))

    for i in range(len(SHIFTED_GENES)):
        counts[i, ~female] = rng.integers(100, 200, size=(~female).sum())
        counts[i, female] = rng.integers(1000, 1200, size=female.sum())

    counts = pd.DataFrame(counts, index=genes, columns=samples)
    counts.loc['GENE_ZERO'] = 0
    counts.index.name = 'gene_id'
    return counts


def make_gene_lengths(counts, seed=1):
    rng = np.random.default_rng(seed)
    return pd.Series(rng.integers(500, 5000, size=len(counts)),
                     index=counts.index, name='bp_length')


@pytest.fixture
def metadata():
    return make_metadata()


@pytest.fixture
def counts(metadata):
    return make_counts(metadata)


@pytest.fixture
def gene_lengths(counts):
    return make_gene_lengths(counts)


@pytest.fixture
def fake_fetch(counts, metadata, gene_lengths):
    def fetch(study_id):
        return counts.copy(), metadata.copy(), gene_lengths.copy()
    return fetch


@pytest.fixture
def de_dataset():
    """
    20 samples (10 female, 10 male) x 100 genes of FPKM-like values.

    The first 5 genes are strictly higher in females; the other 95 are
    drawn from one distribution for both groups.
    """
    rng = np.random.default_rng(42)
    samples = [f'S{i:02d}' for i in range(2 * N_PER_SEX)]
    sexes = ['female'] * N_PER_SEX + ['male'] * N_PER_SEX
    genes = [f'GENE{i:03d}' for i in range(N_GENES)]

    values = rng.uniform(10, 60, size=(N_GENES, len(samples)))
    values[:5, :N_PER_SEX] = rng.uniform(80, 100, size=(5, N_PER_SEX))
    values[:5, N_PER_SEX:] = rng.uniform(10, 20, size=(5, N_PER_SEX))

    df = pd.DataFrame(values, index=genes, columns=samples)
    meta = pd.DataFrame({'sample_id': samples, 'subject_id': samples, 'sex': sexes,
                         'age': '50-59', 'tissue': 'Kidney - Cortex'})
    return df, meta


@pytest.fixture
def expression():
    """Positive genes x samples matrix with a mean-dependent variance."""
    rng = np.random.default_rng(7)
    means = np.exp(rng.uniform(0, 8, size=200))
    values = rng.gamma(shape=4.0, scale=means[:, None] / 4.0, size=(200, 12)) + 0.01
    return pd.DataFrame(values,
                        index=[f'G{i:03d}' for i in range(200)],
                        columns=[f'S{j:02d}' for j in range(12)])
