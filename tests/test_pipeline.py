"""End-to-end tests of the pipeline on a synthetic study."""

import pytest

from gtex_kidney.config import AnalysisConfig
from gtex_kidney.errors import DataUnavailableError, InvalidInputError, DegenerateInputError
from gtex_kidney.pipeline import run_pipeline

SHIFTED = [f'GENE{i:03d}' for i in range(5)]


def test_reference_scenario(fake_fetch):
    results = run_pipeline(AnalysisConfig(top_k_genes=1000), fetch=fake_fetch)

    X = results['fpkm']
    meta = results['metadata']
    res = results['de_results']

    assert results['errors'] == {}
    assert X.shape == (100, 20)
    assert list(X.columns) == list(meta['sample_id'])
    assert meta['subject_id'].value_counts().eq(1).all()
    assert (meta['tissue'] == 'Kidney - Cortex').all()

    # the all-zero gene never reaches the tests
    assert 'GENE_ZERO' not in res.index
    assert 'GENE_ZERO' not in results['variance_profile'].index

    assert set(res.index[:5]) == set(SHIFTED)
    assert (res.loc[SHIFTED, 'logFC'] > 0).all()
    assert results['pca'].explained_variance_ratio.sum() == pytest.approx(1.0)


def test_top_k_limits_both_stages(fake_fetch):
    results = run_pipeline(AnalysisConfig(top_k_genes=30), fetch=fake_fetch)

    assert results['fpkm'].shape[0] == 30
    assert len(results['de_results']) == 30
    assert results['pca'].loadings.shape[0] == 30


def test_repeated_runs_select_same_genes(fake_fetch):
    config = AnalysisConfig(top_k_genes=25)
    first = run_pipeline(config, fetch=fake_fetch)
    second = run_pipeline(config, fetch=fake_fetch)
    assert list(first['fpkm'].index) == list(second['fpkm'].index)


def test_degenerate_stage_does_not_abort_the_other(counts, metadata, gene_lengths):
    metadata = metadata.assign(sex='1')

    def fetch(study_id):
        return counts, metadata, gene_lengths

    results = run_pipeline(AnalysisConfig(top_k_genes=50), fetch=fetch)

    assert results['de_results'] is None
    assert isinstance(results['errors']['de_results'], DegenerateInputError)
    assert results['pca'] is not None


def test_invalid_sex_code_halts(counts, metadata, gene_lengths):
    metadata.loc[0, 'sex'] = '9'

    def fetch(study_id):
        return counts, metadata, gene_lengths

    with pytest.raises(InvalidInputError):
        run_pipeline(fetch=fetch)


def test_fetch_errors_propagate():
    def fetch(study_id):
        raise DataUnavailableError(f"{study_id} not found")

    with pytest.raises(DataUnavailableError):
        run_pipeline(AnalysisConfig(study_id='NOPE'), fetch=fetch)
