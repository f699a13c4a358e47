"""Tests for the recount3 client, using a mocked HTTP session."""

import gzip
from unittest.mock import MagicMock

import pandas as pd
import pytest
import requests

from gtex_kidney import data_loading
from gtex_kidney.data_loading import (
    available_projects,
    create_session,
    download,
    fetch_study,
    harmonize_metadata,
    load_dataset,
    parse_gene_annotation,
    rename_count_columns,
    save_dataset,
    dataset_cached,
    GTF_COLUMNS,
)
from gtex_kidney.errors import DataUnavailableError, InvalidInputError

CATALOG = (
    "rail_id\texternal_id\tstudy\tproject\n"
    "1\tSRR1\tKIDNEY\tKIDNEY\n"
    "2\tSRR2\tKIDNEY\tKIDNEY\n"
    "3\tSRR3\tLIVER\tLIVER\n"
)

GENE_SUMS = (
    "##annotation=G026\n"
    "##date.generated=2020-01-01\n"
    "gene_id\t1\t2\n"
    "ENSG01\t10\t20\n"
    "ENSG02\t0\t5\n"
)

GTEX_MD = (
    "rail_id\texternal_id\tstudy\tgtex.subjid\tgtex.sex\tgtex.age\tgtex.smtsd\n"
    "1\tSRR1\tKIDNEY\tGTEX-A\t1\t60-69\tKidney - Cortex\n"
    "2\tSRR2\tKIDNEY\tGTEX-B\t2\t50-59\tKidney - Medulla\n"
)

PROJECT_MD = (
    "rail_id\texternal_id\tstudy\tproject\torganism\n"
    "1\tSRR1\tKIDNEY\tKIDNEY\thuman\n"
    "2\tSRR2\tKIDNEY\tKIDNEY\thuman\n"
)

GTF = (
    "#!genome-build GRCh38\n"
    'chr1\tHAVANA\tgene\t100\t1099\t.\t+\t.\tgene_id "ENSG01"; bp_length 800; '
    'gene_type "protein_coding"; gene_name "ABC1";\n'
    'chr1\tHAVANA\texon\t100\t600\t.\t+\t.\tgene_id "ENSG01"; gene_name "ABC1";\n'
    'chr2\tHAVANA\tgene\t1\t2000\t.\t-\t.\tgene_id "ENSG02"; '
    'gene_type "lncRNA"; gene_name "XYZ2";\n'
)


def gz(text):
    return gzip.compress(text.encode())


def mock_session(files):
    """Session whose get() answers with the file whose name ends the URL."""
    def get(url, timeout=None):
        response = MagicMock()
        name = url.rsplit('/', 1)[-1]
        if name not in files:
            response.raise_for_status.side_effect = requests.HTTPError(f"404 {url}")
        else:
            response.content = gz(files[name])
        return response

    session = MagicMock()
    session.get.side_effect = get
    return session


@pytest.fixture
def recount3_session():
    return mock_session({
        'gtex.recount_project.MD.gz': CATALOG,
        'gtex.gene_sums.KIDNEY.G026.gz': GENE_SUMS,
        'gtex.gtex.KIDNEY.MD.gz': GTEX_MD,
        'gtex.recount_project.KIDNEY.MD.gz': PROJECT_MD,
        'human.gene_sums.G026.gtf.gz': GTF,
    })


def test_urls_follow_recount3_layout():
    assert data_loading.gene_sums_url('KIDNEY').endswith(
        '/human/data_sources/gtex/gene_sums/EY/KIDNEY/gtex.gene_sums.KIDNEY.G026.gz'
    )
    source_url, project_url = data_loading.metadata_urls('KIDNEY')
    assert source_url.endswith('/metadata/EY/KIDNEY/gtex.gtex.KIDNEY.MD.gz')
    assert project_url.endswith('/metadata/EY/KIDNEY/gtex.recount_project.KIDNEY.MD.gz')


def test_create_session_mounts_retries():
    session = create_session(max_retries=5)
    adapter = session.get_adapter('https://example.org')
    assert adapter.max_retries.total == 5
    assert 503 in adapter.max_retries.status_forcelist


def test_download_wraps_network_errors():
    session = MagicMock()
    session.get.side_effect = requests.ConnectionError("unreachable")
    with pytest.raises(DataUnavailableError) as excinfo:
        download('http://example.org/file.gz', session=session)
    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_available_projects(recount3_session):
    assert available_projects('KIDNEY', session=recount3_session) == ['KIDNEY']


def test_unknown_study_raises(recount3_session):
    with pytest.raises(DataUnavailableError):
        available_projects('BRAIN', session=recount3_session)


def test_fetch_study(recount3_session):
    counts, metadata, gene_lengths = fetch_study('KIDNEY', session=recount3_session)

    assert list(counts.columns) == ['SRR1', 'SRR2']
    assert list(counts.index) == ['ENSG01', 'ENSG02']
    assert counts.loc['ENSG01', 'SRR2'] == 20

    assert list(metadata.columns) == ['sample_id', 'subject_id', 'age', 'sex', 'tissue']
    assert list(metadata['sample_id']) == ['SRR1', 'SRR2']
    assert list(metadata['sex']) == ['1', '2']
    assert metadata.loc[1, 'tissue'] == 'Kidney - Medulla'

    assert gene_lengths['ENSG01'] == 800
    assert gene_lengths['ENSG02'] == 2000


def test_fetch_study_missing_file_raises():
    session = mock_session({'gtex.recount_project.MD.gz': CATALOG})
    with pytest.raises(DataUnavailableError):
        fetch_study('KIDNEY', session=session)


def test_parse_gene_annotation():
    rows = [line.split('\t') for line in GTF.strip().split('\n')[1:]]
    gtf = pd.DataFrame(rows, columns=GTF_COLUMNS)
    annotation = parse_gene_annotation(gtf)

    assert list(annotation.index) == ['ENSG01', 'ENSG02']
    assert annotation.loc['ENSG01', 'gene_name'] == 'ABC1'
    assert annotation.loc['ENSG02', 'gene_type'] == 'lncRNA'
    assert annotation.loc['ENSG01', 'bp_length'] == 800
    # falls back to the gene span
    assert annotation.loc['ENSG02', 'bp_length'] == 2000


def test_parse_gene_annotation_without_genes():
    gtf = pd.DataFrame([['chr1', 'x', 'exon', '1', '10', '.', '+', '.', 'gene_id "a";']],
                       columns=GTF_COLUMNS)
    with pytest.raises(InvalidInputError):
        parse_gene_annotation(gtf)


def test_rename_count_columns():
    counts = pd.DataFrame({'1': [1], '2': [2], 'other': [3]})
    meta = pd.DataFrame({'rail_id': ['1', '2'], 'external_id': ['SRR1', 'SRR2']})
    assert list(rename_count_columns(counts, meta).columns) == ['SRR1', 'SRR2', 'other']


def test_harmonize_metadata_missing_column():
    raw = pd.DataFrame({'external_id': ['a'], 'gtex.subjid': ['s']})
    with pytest.raises(InvalidInputError):
        harmonize_metadata(raw)


def test_harmonize_metadata_duplicated_samples():
    raw = pd.DataFrame({
        'external_id': ['a', 'a'], 'gtex.subjid': ['s', 't'], 'gtex.age': ['20-29'] * 2,
        'gtex.sex': ['1', '2'], 'gtex.smtsd': ['Kidney - Cortex'] * 2,
    })
    with pytest.raises(InvalidInputError):
        harmonize_metadata(raw)


def test_dataset_cache_round_trip(tmp_path, counts, metadata, gene_lengths):
    assert not dataset_cached(str(tmp_path), 'KIDNEY')
    save_dataset(counts, metadata, gene_lengths, str(tmp_path), 'KIDNEY')
    assert dataset_cached(str(tmp_path), 'KIDNEY')

    counts_2, metadata_2, lengths_2 = load_dataset(str(tmp_path), 'KIDNEY')
    pd.testing.assert_frame_equal(counts_2, counts, check_dtype=False)
    pd.testing.assert_frame_equal(metadata_2, metadata)
    assert list(lengths_2) == list(gene_lengths)


def test_load_dataset_without_cache(tmp_path):
    with pytest.raises(DataUnavailableError):
        load_dataset(str(tmp_path), 'KIDNEY')
