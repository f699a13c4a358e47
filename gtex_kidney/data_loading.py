"""
Data loading utilities for recount3 RNA-seq datasets.

This module handles downloading and loading data from the recount3
resource, including gene count matrices, GTEx sample metadata and the
gene annotation that provides gene lengths.
"""

import io
import os
import re

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import (
    RECOUNT3_URL, ORGANISM, DATA_SOURCE, ANNOTATION,
    MAX_RETRIES, BACKOFF_FACTOR, RETRY_STATUSES, REQUEST_TIMEOUT,
    METADATA_COLUMNS,
)
from .errors import DataUnavailableError, InvalidInputError

GTF_COLUMNS = ['seqname', 'source', 'feature', 'start', 'end',
               'score', 'strand', 'frame', 'attribute']

_ATTRIBUTE_RE = re.compile(r'(\w+) "?([^";]*)"?;')


def create_session(max_retries=MAX_RETRIES, backoff_factor=BACKOFF_FACTOR,
                   status_forcelist=RETRY_STATUSES):
    """
    Create a requests Session that retries transient server errors.

    Args:
        max_retries (int): Maximum retry attempts
        backoff_factor (float): Backoff multiplier between retries
        status_forcelist (tuple): HTTP status codes that trigger retries

    Returns:
        requests.Session: Configured session
    """
    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=('GET',),
    )
    adapter = HTTPAdapter(max_retries=retries)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session


def download(url, session=None, timeout=REQUEST_TIMEOUT):
    """
    Download a file and return its raw bytes.

    Raises:
        DataUnavailableError: If the endpoint is unreachable or answers
            with an error status after retries.
    """
    if session is None:
        session = create_session()

    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise DataUnavailableError(f"Could not download {url}: {e}") from e

    return response.content


def project_path(project):
    """Directory of a recount3 project, e.g. 'KIDNEY' -> '.../EY/KIDNEY'."""
    return f'{project[-2:]}/{project}'


def catalog_url(data_source=DATA_SOURCE):
    return (f'{RECOUNT3_URL}/{ORGANISM}/data_sources/{data_source}/'
            f'metadata/{data_source}.recount_project.MD.gz')


def gene_sums_url(project, data_source=DATA_SOURCE, annotation=ANNOTATION):
    return (f'{RECOUNT3_URL}/{ORGANISM}/data_sources/{data_source}/gene_sums/'
            f'{project_path(project)}/'
            f'{data_source}.gene_sums.{project}.{annotation}.gz')


def metadata_urls(project, data_source=DATA_SOURCE):
    base = (f'{RECOUNT3_URL}/{ORGANISM}/data_sources/{data_source}/metadata/'
            f'{project_path(project)}')
    return (
        f'{base}/{data_source}.{data_source}.{project}.MD.gz',
        f'{base}/{data_source}.recount_project.{project}.MD.gz',
    )


def annotation_url(annotation=ANNOTATION):
    return (f'{RECOUNT3_URL}/{ORGANISM}/annotations/gene_sums/'
            f'{ORGANISM}.gene_sums.{annotation}.gtf.gz')


def read_table(url, session=None, **kwargs):
    """Download a gzipped tab-separated file into a DataFrame."""
    content = download(url, session=session)
    return pd.read_csv(io.BytesIO(content), sep='\t', compression='gzip', **kwargs)


def available_projects(study_id, data_source=DATA_SOURCE, session=None):
    """
    List the recount3 projects belonging to a study.

    Args:
        study_id (str): Study identifier (e.g., 'KIDNEY')
        data_source (str): recount3 data source ('gtex', 'sra', 'tcga')
        session (requests.Session): Optional session to reuse

    Returns:
        list: Project identifiers

    Raises:
        DataUnavailableError: If the study is not in the catalog
    """
    catalog = read_table(catalog_url(data_source), session=session, dtype=str)

    matches = catalog[catalog['study'] == study_id]
    projects = list(dict.fromkeys(matches['project']))

    if not projects:
        raise DataUnavailableError(
            f"Study {study_id} not found in the {data_source} catalog"
        )

    return projects


def read_rnaseq_data(project, data_source=DATA_SOURCE, annotation=ANNOTATION,
                     session=None):
    """
    Download the gene-level raw count matrix of a project.

    Returns:
        pd.DataFrame: Count matrix (genes x samples), columns keyed by rail_id
    """
    counts = read_table(
        gene_sums_url(project, data_source, annotation),
        session=session,
        comment='#',
        index_col=0,
    )
    counts.index.name = 'gene_id'
    counts.columns = [str(c) for c in counts.columns]
    return counts


def read_meta_data(project, data_source=DATA_SOURCE, session=None):
    """
    Download and merge the sample metadata of a project.

    The source-specific table (GTEx sample attributes) is joined with the
    recount3 project table on 'rail_id'.

    Returns:
        pd.DataFrame: Metadata with one row per sample, all values as strings
    """
    source_url, project_url = metadata_urls(project, data_source)
    source_md = read_table(source_url, session=session, dtype=str)
    project_md = read_table(project_url, session=session, dtype=str)

    metadata = source_md.merge(
        project_md, on='rail_id', how='left', suffixes=('', '_project')
    )
    return metadata


def parse_gene_annotation(gtf):
    """
    Extract gene lengths and names from GTF records.

    Args:
        gtf (pd.DataFrame): GTF table with the nine standard columns

    Returns:
        pd.DataFrame: Indexed by gene_id with 'gene_name', 'gene_type'
                      and 'bp_length' columns
    """
    genes = gtf[gtf['feature'] == 'gene']
    if genes.empty:
        raise InvalidInputError("GTF contains no gene records")

    attributes = pd.DataFrame(
        [dict(_ATTRIBUTE_RE.findall(attr)) for attr in genes['attribute']],
        index=genes.index,
    )
    if 'gene_id' not in attributes:
        raise InvalidInputError("GTF gene records carry no gene_id attribute")

    span = genes['end'].astype(int) - genes['start'].astype(int) + 1
    if 'bp_length' in attributes:
        bp_length = pd.to_numeric(attributes['bp_length'], errors='coerce')
        bp_length = bp_length.fillna(span)
    else:
        bp_length = span

    annotation = pd.DataFrame({
        'gene_id': attributes['gene_id'],
        'gene_name': attributes.get('gene_name', attributes['gene_id']),
        'gene_type': attributes.get('gene_type', pd.Series('', index=genes.index)),
        'bp_length': bp_length.astype(int),
    })
    annotation = annotation.drop_duplicates('gene_id').set_index('gene_id')
    return annotation


def read_gene_annotation(annotation=ANNOTATION, session=None):
    """
    Download the gene annotation of the gene_sums files.

    Returns:
        pd.DataFrame: See parse_gene_annotation
    """
    gtf = read_table(
        annotation_url(annotation),
        session=session,
        comment='#',
        header=None,
        names=GTF_COLUMNS,
        dtype={'seqname': str},
    )
    return parse_gene_annotation(gtf)


def rename_count_columns(counts, metadata):
    """
    Key count columns by GTEx sample ID instead of recount3 rail_id.

    Columns that are already sample IDs are left unchanged.
    """
    if 'rail_id' not in metadata or 'external_id' not in metadata:
        return counts

    mapping = dict(zip(metadata['rail_id'].astype(str),
                       metadata['external_id'].astype(str)))
    return counts.rename(columns=lambda c: mapping.get(str(c), c))


def harmonize_metadata(metadata, columns=METADATA_COLUMNS):
    """
    Rename source metadata columns to the pipeline's column names.

    Args:
        metadata (pd.DataFrame): Raw recount3 metadata
        columns (dict): Harmonized name -> source column

    Returns:
        pd.DataFrame: Columns sample_id, subject_id, age, sex, tissue
                      in the original row order

    Raises:
        InvalidInputError: If a required column is missing or sample
            IDs are duplicated
    """
    missing = [src for src in columns.values() if src not in metadata.columns]
    if missing:
        raise InvalidInputError(f"Metadata is missing columns: {missing}")

    harmonized = metadata[list(columns.values())].copy()
    harmonized.columns = list(columns.keys())
    harmonized = harmonized.reset_index(drop=True)

    if harmonized['sample_id'].duplicated().any():
        dupes = harmonized.loc[harmonized['sample_id'].duplicated(), 'sample_id']
        raise InvalidInputError(f"Duplicated sample IDs: {list(dupes)[:5]}")

    return harmonized


def fetch_study(study_id, data_source=DATA_SOURCE, annotation=ANNOTATION,
                session=None):
    """
    Fetch counts, sample metadata and gene lengths for a study.

    Args:
        study_id (str): Study identifier (e.g., 'KIDNEY')
        data_source (str): recount3 data source
        annotation (str): Gene annotation code (e.g., 'G026')
        session (requests.Session): Optional session to reuse

    Returns:
        tuple: (counts, metadata, gene_lengths)
            - counts: Raw count matrix (genes x samples)
            - metadata: Harmonized sample metadata
            - gene_lengths: pd.Series of gene lengths in bp

    Raises:
        DataUnavailableError: If the study is absent or a download fails
    """
    if session is None:
        session = create_session()

    print(f"Fetching {data_source}/{study_id} from recount3")
    projects = available_projects(study_id, data_source, session=session)

    count_list = []
    meta_list = []
    for project in projects:
        raw_meta = read_meta_data(project, data_source, session=session)
        counts = read_rnaseq_data(project, data_source, annotation, session=session)
        count_list.append(rename_count_columns(counts, raw_meta))
        meta_list.append(raw_meta)
        print(f"  [{project}] counts (genes x samples): {counts.shape}")

    counts = pd.concat(count_list, axis=1) if len(count_list) > 1 else count_list[0]
    metadata = harmonize_metadata(pd.concat(meta_list, ignore_index=True))

    gene_info = read_gene_annotation(annotation, session=session)
    gene_lengths = gene_info['bp_length'].reindex(counts.index)

    print(f"  Metadata shape: {metadata.shape}")
    print(f"  Genes with length: {gene_lengths.notna().sum()}/{len(gene_lengths)}")

    return counts, metadata, gene_lengths


def save_dataset(counts, metadata, gene_lengths, data_dir, study_id):
    """Cache a fetched dataset as CSV files in data_dir."""
    os.makedirs(data_dir, exist_ok=True)

    counts.to_csv(os.path.join(data_dir, f'{study_id}_counts.csv.gz'))
    metadata.to_csv(os.path.join(data_dir, f'{study_id}_metadata.csv'), index=False)
    gene_lengths.rename('bp_length').to_csv(
        os.path.join(data_dir, f'{study_id}_gene_lengths.csv')
    )

    print(f"Dataset {study_id} saved to {data_dir}")


def dataset_cached(data_dir, study_id):
    return all(
        os.path.exists(os.path.join(data_dir, f'{study_id}_{name}'))
        for name in ('counts.csv.gz', 'metadata.csv', 'gene_lengths.csv')
    )


def load_dataset(data_dir, study_id):
    """
    Load a dataset cached by save_dataset.

    Returns:
        tuple: (counts, metadata, gene_lengths)

    Raises:
        DataUnavailableError: If the cache is incomplete
    """
    if not dataset_cached(data_dir, study_id):
        raise DataUnavailableError(f"No cached dataset {study_id} in {data_dir}")

    counts = pd.read_csv(os.path.join(data_dir, f'{study_id}_counts.csv.gz'),
                         index_col=0)
    metadata = pd.read_csv(os.path.join(data_dir, f'{study_id}_metadata.csv'),
                           dtype=str)
    gene_lengths = pd.read_csv(
        os.path.join(data_dir, f'{study_id}_gene_lengths.csv'), index_col=0
    )['bp_length']

    return counts, metadata, gene_lengths
