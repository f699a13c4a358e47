"""
GTEx Kidney Sex-Differential Expression Pipeline

This package provides tools for exploring sex-associated gene expression
in GTEx kidney cortex samples retrieved from recount3.

Modules:
    - data_loading: Download and load data from recount3
    - normalization: Count validation and FPKM normalization
    - preprocessing: Sample filtering and mean-adjusted variance gene selection
    - decomposition: Principal component analysis
    - differential_expression: Rank tests, FDR correction and fold changes
    - visualization: Plotting and visualization
    - utils: Result storage and sample summaries
    - pipeline: End-to-end composition of the stages
    - config: Configuration settings
    - errors: Exception hierarchy
"""

from .errors import (
    PipelineError,
    DataUnavailableError,
    InvalidInputError,
    AlignmentError,
    DegenerateInputError,
)

from .config import (
    AnalysisConfig,
    TISSUE_SUBSITE,
    TOP_K_GENES,
    FDR_METHOD,
    TEST_ALTERNATIVE,
    RESULTS_DIR,
    DATA_DIR,
    print_config,
)

from .data_loading import (
    fetch_study,
    available_projects,
    read_rnaseq_data,
    read_meta_data,
    read_gene_annotation,
    harmonize_metadata,
    save_dataset,
    load_dataset,
)

from .normalization import (
    validate_counts,
    library_sizes,
    compute_fpkm,
    compute_fpkm_from_gtf,
    log_transform,
)

from .preprocessing import (
    relabel_sex,
    filter_tissue,
    deduplicate_subjects,
    align_columns,
    drop_zero_variance,
    compute_variance_profile,
    select_top_k,
    run_filter_data,
)

from .decomposition import (
    PCAResult,
    run_pca,
)

from .differential_expression import (
    rank_test,
    adjust_pvalues,
    log_fold_change,
    run_differential_expression,
    get_sig_genes,
    split_by_direction,
)

from .visualization import (
    plot_mean_variance,
    plot_2d_pca,
    plot_scree,
    plot_volcano,
    plot_gene_heatmap,
)

from .utils import (
    store_results,
    load_results,
    summarize_samples,
)

from .pipeline import run_pipeline

__version__ = '1.0.0'
