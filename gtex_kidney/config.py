"""
Configuration settings for the GTEx kidney expression pipeline.

This module centralizes all analysis constants and per-run options
to ensure reproducibility and easy modification.
"""

from dataclasses import dataclass, asdict

from .errors import InvalidInputError

# =============================================================================
# DATA SOURCE (recount3)
# =============================================================================
RECOUNT3_URL = 'http://duffel.rail.bio/recount3'

# Organism, data source and study for the reference run
ORGANISM = 'human'
DATA_SOURCE = 'gtex'
STUDY_ID = 'KIDNEY'

# Gene annotation used by the gene_sums files
# Options: 'G026' (GENCODE v26), 'G029' (GENCODE v29)
ANNOTATION = 'G026'

# =============================================================================
# HTTP
# =============================================================================
MAX_RETRIES = 3
BACKOFF_FACTOR = 0.5
RETRY_STATUSES = (500, 502, 503, 504)

# Seconds to wait for connect/read before giving up
REQUEST_TIMEOUT = 120

# =============================================================================
# SAMPLE METADATA
# =============================================================================
# Harmonized column name -> GTEx column in the recount3 metadata
METADATA_COLUMNS = {
    'sample_id': 'external_id',
    'subject_id': 'gtex.subjid',
    'age': 'gtex.age',
    'sex': 'gtex.sex',
    'tissue': 'gtex.smtsd',
}

# GTEx sex codes
SEX_CODES = {'1': 'male', '2': 'female'}

# =============================================================================
# FILTERING
# =============================================================================
TISSUE_SUBSITE = 'Kidney - Cortex'

# Number of genes kept after mean-adjusted variance ranking
TOP_K_GENES = 5000

# Smoother for the log2(variance) ~ log2(mean) trend
SPLINE_DF = 10
SPLINE_DEGREE = 3
SPLINE_ALPHA = 1.0

# Library size model: 'robust' (size factors) or 'total' (column sums)
NORMALIZATION = 'robust'

# =============================================================================
# DIFFERENTIAL EXPRESSION
# =============================================================================
# Multiple testing correction (R p.adjust names)
FDR_METHOD = 'fdr'
FDR_METHODS = {
    'fdr': 'fdr_bh',
    'BH': 'fdr_bh',
    'BY': 'fdr_by',
    'bonferroni': 'bonferroni',
    'holm': 'holm',
    'hochberg': 'simes-hochberg',
    'none': None,
}

TEST_ALTERNATIVE = 'two-sided'
TEST_ALTERNATIVES = ('two-sided', 'less', 'greater')

# Group order for the rank test and fold change (first minus second)
GROUPS = ('female', 'male')

# Thresholds for the reported gene lists
ALPHA = 0.05
L2FC = 0

# Workers for the per-gene test loop
N_JOBS = 1

# =============================================================================
# FILE PATHS
# =============================================================================
# Output directory for results
RESULTS_DIR = 'results'

# Data directory for cached downloads
DATA_DIR = 'data'

# =============================================================================
# VISUALIZATION
# =============================================================================
SEX_COLORS = {
    'male': 'navy',
    'female': 'red'
}

# Plot DPI for saved figures
PLOT_DPI = 300


@dataclass
class AnalysisConfig:
    """
    Options for a single run of the pipeline.

    Defaults reproduce the reference run on the GTEx kidney cortex samples.
    """
    tissue_subsite: str = TISSUE_SUBSITE
    top_k_genes: int = TOP_K_GENES
    fdr_method: str = FDR_METHOD
    test_alternative: str = TEST_ALTERNATIVE
    normalization: str = NORMALIZATION
    spline_df: int = SPLINE_DF
    spline_alpha: float = SPLINE_ALPHA
    pca_log_transform: bool = False
    alpha: float = ALPHA
    l2fc: float = L2FC
    n_jobs: int = N_JOBS
    study_id: str = STUDY_ID
    data_source: str = DATA_SOURCE
    annotation: str = ANNOTATION

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise InvalidInputError if any option is out of range."""
        if int(self.top_k_genes) < 1:
            raise InvalidInputError(
                f"top_k_genes must be positive, got {self.top_k_genes}"
            )
        if self.fdr_method not in FDR_METHODS:
            raise InvalidInputError(
                f"Unknown fdr_method: {self.fdr_method}. "
                f"Use one of {sorted(FDR_METHODS)}"
            )
        if self.test_alternative not in TEST_ALTERNATIVES:
            raise InvalidInputError(
                f"Unknown test_alternative: {self.test_alternative}"
            )
        if self.normalization not in ('robust', 'total'):
            raise InvalidInputError(
                f"Unknown normalization: {self.normalization}. "
                "Use 'robust' or 'total'."
            )
        if int(self.spline_df) <= SPLINE_DEGREE:
            raise InvalidInputError(
                f"spline_df must exceed the spline degree ({SPLINE_DEGREE})"
            )
        if not 0 < self.alpha <= 1:
            raise InvalidInputError(f"alpha must be in (0, 1], got {self.alpha}")
        if self.n_jobs == 0:
            raise InvalidInputError("n_jobs must be non-zero")

    def to_dict(self):
        return asdict(self)


def print_config(config=None):
    """Print current configuration settings."""
    if config is None:
        config = AnalysisConfig()

    print("=" * 60)
    print("CURRENT CONFIGURATION")
    print("=" * 60)
    print(f"Study: {config.data_source}/{config.study_id} ({config.annotation})")
    print(f"Tissue subsite: {config.tissue_subsite}")
    print(f"Normalization: {config.normalization}")
    print(f"Top-K genes: {config.top_k_genes}")
    print(f"Spline df / alpha: {config.spline_df} / {config.spline_alpha}")
    print(f"PCA on log2 values: {config.pca_log_transform}")
    print(f"Rank test alternative: {config.test_alternative}")
    print(f"FDR method: {config.fdr_method}")
    print(f"Significance: alpha={config.alpha}, l2fc={config.l2fc}")
    print(f"Workers: {config.n_jobs}")
    print("=" * 60)
