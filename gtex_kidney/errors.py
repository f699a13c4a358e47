"""
Exceptions raised by the pipeline stages.

Data integrity errors are fatal: they propagate to the caller and halt
the run rather than coercing sample metadata.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class DataUnavailableError(PipelineError, RuntimeError):
    """The study is not in the catalog or the remote endpoint failed."""


class InvalidInputError(PipelineError, ValueError):
    """Malformed input: unknown codes, negative or non-numeric counts."""


class AlignmentError(PipelineError, ValueError):
    """Sample or gene keys of two tables do not match."""


class DegenerateInputError(PipelineError, ValueError):
    """A computation cannot proceed, e.g. too few samples or constant data."""
