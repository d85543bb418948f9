"""
errors.py — exception taxonomy for the housedata pipeline.

Only PipelineError is fatal to a run. Every other error is scoped to a
single source, row, or batch: it is counted in RunStats and the run moves on.
"""

from __future__ import annotations


class HousedataError(Exception):
    """Base class for all housedata errors."""


class MalformedTableError(HousedataError):
    """A panel has no usable header (absent, blank, or duplicate names)."""


class ParseValueError(HousedataError):
    """A single row or cell cannot be used."""


class RetrievalError(HousedataError):
    """A source could not be fetched."""


class LoadError(HousedataError):
    """The target store rejected a batch."""


class MergeConflictError(HousedataError):
    """Two streams wrote the same metric for the same (region, period)."""


class PipelineError(HousedataError):
    """Structural run failure, e.g. no source could be retrieved."""
