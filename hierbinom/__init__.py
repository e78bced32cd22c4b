"""
hierbinom: Hierarchical Beta-Binomial Models via Metropolis-within-Gibbs

Estimate per-unit success probabilities that are partially pooled toward
known reference proportions, with a custom sampler that draws each unit's
probability exactly from its Beta full conditional and updates the shared
concentration by random-walk Metropolis.
"""

from .version import __version__, __author__, __description__
from .analysis import HierarchicalAnalysis
from .config import SamplerConfig
from .data import BinomialUnits, load_clutch_free_throws
from .exceptions import (
    HierBinomError,
    InvalidInput,
    InsufficientSamples,
    NumericalDegeneracy
)
from .sampler import run, summarize

__all__ = [
    'HierarchicalAnalysis',
    'SamplerConfig',
    'BinomialUnits',
    'load_clutch_free_throws',
    'HierBinomError',
    'InvalidInput',
    'InsufficientSamples',
    'NumericalDegeneracy',
    'run',
    'summarize',
    '__version__',
    '__author__',
    '__description__',
]
