"""
Posterior Summaries

Reduce the post-burn-in suffix of a samples matrix to point and interval
estimates. Every function here is a pure function of its inputs.
"""

from typing import List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from ..config import CREDIBLE_MASS
from ..exceptions import InvalidInput, InsufficientSamples


class PosteriorSummary(NamedTuple):
    """
    Attributes
    ----------
    means : np.ndarray, shape (P,)
        Posterior mean per parameter
    intervals : np.ndarray, shape (P, 2)
        Lower and upper credible bounds per parameter
    """

    means: np.ndarray
    intervals: np.ndarray


def post_burn_in(samples: np.ndarray, burn_in: int) -> np.ndarray:
    """Drop the first ``burn_in`` draws."""
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim != 2:
        raise InvalidInput(
            'samples', f"expected a 2-D (draws, parameters) array, got shape {samples.shape}"
        )
    if burn_in < 0:
        raise InvalidInput('burn_in', f"must be >= 0, got {burn_in}")
    if burn_in >= samples.shape[0]:
        raise InsufficientSamples(samples.shape[0], burn_in)
    return samples[burn_in:]


def summarize(
    samples: np.ndarray,
    burn_in: int,
    cred_mass: float = CREDIBLE_MASS
) -> PosteriorSummary:
    """
    Posterior mean and equal-tailed credible interval per column.

    Percentiles use linear interpolation between order statistics, so the
    default 95% interval is (2.5th, 97.5th) percentile.

    Parameters
    ----------
    samples : np.ndarray, shape (S, P)
        Draws, one row per iteration
    burn_in : int
        Number of leading rows to discard
    cred_mass : float, optional (default=0.95)
        Probability mass of the interval

    Returns
    -------
    summary : PosteriorSummary

    Raises
    ------
    InsufficientSamples
        If burn_in >= S
    """
    if not 0 < cred_mass < 1:
        raise InvalidInput('cred_mass', f"must be in (0, 1), got {cred_mass}")

    kept = post_burn_in(samples, burn_in)
    tail = 100 * (1 - cred_mass) / 2

    means = kept.mean(axis=0)
    intervals = np.percentile(kept, [tail, 100 - tail], axis=0, method='linear').T

    return PosteriorSummary(means=means, intervals=intervals)


def summary_frame(
    samples: np.ndarray,
    burn_in: int,
    names: Optional[Sequence[str]] = None,
    cred_mass: float = CREDIBLE_MASS
) -> pd.DataFrame:
    """
    Summary table with columns mean, sd, lower, upper.

    Parameters
    ----------
    samples : np.ndarray, shape (S, P)
    burn_in : int
    names : sequence of str, optional
        Parameter labels. Defaults to column positions.
    cred_mass : float, optional (default=0.95)

    Returns
    -------
    summary : pd.DataFrame
        Indexed by parameter name
    """
    kept = post_burn_in(samples, burn_in)
    summary = summarize(samples, burn_in, cred_mass=cred_mass)
    names = _check_names(names, kept.shape[1])

    return pd.DataFrame(
        {
            'mean': summary.means,
            'sd': kept.std(axis=0, ddof=1) if len(kept) > 1 else np.zeros(kept.shape[1]),
            'lower': summary.intervals[:, 0],
            'upper': summary.intervals[:, 1],
        },
        index=pd.Index(names, name='parameter')
    )


def prob_below_reference(
    samples: np.ndarray,
    burn_in: int,
    q: Sequence[float]
) -> np.ndarray:
    """
    Posterior probability that theta_i < q_i for every unit.

    For the free-throw data this is the probability that a player shoots
    worse in the clutch than overall.

    Parameters
    ----------
    samples : np.ndarray, shape (S, K + 1)
        theta columns first, m last
    burn_in : int
    q : sequence of float, length K

    Returns
    -------
    probs : np.ndarray, shape (K,)
    """
    kept = post_burn_in(samples, burn_in)
    q = np.asarray(q, dtype=np.float64)
    if kept.shape[1] != len(q) + 1:
        raise InvalidInput(
            'q', f"expected {kept.shape[1] - 1} reference values, got {len(q)}"
        )
    return (kept[:, :len(q)] < q).mean(axis=0)


def shrinkage_frame(data, summary: PosteriorSummary) -> pd.DataFrame:
    """
    Compare raw proportions, reference proportions and posterior means.

    ``pull_to_reference`` is the fraction of the gap between y/n and q closed
    by the posterior mean (0 = no pooling, 1 = full pooling to q).
    """
    theta_mean = summary.means[:data.K]
    raw = data.raw_proportion
    gap = data.q - raw

    with np.errstate(divide='ignore', invalid='ignore'):
        pull = np.where(gap != 0, (theta_mean - raw) / gap, np.nan)

    frame = data.to_frame()
    frame['posterior_mean'] = theta_mean
    frame['lower'] = summary.intervals[:data.K, 0]
    frame['upper'] = summary.intervals[:data.K, 1]
    frame['pull_to_reference'] = pull
    return frame


def _check_names(names: Optional[Sequence[str]], n_params: int) -> List[str]:
    if names is None:
        return [str(j) for j in range(n_params)]
    names = list(names)
    if len(names) != n_params:
        raise InvalidInput(
            'names', f"expected {n_params} parameter names, got {len(names)}"
        )
    return names
