"""
Metropolis-within-Gibbs Sampler for the Hierarchical Beta-Binomial Model

Model for units i = 1, ..., K:

    y_i | theta_i  ~ Binomial(n_i, theta_i)
    theta_i | m    ~ Beta(e^m q_i, e^m (1 - q_i))
    m              ~ Normal(prior_mean, sqrt(prior_var))

Each iteration draws every theta_i exactly from its conjugate full
conditional, then updates the shared concentration m with one random-walk
Metropolis step evaluated at the just-drawn theta.

"""

import warnings
from dataclasses import dataclass, replace
from typing import List, NamedTuple, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from ..config import ACCEPT_RATE_WINDOW, TARGET_ACCEPT_RATE, SamplerConfig
from ..data import BinomialUnits
from ..exceptions import NumericalDegeneracy
from .summary import summarize

RandomSource = Union[None, int, np.random.Generator]


@dataclass(frozen=True)
class SamplerState:
    """
    Chain state after a number of completed iterations.

    Attributes
    ----------
    theta : np.ndarray, shape (K,)
        Current draw of each unit's success probability
    m : float
        Current draw of the log-concentration hyperparameter
    iteration : int
        Number of completed iterations
    accept_count : int
        Number of accepted Metropolis proposals for m so far
    """

    theta: np.ndarray
    m: float
    iteration: int = 0
    accept_count: int = 0

    @classmethod
    def initial(cls, K: int, init_theta: float = 0.5, init_m: float = 1.0) -> "SamplerState":
        return cls(theta=np.full(K, float(init_theta)), m=float(init_m))

    def as_row(self) -> np.ndarray:
        """Record layout: (theta_1, ..., theta_K, m)."""
        return np.append(self.theta, self.m)


class SamplerResult(NamedTuple):
    """Output of :func:`run`."""

    samples: np.ndarray
    accept_ratio: float
    posterior_means: np.ndarray
    posterior_intervals: np.ndarray


def make_rng(random_source: RandomSource = None) -> np.random.Generator:
    """Return a Generator, seeding a new one from an int or None."""
    if isinstance(random_source, np.random.Generator):
        return random_source
    return np.random.default_rng(random_source)


def parameter_names(data: BinomialUnits) -> List[str]:
    """Column labels of the samples matrix."""
    return [f"theta[{name}]" for name in data.names] + ['m']


def prior_shapes(m: float, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Beta prior shapes (e^m q, e^m (1 - q)) of every unit given m."""
    with np.errstate(over='ignore', under='ignore'):
        scale = np.exp(m)
    return scale * q, scale * (1.0 - q)


def draw_theta(
    m: float,
    data: BinomialUnits,
    rng: np.random.Generator,
    iteration: Optional[int] = None
) -> np.ndarray:
    """
    Gibbs step: draw every theta_i from its exact full conditional.

    theta_i | m, y ~ Beta(e^m q_i + y_i, e^m (1 - q_i) + n_i - y_i)

    All K draws come from a single vectorized call, so the random stream
    consumed per iteration does not depend on evaluation order.

    Raises
    ------
    NumericalDegeneracy
        If a posterior shape is non-finite or non-positive, or a draw is
        not strictly inside (0, 1)
    """
    alpha, beta = prior_shapes(m, data.q)
    alpha_post = alpha + data.y
    beta_post = beta + (data.n - data.y)

    for name, shape in (('alpha', alpha_post), ('beta', beta_post)):
        bad = np.flatnonzero(~np.isfinite(shape) | (shape <= 0))
        if bad.size:
            i = int(bad[0])
            raise NumericalDegeneracy(
                f"Beta posterior {name}={shape[i]!r} is invalid for m={m!r}",
                iteration=iteration,
                unit=i
            )

    theta = rng.beta(alpha_post, beta_post)

    bad = np.flatnonzero(~((theta > 0) & (theta < 1)))
    if bad.size:
        i = int(bad[0])
        raise NumericalDegeneracy(
            f"theta draw {theta[i]!r} is not strictly inside (0, 1) "
            f"(alpha={alpha_post[i]!r}, beta={beta_post[i]!r})",
            iteration=iteration,
            unit=i
        )

    return theta


def log_posterior_m(
    m: float,
    theta: np.ndarray,
    data: BinomialUnits,
    prior_mean: float = 0.0,
    prior_var: float = 10.0
) -> float:
    """
    Unnormalized log density of m given theta and the data.

    log N(m; prior_mean, sqrt(prior_var))
        + sum_i [log Binom(y_i; n_i, theta_i) + log Beta(theta_i; e^m q_i, e^m (1-q_i))]

    The binomial term does not depend on m and cancels in the Metropolis
    ratio as long as both ends are evaluated at the same theta.
    """
    alpha, beta = prior_shapes(m, data.q)
    log_prior = stats.norm.logpdf(m, loc=prior_mean, scale=np.sqrt(prior_var))
    log_lik = stats.binom.logpmf(data.y, data.n, theta).sum()
    log_theta = stats.beta.logpdf(theta, alpha, beta).sum()
    return float(log_prior + log_lik + log_theta)


def acceptance_probability(log_post_current: float, log_post_candidate: float) -> float:
    """
    Metropolis acceptance probability min(1, exp(lp' - lp)).

    The random-walk proposal is symmetric, so there is no Hastings term.
    """
    log_ratio = log_post_candidate - log_post_current
    if log_ratio >= 0:
        return 1.0
    return float(np.exp(log_ratio))


def update_m(
    m: float,
    theta: np.ndarray,
    data: BinomialUnits,
    rng: np.random.Generator,
    proposal_sd: float,
    prior_mean: float = 0.0,
    prior_var: float = 10.0,
    iteration: Optional[int] = None
) -> Tuple[float, bool]:
    """
    Metropolis step for m with a Normal(m, proposal_sd) proposal.

    Both log posteriors are evaluated at the same ``theta``. The candidate
    is accepted iff log(u) < lp(m') - lp(m), u ~ Uniform(0, 1).

    Returns
    -------
    m_new : float
        Candidate if accepted, otherwise ``m`` unchanged
    accepted : bool

    Raises
    ------
    NumericalDegeneracy
        If the current log posterior is not finite, e^m' overflows, or the
        candidate log posterior is NaN. A candidate at -inf is rejected.
    """
    m_candidate = float(rng.normal(m, proposal_sd))

    with np.errstate(over='ignore', under='ignore'):
        scale = np.exp(m_candidate)
    if not np.isfinite(scale) or scale <= 0:
        raise NumericalDegeneracy(
            f"exp(m) is degenerate for proposed m={m_candidate!r}; "
            "reduce proposal_sd or tighten the prior on m",
            iteration=iteration
        )

    lp_current = log_posterior_m(m, theta, data, prior_mean, prior_var)
    if not np.isfinite(lp_current):
        raise NumericalDegeneracy(
            f"log posterior at current m={m!r} is {lp_current!r}",
            iteration=iteration
        )

    lp_candidate = log_posterior_m(m_candidate, theta, data, prior_mean, prior_var)
    if np.isnan(lp_candidate):
        raise NumericalDegeneracy(
            f"log posterior at proposed m={m_candidate!r} is NaN",
            iteration=iteration
        )

    if np.log(rng.uniform()) < lp_candidate - lp_current:
        return m_candidate, True
    return m, False


def step(
    state: SamplerState,
    data: BinomialUnits,
    rng: np.random.Generator,
    proposal_sd: float,
    prior_mean: float = 0.0,
    prior_var: float = 10.0
) -> SamplerState:
    """
    One full iteration: Gibbs draw of theta, then Metropolis update of m.

    ``state`` is left untouched; a new state is returned.
    """
    iteration = state.iteration + 1
    theta = draw_theta(state.m, data, rng, iteration=iteration)
    m, accepted = update_m(
        state.m, theta, data, rng, proposal_sd,
        prior_mean=prior_mean, prior_var=prior_var, iteration=iteration
    )
    return replace(
        state,
        theta=theta,
        m=m,
        iteration=iteration,
        accept_count=state.accept_count + int(accepted)
    )


def run_chain(
    data: BinomialUnits,
    config: SamplerConfig,
    rng: RandomSource = None,
    verbose: bool = False,
    log_every: int = 1000
) -> Tuple[np.ndarray, int]:
    """
    Run S = config.n_iterations iterations of the chain.

    Parameters
    ----------
    data : BinomialUnits
        Validated inputs
    config : SamplerConfig
        Sampler settings (validated here)
    rng : int, np.random.Generator or None
        Random source. If None, seeded from ``config.random_seed``.
    verbose : bool, optional (default=False)
        Print periodic progress lines
    log_every : int, optional (default=1000)
        Progress interval in iterations

    Returns
    -------
    samples : np.ndarray, shape (S, K + 1)
        Row s holds (theta_1, ..., theta_K, m) after iteration s + 1
    accept_count : int
        Number of accepted proposals for m
    """
    config.validate()
    data.validate()
    rng = make_rng(config.random_seed if rng is None else rng)

    S = config.n_iterations
    samples = np.empty((S, data.K + 1), dtype=np.float64)
    state = SamplerState.initial(data.K, config.init_theta, config.init_m)

    for s in range(S):
        state = step(
            state, data, rng, config.proposal_sd,
            prior_mean=config.prior_mean, prior_var=config.prior_var
        )
        samples[s] = state.as_row()

        if verbose and (s + 1) % log_every == 0:
            print(f"  Iteration {s + 1}/{S}, m={state.m:.3f}, "
                  f"accept={state.accept_count / (s + 1):.2f}", flush=True)

    _check_accept_ratio(state.accept_count / S, config.proposal_sd)

    return samples, state.accept_count


def run(
    q: Sequence[float],
    y: Sequence[int],
    n: Sequence[int],
    S: int = 5000,
    burn_in: int = 1000,
    proposal_sd: float = 1.2,
    prior_mean: float = 0.0,
    prior_var: float = 10.0,
    init_theta: float = 0.5,
    init_m: float = 1.0,
    rng_seed: int = 42
) -> SamplerResult:
    """
    Sample the posterior of (theta_1, ..., theta_K, m) and summarize it.

    All preconditions are checked before the first iteration.

    Returns
    -------
    result : SamplerResult
        samples (S, K + 1), accept ratio, posterior means (K + 1,) and
        95% credible intervals (K + 1, 2) over the post-burn-in draws

    Raises
    ------
    InvalidInput
        On any precondition violation
    InsufficientSamples
        If burn_in >= S
    NumericalDegeneracy
        If the chain reaches a numerically invalid state

    Examples
    --------
    >>> from hierbinom.data import load_clutch_free_throws
    >>> d = load_clutch_free_throws()
    >>> result = run(d.q, d.y, d.n, S=5000, burn_in=1000, proposal_sd=1.2)
    >>> samples, accept_ratio, means, intervals = result
    """
    data = BinomialUnits.from_arrays(q, y, n)
    config = SamplerConfig(
        n_iterations=S,
        burn_in=burn_in,
        proposal_sd=proposal_sd,
        prior_mean=prior_mean,
        prior_var=prior_var,
        init_theta=init_theta,
        init_m=init_m,
        random_seed=rng_seed
    ).validate()

    samples, accept_count = run_chain(data, config)
    summary = summarize(samples, config.burn_in)

    return SamplerResult(
        samples=samples,
        accept_ratio=accept_count / config.n_iterations,
        posterior_means=summary.means,
        posterior_intervals=summary.intervals
    )


def _check_accept_ratio(accept_ratio: float, proposal_sd: float) -> None:
    low, high = ACCEPT_RATE_WINDOW
    if accept_ratio < low:
        warnings.warn(
            f"Accept ratio for m is {accept_ratio:.2f} (target ~{TARGET_ACCEPT_RATE}). "
            f"Consider decreasing proposal_sd below {proposal_sd}."
        )
    elif accept_ratio > high:
        warnings.warn(
            f"Accept ratio for m is {accept_ratio:.2f} (target ~{TARGET_ACCEPT_RATE}). "
            f"Consider increasing proposal_sd above {proposal_sd}."
        )
