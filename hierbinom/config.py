"""
Sampler settings and diagnostic thresholds.

The defaults reproduce the reference free-throw run: 5000 iterations,
1000 discarded as burn-in, a Normal(0, 10) prior on m and a manually tuned
random-walk scale of 1.2 (accept ratio near 0.4).
"""

import math
from numbers import Integral
from dataclasses import dataclass, asdict
from typing import Dict

from .exceptions import InvalidInput, InsufficientSamples

# Random-walk Metropolis for a scalar aims for roughly 40% acceptance
TARGET_ACCEPT_RATE = 0.4
ACCEPT_RATE_WINDOW = (0.15, 0.65)

# Same criteria as the convergence table used for the NUTS comparator
RHAT_THRESHOLD = 1.01
ESS_THRESHOLD = 400

CREDIBLE_MASS = 0.95


@dataclass
class SamplerConfig:
    """
    Settings for one Metropolis-within-Gibbs run.

    Parameters
    ----------
    n_iterations : int, optional (default=5000)
        Total number of iterations S (one recorded draw per iteration)
    burn_in : int, optional (default=1000)
        Number of leading draws discarded before summarizing
    proposal_sd : float, optional (default=1.2)
        Standard deviation of the Normal random-walk proposal for m.
        Never tuned automatically.
    prior_mean : float, optional (default=0.0)
        Mean of the Normal prior on m
    prior_var : float, optional (default=10.0)
        Variance of the Normal prior on m
    init_theta : float, optional (default=0.5)
        Starting value for every theta_i
    init_m : float, optional (default=1.0)
        Starting value for m
    random_seed : int, optional (default=42)
        Seed for ``np.random.default_rng``
    """

    n_iterations: int = 5000
    burn_in: int = 1000
    proposal_sd: float = 1.2
    prior_mean: float = 0.0
    prior_var: float = 10.0
    init_theta: float = 0.5
    init_m: float = 1.0
    random_seed: int = 42

    @classmethod
    def quick(cls, **overrides) -> "SamplerConfig":
        """Short run for prototyping and tests."""
        settings = dict(n_iterations=1000, burn_in=200)
        settings.update(overrides)
        return cls(**settings)

    @property
    def prior_sd(self) -> float:
        return math.sqrt(self.prior_var)

    def validate(self) -> "SamplerConfig":
        """
        Check the scalar preconditions of a run.

        Raises
        ------
        InvalidInput
            If any setting is out of range or of the wrong type
        InsufficientSamples
            If burn_in >= n_iterations
        """
        if isinstance(self.n_iterations, bool) or not isinstance(self.n_iterations, Integral):
            raise InvalidInput('n_iterations', f"must be an int, got {self.n_iterations!r}")
        if self.n_iterations < 1:
            raise InvalidInput('n_iterations', f"must be >= 1, got {self.n_iterations}")

        if isinstance(self.burn_in, bool) or not isinstance(self.burn_in, Integral):
            raise InvalidInput('burn_in', f"must be an int, got {self.burn_in!r}")
        if self.burn_in < 0:
            raise InvalidInput('burn_in', f"must be >= 0, got {self.burn_in}")
        if self.burn_in >= self.n_iterations:
            raise InsufficientSamples(self.n_iterations, self.burn_in)

        _check_positive('proposal_sd', self.proposal_sd)
        _check_positive('prior_var', self.prior_var)
        _check_finite('prior_mean', self.prior_mean)
        _check_finite('init_m', self.init_m)

        _check_finite('init_theta', self.init_theta)
        if not 0 < self.init_theta < 1:
            raise InvalidInput('init_theta', f"must be in (0, 1), got {self.init_theta}")

        if isinstance(self.random_seed, bool) or not isinstance(self.random_seed, Integral):
            raise InvalidInput('random_seed', f"must be an int, got {self.random_seed!r}")

        return self

    def to_dict(self) -> Dict:
        return asdict(self)


def _check_finite(name: str, value) -> None:
    try:
        finite = math.isfinite(value)
    except TypeError:
        raise InvalidInput(name, f"must be a real number, got {value!r}") from None
    if not finite:
        raise InvalidInput(name, f"must be finite, got {value}")


def _check_positive(name: str, value) -> None:
    _check_finite(name, value)
    if value <= 0:
        raise InvalidInput(name, f"must be > 0, got {value}")
