"""
Reference Model via PyMC

Fits the same hierarchical Beta-Binomial model with PyMC's general-purpose
sampler so the custom Metropolis-within-Gibbs output can be cross-checked.
The engine is used as-is; nothing here reimplements it.

"""

from typing import Optional, Sequence

import numpy as np
import pandas as pd
import pymc as pm

from .config import CREDIBLE_MASS
from .data import BinomialUnits
from .exceptions import InvalidInput
from .sampler.summary import summarize


def build_reference_model(
    data: BinomialUnits,
    prior_mean: float = 0.0,
    prior_var: float = 10.0
) -> pm.Model:
    """
    Specify the hierarchical model in PyMC.

    m       ~ Normal(prior_mean, sqrt(prior_var))
    theta_i ~ Beta(e^m q_i, e^m (1 - q_i))
    y_i     ~ Binomial(n_i, theta_i)
    """
    if prior_var <= 0:
        raise InvalidInput('prior_var', f"must be > 0, got {prior_var}")

    coords = {'unit': list(data.names)}

    with pm.Model(coords=coords) as model:
        m = pm.Normal('m', mu=prior_mean, sigma=np.sqrt(prior_var))
        concentration = pm.math.exp(m)

        theta = pm.Beta(
            'theta',
            alpha=concentration * data.q,
            beta=concentration * (1.0 - data.q),
            dims='unit'
        )

        pm.Binomial('y_obs', n=data.n, p=theta, observed=data.y, dims='unit')

    return model


def fit_reference_model(
    data: BinomialUnits,
    draws: int = 2000,
    tune: int = 1000,
    chains: int = 2,
    random_seed: int = 42,
    prior_mean: float = 0.0,
    prior_var: float = 10.0,
    cores: Optional[int] = None,
    verbose: bool = True
) -> np.ndarray:
    """
    Sample the reference model with PyMC (NUTS).

    Parameters
    ----------
    data : BinomialUnits
        Same inputs as the custom sampler
    draws : int, optional (default=2000)
        Retained draws per chain
    tune : int, optional (default=1000)
        Warmup iterations per chain (discarded by PyMC)
    chains : int, optional (default=2)
    random_seed : int, optional (default=42)
    prior_mean, prior_var : float
        Normal prior on m
    cores : int, optional
        Processes used by PyMC
    verbose : bool, optional (default=True)
        Show the PyMC progress bar and a short report

    Returns
    -------
    samples : np.ndarray, shape (chains * draws, K + 1)
        Same column layout as the custom sampler: theta_1..theta_K, m
    """
    model = build_reference_model(data, prior_mean=prior_mean, prior_var=prior_var)

    if verbose:
        print(f"\n{'=' * 60}")
        print("REFERENCE MODEL: PyMC NUTS")
        print(f"{'=' * 60}")
        print(f"  Chains: {chains}, draws: {draws}, tune: {tune}")

    with model:
        trace = pm.sample(
            draws=draws,
            tune=tune,
            chains=chains,
            cores=cores,
            random_seed=random_seed,
            progressbar=verbose,
            return_inferencedata=True
        )

    theta = trace.posterior['theta'].values.reshape(-1, data.K)
    m = trace.posterior['m'].values.reshape(-1)

    if verbose:
        print(f"✓ Reference sampling completed ({len(m)} draws)")

    return np.column_stack([theta, m])


def compare_with_reference(
    samples: np.ndarray,
    reference_samples: np.ndarray,
    names: Optional[Sequence[str]] = None,
    burn_in: int = 0,
    cred_mass: float = CREDIBLE_MASS
) -> pd.DataFrame:
    """
    Side-by-side posterior summaries of the custom and reference samplers.

    ``burn_in`` applies to ``samples`` only; PyMC already discards tuning
    draws.

    Returns
    -------
    comparison : pd.DataFrame
        Columns: mean, reference_mean, difference, lower, upper,
        reference_lower, reference_upper
    """
    samples = np.asarray(samples, dtype=np.float64)
    reference_samples = np.asarray(reference_samples, dtype=np.float64)
    if samples.ndim != 2 or reference_samples.ndim != 2 \
            or samples.shape[1] != reference_samples.shape[1]:
        raise InvalidInput(
            'reference_samples',
            f"column layout {reference_samples.shape} does not match samples {samples.shape}"
        )

    ours = summarize(samples, burn_in, cred_mass=cred_mass)
    theirs = summarize(reference_samples, 0, cred_mass=cred_mass)

    if names is None:
        names = [str(j) for j in range(samples.shape[1])]

    return pd.DataFrame(
        {
            'mean': ours.means,
            'reference_mean': theirs.means,
            'difference': ours.means - theirs.means,
            'lower': ours.intervals[:, 0],
            'upper': ours.intervals[:, 1],
            'reference_lower': theirs.intervals[:, 0],
            'reference_upper': theirs.intervals[:, 1],
        },
        index=pd.Index(list(names), name='parameter')
    )
