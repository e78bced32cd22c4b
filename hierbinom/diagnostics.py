"""
Convergence Diagnostics

Wraps custom-sampler draws in an ArviZ InferenceData object so the same
R-hat / ESS criteria used for the PyMC comparator apply to both samplers.

"""

from typing import Dict, Optional, Sequence

import arviz as az
import numpy as np
import pandas as pd

from .config import ESS_THRESHOLD, RHAT_THRESHOLD
from .exceptions import InvalidInput, InsufficientSamples


def to_inference_data(
    samples: np.ndarray,
    unit_names: Optional[Sequence[str]] = None,
    burn_in: int = 0
) -> az.InferenceData:
    """
    Convert a samples array to InferenceData.

    Parameters
    ----------
    samples : np.ndarray, shape (S, K + 1) or (chains, S, K + 1)
        theta columns first, m last
    unit_names : sequence of str, optional
        Coordinate labels for the ``unit`` dimension
    burn_in : int, optional (default=0)
        Leading draws to drop from every chain

    Returns
    -------
    idata : az.InferenceData
        Posterior group with ``theta`` (chain, draw, unit) and ``m``
        (chain, draw)
    """
    samples = np.asarray(samples, dtype=np.float64)
    if samples.ndim == 2:
        samples = samples[np.newaxis]
    if samples.ndim != 3 or samples.shape[2] < 2:
        raise InvalidInput(
            'samples', f"expected (draws, K + 1) or (chains, draws, K + 1), got {samples.shape}"
        )
    if burn_in < 0:
        raise InvalidInput('burn_in', f"must be >= 0, got {burn_in}")
    if burn_in >= samples.shape[1]:
        raise InsufficientSamples(samples.shape[1], burn_in)

    samples = samples[:, burn_in:, :]
    K = samples.shape[2] - 1

    if unit_names is None:
        unit_names = [f"unit_{i}" for i in range(K)]
    unit_names = list(unit_names)
    if len(unit_names) != K:
        raise InvalidInput('unit_names', f"expected {K} labels, got {len(unit_names)}")

    return az.from_dict(
        posterior={
            'theta': samples[:, :, :K],
            'm': samples[:, :, K],
        },
        coords={'unit': unit_names},
        dims={'theta': ['unit']}
    )


def split_single_chain(idata: az.InferenceData) -> az.InferenceData:
    """
    Split a one-chain posterior into its first and second halves.

    ArviZ needs at least two chains for R̂. Treating the halves of one run as
    two chains gives the split-R̂ of that run. Multi-chain input is returned
    unchanged. An odd trailing draw is dropped.
    """
    posterior = idata.posterior
    if posterior.sizes['chain'] > 1:
        return idata

    half = posterior.sizes['draw'] // 2
    if half < 4:
        raise InsufficientSamples(posterior.sizes['draw'], 0)

    draws = {}
    dims = {}
    coords = {}
    for var in posterior.data_vars:
        values = posterior[var].values[:, :2 * half]
        draws[var] = values.reshape((2, half) + values.shape[2:])
        extra_dims = list(posterior[var].dims[2:])
        if extra_dims:
            dims[var] = extra_dims
            for dim in extra_dims:
                coords[dim] = posterior[dim].values

    return az.from_dict(posterior=draws, coords=coords, dims=dims)


def check_convergence(
    idata: az.InferenceData,
    verbose: bool = True,
    rhat_threshold: float = RHAT_THRESHOLD,
    ess_threshold: float = ESS_THRESHOLD
) -> Dict[str, float]:
    """
    Check MCMC convergence using R̂ and ESS diagnostics.

    A single chain is split into two halves first (see
    ``split_single_chain``), so one run of the custom sampler gets a
    finite R̂.

    Parameters
    ----------
    idata : az.InferenceData
        Posterior draws
    verbose : bool, optional (default=True)
        If True, print convergence summary
    rhat_threshold : float, optional (default=1.01)
        Largest acceptable R̂
    ess_threshold : float, optional (default=400)
        Smallest acceptable bulk ESS. The random-walk update of m mixes
        slowly: the default 5000-iteration run gives a bulk ESS for m of
        roughly 100-150 per chain, so the default criterion needs about
        four times more iterations.

    Returns
    -------
    convergence : Dict
        - 'rhat_ok': All R̂ < rhat_threshold
        - 'rhat_max': Largest R̂
        - 'ess_ok': All bulk ESS > ess_threshold
        - 'ess_min': Smallest bulk ESS
        - 'all_ok': Both criteria met
    """
    idata = split_single_chain(idata)

    if verbose:
        print(f"\n{'=' * 60}")
        print("CONVERGENCE DIAGNOSTICS")
        print(f"{'=' * 60}")

    rhat = az.rhat(idata)
    rhat_values = np.concatenate([rhat[var].values.ravel() for var in rhat.data_vars])
    rhat_max = float(np.max(rhat_values))
    rhat_ok = bool(rhat_max < rhat_threshold)

    if verbose:
        print(f"\n1. R̂ (split Gelman-Rubin)")
        print(f"   Criterion: R̂ < {rhat_threshold} for all parameters")
        print(f"   Max R̂: {rhat_max:.6f}")
        print(f"   Status: {'✓ PASS' if rhat_ok else '✗ FAIL'}")

    ess = az.ess(idata)
    ess_values = np.concatenate([ess[var].values.ravel() for var in ess.data_vars])
    ess_min = float(np.min(ess_values))
    ess_ok = bool(ess_min > ess_threshold)

    if verbose:
        print(f"\n2. ESS (Effective Sample Size)")
        print(f"   Criterion: ESS > {ess_threshold} for all parameters")
        print(f"   Min ESS: {ess_min:.0f}")
        print(f"   Status: {'✓ PASS' if ess_ok else '✗ FAIL'}")

    all_ok = rhat_ok and ess_ok

    if verbose:
        print(f"\n{'=' * 60}")
        if all_ok:
            print("✓ ALL CONVERGENCE CRITERIA MET")
        else:
            print("✗ CONVERGENCE ISSUES DETECTED")
            if not rhat_ok:
                print("  - R̂ too high: increase n_iterations or burn_in")
            if not ess_ok:
                print("  - ESS too low: increase n_iterations or retune proposal_sd")
        print(f"{'=' * 60}")

    return {
        'rhat_ok': rhat_ok,
        'rhat_max': rhat_max,
        'ess_ok': ess_ok,
        'ess_min': ess_min,
        'all_ok': all_ok
    }


def diagnostics_frame(idata: az.InferenceData) -> pd.DataFrame:
    """
    Per-parameter diagnostics.

    A single chain is split into halves as in ``check_convergence``.

    Returns
    -------
    diagnostics : pd.DataFrame
        Columns: parameter, r_hat, ess_bulk, ess_tail
    """
    summary = az.summary(split_single_chain(idata), kind='diagnostics')
    summary = summary.reset_index()
    summary = summary.rename(columns={'index': 'parameter'})
    return summary[['parameter', 'r_hat', 'ess_bulk', 'ess_tail']]
