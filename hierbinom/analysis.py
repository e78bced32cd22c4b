"""hierbinom Analysis - Main User Interface"""

import pickle
import warnings
from pathlib import Path
from typing import Dict, Optional

import arviz as az
import numpy as np
import pandas as pd

from .config import ESS_THRESHOLD, RHAT_THRESHOLD, SamplerConfig
from .data import BinomialUnits
from .diagnostics import check_convergence, diagnostics_frame, to_inference_data
from .reference import compare_with_reference, fit_reference_model
from .sampler.metropolis_gibbs import parameter_names, run_chain
from .sampler.summary import (
    PosteriorSummary,
    prob_below_reference,
    shrinkage_frame,
    summarize,
    summary_frame
)


class HierarchicalAnalysis:
    """
    End-to-end hierarchical Beta-Binomial analysis.

    Runs the Metropolis-within-Gibbs sampler, summarizes the post-burn-in
    draws and checks convergence. Extra chains (seeded independently) only
    feed the R̂ diagnostic; all point and interval estimates come from the
    first chain, which is bit-identical to ``sampler.run`` with the same
    seed.

    Parameters
    ----------
    config : SamplerConfig, optional
        Sampler settings. Defaults to the reference run settings.

    quick_mode : bool, default=False
        If True and no config is given, uses ``SamplerConfig.quick()``.

    n_chains : int, default=1
        Number of chains run for diagnostics.

    Examples
    --------
    >>> from hierbinom import HierarchicalAnalysis, load_clutch_free_throws
    >>>
    >>> analysis = HierarchicalAnalysis(n_chains=2)
    >>> analysis.fit(load_clutch_free_throws())
    >>> analysis.summary()
    >>> analysis.prob_below_reference()
    """

    def __init__(
        self,
        config: Optional[SamplerConfig] = None,
        quick_mode: bool = False,
        n_chains: int = 1
    ):
        if config is None:
            config = SamplerConfig.quick() if quick_mode else SamplerConfig()
        if n_chains < 1:
            raise ValueError(f"n_chains must be >= 1. Got: {n_chains}")

        self.config = config.validate()
        self.quick_mode = quick_mode
        self.n_chains = n_chains

        # Will be initialized during fit()
        self.data_ = None
        self.names_ = None
        self.samples_ = None
        self.chains_ = None
        self.accept_count_ = None
        self.accept_ratio_ = None
        self.summary_ = None
        self.idata_ = None
        self.convergence_ = None
        self.reference_samples_ = None

    def fit(self, data: BinomialUnits, verbose: bool = True) -> 'HierarchicalAnalysis':
        """
        Sample the posterior and summarize it.

        Parameters
        ----------
        data : BinomialUnits
            Per-unit reference proportions and counts.

        verbose : bool, default=True
            Print progress.

        Returns
        -------
        self : HierarchicalAnalysis
            Fitted analysis.
        """
        if not isinstance(data, BinomialUnits):
            raise TypeError("data must be a BinomialUnits instance")
        data.validate()

        self.data_ = data
        self.names_ = parameter_names(data)
        cfg = self.config

        if verbose:
            print(f"\n{'='*70}")
            print(f"Hierarchical Beta-Binomial: {data.K} units, "
                  f"{self.n_chains} chain(s)")
            print(f"{'='*70}")
            print(f"  Iterations: {cfg.n_iterations} (burn-in {cfg.burn_in})")
            print(f"  Proposal sd for m: {cfg.proposal_sd}")
            print(f"  Prior on m: Normal({cfg.prior_mean}, var={cfg.prior_var})")

        chains = []
        accept_counts = []
        for chain_id in range(self.n_chains):
            if verbose:
                print(f"\nRunning chain {chain_id}...", flush=True)

            samples, accept_count = run_chain(
                data, cfg, rng=self._chain_rng(chain_id), verbose=verbose
            )
            chains.append(samples)
            accept_counts.append(accept_count)

            if verbose:
                print(f"✓ Chain {chain_id} complete "
                      f"(accept ratio {accept_count / cfg.n_iterations:.3f})")

        self.chains_ = np.stack(chains)
        self.samples_ = chains[0]
        self.accept_count_ = accept_counts[0]
        self.accept_ratio_ = accept_counts[0] / cfg.n_iterations
        self.summary_ = summarize(self.samples_, cfg.burn_in)
        self.idata_ = to_inference_data(self.chains_, data.names, burn_in=cfg.burn_in)

        if verbose:
            m_mean = self.summary_.means[-1]
            m_low, m_high = self.summary_.intervals[-1]
            print(f"\n✓ Posterior mean of m: {m_mean:.3f} "
                  f"(95% CI [{m_low:.3f}, {m_high:.3f}])")

        return self

    def summary(self) -> pd.DataFrame:
        """Posterior mean, sd and 95% credible interval per parameter."""
        self._check_fitted()
        return summary_frame(self.samples_, self.config.burn_in, names=self.names_)

    def posterior_summary(self) -> PosteriorSummary:
        self._check_fitted()
        return self.summary_

    def shrinkage(self) -> pd.DataFrame:
        """Raw clutch proportion vs reference vs posterior mean per unit."""
        self._check_fitted()
        return shrinkage_frame(self.data_, self.summary_)

    def prob_below_reference(self) -> pd.Series:
        """Posterior probability that each unit's theta is below its q."""
        self._check_fitted()
        probs = prob_below_reference(self.samples_, self.config.burn_in, self.data_.q)
        return pd.Series(probs, index=pd.Index(self.data_.names, name='unit'),
                         name='prob_below_reference')

    def get_convergence_diagnostics(self) -> pd.DataFrame:
        """
        Return MCMC convergence diagnostics (R̂, ESS).

        Returns
        -------
        diagnostics : pd.DataFrame
            DataFrame with columns: parameter, r_hat, ess_bulk, ess_tail
        """
        self._check_fitted()
        return diagnostics_frame(self.idata_)

    def check_convergence(
        self,
        verbose: bool = True,
        rhat_threshold: float = RHAT_THRESHOLD,
        ess_threshold: float = ESS_THRESHOLD
    ) -> Dict:
        """
        Compute R̂/ESS convergence criteria without raising.

        The result is stored in ``convergence_``. A single chain is split
        into halves for R̂.
        """
        self._check_fitted()
        self.convergence_ = check_convergence(
            self.idata_,
            verbose=verbose,
            rhat_threshold=rhat_threshold,
            ess_threshold=ess_threshold
        )
        return self.convergence_

    def validate_convergence(
        self,
        verbose: bool = True,
        rhat_threshold: float = RHAT_THRESHOLD,
        ess_threshold: float = ESS_THRESHOLD
    ) -> Dict:
        """
        Check MCMC convergence and raise error if R̂ fails.

        Low ESS only warns. With the default threshold of 400 the warning
        is expected for a 5000-iteration run of this sampler.

        Raises
        ------
        RuntimeError
            If any R̂ is at or above ``rhat_threshold``
        """
        diagnostics = self.check_convergence(
            verbose=verbose,
            rhat_threshold=rhat_threshold,
            ess_threshold=ess_threshold
        )

        if not diagnostics['rhat_ok']:
            raise RuntimeError(
                f"MCMC convergence failed! R̂ ≥ {rhat_threshold} detected.\n"
                f"Max R̂ = {diagnostics['rhat_max']:.4f}\n\n"
                "Try more iterations or a longer burn-in."
            )

        if not diagnostics['ess_ok']:
            warnings.warn(
                f"Low effective sample size detected (ESS = {diagnostics['ess_min']:.0f}). "
                "Consider more iterations or retuning proposal_sd."
            )

        if verbose:
            print(f"  ✓ Convergence validated (max R̂ = {diagnostics['rhat_max']:.4f}, "
                  f"min ESS = {diagnostics['ess_min']:.0f})")

        return diagnostics

    def compare_reference(
        self,
        draws: int = 2000,
        tune: int = 1000,
        chains: int = 2,
        cores: Optional[int] = None,
        verbose: bool = True
    ) -> pd.DataFrame:
        """
        Fit the same model with PyMC and compare posterior summaries.

        Returns
        -------
        comparison : pd.DataFrame
            See ``reference.compare_with_reference``.
        """
        self._check_fitted()
        self.reference_samples_ = fit_reference_model(
            self.data_,
            draws=draws,
            tune=tune,
            chains=chains,
            random_seed=self.config.random_seed,
            prior_mean=self.config.prior_mean,
            prior_var=self.config.prior_var,
            cores=cores,
            verbose=verbose
        )
        return compare_with_reference(
            self.samples_,
            self.reference_samples_,
            names=self.names_,
            burn_in=self.config.burn_in
        )

    def save(self, filepath: str):
        """Save fitted analysis to disk."""
        with open(filepath, 'wb') as f:
            pickle.dump(self, f)
        print(f"✓ Analysis saved to {filepath}")

    @classmethod
    def load(cls, filepath: str) -> 'HierarchicalAnalysis':
        """Load fitted analysis from disk."""
        with open(filepath, 'rb') as f:
            analysis = pickle.load(f)
        print(f"✓ Analysis loaded from {filepath}")
        return analysis

    def save_trace(self, filepath: str, verbose: bool = True) -> None:
        """
        Save post-burn-in draws to NetCDF format.

        Can be loaded with ``arviz.from_netcdf()``.
        """
        self._check_fitted()
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        self.idata_.to_netcdf(str(filepath))

        if verbose:
            print(f"\n✓ Trace saved to {filepath}")

    @staticmethod
    def load_trace(filepath: str) -> az.InferenceData:
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Trace file not found: {filepath}")
        return az.from_netcdf(str(filepath))

    # ---- Private methods ----

    def _check_fitted(self):
        if self.samples_ is None:
            raise RuntimeError("Analysis not fitted. Call .fit() first.")

    def _chain_rng(self, chain_id: int) -> np.random.Generator:
        # Chain 0 reproduces a plain run with the configured seed
        if chain_id == 0:
            return np.random.default_rng(self.config.random_seed)
        return np.random.default_rng([self.config.random_seed, chain_id])
