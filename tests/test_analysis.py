"""
Unit Tests for HierarchicalAnalysis and Diagnostics
===================================================

Test suite covering:
- Fit workflow and stored attributes
- Summary, shrinkage and clutch probability tables
- ArviZ conversion and convergence diagnostics (one and two chains)
- Convergence validation: pass, R̂ failure, low-ESS warning
- Save/load functionality
"""

import tempfile
import warnings
from pathlib import Path

import arviz as az
import numpy as np
import pandas as pd
import pytest

from hierbinom import (
    HierarchicalAnalysis,
    InsufficientSamples,
    SamplerConfig,
    load_clutch_free_throws,
    run,
)
from hierbinom.config import ESS_THRESHOLD
from hierbinom.diagnostics import (
    check_convergence,
    diagnostics_frame,
    split_single_chain,
    to_inference_data,
)
from hierbinom.sampler import prob_below_reference, summary_frame


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture(scope='module')
def free_throws():
    return load_clutch_free_throws()


@pytest.fixture(scope='module')
def fitted_analysis(free_throws):
    """Quick two-chain fit shared across tests."""
    analysis = HierarchicalAnalysis(quick_mode=True, n_chains=2)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        analysis.fit(free_throws, verbose=False)
    return analysis


@pytest.fixture(scope='module')
def single_chain_analysis(free_throws):
    """Quick one-chain fit: R̂ comes from the split halves."""
    analysis = HierarchicalAnalysis(quick_mode=True, n_chains=1)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        analysis.fit(free_throws, verbose=False)
    return analysis


# ============================================================================
# Test 1: Initialization
# ============================================================================

def test_init_defaults():
    analysis = HierarchicalAnalysis()

    assert analysis.quick_mode is False
    assert analysis.n_chains == 1
    assert analysis.config.n_iterations == 5000


def test_init_quick_mode():
    analysis = HierarchicalAnalysis(quick_mode=True)

    assert analysis.config.n_iterations == 1000


def test_init_rejects_zero_chains():
    with pytest.raises(ValueError):
        HierarchicalAnalysis(n_chains=0)


def test_methods_before_fit_raise_error():
    analysis = HierarchicalAnalysis(quick_mode=True)

    with pytest.raises(RuntimeError):
        analysis.summary()
    with pytest.raises(RuntimeError):
        analysis.get_convergence_diagnostics()
    with pytest.raises(RuntimeError):
        analysis.compare_reference()


def test_fit_rejects_raw_dataframe(free_throws):
    analysis = HierarchicalAnalysis(quick_mode=True)

    with pytest.raises(TypeError):
        analysis.fit(free_throws.to_frame(), verbose=False)


# ============================================================================
# Test 2: Fit Workflow
# ============================================================================

def test_fit_returns_self(free_throws):
    analysis = HierarchicalAnalysis(SamplerConfig(n_iterations=200, burn_in=50))

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = analysis.fit(free_throws, verbose=False)

    assert result is analysis


def test_fit_sets_attributes(fitted_analysis):
    assert fitted_analysis.samples_.shape == (1000, 11)
    assert fitted_analysis.chains_.shape == (2, 1000, 11)
    assert 0 < fitted_analysis.accept_ratio_ < 1
    assert fitted_analysis.accept_count_ == round(fitted_analysis.accept_ratio_ * 1000)
    assert len(fitted_analysis.names_) == 11


def test_first_chain_matches_plain_run(fitted_analysis, free_throws):
    cfg = fitted_analysis.config

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = run(
            free_throws.q, free_throws.y, free_throws.n,
            S=cfg.n_iterations, burn_in=cfg.burn_in, proposal_sd=cfg.proposal_sd,
            prior_mean=cfg.prior_mean, prior_var=cfg.prior_var,
            init_theta=cfg.init_theta, init_m=cfg.init_m, rng_seed=cfg.random_seed
        )

    assert np.array_equal(result.samples, fitted_analysis.samples_)


def test_chains_are_independent(fitted_analysis):
    assert not np.array_equal(fitted_analysis.chains_[0], fitted_analysis.chains_[1])


def test_verbose_fit_prints_progress(free_throws, capsys):
    analysis = HierarchicalAnalysis(SamplerConfig(n_iterations=1000, burn_in=100))

    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        analysis.fit(free_throws, verbose=True)

    out = capsys.readouterr().out
    assert "Iteration 1000/1000" in out
    assert "Posterior mean of m" in out


# ============================================================================
# Test 3: Summary Tables
# ============================================================================

def test_summary_table(fitted_analysis):
    summary = fitted_analysis.summary()

    assert isinstance(summary, pd.DataFrame)
    assert list(summary.columns) == ['mean', 'sd', 'lower', 'upper']
    assert summary.index[0] == 'theta[Russell Westbrook]'
    assert summary.index[-1] == 'm'
    assert (summary['lower'] <= summary['mean']).all()
    assert (summary['mean'] <= summary['upper']).all()
    assert (summary['sd'] > 0).all()


def test_summary_frame_default_names():
    samples = np.random.default_rng(0).normal(size=(50, 3))

    frame = summary_frame(samples, burn_in=10)

    assert frame.index.tolist() == ['0', '1', '2']


def test_shrinkage_table(fitted_analysis):
    table = fitted_analysis.shrinkage()

    assert {'q', 'raw_proportion', 'posterior_mean', 'pull_to_reference'} <= set(table.columns)
    assert len(table) == 10
    # Posterior means sit between the raw proportion and the reference
    lo = np.minimum(table['q'], table['raw_proportion'])
    hi = np.maximum(table['q'], table['raw_proportion'])
    assert ((table['posterior_mean'] > lo - 0.02) & (table['posterior_mean'] < hi + 0.02)).all()


def test_prob_below_reference(fitted_analysis):
    probs = fitted_analysis.prob_below_reference()

    assert isinstance(probs, pd.Series)
    assert len(probs) == 10
    assert ((probs >= 0) & (probs <= 1)).all()


def test_prob_below_reference_counts_draws():
    samples = np.array([
        [0.1, 0.9, 0.0],
        [0.3, 0.9, 0.0],
        [0.6, 0.1, 0.0],
        [0.7, 0.1, 0.0],
    ])

    probs = prob_below_reference(samples, burn_in=0, q=[0.5, 0.5])

    np.testing.assert_allclose(probs, [0.5, 0.5])


# ============================================================================
# Test 4: Diagnostics
# ============================================================================

def test_to_inference_data_single_chain():
    samples = np.random.default_rng(1).uniform(size=(100, 4))

    idata = to_inference_data(samples, ['a', 'b', 'c'], burn_in=20)

    assert idata.posterior['theta'].shape == (1, 80, 3)
    assert idata.posterior['m'].shape == (1, 80)
    assert list(idata.posterior['unit'].values) == ['a', 'b', 'c']


def test_to_inference_data_keeps_m_column(fitted_analysis):
    idata = fitted_analysis.idata_
    burn_in = fitted_analysis.config.burn_in

    np.testing.assert_array_equal(
        idata.posterior['m'].values[0],
        fitted_analysis.samples_[burn_in:, -1]
    )


def test_check_convergence_keys(fitted_analysis):
    result = check_convergence(fitted_analysis.idata_, verbose=False)

    assert set(result) == {'rhat_ok', 'rhat_max', 'ess_ok', 'ess_min', 'all_ok'}
    assert result['rhat_max'] > 0
    assert result['ess_min'] > 0
    assert result['all_ok'] == (result['rhat_ok'] and result['ess_ok'])


def test_get_convergence_diagnostics(fitted_analysis):
    diagnostics = fitted_analysis.get_convergence_diagnostics()

    assert isinstance(diagnostics, pd.DataFrame)
    assert list(diagnostics.columns) == ['parameter', 'r_hat', 'ess_bulk', 'ess_tail']
    assert len(diagnostics) == 11
    assert (diagnostics['r_hat'] > 0).all()
    assert (diagnostics['ess_bulk'] > 0).all()


def test_diagnostics_frame_on_iid_draws():
    samples = np.random.default_rng(2).uniform(0.1, 0.9, size=(2, 500, 3))

    frame = diagnostics_frame(to_inference_data(samples))

    assert frame['r_hat'].max() < 1.05


def test_split_single_chain_halves():
    samples = np.random.default_rng(3).uniform(size=(101, 4))
    idata = to_inference_data(samples, ['a', 'b', 'c'])

    split = split_single_chain(idata)

    assert split.posterior['theta'].shape == (2, 50, 3)
    assert split.posterior['m'].shape == (2, 50)
    assert list(split.posterior['unit'].values) == ['a', 'b', 'c']
    np.testing.assert_array_equal(split.posterior['m'].values[0], samples[:50, 3])
    np.testing.assert_array_equal(split.posterior['m'].values[1], samples[50:100, 3])


def test_split_single_chain_leaves_multi_chain_alone():
    idata = to_inference_data(np.random.default_rng(3).uniform(size=(2, 40, 3)))

    assert split_single_chain(idata) is idata


def test_split_single_chain_too_short_raises():
    idata = to_inference_data(np.random.default_rng(3).uniform(size=(7, 3)))

    with pytest.raises(InsufficientSamples):
        split_single_chain(idata)


def test_single_chain_rhat_is_finite(single_chain_analysis):
    result = check_convergence(single_chain_analysis.idata_, verbose=False)

    assert np.isfinite(result['rhat_max'])
    assert np.isfinite(result['ess_min'])


def test_single_chain_diagnostics_have_no_nan(single_chain_analysis):
    diagnostics = single_chain_analysis.get_convergence_diagnostics()

    assert len(diagnostics) == 11
    assert diagnostics['r_hat'].notna().all()
    assert (diagnostics['r_hat'] > 0).all()


def test_single_chain_rhat_detects_drift():
    rng = np.random.default_rng(6)
    samples = rng.normal(0.0, 0.01, size=(400, 2))
    samples[:200] += 0.2
    samples[200:] += 0.8

    result = check_convergence(to_inference_data(samples), verbose=False)

    assert not result['rhat_ok']
    assert result['rhat_max'] > 1.1


# ============================================================================
# Test 5: Convergence Validation
# ============================================================================

def test_analysis_check_convergence_stores_result(single_chain_analysis):
    result = single_chain_analysis.check_convergence(verbose=False)

    assert single_chain_analysis.convergence_ is result
    assert result['all_ok'] == (result['rhat_ok'] and result['ess_ok'])


@pytest.mark.parametrize('analysis_fixture', ['single_chain_analysis', 'fitted_analysis'])
def test_validate_convergence_passes_with_loose_thresholds(analysis_fixture, request):
    analysis = request.getfixturevalue(analysis_fixture)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = analysis.validate_convergence(
            verbose=False, rhat_threshold=2.0, ess_threshold=1
        )

    assert not any("Low effective sample size" in str(w.message) for w in caught)
    assert result['all_ok']
    assert np.isfinite(result['rhat_max'])


@pytest.mark.parametrize('analysis_fixture', ['single_chain_analysis', 'fitted_analysis'])
def test_validate_convergence_warns_on_low_ess(analysis_fixture, request):
    analysis = request.getfixturevalue(analysis_fixture)

    with pytest.warns(UserWarning, match="Low effective sample size"):
        result = analysis.validate_convergence(
            verbose=False, rhat_threshold=2.0, ess_threshold=1e9
        )

    assert result['rhat_ok']
    assert not result['ess_ok']


def test_validate_convergence_raises_on_disagreeing_chains(free_throws):
    analysis = HierarchicalAnalysis(SamplerConfig(n_iterations=200, burn_in=50))
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        analysis.fit(free_throws, verbose=False)

    rng = np.random.default_rng(8)
    chains = rng.uniform(0.4, 0.5, size=(2, 300, 11))
    chains[1] += 0.4
    analysis.idata_ = to_inference_data(chains, free_throws.names)

    with pytest.raises(RuntimeError, match="convergence failed"):
        analysis.validate_convergence(verbose=False)
    assert not analysis.convergence_['rhat_ok']


def test_default_ess_threshold_not_met_by_quick_run(single_chain_analysis):
    result = single_chain_analysis.check_convergence(verbose=False)

    assert result['ess_min'] < ESS_THRESHOLD
    assert not result['all_ok']


# ============================================================================
# Test 6: Save/Load
# ============================================================================

def test_save_and_load_analysis(fitted_analysis):
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'analysis.pkl'

        fitted_analysis.save(str(path))
        loaded = HierarchicalAnalysis.load(str(path))

    assert np.array_equal(loaded.samples_, fitted_analysis.samples_)
    assert loaded.config == fitted_analysis.config
    pd.testing.assert_frame_equal(loaded.summary(), fitted_analysis.summary())


def test_save_and_load_trace(fitted_analysis):
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / 'trace.nc'

        fitted_analysis.save_trace(str(path), verbose=False)
        trace = HierarchicalAnalysis.load_trace(str(path))

        assert isinstance(trace, az.InferenceData)
        assert trace.posterior['theta'].shape == fitted_analysis.idata_.posterior['theta'].shape


def test_load_trace_missing_file_raises():
    with pytest.raises(FileNotFoundError):
        HierarchicalAnalysis.load_trace('/nonexistent/path/trace.nc')
