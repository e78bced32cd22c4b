"""
Unit Tests for the PyMC Reference Model
=======================================

Cross-checks the custom sampler against PyMC on the clutch free-throw data.
Draw counts are kept small for speed.
"""

import warnings

import numpy as np
import pandas as pd
import pytest

from hierbinom import InvalidInput, load_clutch_free_throws, run
from hierbinom.reference import (
    build_reference_model,
    compare_with_reference,
    fit_reference_model,
)
from hierbinom.sampler import parameter_names


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture(scope='module')
def free_throws():
    return load_clutch_free_throws()


@pytest.fixture(scope='module')
def reference_samples(free_throws):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        return fit_reference_model(
            free_throws, draws=500, tune=500, chains=1, cores=1,
            random_seed=42, verbose=False
        )


# ============================================================================
# Test 1: Model Specification
# ============================================================================

def test_reference_model_variables(free_throws):
    model = build_reference_model(free_throws)

    free = {rv.name for rv in model.free_RVs}
    observed = {rv.name for rv in model.observed_RVs}

    assert free == {'m', 'theta'}
    assert observed == {'y_obs'}
    assert list(model.coords['unit']) == free_throws.names


def test_reference_model_rejects_bad_prior(free_throws):
    with pytest.raises(InvalidInput):
        build_reference_model(free_throws, prior_var=0.0)


# ============================================================================
# Test 2: Sampling and Comparison
# ============================================================================

def test_reference_samples_layout(reference_samples, free_throws):
    assert reference_samples.shape == (500, free_throws.K + 1)
    assert np.all(np.isfinite(reference_samples))
    assert np.all((reference_samples[:, :-1] > 0) & (reference_samples[:, :-1] < 1))


def test_custom_sampler_agrees_with_reference(reference_samples, free_throws):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = run(free_throws.q, free_throws.y, free_throws.n,
                     S=5000, burn_in=1000, proposal_sd=1.2, rng_seed=42)

    comparison = compare_with_reference(
        result.samples, reference_samples,
        names=parameter_names(free_throws), burn_in=1000
    )

    assert isinstance(comparison, pd.DataFrame)
    theta_rows = comparison.drop(index='m')
    assert (theta_rows['difference'].abs() < 0.03).all()
    assert abs(comparison.loc['m', 'difference']) < 1.5


def test_compare_with_reference_columns():
    rng = np.random.default_rng(0)
    ours = rng.normal(size=(200, 3))
    theirs = rng.normal(size=(100, 3))

    comparison = compare_with_reference(ours, theirs, names=['a', 'b', 'm'], burn_in=50)

    assert list(comparison.columns) == [
        'mean', 'reference_mean', 'difference',
        'lower', 'upper', 'reference_lower', 'reference_upper'
    ]
    np.testing.assert_allclose(
        comparison['difference'],
        ours[50:].mean(axis=0) - theirs.mean(axis=0)
    )


def test_compare_with_reference_layout_mismatch_raises():
    with pytest.raises(InvalidInput):
        compare_with_reference(np.ones((10, 3)), np.ones((10, 4)))
