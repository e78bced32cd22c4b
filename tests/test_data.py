"""
Unit Tests for Input Data and Settings
======================================
"""

import numpy as np
import pandas as pd
import pytest

from hierbinom import (
    BinomialUnits,
    InsufficientSamples,
    InvalidInput,
    SamplerConfig,
    load_clutch_free_throws,
)
from hierbinom.data import validate_units


# ============================================================================
# Test 1: Bundled Dataset
# ============================================================================

def test_clutch_free_throws_loaded():
    units = load_clutch_free_throws()

    assert units.K == 10
    assert units.names[0] == 'Russell Westbrook'
    assert units.names[-1] == 'Kevin Durant'
    assert units.q[0] == pytest.approx(0.845)
    assert units.q[-1] == pytest.approx(0.875)
    np.testing.assert_array_equal(units.y, [64, 72, 55, 27, 75, 24, 28, 66, 40, 13])
    np.testing.assert_array_equal(units.n, [75, 95, 63, 39, 83, 26, 41, 82, 54, 16])


def test_to_frame_includes_raw_proportion():
    frame = load_clutch_free_throws().to_frame()

    assert list(frame.columns) == ['q', 'y', 'n', 'raw_proportion']
    assert frame.index.name == 'unit'
    assert frame.loc['Kevin Durant', 'raw_proportion'] == pytest.approx(13 / 16)


def test_from_frame_round_trip_uses_index_as_names():
    frame = load_clutch_free_throws().to_frame()

    units = BinomialUnits.from_frame(frame)

    assert units.names == frame.index.tolist()
    np.testing.assert_array_equal(units.y, frame['y'].to_numpy())


def test_from_frame_with_name_column():
    df = pd.DataFrame({
        'player': ['a', 'b'],
        'ft_pct': [0.8, 0.7],
        'made': [8, 3],
        'attempted': [10, 5],
    })

    units = BinomialUnits.from_frame(
        df, q_col='ft_pct', y_col='made', n_col='attempted', name_col='player'
    )

    assert units.names == ['a', 'b']
    assert units.K == 2


def test_from_frame_missing_column_raises():
    df = pd.DataFrame({'q': [0.5], 'y': [1]})

    with pytest.raises(InvalidInput) as excinfo:
        BinomialUnits.from_frame(df)

    assert excinfo.value.argument == 'n'


# ============================================================================
# Test 2: Validation
# ============================================================================

def test_validate_units_returns_typed_arrays():
    q, y, n = validate_units([0.5, 0.6], [1.0, 2.0], [3, 4])

    assert q.dtype == np.float64
    assert y.dtype == np.int64
    assert n.dtype == np.int64


def test_validate_units_rejects_empty():
    with pytest.raises(InvalidInput):
        validate_units([], [], [])


def test_validate_units_rejects_two_dimensional():
    with pytest.raises(InvalidInput) as excinfo:
        validate_units([[0.5]], [1], [2])

    assert excinfo.value.argument == 'q'


def test_names_length_mismatch_raises():
    with pytest.raises(InvalidInput) as excinfo:
        BinomialUnits.from_arrays([0.5, 0.5], [1, 1], [2, 2], names=['only_one'])

    assert excinfo.value.argument == 'names'


def test_duplicate_names_raise():
    with pytest.raises(InvalidInput):
        BinomialUnits.from_arrays([0.5, 0.5], [1, 1], [2, 2], names=['a', 'a'])


def test_default_names():
    units = BinomialUnits.from_arrays([0.5, 0.5], [1, 1], [2, 2])
    assert units.names == ['unit_0', 'unit_1']


# ============================================================================
# Test 3: Sampler Settings
# ============================================================================

def test_default_config_matches_reference_run():
    config = SamplerConfig()

    assert config.n_iterations == 5000
    assert config.burn_in == 1000
    assert config.proposal_sd == 1.2
    assert config.prior_mean == 0.0
    assert config.prior_var == 10.0
    assert config.prior_sd == pytest.approx(np.sqrt(10.0))
    assert config.validate() is config


def test_quick_config_with_overrides():
    config = SamplerConfig.quick(random_seed=7)

    assert config.n_iterations == 1000
    assert config.burn_in == 200
    assert config.random_seed == 7


def test_config_rejects_non_integer_iterations():
    with pytest.raises(InvalidInput) as excinfo:
        SamplerConfig(n_iterations=100.0, burn_in=10).validate()

    assert excinfo.value.argument == 'n_iterations'


def test_config_rejects_burn_in_equal_to_iterations():
    with pytest.raises(InsufficientSamples):
        SamplerConfig(n_iterations=10, burn_in=10).validate()


def test_config_rejects_infinite_prior_mean():
    with pytest.raises(InvalidInput) as excinfo:
        SamplerConfig(prior_mean=float('inf')).validate()

    assert excinfo.value.argument == 'prior_mean'


def test_config_to_dict():
    assert SamplerConfig().to_dict()['proposal_sd'] == 1.2
