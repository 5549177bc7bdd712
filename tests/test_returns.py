"""Tests for return path construction and sampling."""

from decimal import Decimal

import numpy as np
import pytest

from retirement_engine.calculators.scenarios import (
    DistributionParams,
    constant_path,
    derive_seed,
    deterministic_path,
    sample,
    sample_many,
)
from retirement_engine.calculators.timegrid import StepSize
from retirement_engine.errors import LengthMismatch, ScenarioError


def test_deterministic_path_keeps_values():
    path = deterministic_path([0.1, -0.05], [0.02, 0.03])
    assert path.returns == (Decimal("0.1"), Decimal("-0.05"))
    assert path.inflation == (Decimal("0.02"), Decimal("0.03"))
    assert len(path) == 2


def test_deterministic_path_defaults_to_zero_inflation():
    path = deterministic_path([0.1, 0.1, 0.1])
    assert path.inflation == (0, 0, 0)


def test_deterministic_path_length_mismatch():
    with pytest.raises(LengthMismatch):
        deterministic_path([0.1, 0.1], [0.02])
    with pytest.raises(LengthMismatch):
        deterministic_path([0.1, 0.1], [0.02, 0.02], horizon=3)


def test_sample_is_reproducible():
    params = DistributionParams(mean=0.005, stdev=0.04, correlation=0.3, inflation_mean=0.002, inflation_stdev=0.001)
    assert sample(120, params, seed=12345) == sample(120, params, seed=12345)
    assert sample(120, params, seed=12345) != sample(120, params, seed=54321)


def test_zero_volatility_returns_the_mean():
    path = sample(5, DistributionParams(mean=0.005, stdev=0.0, inflation_mean=0.002), seed=1)
    assert path.returns == (Decimal("0.005"),) * 5
    assert path.inflation == (Decimal("0.002"),) * 5


def test_returns_clamped_at_total_loss():
    path = sample(4, DistributionParams(mean=-5.0, stdev=0.0), seed=1)
    assert all(r == -1 for r in path.returns)


def test_serial_correlation_shows_in_sample():
    params = DistributionParams(mean=0.0, stdev=0.05, correlation=0.9)
    returns = np.array([float(r) for r in sample(5000, params, seed=3).returns])
    lag_one = np.corrcoef(returns[:-1], returns[1:])[0, 1]
    assert lag_one > 0.8


def test_sample_many_uses_derived_seeds():
    params = DistributionParams(mean=0.005, stdev=0.04)
    paths = sample_many(20, 24, params, batch_seed=99)
    assert len(set(paths)) == 20
    assert paths[7] == sample(24, params, derive_seed(99, 7))


def test_derive_seed_depends_only_on_batch_and_index():
    a = np.random.default_rng(derive_seed(5, 3)).random()
    b = np.random.default_rng(derive_seed(5, 3)).random()
    c = np.random.default_rng(derive_seed(5, 4)).random()
    assert a == b
    assert a != c


def test_annual_parameters_converted_per_period():
    params = DistributionParams.annual(0.12, 0.12, StepSize.MONTHLY, inflation_mean=0.024)
    assert params.mean == pytest.approx(0.01)
    assert params.stdev == pytest.approx(0.12 / np.sqrt(12))
    assert params.inflation_mean == pytest.approx(0.002)


@pytest.mark.parametrize("kwargs", [{"stdev": -0.1}, {"stdev": 0.1, "correlation": 1.0}])
def test_invalid_distribution(kwargs):
    with pytest.raises(ScenarioError):
        DistributionParams(mean=0.0, **kwargs)


def test_constant_path():
    path = constant_path(3, 0.07, 0.02)
    assert path.returns == (Decimal("0.07"),) * 3
