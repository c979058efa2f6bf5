#!/usr/bin/env python3
"""Tests for the critical population size estimate."""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import math

import numpy as np
import pytest

from demography import SkillParams, analytic_critical_population_size
from model import ConfigError, NoCriticalThresholdError
from sweep import critical_population_size, estimate_critical_population_size, population_size_sweep


def test_recovers_known_root():
    """delta = 2.0 - 0.5 ln N crosses zero at exp(4)."""
    sizes = [10, 100, 1000, 10000]
    deltas = [2.0 - 0.5 * math.log(n) for n in sizes]
    n_star = critical_population_size(sizes, deltas)
    assert math.isclose(n_star, math.exp(4.0), rel_tol=1e-9)
    assert critical_population_size(sizes, deltas) == n_star


def test_flat_series_has_no_threshold():
    with pytest.raises(NoCriticalThresholdError):
        critical_population_size([10, 100, 1000], [0.3, 0.3, 0.3])


def test_single_size_has_no_threshold():
    with pytest.raises(NoCriticalThresholdError):
        critical_population_size([100, 100], [0.1, 0.2])


def test_overflowing_root():
    with pytest.raises(NoCriticalThresholdError):
        critical_population_size([10, 100], [1000.0, 1000.0 - 1e-6 * math.log(10)])


def test_root_below_one_individual():
    """A root that underflows to zero is not a population size."""
    with pytest.raises(NoCriticalThresholdError):
        critical_population_size([10, 100], [1.0 + 1e-6 * math.log(10), 1.0 + 1e-6 * math.log(100)])
    with pytest.raises(NoCriticalThresholdError):
        critical_population_size([10, 100], [0.5 + math.log(10), 0.5 + math.log(100)])


def test_bad_regression_input():
    with pytest.raises(ConfigError):
        critical_population_size([10, 100, 1000], [0.1, 0.2])
    with pytest.raises(ConfigError):
        critical_population_size([0, 100], [0.1, 0.2])
    with pytest.raises(ConfigError):
        critical_population_size([10, 100], [0.1, float("nan")])


def test_sweep_table():
    table = population_size_sweep([10, 100], SkillParams(floor=None), t_max=5, r_max=3, seed=1)
    assert table["n"].tolist() == [10, 100]
    assert list(table.columns) == ["n", "delta_skill", "delta_std", "expected_delta"]
    assert table["delta_skill"].iloc[0] < table["delta_skill"].iloc[1]
    with pytest.raises(ConfigError):
        population_size_sweep([10, 100], t_max=1)


def test_simulated_estimate_matches_theory():
    """The fitted root lands near exp(alpha / beta - euler_gamma)."""
    print("Test: Critical Population Size...")
    params = SkillParams(alpha=7.0, beta=1.0, floor=None)
    n_star, table = estimate_critical_population_size([50, 200, 1000, 5000], params, t_max=20, r_max=10, seed=2)
    expected = analytic_critical_population_size(7.0, 1.0)
    print(f"  fitted N*={n_star:.1f}, theory {expected:.1f}")
    assert expected / 1.5 < n_star < expected * 1.5
    assert np.all(np.diff(table["delta_skill"]) > 0)
