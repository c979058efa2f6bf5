#!/usr/bin/env python3
"""Tests for Gumbel skill imitation."""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import math

import numpy as np
import pytest

from demography import (
    SkillImitationRule,
    SkillParams,
    analytic_critical_population_size,
    expected_delta,
)
from model import ConfigError, NoCriticalThresholdError, TransmissionModel, run_model


def test_larger_populations_do_not_lose_more_skill():
    """Mean change per generation is non-decreasing in N at fixed alpha and beta."""
    print("Test: Skill Change vs Population Size...")
    rule = SkillImitationRule(SkillParams(alpha=7.0, beta=1.0, floor=None))
    deltas = []
    for n in (10, 1000, 10000):
        frame = run_model(rule, n=n, t_max=6, r_max=50, seed=n)
        delta = frame.loc[frame["generation"] > 1, "delta_skill"].mean()
        deltas.append(delta)
        print(f"  N={n:5d}: mean delta {delta:+.3f}")
    assert deltas[0] <= deltas[1] <= deltas[2]
    assert deltas[0] < 0 < deltas[2]


def test_first_change_and_initial_generation():
    """Generation 0 has no change; generation 1 starts from a uniform population."""
    rule = SkillImitationRule(SkillParams(alpha=2.0, beta=0.5, z_0=10.0, floor=None))
    frame = run_model(rule, n=200, t_max=3, r_max=1, seed=1)
    assert math.isnan(frame.loc[0, "delta_skill"])
    assert frame.loc[0, "mean_skill"] == 10.0
    assert frame.loc[0, "max_skill"] == 10.0
    assert abs(frame.loc[1, "delta_skill"] - (-2.0 + 0.5 * np.euler_gamma)) < 0.15


def test_skill_floor_is_respected():
    rule = SkillImitationRule(SkillParams(alpha=7.0, beta=1.0, z_0=1.0, floor=0.0))
    model = TransmissionModel(rule, n=20, seed=2)
    for _ in range(10):
        model.step()
        assert model.population["skill"].min() >= 0.0
    assert model.last_metrics["mean_skill"] >= 0.0


def test_expected_delta():
    assert expected_delta(10, 7.0, 1.0) < expected_delta(1000, 7.0, 1.0) < expected_delta(10000, 7.0, 1.0)
    n_star = analytic_critical_population_size(7.0, 1.0)
    assert math.isclose(expected_delta(n_star, 7.0, 1.0), 0.0, abs_tol=1e-9)
    assert math.isclose(n_star, math.exp(7.0 - np.euler_gamma))


def test_analytic_critical_size_overflow():
    with pytest.raises(NoCriticalThresholdError):
        analytic_critical_population_size(1e6, 1.0)


def test_skill_parameter_validation():
    with pytest.raises(ConfigError) as excinfo:
        SkillImitationRule(SkillParams(beta=0.0))
    assert excinfo.value.parameter == "beta"
    with pytest.raises(ConfigError) as excinfo:
        SkillImitationRule(SkillParams(alpha=-1.0))
    assert excinfo.value.parameter == "alpha"
    with pytest.raises(ConfigError) as excinfo:
        SkillImitationRule(SkillParams(z_0=1.0, floor=2.0))
    assert excinfo.value.parameter == "floor"
