"""Copying of inter-dependent traits.

Agents carry any subset of ``m`` binary traits. Whether a new trait sticks
depends on how well it fits the traits an agent already has, through a
symmetric matrix of +1 (compatible) and -1 (incompatible) coefficients.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from model import (
    ConfigError,
    Population,
    TransmissionRule,
    check_non_negative,
    check_positive_int,
    check_probability,
    logistic,
)


def random_compatibility(m: int, gamma: float, rng: np.random.Generator) -> np.ndarray:
    """Each pair is compatible with probability ``gamma``; one m x m variate block, upper triangle used."""
    signs = np.where(rng.random((m, m)) < gamma, 1.0, -1.0)
    upper = np.triu(signs, k=1)
    return upper + upper.T


def block_compatibility(sizes: Sequence[int]) -> np.ndarray:
    """+1 inside each block of consecutive traits, -1 across blocks."""
    labels = np.repeat(np.arange(len(sizes)), sizes)
    matrix = np.where(labels[:, None] == labels[None, :], 1.0, -1.0)
    np.fill_diagonal(matrix, 0.0)
    return matrix


@dataclass(frozen=True)
class CompatibilityParams:
    m: int = 6
    gamma: float = 0.5
    mu: float = 0.05
    turnover: float = 0.0
    initial_traits: int = 0
    selectivity: float = 1.0
    compatibility: Tuple[Tuple[float, ...], ...] | None = field(default=None, metadata={"cli": False})

    def __post_init__(self):
        if self.compatibility is not None:
            rows = tuple(tuple(float(v) for v in row) for row in np.atleast_2d(np.asarray(self.compatibility, dtype=float)))
            object.__setattr__(self, "compatibility", rows)

    def validate(self) -> None:
        check_positive_int("m", self.m)
        for name in ("gamma", "mu", "turnover"):
            check_probability(name, getattr(self, name))
        check_non_negative("selectivity", self.selectivity)
        if isinstance(self.initial_traits, bool) or not 0 <= self.initial_traits <= self.m:
            raise ConfigError("initial_traits", f"must lie between 0 and m={self.m}, got {self.initial_traits!r}")
        if self.compatibility is None:
            return
        matrix = np.asarray(self.compatibility, dtype=float)
        if matrix.shape != (self.m, self.m):
            raise ConfigError("compatibility", f"must be {self.m} x {self.m}, got {matrix.shape}")
        if not np.array_equal(matrix, matrix.T):
            raise ConfigError("compatibility", "must be symmetric")
        off_diagonal = matrix[~np.eye(self.m, dtype=bool)]
        if not np.isin(off_diagonal, (-1.0, 1.0)).all():
            raise ConfigError("compatibility", "off-diagonal coefficients must be +1 or -1")


def adoption_probability(
    traits: np.ndarray,
    candidate: np.ndarray,
    compatibility: np.ndarray,
    selectivity: float = 1.0,
) -> np.ndarray:
    """Logistic of the summed coefficients between each candidate and the traits held.

    ``selectivity`` scales the score: at 0 every candidate has even odds, large
    values make adoption all-or-nothing.
    """
    score = (traits * compatibility[candidate]).sum(axis=1)
    return logistic(selectivity * score)


def pick_uniform(mask: np.ndarray, rng: np.random.Generator) -> Tuple[np.ndarray, np.ndarray]:
    """Uniformly chosen True column per row, and whether the row had any."""
    keys = np.where(mask, rng.random(mask.shape), -1.0)
    return keys.argmax(axis=1), mask.any(axis=1)


class CompatibilityRule(TransmissionRule):
    name = "interdependence"
    params_class = CompatibilityParams

    def __init__(self, params=None):
        super().__init__(params)
        self.reporters = tuple(f"trait_{j}" for j in range(self.params.m)) + ("mean_repertoire",)

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        # compatibility block first (when random), then initial repertoires
        params = self.params
        if params.compatibility is None:
            matrix = random_compatibility(params.m, params.gamma, rng)
        else:
            matrix = np.array(params.compatibility, dtype=float)
        matrix.flags.writeable = False
        traits = np.zeros((n, params.m), dtype=bool)
        if params.initial_traits:
            chosen = np.argsort(rng.random((n, params.m)), axis=1)[:, : params.initial_traits]
            traits[np.arange(n)[:, None], chosen] = True
        return Population({"traits": traits}, environment={"compatibility": matrix})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # turnover, demonstrators, candidate keys, acceptance, innovation, innovation keys, acceptance
        params = self.params
        previous = population["traits"]
        compatibility = population.environment["compatibility"]
        n = population.size
        rows = np.arange(n)

        traits = previous.copy()
        traits[rng.random(n) < params.turnover] = False

        demonstrators = rng.integers(0, n, size=n)
        candidate, offered = pick_uniform(previous[demonstrators] & ~traits, rng)
        accepted = rng.random(n) < adoption_probability(traits, candidate, compatibility, params.selectivity)
        adopt = offered & accepted
        traits[rows[adopt], candidate[adopt]] = True

        innovating = rng.random(n) < params.mu
        novel, open_slot = pick_uniform(~traits, rng)
        accepted = rng.random(n) < adoption_probability(traits, novel, compatibility, params.selectivity)
        adopt = innovating & open_slot & accepted
        traits[rows[adopt], novel[adopt]] = True
        return population.evolve(traits=traits)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        traits = population["traits"]
        metrics = {f"trait_{j}": float(freq) for j, freq in enumerate(traits.mean(axis=0))}
        metrics["mean_repertoire"] = float(traits.sum(axis=1).mean())
        return metrics


def block_frequencies(frame: pd.DataFrame, sizes: Sequence[int]) -> pd.DataFrame:
    """Mean trait frequency per block of consecutive traits, one column per block."""
    result = {}
    start = 0
    for i, size in enumerate(sizes):
        columns = [f"trait_{j}" for j in range(start, start + size)]
        result[f"block_{i}"] = frame[columns].mean(axis=1)
        start += size
    return pd.DataFrame(result, index=frame.index)
