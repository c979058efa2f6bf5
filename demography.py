"""Skill imitation with Gumbel-distributed copying error.

Every learner imitates the most skilled individual of the previous
generation. Imitation is lossy on average (``alpha``) but noisy
(``beta``), so a few learners may overshoot the model. Whether skill
accumulates or decays depends on how many learners try: the expected
change per generation is ``-alpha + beta * (euler_gamma + ln N)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict

import numpy as np

from model import (
    ConfigError,
    NoCriticalThresholdError,
    Population,
    TransmissionRule,
    check_non_negative,
)


@dataclass(frozen=True)
class SkillParams:
    alpha: float = 7.0
    beta: float = 1.0
    z_0: float = 1.0
    floor: float | None = 0.0

    def validate(self) -> None:
        check_non_negative("alpha", self.alpha)
        if isinstance(self.beta, bool) or not isinstance(self.beta, (int, float)) or not self.beta > 0:
            raise ConfigError("beta", f"must be positive, got {self.beta!r}")
        check_non_negative("z_0", self.z_0)
        if self.floor is not None and self.floor > self.z_0:
            raise ConfigError("floor", f"lies above the initial skill z_0={self.z_0}")


class SkillImitationRule(TransmissionRule):
    name = "skill"
    params_class = SkillParams
    reporters = ("mean_skill", "max_skill", "delta_skill")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        return Population({"skill": np.full(n, float(self.params.z_0))}, bounds={"skill": (self.params.floor, None)})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # one Gumbel draw per agent
        loc = float(population["skill"].max()) - self.params.alpha
        return population.evolve(skill=rng.gumbel(loc, self.params.beta, size=population.size))

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        mean = population.mean("skill")
        delta = mean - previous.mean("skill") if previous is not None else float("nan")
        return {"mean_skill": mean, "max_skill": float(population["skill"].max()), "delta_skill": delta}


def expected_delta(n: int, alpha: float, beta: float) -> float:
    return -alpha + beta * (np.euler_gamma + math.log(n))


def analytic_critical_population_size(alpha: float, beta: float) -> float:
    """Population size at which ``expected_delta`` is zero."""
    try:
        return math.exp(alpha / beta - np.euler_gamma)
    except OverflowError as exc:
        raise NoCriticalThresholdError(f"critical size overflows for alpha={alpha}, beta={beta}") from exc
