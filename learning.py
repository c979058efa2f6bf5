"""Evolution of individual and social learning in a changing environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np

from model import (
    ConfigError,
    Population,
    TransmissionRule,
    check_non_negative,
    check_probability,
)

logger = logging.getLogger(__name__)

INDIVIDUAL, SOCIAL, CRITICAL = "individual", "social", "critical"


@dataclass(frozen=True)
class LearningParams:
    w: float = 1.0
    b: float = 0.5
    c: float = 0.9
    s: float = 0.0
    p: float = 1.0
    u: float = 0.2
    mu: float = 0.001
    p_social_0: float = 0.0
    allow_critical: bool = False

    @property
    def strategies(self) -> Tuple[str, ...]:
        if self.allow_critical:
            return (INDIVIDUAL, SOCIAL, CRITICAL)
        return (INDIVIDUAL, SOCIAL)

    def validate(self) -> None:
        for name in ("w", "b", "c", "s"):
            check_non_negative(name, getattr(self, name))
        for name in ("p", "u", "mu", "p_social_0"):
            check_probability(name, getattr(self, name))
        # lowest fitness: wrong behavior at the highest learning cost
        worst_cost = self.c + self.s if self.allow_critical else max(self.c, self.s)
        lowest = self.w - self.b * (1.0 + worst_cost)
        if lowest < 0:
            raise ConfigError(
                "c" if self.c >= self.s else "s",
                f"learning costs allow negative fitness ({lowest:.3f}) with w={self.w}, b={self.b}",
            )


def individual_learner_fitness(params: LearningParams) -> float:
    """Expected fitness of a population made only of individual learners."""
    return params.w + params.b * (2 * params.p - params.c - 1)


class LearningStrategyRule(TransmissionRule):
    """Strategies are inherited in proportion to fitness; behavior is learned.

    Individual learners get the current environment right with probability
    ``p`` and are otherwise one unit off. Social learners copy the behavior
    of a random member of the previous generation. Critical learners copy
    first and learn individually only when the copy turns out wrong.
    """

    name = "rogers"
    params_class = LearningParams
    reporters = ("p_social", "p_critical", "mean_fitness", "fitness_individual", "fitness_social")

    def _learn(
        self,
        strategy: np.ndarray,
        prior_behavior: np.ndarray,
        state: int,
        rng: np.random.Generator,
    ) -> Tuple[np.ndarray, np.ndarray]:
        # individual-learning variates, then demonstrator indices
        params = self.params
        n = len(strategy)
        own = np.where(rng.random(n) < params.p, state, state - 1)
        copied = prior_behavior[rng.integers(0, len(prior_behavior), size=n)]
        falls_back = (strategy == CRITICAL) & (copied != state)
        behavior = np.where((strategy == INDIVIDUAL) | falls_back, own, copied)
        cost = np.where(strategy == INDIVIDUAL, params.c, params.s) + np.where(falls_back, params.c, 0.0)
        fitness = params.w + np.where(behavior == state, params.b, -params.b) - params.b * cost
        return behavior, fitness

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        strategy = np.where(rng.random(n) < self.params.p_social_0, SOCIAL, INDIVIDUAL).astype("<U10")
        # nobody has learned anything yet, copied behaviors are wrong
        behavior, fitness = self._learn(strategy, np.full(n, -1), 0, rng)
        return Population(
            {"strategy": strategy, "behavior": behavior, "fitness": fitness},
            environment={"state": 0},
        )

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # parents, mutation variates, mutation offsets, environment change, learning
        n = population.size
        fitness = population["fitness"]
        total = fitness.sum()
        if total > 0:
            weights = fitness / total
        else:
            logger.debug("generation %d has zero total fitness, resampling uniformly", generation)
            weights = np.full(n, 1.0 / n)
        strategy = population["strategy"][rng.choice(n, size=n, p=weights)]

        names = np.array(self.params.strategies)
        k = len(names)
        mutating = rng.random(n) < self.params.mu
        offset = rng.integers(1, k, size=n)
        codes = np.zeros(n, dtype=int)
        for i, name in enumerate(names):
            codes[strategy == name] = i
        strategy = np.where(mutating, names[(codes + offset) % k], strategy)

        state = int(population.environment["state"])
        if rng.random() < self.params.u:
            state += 1
        behavior, fitness = self._learn(strategy, population["behavior"], state, rng)
        return population.evolve({"state": state}, strategy=strategy, behavior=behavior, fitness=fitness)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        strategy, fitness = population["strategy"], population["fitness"]

        def group_mean(mask: np.ndarray) -> float:
            return float(fitness[mask].mean()) if mask.any() else float("nan")

        return {
            "p_social": float(np.mean(strategy == SOCIAL)),
            "p_critical": float(np.mean(strategy == CRITICAL)),
            "mean_fitness": float(fitness.mean()),
            "fitness_individual": group_mean(strategy == INDIVIDUAL),
            "fitness_social": group_mean(strategy == SOCIAL),
        }
