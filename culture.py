"""Copying and mutation rules for discrete and continuous cultural traits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

import numpy as np
import pandas as pd

from model import (
    ConfigError,
    Population,
    TransmissionRule,
    check_choice,
    check_non_negative,
    check_positive_int,
    check_probability,
)
from network import TOPOLOGIES, build_social_graph, edge_array, neighbor_table

logger = logging.getLogger(__name__)

A, B = "A", "B"
HIGH, LOW = "high", "low"

COPYING = ("unbiased", "direct", "conformist", "demonstrator", "vertical")
MUTATION = ("none", "unbiased", "biased")


def check_conformity(value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not -1.0 <= value <= 1.0:
        raise ConfigError("conformity", f"must lie in [-1, 1], got {value!r}")


def draw_traits(n: int, p_a, rng: np.random.Generator) -> np.ndarray:
    return np.where(rng.random(n) < p_a, A, B)


def draw_status(n: int, p_s: float, rng: np.random.Generator) -> np.ndarray:
    return np.where(rng.random(n) < p_s, HIGH, LOW)


def copy_unbiased(trait: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """One uniform demonstrator index per agent."""
    n = len(trait)
    return trait[rng.integers(0, n, size=n)]


def copy_conformist(trait: np.ndarray, conformity: float, rng: np.random.Generator) -> np.ndarray:
    """Three demonstrators per agent, then one uniform variate per agent.

    Two A out of three are adopted with probability 2/3 + D/3, one A out of
    three with 1/3 - D/3; unanimous demonstrators are always followed.
    """
    n = len(trait)
    n_a = (trait[rng.integers(0, n, size=(n, 3))] == A).sum(axis=1)
    u = rng.random(n)
    prob_a = np.select(
        [n_a == 3, n_a == 2, n_a == 1],
        [1.0, 2.0 / 3.0 + conformity / 3.0, 1.0 / 3.0 - conformity / 3.0],
        default=0.0,
    )
    return np.where(u < prob_a, A, B)


def mutate(trait: np.ndarray, mutation: str, mu: float, rng: np.random.Generator) -> np.ndarray:
    """One uniform variate per agent unless ``mutation`` is ``none``."""
    if mutation == "none":
        return trait
    flip = rng.random(len(trait)) < mu
    if mutation == "unbiased":
        return np.where(flip, np.where(trait == A, B, A), trait)
    return np.where(flip & (trait == B), A, trait)


@dataclass(frozen=True)
class BinaryTraitParams:
    p_0: float = 0.5
    copying: str = "unbiased"
    mutation: str = "none"
    mu: float = 0.0
    s_a: float = 0.1
    s_b: float = 0.0
    conformity: float = 0.0
    p_s: float = 0.05
    p_low: float = 0.01
    b: float = 0.5
    g: float = 0.0
    n_demonstrators: int = 2

    def validate(self) -> None:
        check_probability("p_0", self.p_0)
        check_choice("copying", self.copying, COPYING)
        check_choice("mutation", self.mutation, MUTATION)
        for name in ("mu", "s_a", "s_b", "p_s", "p_low", "b", "g"):
            check_probability(name, getattr(self, name))
        check_conformity(self.conformity)
        check_positive_int("n_demonstrators", self.n_demonstrators)


def _copy_unbiased(population: Population, params: BinaryTraitParams, rng) -> Dict[str, np.ndarray]:
    return {"trait": copy_unbiased(population["trait"], rng)}


def _copy_direct(population: Population, params: BinaryTraitParams, rng) -> Dict[str, np.ndarray]:
    trait = population["trait"]
    demonstrators = copy_unbiased(trait, rng)
    u = rng.random(len(trait))
    copy = np.where(demonstrators == A, u < params.s_a, u < params.s_b)
    return {"trait": np.where(copy, demonstrators, trait)}


def _copy_conformist(population: Population, params: BinaryTraitParams, rng) -> Dict[str, np.ndarray]:
    return {"trait": copy_conformist(population["trait"], params.conformity, rng)}


def _copy_demonstrator(population: Population, params: BinaryTraitParams, rng) -> Dict[str, np.ndarray]:
    # demonstrator draw (weighted by status), then the status of the new generation
    trait = population["trait"]
    n = len(trait)
    weights = np.where(population["status"] == HIGH, 1.0, params.p_low)
    total = weights.sum()
    if total <= 0:
        logger.debug("no demonstrator has positive weight, sampling uniformly")
        weights = np.full(n, 1.0 / n)
    else:
        weights = weights / total
    chosen = trait[rng.choice(n, size=n, p=weights)]
    return {"trait": chosen, "status": draw_status(n, params.p_s, rng)}


def _copy_vertical(population: Population, params: BinaryTraitParams, rng) -> Dict[str, np.ndarray]:
    # parents (n x 2), mixed-parent variates, horizontal variates, observed demonstrators
    trait = population["trait"]
    n = len(trait)
    parents = trait[rng.integers(0, n, size=(n, 2))]
    u = rng.random(n)
    mixed = parents[:, 0] != parents[:, 1]
    offspring = np.where(mixed, np.where(u < params.b, A, B), parents[:, 0])
    horizontal = rng.random(n) < params.g
    observed = offspring[rng.integers(0, n, size=(n, params.n_demonstrators))]
    any_a = (observed == A).any(axis=1)
    return {"trait": np.where(horizontal & any_a, A, offspring)}


COPY_POLICIES: Dict[str, Callable[[Population, BinaryTraitParams, np.random.Generator], Dict[str, np.ndarray]]] = {
    "unbiased": _copy_unbiased,
    "direct": _copy_direct,
    "conformist": _copy_conformist,
    "demonstrator": _copy_demonstrator,
    "vertical": _copy_vertical,
}


class BinaryTraitRule(TransmissionRule):
    """Two variants, A and B: a copying policy followed by a mutation policy."""

    name = "binary"
    params_class = BinaryTraitParams
    reporters = ("p",)

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        columns = {"trait": draw_traits(n, self.params.p_0, rng)}
        if self.params.copying == "demonstrator":
            columns["status"] = draw_status(n, self.params.p_s, rng)
        return Population(columns)

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        changes = COPY_POLICIES[self.params.copying](population, self.params, rng)
        changes["trait"] = mutate(changes["trait"], self.params.mutation, self.params.mu, rng)
        return population.evolve(**changes)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        return {"p": population.frequency("trait", A)}


@dataclass(frozen=True)
class MultipleTraitsParams:
    m: int = 10
    mu: float = 0.0

    def validate(self) -> None:
        check_positive_int("m", self.m)
        check_probability("mu", self.mu)


class MultipleTraitsRule(TransmissionRule):
    """Unbiased copying of many variants, innovation creates never-seen ones."""

    name = "multiple"
    params_class = MultipleTraitsParams
    reporters = ("n_traits", "top_frequency", "new_traits")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        trait = rng.integers(0, self.params.m, size=n)
        return Population({"trait": trait}, environment={"next_trait": self.params.m, "innovations": 0})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        trait = copy_unbiased(population["trait"], rng)
        innovate = rng.random(len(trait)) < self.params.mu
        k = int(innovate.sum())
        next_trait = int(population.environment["next_trait"])
        trait[innovate] = np.arange(next_trait, next_trait + k)
        return population.evolve({"next_trait": next_trait + k, "innovations": k}, trait=trait)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        _, counts = np.unique(population["trait"], return_counts=True)
        return {
            "n_traits": float(len(counts)),
            "top_frequency": float(counts.max() / population.size),
            "new_traits": float(population.environment.get("innovations", 0)),
        }


def trait_frequencies(population: Population, column: str = "trait") -> pd.Series:
    return pd.Series(population[column]).value_counts(normalize=True)


@dataclass(frozen=True)
class OpennessParams:
    p_0: float = 0.5
    openness_0: float | None = None
    mu: float = 0.1
    sigma: float = 0.1

    def validate(self) -> None:
        check_probability("p_0", self.p_0)
        if self.openness_0 is not None:
            check_probability("openness_0", self.openness_0)
        check_probability("mu", self.mu)
        check_non_negative("sigma", self.sigma)


class OpennessRule(TransmissionRule):
    """Openness to social influence is itself copied along with the trait."""

    name = "openness"
    params_class = OpennessParams
    reporters = ("p", "mean_openness")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        trait = draw_traits(n, self.params.p_0, rng)
        if self.params.openness_0 is None:
            openness = rng.random(n)
        else:
            openness = np.full(n, self.params.openness_0)
        return Population({"trait": trait, "openness": openness}, bounds={"openness": (0.0, 1.0)})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # demonstrators, copy variates, mutation variates, openness noise
        trait, openness = population["trait"], population["openness"]
        n = len(trait)
        demonstrators = rng.integers(0, n, size=n)
        copy = rng.random(n) < openness
        new_trait = np.where(copy, trait[demonstrators], trait)
        new_openness = np.where(copy, openness[demonstrators], openness)
        mutating = rng.random(n) < self.params.mu
        noise = rng.normal(0.0, self.params.sigma, size=n)
        new_openness = np.where(mutating, new_openness + noise, new_openness)
        return population.evolve(trait=new_trait, openness=new_openness)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        return {"p": population.frequency("trait", A), "mean_openness": population.mean("openness")}


@dataclass(frozen=True)
class AttractionParams:
    mode: str = "transformation"
    attractor: float = 0.5
    strength: float = 0.1
    sigma: float = 0.05

    def validate(self) -> None:
        check_choice("mode", self.mode, ("reproduction", "transformation"))
        check_probability("attractor", self.attractor)
        check_probability("strength", self.strength)
        check_non_negative("sigma", self.sigma)


class AttractionRule(TransmissionRule):
    """A continuous trait in [0, 1] drawn toward an attractor.

    ``reproduction`` gets there by selective copying of demonstrators close
    to the attractor, ``transformation`` by biasing every copy toward it.
    """

    name = "attraction"
    params_class = AttractionParams
    reporters = ("mean", "variance")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        return Population({"trait": rng.random(n)}, bounds={"trait": (0.0, 1.0)})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # demonstrator indices, then copy noise
        x = population["trait"]
        n = len(x)
        params = self.params
        if params.mode == "transformation":
            copied = x[rng.integers(0, n, size=n)]
            copied = copied + params.strength * (params.attractor - copied)
        else:
            weights = 1.0 - np.abs(x - params.attractor)
            total = weights.sum()
            if total <= 0:
                logger.debug("all demonstrators at maximal distance, sampling uniformly")
                weights = np.full(n, 1.0 / n)
            else:
                weights = weights / total
            copied = x[rng.choice(n, size=n, p=weights)]
        copied = copied + rng.normal(0.0, params.sigma, size=n)
        return population.evolve(trait=copied)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        x = population["trait"]
        return {"mean": float(x.mean()), "variance": float(x.var())}


@dataclass(frozen=True)
class NetworkParams:
    p_0: float = 0.5
    topology: str = "small_world"
    k: int = 4
    p_rewire: float = 0.1
    mu: float = 0.0

    def validate(self) -> None:
        check_probability("p_0", self.p_0)
        check_choice("topology", self.topology, TOPOLOGIES)
        check_positive_int("k", self.k)
        check_probability("p_rewire", self.p_rewire)
        check_probability("mu", self.mu)


class NetworkRule(TransmissionRule):
    """Unbiased copying restricted to neighbors on a social graph."""

    name = "network"
    params_class = NetworkParams
    reporters = ("p", "agreement")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        # graph seed first, then the traits
        graph = build_social_graph(self.params.topology, n, rng, {"k": self.params.k, "p_rewire": self.params.p_rewire})
        offsets, neighbors, degree = neighbor_table(graph, n)
        edges = edge_array(graph)
        for arr in (offsets, neighbors, degree, edges):
            arr.flags.writeable = False
        environment = {"graph": graph, "offsets": offsets, "neighbors": neighbors, "degree": degree, "edges": edges}
        return Population({"trait": draw_traits(n, self.params.p_0, rng)}, environment=environment)

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # one neighbor variate per agent, then mutation variates
        trait = population["trait"]
        env = population.environment
        degree, neighbors = env["degree"], env["neighbors"]
        u = rng.random(len(trait))
        connected = degree > 0
        if neighbors.size:
            pick = np.where(connected, env["offsets"] + np.floor(u * degree).astype(int), 0)
            copied = np.where(connected, trait[neighbors[pick]], trait)
        else:
            copied = trait
        return population.evolve(trait=mutate(copied, "unbiased", self.params.mu, rng))

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        trait = population["trait"]
        edges = population.environment["edges"]
        agreement = float(np.mean(trait[edges[:, 0]] == trait[edges[:, 1]])) if len(edges) else float("nan")
        return {"p": population.frequency("trait", A), "agreement": agreement}


@dataclass(frozen=True)
class MigrationParams:
    groups: int = 2
    migration: float = 0.01
    conformity: float = 0.3
    p_0: float | Tuple[float, ...] = (1.0, 0.0)

    def initial_frequencies(self) -> np.ndarray:
        return np.broadcast_to(np.asarray(self.p_0, dtype=float), (self.groups,))

    def validate(self) -> None:
        check_positive_int("groups", self.groups)
        check_probability("migration", self.migration)
        check_conformity(self.conformity)
        if isinstance(self.p_0, (int, float)):
            check_probability("p_0", self.p_0)
            return
        if len(self.p_0) != self.groups:
            raise ConfigError("p_0", f"needs one frequency per group ({self.groups}), got {len(self.p_0)}")
        for value in self.p_0:
            check_probability("p_0", value)


class MigrationRule(TransmissionRule):
    """Conformist copying inside groups linked by migration."""

    name = "migration"
    params_class = MigrationParams
    reporters = ("p", "between_group_variance")

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        group = np.arange(n) % self.params.groups
        trait = draw_traits(n, self.params.initial_frequencies()[group], rng)
        return Population({"trait": trait, "group": group})

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        # migration variates, destinations, then conformist copying group by group
        trait = population["trait"]
        n = len(trait)
        moving = rng.random(n) < self.params.migration
        destination = rng.integers(0, self.params.groups, size=n)
        group = np.where(moving, destination, population["group"])
        new_trait = trait.copy()
        for g in range(self.params.groups):
            members = np.flatnonzero(group == g)
            if members.size:
                new_trait[members] = copy_conformist(trait[members], self.params.conformity, rng)
        return population.evolve(trait=new_trait, group=group)

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        frame = pd.DataFrame({"a": population["trait"] == A, "group": population["group"]})
        per_group = frame.groupby("group")["a"].mean()
        return {
            "p": population.frequency("trait", A),
            "between_group_variance": float(per_group.var(ddof=0)),
        }
