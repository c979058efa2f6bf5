"""Populations, transmission rules and the generation loop (Mesa 3+)."""

from __future__ import annotations

import logging
import math
import multiprocessing
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd
from mesa import DataCollector, Model

logger = logging.getLogger(__name__)

Bounds = Tuple[float | None, float | None]


class ConfigError(ValueError):
    """Invalid model or run configuration, raised before any simulation work."""

    def __init__(self, parameter: str, message: str):
        super().__init__(f"{parameter}: {message}")
        self.parameter = parameter


class NoCriticalThresholdError(ArithmeticError):
    """The fitted relationship has no usable root."""


def check_probability(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ConfigError(name, f"must be a probability in [0, 1], got {value!r}")


def check_positive_int(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        raise ConfigError(name, f"must be a positive integer, got {value!r}")


def check_non_negative(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value) or value < 0:
        raise ConfigError(name, f"must be non-negative, got {value!r}")


def check_choice(name: str, value: str, choices: Sequence[str]) -> None:
    if value not in choices:
        raise ConfigError(name, f"must be one of {', '.join(choices)}, got {value!r}")


def logistic(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


class Population:
    """N agents stored column-wise.

    Every column is an array with one row per agent; bounded columns are
    clamped on construction. Stored arrays are read-only, so a generation
    step has to build the next generation with ``evolve`` and the previous
    one stays intact.
    """

    def __init__(
        self,
        columns: Dict[str, np.ndarray],
        bounds: Dict[str, Bounds] | None = None,
        environment: Dict[str, object] | None = None,
    ):
        if not columns:
            raise ConfigError("columns", "a population needs at least one column")
        self.bounds: Dict[str, Bounds] = dict(bounds or {})
        self.environment: Dict[str, object] = dict(environment or {})
        self._columns: Dict[str, np.ndarray] = {}
        size = None
        for name, values in columns.items():
            arr = np.array(values)
            lo, hi = self.bounds.get(name, (None, None))
            if lo is not None or hi is not None:
                arr = np.clip(arr.astype(float), lo, hi)
            if size is None:
                size = len(arr)
            elif len(arr) != size:
                raise ConfigError(name, f"has {len(arr)} rows, expected {size}")
            arr.flags.writeable = False
            self._columns[name] = arr
        self._size = int(size)

    @property
    def size(self) -> int:
        return self._size

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def __len__(self) -> int:
        return self._size

    def __contains__(self, name: str) -> bool:
        return name in self._columns

    def __getitem__(self, name: str) -> np.ndarray:
        return self._columns[name]

    def evolve(self, environment: Dict[str, object] | None = None, **columns: np.ndarray) -> "Population":
        """Next generation: replaced columns, same bounds, updated environment."""
        merged = dict(self._columns)
        merged.update(columns)
        env = dict(self.environment)
        env.update(environment or {})
        return Population(merged, self.bounds, env)

    def frequency(self, name: str, value: object) -> float:
        return float(np.mean(self._columns[name] == value))

    def mean(self, name: str) -> float:
        return float(np.mean(self._columns[name]))

    def to_frame(self) -> pd.DataFrame:
        data = {}
        for name, values in self._columns.items():
            if values.ndim == 2:
                for j in range(values.shape[1]):
                    data[f"{name}_{j}"] = values[:, j]
            else:
                data[name] = values
        return pd.DataFrame(data)


class TransmissionRule:
    """One generation step with its own initial state and summary statistics.

    Subclasses set ``params_class`` and ``reporters`` and implement
    ``initial_population``, ``step`` and ``summarize``. Rules hold no
    per-repetition state: anything a repetition owns goes into the
    population's environment.
    """

    name = "rule"
    params_class: type = object
    reporters: Tuple[str, ...] = ()

    def __init__(self, params=None):
        self.params = params if params is not None else self.params_class()
        self.params.validate()

    def initial_population(self, n: int, rng: np.random.Generator) -> Population:
        raise NotImplementedError

    def step(self, population: Population, rng: np.random.Generator, generation: int) -> Population:
        raise NotImplementedError

    def summarize(self, population: Population, previous: Population | None) -> Dict[str, float]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params!r})"


class TransmissionModel(Model):
    """Mesa model running one repetition of a transmission rule."""

    def __init__(self, rule: TransmissionRule, n: int = 100, seed: int | None = None):
        check_positive_int("n", n)
        super().__init__(seed=seed)
        self.rng = np.random.default_rng(seed)
        self.rule = rule
        self.n = int(n)
        self.generation = 0
        self.population = rule.initial_population(self.n, self.rng)
        self.last_metrics: Dict[str, float] = rule.summarize(self.population, None)
        self.datacollector = DataCollector(
            model_reporters={
                key: (lambda m, key=key: m.last_metrics.get(key, float("nan")))
                for key in rule.reporters
            }
        )
        self.datacollector.collect(self)

    def step(self):
        previous = self.population
        self.population = self.rule.step(previous, self.rng, self.generation)
        if self.population.size != previous.size:
            raise RuntimeError(
                f"{self.rule.name} changed the population size from {previous.size} to {self.population.size}"
            )
        self.generation += 1
        self.last_metrics = self.rule.summarize(self.population, previous)
        self.datacollector.collect(self)

    def summary_frame(self, run: int = 0) -> pd.DataFrame:
        df = self.datacollector.get_model_vars_dataframe().reset_index(drop=True)
        df.insert(0, "generation", np.arange(len(df)))
        df.insert(0, "run", run)
        return df


def repetition_seeds(seed: int | None, r_max: int) -> List[int]:
    """Independent integer seeds, one per repetition."""
    children = np.random.SeedSequence(seed).spawn(r_max)
    return [int(child.generate_state(1)[0]) for child in children]


def _run_repetition(args: Tuple[TransmissionRule, int, int, int, int]) -> pd.DataFrame:
    rule, n, t_max, run, seed = args
    model = TransmissionModel(rule, n=n, seed=seed)
    for _ in range(t_max):
        model.step()
    logger.debug("%s run %d finished after %d generations", rule.name, run, t_max)
    return model.summary_frame(run)


def run_model(
    rule: TransmissionRule,
    n: int,
    t_max: int,
    r_max: int = 1,
    seed: int | None = None,
    workers: int = 1,
) -> pd.DataFrame:
    """Run ``r_max`` independent repetitions of ``t_max`` generations.

    Returns one row per run and generation (generation 0 is the initial
    population) with the rule's reporters as columns. Repetition seeds are
    derived from ``seed`` only, so the result does not depend on ``workers``.
    """
    check_positive_int("n", n)
    if isinstance(t_max, bool) or not isinstance(t_max, (int, np.integer)) or t_max < 0:
        raise ConfigError("t_max", f"must be a non-negative integer, got {t_max!r}")
    check_positive_int("r_max", r_max)
    check_positive_int("workers", workers)

    tasks = [(rule, int(n), int(t_max), run, s) for run, s in enumerate(repetition_seeds(seed, r_max))]
    if workers > 1 and r_max > 1:
        with multiprocessing.Pool(min(workers, r_max)) as pool:
            frames = pool.map(_run_repetition, tasks)
    else:
        frames = [_run_repetition(task) for task in tasks]
    frames.sort(key=lambda df: int(df["run"].iloc[0]))
    return pd.concat(frames, ignore_index=True)


def summarize_runs(frame: pd.DataFrame) -> pd.DataFrame:
    """Mean of every reporter per generation across runs."""
    return frame.drop(columns=["run"]).groupby("generation").mean()
