from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np
import pandas as pd

from demography import SkillImitationRule, SkillParams, expected_delta
from model import ConfigError, NoCriticalThresholdError, repetition_seeds, run_model


def critical_population_size(sizes: Sequence[float], deltas: Sequence[float], tolerance: float = 1e-12) -> float:
    """Root of the least-squares line ``delta = intercept + slope * ln(N)``.

    Returns ``exp(-intercept / slope)``. Raises NoCriticalThresholdError when
    the slope vanishes, the root lies below a single individual or it
    overflows.
    """
    n = np.asarray(sizes, dtype=float)
    y = np.asarray(deltas, dtype=float)
    if n.shape != y.shape or n.ndim != 1:
        raise ConfigError("deltas", f"need one delta per population size, got {y.shape} for {n.shape}")
    if not np.all(n > 0):
        raise ConfigError("sizes", "population sizes must be positive")
    if not np.all(np.isfinite(y)):
        raise ConfigError("deltas", "deltas must be finite")
    x = np.log(n)
    if len(np.unique(x)) < 2:
        raise NoCriticalThresholdError("need at least two distinct population sizes")
    slope, intercept = np.polyfit(x, y, 1)
    if not np.isfinite(slope) or abs(slope) < tolerance:
        raise NoCriticalThresholdError(f"no critical threshold: slope {slope!r} is too close to zero")
    log_root = -intercept / slope
    if log_root < 0:
        raise NoCriticalThresholdError(f"critical size below one individual (ln N*={log_root!r})")
    if not np.isfinite(log_root):
        raise NoCriticalThresholdError(f"critical size overflows (intercept={intercept}, slope={slope})")
    try:
        return math.exp(log_root)
    except OverflowError as exc:
        raise NoCriticalThresholdError(f"critical size overflows (intercept={intercept}, slope={slope})") from exc


def population_size_sweep(
    sizes: Sequence[int],
    params: SkillParams | None = None,
    t_max: int = 20,
    r_max: int = 10,
    seed: int | None = None,
    burn_in: int = 1,
) -> pd.DataFrame:
    """Runs skill imitation at every population size and returns the mean change per generation.

    Changes up to generation ``burn_in`` are left out: starting from a uniform
    population, the first change is the same for every N.
    """
    if t_max <= burn_in:
        raise ConfigError("t_max", f"must exceed burn_in={burn_in}, got {t_max!r}")
    params = params if params is not None else SkillParams(floor=None)
    rule = SkillImitationRule(params)
    rows = []
    for n, size_seed in zip(sizes, repetition_seeds(seed, len(sizes))):
        frame = run_model(rule, n=int(n), t_max=t_max, r_max=r_max, seed=size_seed)
        deltas = frame.loc[frame["generation"] > burn_in, "delta_skill"]
        rows.append(
            dict(
                n=int(n),
                delta_skill=float(deltas.mean()),
                delta_std=float(deltas.std(ddof=0)),
                expected_delta=expected_delta(int(n), params.alpha, params.beta),
            )
        )
    return pd.DataFrame(rows)


def estimate_critical_population_size(
    sizes: Sequence[int],
    params: SkillParams | None = None,
    t_max: int = 20,
    r_max: int = 10,
    seed: int | None = None,
    burn_in: int = 1,
) -> Tuple[float, pd.DataFrame]:
    table = population_size_sweep(sizes, params, t_max=t_max, r_max=r_max, seed=seed, burn_in=burn_in)
    return critical_population_size(table["n"], table["delta_skill"]), table
