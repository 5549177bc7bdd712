"""Market return and inflation paths.

A :class:`ReturnPath` holds one ``(nominal return, inflation)`` pair per
period.  Paths are either written by hand (:func:`deterministic_path`) or
drawn from a normal AR(1) process (:func:`sample`).  Every random draw goes
through a generator seeded from :func:`derive_seed`, so a batch is
reproducible no matter how its runs are scheduled.

Example
-------

>>> params = DistributionParams(mean=0.005, stdev=0.04)
>>> sample(12, params, seed=7) == sample(12, params, seed=7)
True
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import LengthMismatch, ScenarioError
from .money import Number, to_rate
from .timegrid import StepSize

Seed = Union[int, np.random.SeedSequence, None]


@dataclass(frozen=True)
class RatePair:
    nominal_return: Decimal
    inflation: Decimal


@dataclass(frozen=True)
class ReturnPath:
    rates: Tuple[RatePair, ...]

    def __len__(self) -> int:
        return len(self.rates)

    def __iter__(self) -> Iterator[RatePair]:
        return iter(self.rates)

    def __getitem__(self, i: int) -> RatePair:
        return self.rates[i]

    @property
    def returns(self) -> Tuple[Decimal, ...]:
        return tuple(r.nominal_return for r in self.rates)

    @property
    def inflation(self) -> Tuple[Decimal, ...]:
        return tuple(r.inflation for r in self.rates)


@dataclass(frozen=True)
class DistributionParams:
    """Per-period return distribution.

    ``correlation`` is the lag-one serial correlation of returns; it must lie
    in (-1, 1).  Inflation is drawn independently of returns.
    """

    mean: float
    stdev: float
    correlation: float = 0.0
    inflation_mean: float = 0.0
    inflation_stdev: float = 0.0

    def __post_init__(self):
        if self.stdev < 0 or self.inflation_stdev < 0:
            raise ScenarioError("standard deviations must be non-negative")
        if not -1.0 < self.correlation < 1.0:
            raise ScenarioError(f"serial correlation must be in (-1, 1), got {self.correlation}")

    @classmethod
    def annual(
        cls,
        mean: float,
        stdev: float,
        step: StepSize = StepSize.ANNUAL,
        correlation: float = 0.0,
        inflation_mean: float = 0.0,
        inflation_stdev: float = 0.0,
    ) -> "DistributionParams":
        """Convert annual figures to per-period figures for ``step``."""
        n = step.per_year
        root = math.sqrt(n)
        return cls(
            mean=mean / n,
            stdev=stdev / root,
            correlation=correlation,
            inflation_mean=inflation_mean / n,
            inflation_stdev=inflation_stdev / root,
        )


def deterministic_path(
    returns: Sequence[Number],
    inflation: Optional[Sequence[Number]] = None,
    horizon: Optional[int] = None,
) -> ReturnPath:
    """Wrap hand-authored rates in a :class:`ReturnPath`.

    ``inflation`` defaults to zero for every period.  Raises
    :class:`LengthMismatch` when the two sequences differ in length or do not
    match ``horizon``.
    """
    if inflation is None:
        inflation = [0] * len(returns)
    if len(returns) != len(inflation):
        raise LengthMismatch(
            f"{len(returns)} returns but {len(inflation)} inflation figures"
        )
    if horizon is not None and len(returns) != horizon:
        raise LengthMismatch(f"path has {len(returns)} periods, horizon has {horizon}")
    return ReturnPath(tuple(RatePair(to_rate(r), to_rate(i)) for r, i in zip(returns, inflation)))


def constant_path(horizon: int, rate: Number, inflation: Number = 0) -> ReturnPath:
    return deterministic_path([rate] * horizon, [inflation] * horizon, horizon)


def derive_seed(batch_seed: Optional[int], run_index: int) -> np.random.SeedSequence:
    """Per-run seed from a batch seed and the run's index.

    This is the only place randomness is seeded for a batch.  The child
    sequence depends on ``(batch_seed, run_index)`` alone, never on worker
    assignment or completion order.
    """
    return np.random.SeedSequence(batch_seed, spawn_key=(int(run_index),))


def _ar1(rng: np.random.Generator, n: int, mean: float, stdev: float, rho: float) -> np.ndarray:
    shocks = rng.standard_normal(n)
    out = np.empty(n)
    scale = stdev * math.sqrt(1.0 - rho * rho)
    prev = mean + stdev * shocks[0]
    out[0] = prev
    for t in range(1, n):
        prev = mean + rho * (prev - mean) + scale * shocks[t]
        out[t] = prev
    return out


def sample(horizon: int, params: DistributionParams, seed: Seed) -> ReturnPath:
    """Draw one return/inflation path of ``horizon`` periods.

    Returns below -100% are clamped to -100%: an account can lose everything
    but never go negative from market moves alone.
    """
    if horizon <= 0:
        raise LengthMismatch(f"cannot sample a path of {horizon} periods")
    rng = np.random.default_rng(seed)
    returns = _ar1(rng, horizon, params.mean, params.stdev, params.correlation)
    returns = np.maximum(returns, -1.0)
    inflation = params.inflation_mean + params.inflation_stdev * rng.standard_normal(horizon)
    return ReturnPath(
        tuple(RatePair(to_rate(float(r)), to_rate(float(i))) for r, i in zip(returns, inflation))
    )


def sample_many(
    n: int,
    horizon: int,
    params: DistributionParams,
    batch_seed: Optional[int],
) -> List[ReturnPath]:
    """``n`` independent paths, path ``i`` seeded by ``derive_seed(batch_seed, i)``."""
    if n <= 0:
        raise ScenarioError(f"number of paths must be positive, got {n}")
    paths = [sample(horizon, params, derive_seed(batch_seed, i)) for i in range(n)]
    if params.stdev > 0 and len(set(paths)) != len(paths):
        raise ScenarioError("sampled batch contains identical paths")
    return paths


__all__ = [
    "RatePair",
    "ReturnPath",
    "DistributionParams",
    "deterministic_path",
    "constant_path",
    "derive_seed",
    "sample",
    "sample_many",
]
