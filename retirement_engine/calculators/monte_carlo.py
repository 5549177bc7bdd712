"""Entry points: deterministic runs, Monte Carlo batches and spending search.

A batch of ``n`` runs samples run ``i``'s return path from
``derive_seed(seed, i)``, so the same request and seed give the same
:class:`AggregateReport` whether the runs execute in one process or are
spread over a :class:`multiprocessing.Pool`.

Example
-------

>>> report = simulate(request)                 # doctest: +SKIP
>>> report.success_probability, report.trajectory(50)[-1]   # doctest: +SKIP
"""

from __future__ import annotations

import multiprocessing
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from functools import partial
from typing import List, Optional, Tuple, Union

import numpy as np
from loguru import logger

from ..errors import InvalidPlan, LengthMismatch
from .aggregate import DEFAULT_PERCENTILES, AggregateReport, summarize
from .ledger import Account, total_balance
from .money import ZERO, to_money
from .projection import RunResult, project
from .scenarios import DistributionParams, ReturnPath, derive_seed, sample
from .timegrid import TimeGrid
from .withdrawals import WithdrawalPolicy


class RunMode(Enum):
    DETERMINISTIC = "deterministic"
    MONTE_CARLO = "monte_carlo"


@dataclass(frozen=True)
class ProjectionRequest:
    """Everything needed to run a projection.

    Deterministic requests carry a hand-authored ``path``; Monte Carlo
    requests carry ``distribution`` plus ``runs`` and ``seed``.
    """

    grid: TimeGrid
    accounts: Tuple[Account, ...]
    policy: WithdrawalPolicy
    mode: RunMode = RunMode.DETERMINISTIC
    path: Optional[ReturnPath] = None
    distribution: Optional[DistributionParams] = None
    runs: int = 1000
    seed: Optional[int] = None
    processes: int = 1
    percentiles: Tuple[float, ...] = DEFAULT_PERCENTILES

    def __post_init__(self):
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "percentiles", tuple(self.percentiles))
        if not self.accounts:
            raise InvalidPlan("a projection needs at least one account")
        if self.mode is RunMode.DETERMINISTIC:
            if self.path is None:
                raise InvalidPlan("deterministic mode needs a return path")
            if len(self.path) != len(self.grid):
                raise LengthMismatch(
                    f"return path has {len(self.path)} periods, horizon has {len(self.grid)}"
                )
        else:
            if self.distribution is None:
                raise InvalidPlan("Monte Carlo mode needs distribution parameters")
            if self.runs <= 0:
                raise InvalidPlan(f"run count must be positive, got {self.runs}")
        if self.processes < 1:
            raise InvalidPlan(f"process count must be at least 1, got {self.processes}")


def run_deterministic(request: ProjectionRequest) -> RunResult:
    return project(request.grid, request.accounts, request.path, request.policy)


def _run_one(request: ProjectionRequest, batch_seed: int, index: int) -> RunResult:
    path = sample(len(request.grid), request.distribution, derive_seed(batch_seed, index))
    return project(request.grid, request.accounts, path, request.policy, run_index=index)


def run_batch(
    request: ProjectionRequest,
    runs: Optional[int] = None,
    seed: Optional[int] = None,
    processes: Optional[int] = None,
) -> List[RunResult]:
    """Run a Monte Carlo batch and return results in run-index order.

    ``runs``, ``seed`` and ``processes`` default to the request's values.
    Without any seed a fresh one is drawn once for the whole batch and logged,
    so the batch can be replayed.
    """
    if request.distribution is None:
        raise InvalidPlan("Monte Carlo batch needs distribution parameters")
    runs = request.runs if runs is None else runs
    if runs <= 0:
        raise InvalidPlan(f"run count must be positive, got {runs}")
    seed = request.seed if seed is None else seed
    if seed is None:
        seed = int(np.random.SeedSequence().entropy)
    processes = request.processes if processes is None else processes

    worker = partial(_run_one, request, seed)
    if processes <= 1:
        logger.debug("running {} paths sequentially (seed {})", runs, seed)
        results = [worker(i) for i in range(runs)]
    else:
        logger.debug("running {} paths on {} processes (seed {})", runs, processes, seed)
        chunksize = max(1, runs // (processes * 4))
        with multiprocessing.Pool(processes=processes) as pool:
            results = pool.map(worker, range(runs), chunksize=chunksize)

    depleted = sum(1 for r in results if not r.succeeded)
    logger.debug("batch finished: {} of {} runs depleted early", depleted, runs)
    return results


def simulate(request: ProjectionRequest) -> Union[RunResult, AggregateReport]:
    """Run ``request``: a :class:`RunResult` for deterministic mode, an
    :class:`AggregateReport` for Monte Carlo mode."""
    if request.mode is RunMode.DETERMINISTIC:
        return run_deterministic(request)
    return summarize(run_batch(request), request.percentiles)


def success_probability(request: ProjectionRequest) -> float:
    result = simulate(request)
    if isinstance(result, RunResult):
        return 1.0 if result.succeeded else 0.0
    return result.success_probability


def max_spending(
    request: ProjectionRequest,
    target_success: float = 0.9,
    tol: float = 1.0,
    max_doublings: int = 40,
) -> Decimal:
    """Largest per-period real spending target meeting ``target_success``.

    Binary search over the policy target.  Monte Carlo requests reuse the
    request's seed for every trial so each trial sees the same market paths.
    Raises :class:`InvalidPlan` when the grid has no withdrawal phase.
    """
    if request.grid.transition is None:
        raise InvalidPlan("spending search needs a grid with a withdrawal phase")
    if request.mode is RunMode.MONTE_CARLO and request.seed is None:
        request = replace(request, seed=int(np.random.SeedSequence().entropy))

    def meets(target: Decimal) -> bool:
        trial = replace(request, policy=replace(request.policy, target=target))
        return success_probability(trial) >= target_success

    contributed = sum((sum(a.contributions.values(), ZERO) for a in request.accounts), ZERO)
    start = total_balance({a.name: a for a in request.accounts})
    lo, hi = ZERO, to_money(max(start + contributed, Decimal(1)))
    doublings = 0
    while meets(hi) and doublings < max_doublings:
        lo, hi = hi, hi * 2
        doublings += 1

    tolerance = Decimal(str(tol))
    while hi - lo > tolerance:
        mid = to_money((lo + hi) / 2)
        if mid in (lo, hi):
            break
        if meets(mid):
            lo = mid
        else:
            hi = mid
    logger.info("max sustainable spending {} per period at {:.0%} success", lo, target_success)
    return lo


__all__ = [
    "RunMode",
    "ProjectionRequest",
    "run_deterministic",
    "run_batch",
    "simulate",
    "success_probability",
    "max_spending",
]
