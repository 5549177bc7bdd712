"""Single-run projection engine.

:func:`project` steps a set of accounts through a :class:`TimeGrid` along
one :class:`ReturnPath`.  Each period is either accumulating (growth, fees and
contributions) or withdrawing (growth and fees, then spending plus tax).  A
run that cannot fund a period's spending is depleted: the shortfall period is
recorded and nothing after it is simulated.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from ..errors import LengthMismatch
from .ledger import Account, apply_period
from .money import ZERO, to_money
from .scenarios import ReturnPath
from .timegrid import Period, Phase, TimeGrid
from .withdrawals import WithdrawalPolicy, evaluate


class RunState(Enum):
    ACCUMULATING = "accumulating"
    WITHDRAWING = "withdrawing"
    DEPLETED = "depleted"
    COMPLETE = "complete"


class Outcome(Enum):
    SUCCEEDED = "succeeded"
    DEPLETED_EARLY = "depleted_early"


@dataclass(frozen=True)
class PeriodSnapshot:
    period: Period
    balances: Tuple[Tuple[str, Decimal], ...]
    withdrawn: Decimal
    tax: Decimal
    shortfall: bool
    contributed: Decimal = ZERO
    net_spending: Decimal = ZERO
    target: Decimal = ZERO
    withdrawals: Tuple[Tuple[str, Decimal], ...] = ()

    @property
    def total(self) -> Decimal:
        return sum((b for _, b in self.balances), ZERO)

    def balance(self, name: str) -> Decimal:
        return dict(self.balances)[name]


@dataclass(frozen=True)
class RunResult:
    snapshots: Tuple[PeriodSnapshot, ...]
    outcome: Outcome
    horizon: int
    run_index: Optional[int] = None

    def __len__(self) -> int:
        return len(self.snapshots)

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCEEDED

    @property
    def depletion_period(self) -> Optional[int]:
        if self.succeeded or not self.snapshots:
            return None
        return self.snapshots[-1].period.index

    @property
    def terminal_wealth(self) -> Decimal:
        return self.snapshots[-1].total if self.snapshots else ZERO

    def totals(self, periods: Optional[int] = None) -> Tuple[Decimal, ...]:
        """Total balance per period, zero-padded to ``periods``."""
        values = [s.total for s in self.snapshots]
        n = self.horizon if periods is None else periods
        return tuple(values[:n] + [ZERO] * (n - len(values)))

    def to_frame(self) -> pd.DataFrame:
        """One row per simulated period, money as floats."""
        rows = []
        for snap in self.snapshots:
            p = snap.period
            row = {
                "period": p.index,
                "start": p.start,
                "age": p.age,
                "phase": p.phase.value,
            }
            for name, bal in snap.balances:
                row[name] = float(bal)
            row.update(
                total=float(snap.total),
                contributed=float(snap.contributed),
                target=float(snap.target),
                withdrawn=float(snap.withdrawn),
                tax=float(snap.tax),
                net_spending=float(snap.net_spending),
                shortfall=snap.shortfall,
            )
            rows.append(row)
        return pd.DataFrame(rows)


def _initial_state(period: Period) -> RunState:
    if period.phase is Phase.WITHDRAWING:
        return RunState.WITHDRAWING
    return RunState.ACCUMULATING


def _ledger(accounts: Iterable[Account]) -> Dict[str, Account]:
    ledger: Dict[str, Account] = {}
    for acct in accounts:
        if acct.name in ledger:
            raise ValueError(f"duplicate account name {acct.name!r}")
        ledger[acct.name] = acct.copy()
    return ledger


def project(
    grid: TimeGrid,
    accounts: Sequence[Account],
    path: ReturnPath,
    policy: WithdrawalPolicy,
    run_index: Optional[int] = None,
) -> RunResult:
    """Run one projection.

    ``accounts`` are templates: they are copied, so the caller's objects are
    never modified and the same templates can seed any number of runs.
    """
    if len(path) != len(grid):
        raise LengthMismatch(f"return path has {len(path)} periods, grid has {len(grid)}")

    ledger = _ledger(accounts)
    snapshots: List[PeriodSnapshot] = []
    state: Optional[RunState] = None
    price_index = Decimal(1)

    for period, rates in zip(grid, path):
        if state is None:
            state = _initial_state(period)
        elif state is RunState.ACCUMULATING and period.withdrawing:
            state = RunState.WITHDRAWING

        price_index *= Decimal(1) + rates.inflation
        accumulating = state is RunState.ACCUMULATING

        contributed = ZERO
        for acct in ledger.values():
            _, added = apply_period(acct, period, rates.nominal_return, contribute=accumulating)
            contributed += added

        if accumulating:
            snapshots.append(PeriodSnapshot(
                period=period,
                balances=tuple((n, a.balance) for n, a in ledger.items()),
                withdrawn=ZERO,
                tax=ZERO,
                shortfall=False,
                contributed=contributed,
            ))
            continue

        need = to_money(policy.target * price_index)
        result = evaluate(need, ledger, policy, period.fraction)
        snapshots.append(PeriodSnapshot(
            period=period,
            balances=tuple((n, a.balance) for n, a in ledger.items()),
            withdrawn=result.withdrawn,
            tax=result.tax,
            shortfall=result.shortfall,
            contributed=contributed,
            net_spending=result.net,
            target=need,
            withdrawals=result.withdrawals,
        ))
        if result.shortfall:
            state = RunState.DEPLETED
            logger.debug(
                "run {} depleted in period {} ({} short of {})",
                run_index, period.index, result.missing, need,
            )
            break

    if state is not RunState.DEPLETED:
        state = RunState.COMPLETE
    # a shortfall in the final period is still DEPLETED_EARLY
    outcome = Outcome.SUCCEEDED if state is RunState.COMPLETE else Outcome.DEPLETED_EARLY
    return RunResult(tuple(snapshots), outcome, len(grid), run_index)


__all__ = ["RunState", "Outcome", "PeriodSnapshot", "RunResult", "project"]
