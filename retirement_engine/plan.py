"""Projection requests and the plain-dict plan format.

A plan is an ordinary dictionary, for example::

    plan = {
        "current_age": 55,
        "retire_age": 65,
        "end_age": 90,
        "step": "annual",
        "filing_status": "single",
        "accounts": {
            "401k": {"kind": "TRADITIONAL_401K", "balance": 400000, "contribution": 23000},
            "roth": {"treatment": "TAX_FREE", "balance": 50000},
            "brokerage": {"treatment": "TAXABLE", "balance": 100000, "cost_basis": 60000},
        },
        "withdrawal": {"annual_spending": 60000, "order": ["TAXABLE", "TAX_DEFERRED", "TAX_FREE"]},
        "assumptions": {"mean_return": 0.06, "stdev_return": 0.12, "inflation": 0.025},
        "simulation": {"mode": "monte_carlo", "n_paths": 1000, "seed": 42},
    }

:func:`from_plan` validates it and returns a :class:`ProjectionRequest`.
Spending, contributions, returns and inflation are given as annual figures
and converted to the grid's step size.
"""

from __future__ import annotations

from datetime import date
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .calculators.aggregate import DEFAULT_PERCENTILES
from .calculators.contributions import ContributionLimits, cap_schedule, level_schedule
from .calculators.ledger import Account, AccountKind, TaxTreatment
from .calculators.money import to_decimal, to_money
from .calculators.monte_carlo import ProjectionRequest, RunMode
from .calculators.scenarios import (
    DistributionParams,
    ReturnPath,
    constant_path,
    deterministic_path,
)
from .calculators.taxes import FilingStatus, TaxBracketTable, load_tax_table
from .calculators.timegrid import StepSize, TimeGrid
from .calculators.withdrawals import DEFAULT_ORDER, WithdrawalPolicy
from .errors import InvalidPlan, ProjectionError

# named sourcing orders accepted in place of an explicit list
STRATEGIES: Dict[str, Tuple[TaxTreatment, ...]] = {
    "standard": DEFAULT_ORDER,
}


def _treatment(raw: Mapping) -> Tuple[TaxTreatment, Optional[AccountKind]]:
    if "kind" in raw:
        kind = AccountKind.parse(raw["kind"])
        return kind.treatment, kind
    return TaxTreatment[str(raw["treatment"]).strip().upper()], None


def _schedule(raw: Mapping, grid: TimeGrid) -> Dict[int, object]:
    if "contribution_schedule" in raw:
        return {int(k): v for k, v in raw["contribution_schedule"].items()}
    annual = raw.get("contribution", 0)
    if not to_decimal(annual):
        return {}
    return level_schedule(grid, annual, raw.get("contribution_growth", 0))


def _accounts(plan: Mapping, grid: TimeGrid) -> Tuple[Account, ...]:
    raw_accounts = plan["accounts"]
    if isinstance(raw_accounts, Mapping):
        items = [dict(fields, name=name) for name, fields in raw_accounts.items()]
    else:
        items = list(raw_accounts)

    limits = None
    if plan.get("apply_contribution_limits", False):
        limits = ContributionLimits.load(indexation=plan.get("limit_indexation", "0.03"))
    status = plan.get("filing_status", FilingStatus.SINGLE)

    accounts = []
    for raw in items:
        treatment, kind = _treatment(raw)
        schedule = _schedule(raw, grid)
        if limits is not None and kind is not None:
            schedule = cap_schedule(
                schedule, grid, kind, limits,
                magi=raw.get("magi"), filing_status=status, account_name=raw["name"],
            )
        accounts.append(Account(
            name=str(raw["name"]),
            treatment=treatment,
            balance=raw.get("balance", 0),
            cost_basis=raw.get("cost_basis"),
            contributions=schedule,
            fee_rate=raw.get("fee_rate", 0),
            kind=kind,
        ))
    return tuple(accounts)


def _order(value) -> Tuple[TaxTreatment, ...]:
    if isinstance(value, str):
        return STRATEGIES[value]
    return tuple(TaxTreatment[str(t).strip().upper()] for t in value)


def _brackets(pairs: Sequence, deduction=0) -> TaxBracketTable:
    return TaxBracketTable.from_pairs([tuple(p) for p in pairs], deduction)


def _policy(plan: Mapping, grid: TimeGrid) -> WithdrawalPolicy:
    w = plan.get("withdrawal", {}) or {}
    annual = w.get("annual_spending", (plan.get("expenses") or {}).get("baseline", 0))
    target = to_money(to_decimal(annual) * grid.step.fraction)
    order = _order(w.get("order", plan.get("withdrawal_strategy", "standard")))

    if "tax_brackets" in w:
        ordinary = _brackets(w["tax_brackets"], w.get("deduction", 0))
        gains = _brackets(w["capital_gains_brackets"]) if "capital_gains_brackets" in w else None
    elif "flat_tax_rate" in w:
        ordinary, gains = TaxBracketTable.flat(w["flat_tax_rate"]), None
    else:
        year = plan.get("tax_year", 2024)
        status = plan.get("filing_status", FilingStatus.SINGLE)
        ordinary = load_tax_table(year, status)
        gains = load_tax_table(year, status, kind="capital_gains")

    return WithdrawalPolicy(
        target=target, order=order, ordinary_table=ordinary, capital_gains_table=gains
    )


def _path(assumptions: Mapping, grid: TimeGrid) -> ReturnPath:
    if "returns" in assumptions:
        return deterministic_path(
            assumptions["returns"], assumptions.get("inflation_path"), horizon=len(grid)
        )
    n = grid.step.per_year
    mean = to_decimal(assumptions.get("mean_return", 0)) / n
    inflation = to_decimal(assumptions.get("inflation", 0)) / n
    return constant_path(len(grid), mean, inflation)


def from_plan(plan: Mapping) -> ProjectionRequest:
    """Build a :class:`ProjectionRequest` from a plan dictionary.

    Raises :class:`InvalidPlan` for missing or malformed fields; horizon and
    path problems surface as :class:`InvalidHorizon` / :class:`LengthMismatch`.
    """
    try:
        step = StepSize[str(plan.get("step", "annual")).strip().upper()]
        start = plan.get("start_date")
        start = date.fromisoformat(str(start)) if start else date(date.today().year, 1, 1)
        grid = TimeGrid.from_ages(
            start,
            int(plan["current_age"]),
            int(plan["retire_age"]),
            int(plan["end_age"]),
            step,
        )
        accounts = _accounts(plan, grid)
        policy = _policy(plan, grid)

        assumptions = plan.get("assumptions", {}) or {}
        sim = plan.get("simulation", {}) or {}
        mode = RunMode(sim.get("mode", RunMode.DETERMINISTIC.value))
        path = distribution = None
        if mode is RunMode.DETERMINISTIC:
            path = _path(assumptions, grid)
        else:
            distribution = DistributionParams.annual(
                float(assumptions.get("mean_return", 0.06)),
                float(assumptions.get("stdev_return", 0.12)),
                step,
                correlation=float(assumptions.get("correlation", 0.0)),
                inflation_mean=float(assumptions.get("inflation", 0.0)),
                inflation_stdev=float(assumptions.get("inflation_stdev", 0.0)),
            )
        return ProjectionRequest(
            grid=grid,
            accounts=accounts,
            policy=policy,
            mode=mode,
            path=path,
            distribution=distribution,
            runs=int(sim.get("n_paths", 1000)),
            seed=sim.get("seed"),
            processes=int(sim.get("processes", 1)),
            percentiles=tuple(sim.get("percentiles", DEFAULT_PERCENTILES)),
        )
    except ProjectionError:
        raise
    except KeyError as exc:
        raise InvalidPlan(f"plan is missing or has an unknown value for {exc}") from exc
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise InvalidPlan(str(exc)) from exc


__all__ = ["STRATEGIES", "from_plan"]
