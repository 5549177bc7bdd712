"""Tests for turning plan dictionaries into projection requests."""

from decimal import Decimal

import pytest

from retirement_engine import AggregateReport, RunResult, from_plan, simulate_plan
from retirement_engine.calculators.ledger import AccountKind, TaxTreatment
from retirement_engine.calculators.monte_carlo import RunMode
from retirement_engine.calculators.timegrid import StepSize
from retirement_engine.calculators.withdrawals import DEFAULT_ORDER
from retirement_engine.errors import InvalidHorizon, InvalidPlan


def _plan(**overrides):
    plan = {
        "start_date": "2025-01-01",
        "current_age": 60,
        "retire_age": 62,
        "end_age": 64,
        "accounts": {"roth": {"treatment": "TAX_FREE", "balance": 100000}},
        "withdrawal": {"annual_spending": 10000, "flat_tax_rate": 0},
        "assumptions": {"mean_return": 0, "inflation": 0},
    }
    plan.update(overrides)
    return plan


def test_grid_from_ages():
    """Ages become a five-period annual grid retiring in period three."""
    request = from_plan(_plan())
    assert len(request.grid) == 5
    assert request.grid.transition == 3
    assert request.mode is RunMode.DETERMINISTIC
    assert request.policy.order == DEFAULT_ORDER


def test_deterministic_plan_runs():
    """Two years of saving then three years of 10,000 spending."""
    result = simulate_plan(_plan())
    assert isinstance(result, RunResult)
    assert result.succeeded
    assert result.terminal_wealth == Decimal("70000.00")


def test_monthly_step_converts_spending():
    """Annual spending is split across monthly periods."""
    request = from_plan(_plan(step="monthly", withdrawal={"annual_spending": 60000, "flat_tax_rate": 0}))
    assert request.grid.step is StepSize.MONTHLY
    assert len(request.grid) == 60
    assert request.policy.target == Decimal("5000.00")


def test_level_contributions_per_month():
    """Annual contributions are spread monthly and stop at retirement."""
    accounts = {"401k": {"kind": "TRADITIONAL_401K", "contribution": 12000}}
    request = from_plan(_plan(step="monthly", accounts=accounts))
    acct = request.accounts[0]
    assert acct.kind is AccountKind.TRADITIONAL_401K
    assert acct.treatment is TaxTreatment.TAX_DEFERRED
    assert acct.contributions[1] == Decimal("1000.00")
    assert 25 not in acct.contributions


def test_contributions_capped_by_limits():
    """A 401(k) contribution above the annual limit is clipped."""
    accounts = {"401k": {"kind": "TRADITIONAL_401K", "contribution": 30000}}
    request = from_plan(_plan(
        start_date="2024-01-01", current_age=45, retire_age=47, end_age=50,
        accounts=accounts, apply_contribution_limits=True,
    ))
    assert request.accounts[0].contributions[1] == Decimal("23000.00")


def test_accounts_as_list():
    """Accounts may be listed with explicit names."""
    accounts = [
        {"name": "ira", "treatment": "tax_deferred", "balance": 5000},
        {"name": "brokerage", "treatment": "TAXABLE", "balance": 3000, "cost_basis": 1000},
    ]
    request = from_plan(_plan(accounts=accounts))
    assert [a.name for a in request.accounts] == ["ira", "brokerage"]
    assert request.accounts[1].cost_basis == Decimal("1000.00")


def test_custom_brackets_and_order():
    """Bracket pairs from the plan drive the withdrawal tax."""
    plan = _plan(
        current_age=65, retire_age=65, end_age=65,
        accounts={"ira": {"treatment": "TAX_DEFERRED", "balance": 100000}},
        withdrawal={
            "annual_spending": 13000,
            "order": ["TAX_DEFERRED", "TAXABLE", "TAX_FREE"],
            "tax_brackets": [[10000, 0.10], [None, 0.20]],
        },
    )
    result = simulate_plan(plan)
    snap = result.snapshots[0]
    assert snap.withdrawn == Decimal("15000.00")
    assert snap.tax == Decimal("2000.00")


def test_default_tax_tables():
    """Without tax settings the bundled federal tables are used."""
    request = from_plan(_plan(withdrawal={"annual_spending": 10000}, filing_status="married_joint"))
    assert request.policy.ordinary_table.deduction == Decimal("29200.00")
    assert request.policy.capital_gains_table is not None


def test_monte_carlo_plan():
    """A Monte Carlo plan produces an aggregate report."""
    plan = _plan(
        assumptions={"mean_return": 0.05, "stdev_return": 0.1, "inflation": 0.02},
        simulation={"mode": "monte_carlo", "n_paths": 20, "seed": 1},
    )
    report = simulate_plan(plan)
    assert isinstance(report, AggregateReport)
    assert report.runs == 20
    assert report.periods == 5


def test_missing_field_is_invalid_plan():
    """A plan without accounts is rejected."""
    plan = _plan()
    del plan["accounts"]
    with pytest.raises(InvalidPlan):
        from_plan(plan)


def test_unknown_treatment_is_invalid_plan():
    """An unknown tax treatment is rejected."""
    with pytest.raises(InvalidPlan):
        from_plan(_plan(accounts={"x": {"treatment": "PENSION", "balance": 1}}))


def test_bad_ages_raise_invalid_horizon():
    """A retirement age past the end age is a horizon error."""
    with pytest.raises(InvalidHorizon):
        from_plan(_plan(retire_age=70, end_age=65))


def test_empty_expenses_section():
    """An explicit null expenses section falls back to zero spending."""
    request = from_plan(_plan(expenses=None))
    assert request.policy.target == Decimal("10000.00")
    request = from_plan(_plan(expenses=None, withdrawal={"flat_tax_rate": 0}))
    assert request.policy.target == Decimal("0.00")


def test_expenses_baseline_used_without_annual_spending():
    """``expenses.baseline`` sets spending when the withdrawal section has none."""
    request = from_plan(_plan(expenses={"baseline": 24000}, withdrawal={"flat_tax_rate": 0}))
    assert request.policy.target == Decimal("24000.00")
