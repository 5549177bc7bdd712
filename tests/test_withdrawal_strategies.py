"""Tests for withdrawal sourcing order and per-period taxes."""

from decimal import Decimal

import pytest

from retirement_engine.calculators.ledger import Account, TaxTreatment
from retirement_engine.calculators.taxes import TaxBracketTable
from retirement_engine.calculators.withdrawals import WithdrawalPolicy, evaluate

TWO_BRACKET = TaxBracketTable.from_pairs([(10000, 0.10), (None, 0.20)])


def _accounts(*accounts):
    return {a.name: a for a in accounts}


def test_order_is_applied_exactly_as_configured():
    accounts = _accounts(
        Account("brokerage", TaxTreatment.TAXABLE, balance=10000),
        Account("ira", TaxTreatment.TAX_DEFERRED, balance=10000),
        Account("roth", TaxTreatment.TAX_FREE, balance=10000),
    )
    policy = WithdrawalPolicy(
        target=0,
        order=(TaxTreatment.TAX_FREE, TaxTreatment.TAXABLE, TaxTreatment.TAX_DEFERRED),
    )
    res = evaluate(15000, accounts, policy)
    assert res.withdrawals == (("roth", Decimal("10000.00")), ("brokerage", Decimal("5000.00")))
    assert accounts["ira"].balance == Decimal("10000.00")
    assert not res.shortfall


def test_tax_deferred_withdrawal_grossed_up_progressively():
    accounts = _accounts(Account("ira", TaxTreatment.TAX_DEFERRED, balance=20000))
    policy = WithdrawalPolicy(target=0, ordinary_table=TWO_BRACKET)
    res = evaluate(13000, accounts, policy)
    assert res.withdrawn == Decimal("15000.00")
    assert res.tax == Decimal("2000.00")
    assert res.net == Decimal("13000.00")
    assert accounts["ira"].balance == Decimal("5000.00")


def test_taxable_gain_uses_capital_gains_table():
    accounts = _accounts(Account("brokerage", TaxTreatment.TAXABLE, balance=10000, cost_basis=5000))
    policy = WithdrawalPolicy(target=0, capital_gains_table=TaxBracketTable.flat(0.20))
    res = evaluate(900, accounts, policy)
    assert res.withdrawn == Decimal("1000.00")
    assert res.capital_gains == Decimal("500.00")
    assert res.tax == Decimal("100.00")
    assert res.net == Decimal("900.00")
    assert accounts["brokerage"].cost_basis == Decimal("4500.00")


def test_gains_stack_on_ordinary_income_without_gains_table():
    accounts = _accounts(
        Account("ira", TaxTreatment.TAX_DEFERRED, balance=10000),
        Account("brokerage", TaxTreatment.TAXABLE, balance=10000, cost_basis=0),
    )
    policy = WithdrawalPolicy(
        target=0,
        order=(TaxTreatment.TAX_DEFERRED, TaxTreatment.TAXABLE),
        ordinary_table=TWO_BRACKET,
    )
    res = evaluate(12000, accounts, policy)
    assert dict(res.withdrawals) == {"ira": Decimal("10000.00"), "brokerage": Decimal("3750.00")}
    assert res.tax == Decimal("1750.00")
    assert res.net == Decimal("12000.00")
    assert res.ordinary_income == Decimal("13750.00")


def test_tax_free_withdrawals_are_untaxed():
    accounts = _accounts(Account("roth", TaxTreatment.TAX_FREE, balance=50000))
    policy = WithdrawalPolicy(target=0, ordinary_table=TWO_BRACKET)
    res = evaluate(30000, accounts, policy)
    assert res.tax == 0
    assert res.withdrawn == Decimal("30000.00")


def test_shortfall_when_accounts_exhausted():
    accounts = _accounts(Account("roth", TaxTreatment.TAX_FREE, balance=1000))
    res = evaluate(5000, accounts, WithdrawalPolicy(target=0))
    assert res.shortfall
    assert res.withdrawn == Decimal("1000.00")
    assert res.missing == Decimal("4000.00")
    assert accounts["roth"].balance == 0


def test_treatment_missing_from_order_is_never_drawn():
    accounts = _accounts(
        Account("roth", TaxTreatment.TAX_FREE, balance=1000),
        Account("ira", TaxTreatment.TAX_DEFERRED, balance=100000),
    )
    policy = WithdrawalPolicy(target=0, order=(TaxTreatment.TAX_FREE,))
    res = evaluate(2000, accounts, policy)
    assert res.shortfall
    assert accounts["ira"].balance == Decimal("100000.00")


def test_zero_need_draws_nothing():
    accounts = _accounts(Account("roth", TaxTreatment.TAX_FREE, balance=1000))
    res = evaluate(0, accounts, WithdrawalPolicy(target=0))
    assert res.withdrawals == ()
    assert not res.shortfall


def test_brackets_scaled_to_period_length():
    table = TaxBracketTable.from_pairs([(12000, 0.0), (None, 0.5)])
    accounts = _accounts(Account("ira", TaxTreatment.TAX_DEFERRED, balance=10000))
    policy = WithdrawalPolicy(target=0, ordinary_table=table)
    res = evaluate(1500, accounts, policy, fraction=Decimal(1) / Decimal(12))
    assert res.withdrawn == Decimal("2000.00")
    assert res.tax == Decimal("500.00")


def test_duplicate_order_rejected():
    with pytest.raises(ValueError):
        WithdrawalPolicy(target=0, order=(TaxTreatment.TAX_FREE, TaxTreatment.TAX_FREE))
