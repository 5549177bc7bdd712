"""Withdrawal sourcing and tax for a single period.

The :class:`WithdrawalPolicy` lists the order in which account treatments are
drawn down.  :func:`evaluate` walks that order exactly as given, grossing each
draw up so that the amount left after tax covers what is still needed.

* ``TAX_FREE`` withdrawals are untaxed.
* ``TAX_DEFERRED`` withdrawals are ordinary income, taxed progressively on top
  of ordinary income already realised in the period.
* ``TAXABLE`` withdrawals realise a gain equal to the withdrawal less its
  proportional cost basis.  Gains use the capital-gains table when one is
  configured, otherwise they are stacked on ordinary income.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from functools import lru_cache
from typing import Dict, Mapping, Optional, Tuple

from .ledger import Account, TaxTreatment, withdraw
from .money import ZERO, Number, to_decimal, to_money
from .taxes import TaxBracketTable

DEFAULT_ORDER: Tuple[TaxTreatment, ...] = (
    TaxTreatment.TAXABLE,
    TaxTreatment.TAX_DEFERRED,
    TaxTreatment.TAX_FREE,
)

# each draw from one account is retried while rounding leaves cents uncovered
_MAX_DRAWS = 8


@dataclass(frozen=True)
class WithdrawalPolicy:
    """How spending is funded in withdrawal periods.

    ``target`` is the real (today's money) spending need per withdrawal
    period.  Treatments missing from ``order`` are never drawn.
    """

    target: Decimal
    order: Tuple[TaxTreatment, ...] = DEFAULT_ORDER
    ordinary_table: TaxBracketTable = field(default_factory=lambda: TaxBracketTable.flat(0))
    capital_gains_table: Optional[TaxBracketTable] = None

    def __post_init__(self):
        object.__setattr__(self, "target", to_money(self.target))
        object.__setattr__(self, "order", tuple(self.order))
        if self.target < 0:
            raise ValueError("spending target must be non-negative")
        if len(set(self.order)) != len(self.order):
            raise ValueError(f"withdrawal order repeats a treatment: {self.order}")

    def tables_for(self, fraction: Number) -> Tuple[TaxBracketTable, Optional[TaxBracketTable]]:
        fraction = to_decimal(fraction)
        gains = self.capital_gains_table
        return (
            _scaled(self.ordinary_table, fraction),
            None if gains is None else _scaled(gains, fraction),
        )


@lru_cache(maxsize=64)
def _scaled(table: TaxBracketTable, fraction: Decimal) -> TaxBracketTable:
    return table.scaled(fraction)


@dataclass(frozen=True)
class WithdrawalResult:
    need: Decimal
    withdrawals: Tuple[Tuple[str, Decimal], ...]
    tax: Decimal
    net: Decimal
    ordinary_income: Decimal = ZERO
    capital_gains: Decimal = ZERO

    @property
    def withdrawn(self) -> Decimal:
        return sum((amount for _, amount in self.withdrawals), ZERO)

    @property
    def shortfall(self) -> bool:
        return self.net < self.need

    @property
    def missing(self) -> Decimal:
        return max(self.need - self.net, ZERO)


class _PeriodTaxes:
    """Running tallies of income realised within one period."""

    def __init__(self, ordinary: TaxBracketTable, gains: Optional[TaxBracketTable]):
        self.ordinary = ordinary
        self.gains = gains
        self.ordinary_income = ZERO
        self.capital_gains = ZERO

    def draw(self, account: Account, need: Decimal) -> Tuple[Decimal, Decimal]:
        """Withdraw enough from ``account`` to net ``need``; returns (gross, tax)."""
        if account.treatment is TaxTreatment.TAX_FREE:
            return withdraw(account, need), ZERO

        if account.treatment is TaxTreatment.TAX_DEFERRED:
            prior = self.ordinary_income
            gross = self.ordinary.gross_up(need, prior)
            taken = withdraw(account, gross)
            self.ordinary_income += taken
            return taken, self.ordinary.marginal_tax(taken, prior)

        table = self.gains or self.ordinary
        prior = self.capital_gains if self.gains is not None else self.ordinary_income
        gross = table.gross_up(need, prior, account.gain_share())
        basis_before = account.cost_basis
        taken = withdraw(account, gross)
        gain = max(taken - (basis_before - account.cost_basis), ZERO)
        self.capital_gains += gain
        if self.gains is None:
            self.ordinary_income += gain
        return taken, table.marginal_tax(gain, prior)


def evaluate(
    need: Number,
    accounts: Mapping[str, Account],
    policy: WithdrawalPolicy,
    fraction: Number = 1,
) -> WithdrawalResult:
    """Fund a nominal spending ``need`` from ``accounts``.

    Accounts are mutated in place.  Within a treatment, accounts are drawn in
    the mapping's order.  The result's ``shortfall`` is set when every
    eligible account was exhausted before the need was met.
    """
    need = to_money(need)
    ordinary, gains = policy.tables_for(fraction)
    taxes = _PeriodTaxes(ordinary, gains)
    taken: Dict[str, Decimal] = {}
    total_tax = ZERO
    remaining = need

    for treatment in policy.order:
        for name, account in accounts.items():
            if remaining <= 0:
                break
            if account.treatment is not treatment:
                continue
            draws = 0
            while remaining > 0 and account.balance > 0 and draws < _MAX_DRAWS:
                draws += 1
                gross, tax = taxes.draw(account, remaining)
                if gross <= 0:
                    break
                taken[name] = taken.get(name, ZERO) + gross
                total_tax += tax
                remaining -= gross - tax
        if remaining <= 0:
            break

    return WithdrawalResult(
        need=need,
        withdrawals=tuple(taken.items()),
        tax=total_tax,
        net=need - remaining,
        ordinary_income=taxes.ordinary_income,
        capital_gains=taxes.capital_gains,
    )


__all__ = ["DEFAULT_ORDER", "WithdrawalPolicy", "WithdrawalResult", "evaluate"]
