"""Account ledger: balances, contributions, fees and withdrawals.

Accounts belong to a single run and are mutated in place as the run steps
through its periods.  All arithmetic is done in :class:`~decimal.Decimal`
and rounded to cents after each operation.

Example
-------

>>> acct = Account("roth", TaxTreatment.TAX_FREE, balance=100000)
>>> withdraw(acct, 150000)
Decimal('100000.00')
>>> acct.balance
Decimal('0.00')
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from .money import ZERO, Number, to_decimal, to_money
from .timegrid import Period


class TaxTreatment(Enum):
    TAX_DEFERRED = "Tax-Deferred"
    TAX_FREE = "Tax-Free"
    TAXABLE = "Taxable"


class AccountKind(Enum):
    """Concrete account products and how they are taxed."""

    TRADITIONAL_401K = ("Traditional 401(k)", TaxTreatment.TAX_DEFERRED, True)
    ROTH_401K = ("Roth 401(k)", TaxTreatment.TAX_FREE, True)
    TRADITIONAL_IRA = ("Traditional IRA", TaxTreatment.TAX_DEFERRED, False)
    ROTH_IRA = ("Roth IRA", TaxTreatment.TAX_FREE, False)
    SEP_IRA = ("SEP IRA", TaxTreatment.TAX_DEFERRED, False)
    SIMPLE_IRA = ("SIMPLE IRA", TaxTreatment.TAX_DEFERRED, True)
    HSA_SELF = ("HSA (Self-only)", TaxTreatment.TAX_FREE, False)
    HSA_FAMILY = ("HSA (Family)", TaxTreatment.TAX_FREE, False)
    ACCOUNT_403B = ("403(b)", TaxTreatment.TAX_DEFERRED, True)
    ACCOUNT_457B = ("457(b)", TaxTreatment.TAX_DEFERRED, True)
    BROKERAGE = ("Brokerage", TaxTreatment.TAXABLE, False)

    def __init__(self, display_name: str, treatment: TaxTreatment, employer_sponsored: bool):
        self.display_name = display_name
        self.treatment = treatment
        self.employer_sponsored = employer_sponsored

    @classmethod
    def parse(cls, value: str) -> "AccountKind":
        """Accept enum names as well as the short ``403B``/``457B`` forms."""
        key = value.strip().upper()
        aliases = {"403B": cls.ACCOUNT_403B, "457B": cls.ACCOUNT_457B}
        if key in aliases:
            return aliases[key]
        return cls[key]


@dataclass
class Account:
    name: str
    treatment: TaxTreatment
    balance: Decimal = ZERO
    cost_basis: Optional[Decimal] = None
    contributions: Dict[int, Decimal] = field(default_factory=dict)
    fee_rate: Decimal = Decimal(0)
    kind: Optional[AccountKind] = None

    def __post_init__(self):
        self.balance = to_money(self.balance)
        if self.balance < 0:
            raise ValueError(f"account {self.name!r} starts with a negative balance")
        self.fee_rate = to_decimal(self.fee_rate)
        self.contributions = {int(k): to_money(v) for k, v in self.contributions.items()}
        if self.treatment is TaxTreatment.TAXABLE:
            # an unspecified basis means no embedded gain
            basis = self.balance if self.cost_basis is None else self.cost_basis
            self.cost_basis = to_money(basis)
        else:
            self.cost_basis = None

    @classmethod
    def from_kind(cls, name: str, kind: AccountKind, **kwargs) -> "Account":
        return cls(name=name, treatment=kind.treatment, kind=kind, **kwargs)

    def contribution_for(self, period: Period) -> Decimal:
        return self.contributions.get(period.index, ZERO)

    def gain_share(self) -> Decimal:
        """Fraction of the balance that is unrealised gain (TAXABLE only)."""
        if self.treatment is not TaxTreatment.TAXABLE or self.balance <= 0:
            return Decimal(0)
        gain = self.balance - self.cost_basis
        if gain <= 0:
            return Decimal(0)
        return gain / self.balance

    def copy(self) -> "Account":
        return deepcopy(self)


def apply_period(
    account: Account,
    period: Period,
    rate: Number,
    contribute: bool = True,
) -> Tuple[Account, Decimal]:
    """Grow ``account`` by ``rate``, charge the pro-rated fee, then add the
    period's scheduled contribution.

    Withdrawal periods pass ``contribute=False``: growth and fees only.
    Returns the (mutated) account and the contribution that was applied.
    """
    rate = to_decimal(rate)
    grown = to_money(account.balance * (Decimal(1) + rate))
    fee = to_money(grown * account.fee_rate * period.fraction)
    balance = max(grown - fee, ZERO)
    contribution = account.contribution_for(period) if contribute else ZERO
    account.balance = to_money(balance + contribution)
    if account.treatment is TaxTreatment.TAXABLE:
        account.cost_basis = to_money(account.cost_basis + contribution)
    return account, contribution


def withdraw(account: Account, amount: Number) -> Decimal:
    """Take up to ``amount`` from ``account``.

    The withdrawal is clamped to the available balance; the caller reads the
    shortfall as ``amount - withdrawn``.  Cost basis of a taxable account is
    reduced in proportion to the share of the balance withdrawn.
    """
    amount = to_money(amount)
    if amount <= 0 or account.balance <= 0:
        return ZERO
    taken = min(amount, account.balance)
    if account.treatment is TaxTreatment.TAXABLE:
        if taken == account.balance:
            account.cost_basis = ZERO
        else:
            used = to_money(account.cost_basis * taken / account.balance)
            account.cost_basis = max(account.cost_basis - used, ZERO)
    account.balance = to_money(account.balance - taken)
    return taken


def total_balance(accounts: Mapping[str, Account]) -> Decimal:
    return sum((a.balance for a in accounts.values()), ZERO)


__all__ = [
    "TaxTreatment",
    "AccountKind",
    "Account",
    "apply_period",
    "withdraw",
    "total_balance",
]
