"""Progressive tax calculations.

A :class:`TaxBracketTable` is an ordered list of ``(upper bound, marginal
rate)`` brackets.  Each rate applies only to the slice of income that falls
inside its bracket.  An optional deduction is taken off the bottom of income
before any bracket applies.  Income above the last bounded bracket is taxed at
the last bracket's rate.

The engine does not model any jurisdiction; callers supply the table.  For
convenience the package ships U.S. federal tables for 2023 and 2024 (ordinary
and long-term capital gains brackets by filing status) in
``data/tax_tables.json``, using the same schema as before
(``{"start", "end", "rate"}`` rows).

Example
-------

>>> table = TaxBracketTable.from_pairs([(10000, 0.10), (None, 0.20)])
>>> table.tax(15000)
Decimal('2000.00')

>>> # Federal tax on $60 000 of ordinary income for a single filer in 2024
>>> load_tax_table(2024).tax(60000)
Decimal('5216.00')
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, Optional, Sequence, Tuple, Union

from .money import ZERO, Number, to_decimal, to_money, to_money_up

_DEFAULT_TAX_TABLE_PATH = Path(__file__).resolve().parent.parent / "data" / "tax_tables.json"


class FilingStatus(Enum):
    SINGLE = "single"
    MARRIED_FILING_JOINTLY = "married_joint"
    MARRIED_FILING_SEPARATELY = "married_separate"
    HEAD_OF_HOUSEHOLD = "head_of_household"

    @classmethod
    def parse(cls, value: Union[str, "FilingStatus"]) -> "FilingStatus":
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for status in cls:
            if key in (status.value, status.name, status.name.lower()):
                return status
        raise ValueError(f"unknown filing status {value!r}")


@dataclass(frozen=True)
class TaxBracket:
    upper: Optional[Decimal]
    rate: Decimal


@dataclass(frozen=True)
class TaxBracketTable:
    brackets: Tuple[TaxBracket, ...]
    deduction: Decimal = ZERO

    def __post_init__(self):
        if not self.brackets:
            raise ValueError("tax table needs at least one bracket")
        prev = ZERO
        for i, b in enumerate(self.brackets):
            if not ZERO <= b.rate < 1:
                raise ValueError(f"marginal rate {b.rate} must be in [0, 1)")
            if b.upper is None:
                if i != len(self.brackets) - 1:
                    raise ValueError("only the last bracket may be unbounded")
                continue
            if b.upper <= prev:
                raise ValueError("bracket bounds must be strictly increasing")
            prev = b.upper
        if self.deduction < 0:
            raise ValueError("deduction must be non-negative")

    @classmethod
    def from_pairs(
        cls,
        pairs: Sequence[Tuple[Optional[Number], Number]],
        deduction: Number = 0,
    ) -> "TaxBracketTable":
        return cls(
            tuple(
                TaxBracket(None if upper is None else to_decimal(upper), to_decimal(rate))
                for upper, rate in pairs
            ),
            to_decimal(deduction),
        )

    @classmethod
    def from_rows(cls, rows: Sequence[Dict], deduction: Number = 0) -> "TaxBracketTable":
        """Build from ``{"start", "end", "rate"}`` rows as stored in the JSON tables."""
        return cls.from_pairs([(row.get("end"), row["rate"]) for row in rows], deduction)

    @classmethod
    def flat(cls, rate: Number) -> "TaxBracketTable":
        return cls.from_pairs([(None, rate)])

    def _segments(self) -> Iterator[Tuple[Decimal, Optional[Decimal], Decimal]]:
        """``(lower, upper, rate)`` slices of gross income, deduction first."""
        lower = ZERO
        if self.deduction > 0:
            yield ZERO, self.deduction, Decimal(0)
            lower = self.deduction
        last = len(self.brackets) - 1
        for i, b in enumerate(self.brackets):
            if b.upper is None or i == last:
                yield lower, None, b.rate
                return
            upper = self.deduction + b.upper
            yield lower, upper, b.rate
            lower = upper

    def marginal_tax(self, amount: Number, prior_income: Number = 0) -> Decimal:
        """Tax on ``amount`` of income stacked on top of ``prior_income``."""
        amount = to_decimal(amount)
        if amount <= 0:
            return ZERO
        lo = to_decimal(prior_income)
        hi = lo + amount
        tax = Decimal(0)
        for seg_lo, seg_hi, rate in self._segments():
            if seg_hi is not None and seg_hi <= lo:
                continue
            top = hi if seg_hi is None else min(hi, seg_hi)
            bottom = max(lo, seg_lo)
            if top > bottom:
                tax += (top - bottom) * rate
            if seg_hi is None or hi <= seg_hi:
                break
        return to_money(tax)

    def tax(self, income: Number) -> Decimal:
        return self.marginal_tax(income, 0)

    def marginal_rate(self, income: Number) -> Decimal:
        income = to_decimal(income)
        for seg_lo, seg_hi, rate in self._segments():
            if seg_hi is None or income < seg_hi:
                return rate
        return self.brackets[-1].rate  # pragma: no cover

    def gross_up(self, net: Number, prior_income: Number = 0, taxed_share: Number = 1) -> Decimal:
        """Smallest gross withdrawal whose after-tax value covers ``net``.

        Only ``taxed_share`` of each gross dollar is taxable income (1 for
        tax-deferred withdrawals, the gain share for taxable accounts), and it
        is stacked on ``prior_income`` already realised this period.
        """
        need = to_decimal(net)
        if need <= 0:
            return ZERO
        share = to_decimal(taxed_share)
        if share <= 0:
            return to_money_up(need)
        position = to_decimal(prior_income)
        gross = Decimal(0)
        for seg_lo, seg_hi, rate in self._segments():
            if seg_hi is not None and seg_hi <= position:
                continue
            keep = Decimal(1) - rate * share
            if seg_hi is None:
                gross += need / keep
                break
            room = (seg_hi - max(position, seg_lo)) / share
            capacity = room * keep
            if need <= capacity:
                gross += need / keep
                break
            gross += room
            need -= capacity
            position = seg_hi
        return to_money_up(gross)

    def scaled(self, fraction: Number) -> "TaxBracketTable":
        """Table with bounds and deduction scaled by ``fraction`` of a year."""
        fraction = to_decimal(fraction)
        if fraction == 1:
            return self
        return TaxBracketTable(
            tuple(
                TaxBracket(None if b.upper is None else to_money(b.upper * fraction), b.rate)
                for b in self.brackets
            ),
            to_money(self.deduction * fraction),
        )


def _load_tax_tables(path: Optional[Path] = None) -> Dict[str, Dict]:
    """Load tax tables from JSON.  If ``path`` is not provided, load the
    default file shipped with the package.

    Parameters
    ----------
    path : Path, optional
        Path to a JSON file containing the tax tables.

    Returns
    -------
    dict
        The parsed tax tables.
    """
    p = path or _DEFAULT_TAX_TABLE_PATH
    with open(p, "r", encoding="utf-8") as f:
        tables = json.load(f)
    return tables


def load_tax_table(
    year: int = 2024,
    filing_status: Union[str, FilingStatus] = FilingStatus.SINGLE,
    kind: str = "ordinary",
    tax_tables: Optional[Dict[str, Dict]] = None,
    apply_deduction: bool = True,
) -> TaxBracketTable:
    """Build a :class:`TaxBracketTable` from the JSON tables.

    ``kind`` is ``"ordinary"`` for income brackets or ``"capital_gains"`` for
    long-term gains brackets.  The standard deduction only applies to the
    ordinary table.
    """
    tables = tax_tables or _load_tax_tables()
    status = FilingStatus.parse(filing_status)
    try:
        entry = tables[str(year)]["federal"][status.value]
    except KeyError:
        raise KeyError(f"no tax table for {year} / {status.value}") from None
    if kind == "ordinary":
        deduction = entry.get("standard_deduction", 0) if apply_deduction else 0
        return TaxBracketTable.from_rows(entry["brackets"], deduction)
    if kind == "capital_gains":
        return TaxBracketTable.from_rows(entry["cap_gains"])
    raise ValueError(f"unknown table kind {kind!r}")


__all__ = [
    "FilingStatus",
    "TaxBracket",
    "TaxBracketTable",
    "load_tax_table",
    "_load_tax_tables",
]
