"""Contribution schedules and annual contribution limits.

Schedules map a period index to the amount contributed in that period.
:func:`level_schedule` spreads an annual amount (optionally growing each
year) over the accumulating periods of a grid; :func:`cap_schedule` then clips
each calendar year to the account's legal limit for the owner's age.

Limits are looked up in ``data/contribution_limits.json``.  Years past the
last published year are indexed forward and rounded to the nearest $500, the
way plan sponsors usually estimate future limits.

Example
-------

>>> limits = ContributionLimits.load()
>>> limits.limit_for(AccountKind.ROTH_IRA, 2024, age=49)
Decimal('7000.00')
>>> limits.limit_for(AccountKind.ROTH_IRA, 2024, age=50)
Decimal('8000.00')
"""

from __future__ import annotations

import json
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP, Decimal
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from loguru import logger

from .ledger import AccountKind
from .money import ZERO, Number, to_decimal, to_money
from .taxes import FilingStatus
from .timegrid import TimeGrid

_DEFAULT_LIMITS_PATH = Path(__file__).resolve().parent.parent / "data" / "contribution_limits.json"

Schedule = Dict[int, Decimal]


class LimitType(Enum):
    BASE = ("Base Limit", None, None)
    CATCHUP_50 = ("Catch-up (50+)", 50, None)
    CATCHUP_55 = ("Catch-up (55+)", 55, None)
    CATCHUP_60_63 = ("Super Catch-up (60-63)", 60, 63)
    EMPLOYER_TOTAL = ("Total 415(c) Limit", None, None)
    COMPENSATION_LIMIT = ("Compensation Limit", None, None)

    def __init__(self, display_name: str, minimum_age: Optional[int], maximum_age: Optional[int]):
        self.display_name = display_name
        self.minimum_age = minimum_age
        self.maximum_age = maximum_age

    @property
    def is_catch_up(self) -> bool:
        return self.minimum_age is not None

    def is_eligible(self, age: Optional[int]) -> bool:
        if self.minimum_age is None:
            return True
        if age is None:
            return False
        if self.maximum_age is None:
            return age >= self.minimum_age
        return self.minimum_age <= age <= self.maximum_age


def _round_to_500(amount: Decimal) -> Decimal:
    return (amount / 500).quantize(Decimal(1), rounding=ROUND_HALF_EVEN) * 500


def phase_out_fraction(magi: Number, start: Number, end: Number) -> Decimal:
    """Share of a limit lost to an income phase-out, to four places."""
    magi, start, end = to_decimal(magi), to_decimal(start), to_decimal(end)
    if magi <= start:
        return Decimal(0)
    if magi >= end:
        return Decimal(1)
    return ((magi - start) / (end - start)).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def reduced_limit(base: Number, magi: Number, start: Number, end: Number) -> Decimal:
    """Limit after phase-out, rounded up to whole dollars."""
    base = to_decimal(base)
    reduced = base - base * phase_out_fraction(magi, start, end)
    return reduced.quantize(Decimal(1), rounding=ROUND_UP)


class ContributionLimits:
    """Annual limits by year, account kind and limit type.

    Parameters
    ----------
    limits : mapping
        ``{year: {AccountKind: {LimitType: amount}}}``.
    phase_outs : mapping, optional
        ``{year: {FilingStatus: {AccountKind: (start, end)}}}`` MAGI ranges.
    indexation : float, optional
        Annual growth used to project limits past the last known year.
    """

    def __init__(
        self,
        limits: Mapping[int, Mapping[AccountKind, Mapping[LimitType, Number]]],
        phase_outs: Optional[Mapping[int, Mapping[FilingStatus, Mapping[AccountKind, Tuple[Number, Number]]]]] = None,
        indexation: Number = 0,
    ):
        if not limits:
            raise ValueError("contribution limits table is empty")
        self.limits = {
            int(y): {k: {t: to_decimal(a) for t, a in types.items()} for k, types in kinds.items()}
            for y, kinds in limits.items()
        }
        self.phase_outs = {int(y): v for y, v in (phase_outs or {}).items()}
        self.indexation = to_decimal(indexation)

    @classmethod
    def load(cls, path: Optional[Path] = None, indexation: Number = "0.03") -> "ContributionLimits":
        with open(path or _DEFAULT_LIMITS_PATH, "r", encoding="utf-8") as f:
            raw = json.load(f)
        limits = {
            int(year): {
                AccountKind.parse(kind): {LimitType[t]: amount for t, amount in types.items()}
                for kind, types in kinds.items()
            }
            for year, kinds in raw["limits"].items()
        }
        phase_outs = {
            int(year): {
                FilingStatus.parse(status): {
                    AccountKind.parse(kind): tuple(bounds) for kind, bounds in kinds.items()
                }
                for status, kinds in statuses.items()
            }
            for year, statuses in raw.get("phase_outs", {}).items()
        }
        return cls(limits, phase_outs, indexation)

    def _base_year(self, table: Mapping[int, object], year: int) -> Optional[int]:
        if not table:
            return None
        known = [y for y in table if y <= year]
        return max(known) if known else min(table)

    def amount(self, kind: AccountKind, limit_type: LimitType, year: int) -> Optional[Decimal]:
        base_year = self._base_year(self.limits, year)
        value = self.limits[base_year].get(kind, {}).get(limit_type)
        if value is None:
            return None
        if year > base_year and self.indexation:
            value = _round_to_500(value * (1 + self.indexation) ** (year - base_year))
        return value

    def limit_for(
        self,
        kind: Optional[AccountKind],
        year: int,
        age: Optional[int] = None,
        magi: Optional[Number] = None,
        filing_status: Union[str, FilingStatus, None] = None,
    ) -> Optional[Decimal]:
        """Employee contribution limit, or ``None`` when the kind has none.

        The base limit is increased by the largest catch-up the owner is
        eligible for at ``age``.  When ``magi`` and ``filing_status`` are both
        given and a phase-out range exists, the limit is reduced accordingly.
        """
        if kind is None:
            return None
        base = self.amount(kind, LimitType.BASE, year)
        if base is None:
            return None
        catch_ups = [
            self.amount(kind, t, year) or ZERO
            for t in LimitType
            if t.is_catch_up and t.is_eligible(age)
        ]
        limit = base + max(catch_ups, default=ZERO)
        if magi is not None and filing_status is not None:
            status = FilingStatus.parse(filing_status)
            po_year = self._base_year(self.phase_outs, year)
            bounds = None
            if po_year is not None:
                bounds = self.phase_outs[po_year].get(status, {}).get(kind)
            if bounds is not None:
                limit = reduced_limit(limit, magi, *bounds)
        return to_money(limit)


def level_schedule(grid: TimeGrid, annual_amount: Number, growth: Number = 0) -> Schedule:
    """Spread ``annual_amount`` over each year's accumulating periods.

    The amount grows by ``growth`` per plan year.  Cents are distributed so
    the periods of a full year add up to exactly the annual figure.
    """
    annual = to_decimal(annual_amount)
    growth = to_decimal(growth)
    n = grid.step.per_year
    schedule: Schedule = {}
    for period in grid:
        if period.withdrawing:
            continue
        yearly = annual * (1 + growth) ** period.plan_year
        k = (period.index - 1) % n
        amount = to_money(yearly * (k + 1) / n) - to_money(yearly * k / n)
        if amount > 0:
            schedule[period.index] = amount
    return schedule


def cap_schedule(
    schedule: Mapping[int, Number],
    grid: TimeGrid,
    kind: Optional[AccountKind],
    limits: ContributionLimits,
    magi: Optional[Number] = None,
    filing_status: Union[str, FilingStatus, None] = None,
    account_name: str = "",
) -> Schedule:
    """Clip ``schedule`` so each calendar year stays within the limit."""
    used: Dict[int, Decimal] = {}
    capped: Schedule = {}
    clipped = ZERO
    for period in grid:
        want = to_money(schedule.get(period.index, 0))
        if want <= 0:
            continue
        year = period.start.year
        limit = limits.limit_for(kind, year, period.age, magi, filing_status)
        if limit is None:
            capped[period.index] = want
            continue
        room = max(limit - used.get(year, ZERO), ZERO)
        take = min(want, room)
        used[year] = used.get(year, ZERO) + take
        clipped += want - take
        if take > 0:
            capped[period.index] = take
    if clipped > 0:
        logger.warning(
            "contributions to {} capped by annual limits ({} not contributed)",
            account_name or (kind.display_name if kind else "account"), clipped,
        )
    return capped


__all__ = [
    "LimitType",
    "ContributionLimits",
    "phase_out_fraction",
    "reduced_limit",
    "level_schedule",
    "cap_schedule",
]
