"""Discrete simulation periods.

A :class:`TimeGrid` describes the horizon of a projection: where it starts,
how many steps it covers, how long a step is and at which step the owner stops
saving and starts drawing down.  Periods are produced lazily, so a 50 year
monthly horizon never needs to be held in memory unless a caller asks for it.

Example
-------

>>> grid = TimeGrid(date(2025, 1, 1), length=3, transition=3)
>>> [p.phase.name for p in grid]
['ACCUMULATING', 'ACCUMULATING', 'WITHDRAWING']
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterator, Optional, Tuple

import pandas as pd
from loguru import logger

from ..errors import InvalidHorizon


class Phase(Enum):
    ACCUMULATING = "accumulating"
    WITHDRAWING = "withdrawing"


class StepSize(Enum):
    MONTHLY = 12
    ANNUAL = 1

    @property
    def per_year(self) -> int:
        return self.value

    @property
    def fraction(self) -> Decimal:
        """Share of a year covered by one step."""
        return Decimal(1) / Decimal(self.value)


@dataclass(frozen=True)
class Period:
    index: int
    start: date
    end: date
    phase: Phase
    fraction: Decimal
    plan_year: int
    age: Optional[int] = None

    @property
    def withdrawing(self) -> bool:
        return self.phase is Phase.WITHDRAWING


class TimeGrid:
    """Ordered, contiguous sequence of :class:`Period` objects.

    Parameters
    ----------
    start : date
        First day of period 1.
    length : int
        Number of periods in the horizon.
    step : StepSize, optional
        Monthly or annual steps (default annual).
    transition : int or None, optional
        1-based index of the first withdrawing period.  ``None`` means the
        horizon ends before retirement and every period accumulates.
    start_age : int, optional
        Owner's age during period 1.  When given each period carries the age,
        which contribution limits use for catch-up eligibility.
    """

    def __init__(
        self,
        start: date,
        length: int,
        step: StepSize = StepSize.ANNUAL,
        transition: Optional[int] = 1,
        start_age: Optional[int] = None,
    ):
        if length <= 0:
            raise InvalidHorizon(f"horizon length must be positive, got {length}")
        if transition is not None and not 1 <= transition <= length:
            raise InvalidHorizon(
                f"transition period {transition} lies outside the horizon 1..{length}"
            )
        self.start = start
        self.length = int(length)
        self.step = step
        self.transition = transition
        self.start_age = start_age
        logger.debug(
            "time grid: {} {} periods from {}, transition at {}",
            self.length, step.name.lower(), start, transition,
        )

    @classmethod
    def from_ages(
        cls,
        start: date,
        current_age: int,
        retire_age: int,
        end_age: int,
        step: StepSize = StepSize.ANNUAL,
    ) -> "TimeGrid":
        """Grid covering ages ``current_age`` through ``end_age`` inclusive.

        Withdrawals begin in the first period at ``retire_age``.  A retire age
        past ``end_age`` is rejected rather than silently producing an
        accumulation-only projection.
        """
        if end_age < current_age:
            raise InvalidHorizon(f"end age {end_age} is before current age {current_age}")
        if not current_age <= retire_age <= end_age:
            raise InvalidHorizon(
                f"retire age {retire_age} outside {current_age}..{end_age}"
            )
        length = (end_age - current_age + 1) * step.per_year
        transition = (retire_age - current_age) * step.per_year + 1
        return cls(start, length, step=step, transition=transition, start_age=current_age)

    def __len__(self) -> int:
        return self.length

    def __iter__(self) -> Iterator[Period]:
        origin = pd.Timestamp(self.start)
        months = 12 // self.step.per_year
        fraction = self.step.fraction
        for i in range(self.length):
            begin = (origin + pd.DateOffset(months=i * months)).date()
            end = (origin + pd.DateOffset(months=(i + 1) * months)).date()
            index = i + 1
            plan_year = i // self.step.per_year
            yield Period(
                index=index,
                start=begin,
                end=end,
                phase=self.phase_at(index),
                fraction=fraction,
                plan_year=plan_year,
                age=None if self.start_age is None else self.start_age + plan_year,
            )

    def phase_at(self, index: int) -> Phase:
        if self.transition is not None and index >= self.transition:
            return Phase.WITHDRAWING
        return Phase.ACCUMULATING

    def periods(self) -> Tuple[Period, ...]:
        return tuple(self)


__all__ = ["Phase", "StepSize", "Period", "TimeGrid"]
