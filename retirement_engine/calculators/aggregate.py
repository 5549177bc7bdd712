"""Cross-run statistics for Monte Carlo batches."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from ..errors import EmptyResultSet
from .money import ZERO, to_decimal, to_money
from .projection import RunResult

DEFAULT_PERCENTILES: Tuple[int, ...] = (10, 50, 90)


def percentile(sorted_values: Sequence[Decimal], pct: float) -> Decimal:
    """Linear interpolation between order statistics (numpy's default method)."""
    n = len(sorted_values)
    if n == 0:
        raise EmptyResultSet("percentile of an empty sequence")
    if n == 1:
        return sorted_values[0]
    h = (Decimal(n - 1) * to_decimal(pct)) / Decimal(100)
    lo = int(h)
    if lo >= n - 1:
        return sorted_values[-1]
    frac = h - lo
    a, b = sorted_values[lo], sorted_values[lo + 1]
    return to_money(a + (b - a) * frac)


@dataclass(frozen=True)
class TerminalWealth:
    count: int
    minimum: Decimal
    median: Decimal
    maximum: Decimal
    percentiles: Tuple[Tuple[float, Decimal], ...]

    def at(self, pct: float) -> Decimal:
        return dict(self.percentiles)[pct]


@dataclass(frozen=True)
class AggregateReport:
    runs: int
    succeeded: int
    periods: int
    percentiles: Tuple[Tuple[float, Tuple[Decimal, ...]], ...]
    terminal_wealth: Optional[TerminalWealth]

    @property
    def success_probability(self) -> float:
        return self.succeeded / self.runs

    def trajectory(self, pct: float) -> Tuple[Decimal, ...]:
        return dict(self.percentiles)[pct]

    def to_frame(self) -> pd.DataFrame:
        """Percentile trajectories, one row per period."""
        data: Dict[str, list] = {"period": list(range(1, self.periods + 1))}
        for pct, series in self.percentiles:
            data[f"p{pct:g}"] = [float(v) for v in series]
        return pd.DataFrame(data)


def summarize(
    results: Sequence[RunResult],
    percentiles: Sequence[float] = DEFAULT_PERCENTILES,
) -> AggregateReport:
    """Summarise a completed batch.

    Runs that depleted early count as zero wealth for every period after
    their last snapshot, so early ruin pulls the later percentiles down.
    """
    results = list(results)
    if not results:
        raise EmptyResultSet("cannot summarise an empty set of runs")

    periods = max(r.horizon for r in results)
    totals = [r.totals(periods) for r in results]

    trajectories = []
    for pct in percentiles:
        series = []
        for t in range(periods):
            column = sorted(row[t] for row in totals)
            series.append(percentile(column, pct))
        trajectories.append((pct, tuple(series)))

    winners = sorted(r.terminal_wealth for r in results if r.succeeded)
    terminal = None
    if winners:
        terminal = TerminalWealth(
            count=len(winners),
            minimum=winners[0],
            median=percentile(winners, 50),
            maximum=winners[-1],
            percentiles=tuple((pct, percentile(winners, pct)) for pct in percentiles),
        )

    report = AggregateReport(
        runs=len(results),
        succeeded=len(winners),
        periods=periods,
        percentiles=tuple(trajectories),
        terminal_wealth=terminal,
    )
    logger.info(
        "{} runs over {} periods: success {:.1%}, median terminal wealth {}",
        report.runs, periods, report.success_probability,
        terminal.median if terminal else ZERO,
    )
    return report


__all__ = ["DEFAULT_PERCENTILES", "TerminalWealth", "AggregateReport", "percentile", "summarize"]
