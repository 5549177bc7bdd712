"""Core projection calculators.

The `calculators` package contains small, focused modules that each implement
one piece of the projection engine:

* ``timegrid`` – simulation periods and the accumulation/withdrawal phase.
* ``scenarios`` – deterministic and sampled return/inflation paths, seeding.
* ``ledger`` – fixed-point account balances, contributions, fees, withdrawals.
* ``contributions`` – contribution schedules and annual limits with catch-ups.
* ``taxes`` – progressive bracket tables, gross-up and bundled federal tables.
* ``withdrawals`` – sourcing order and per-period tax on withdrawals.
* ``projection`` – the single-run state machine producing period snapshots.
* ``aggregate`` – success probability and percentile statistics over runs.
* ``monte_carlo`` – requests, deterministic runs, batches and spending search.
"""

from . import (  # noqa: F401
    timegrid,
    scenarios,
    ledger,
    contributions,
    taxes,
    withdrawals,
    projection,
    aggregate,
    monte_carlo,
)

__all__ = [
    "timegrid",
    "scenarios",
    "ledger",
    "contributions",
    "taxes",
    "withdrawals",
    "projection",
    "aggregate",
    "monte_carlo",
]
