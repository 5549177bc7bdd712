"""Retirement savings projection engine.

Typical use::

    from retirement_engine import from_plan, simulate

    report = simulate(from_plan(plan))
"""

from loguru import logger

from .calculators.aggregate import AggregateReport, summarize
from .calculators.monte_carlo import ProjectionRequest, RunMode, max_spending, run_batch, simulate
from .calculators.projection import Outcome, RunResult
from .errors import (
    EmptyResultSet,
    InvalidHorizon,
    InvalidPlan,
    LengthMismatch,
    ProjectionError,
    ScenarioError,
)
from .plan import from_plan

logger.disable(__name__)


def simulate_plan(plan: dict):
    """Shortcut for ``simulate(from_plan(plan))``."""
    return simulate(from_plan(plan))


__all__ = [
    "AggregateReport",
    "EmptyResultSet",
    "InvalidHorizon",
    "InvalidPlan",
    "LengthMismatch",
    "Outcome",
    "ProjectionError",
    "ProjectionRequest",
    "RunMode",
    "RunResult",
    "ScenarioError",
    "from_plan",
    "max_spending",
    "run_batch",
    "simulate",
    "simulate_plan",
    "summarize",
]
