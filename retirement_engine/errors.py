"""Exceptions raised by the projection engine.

All of these indicate a malformed request and are raised before any
simulation work starts.  Running out of money is *not* an error: it is
reported as the ``DEPLETED_EARLY`` outcome of a run.
"""


class ProjectionError(ValueError):
    """Base class for validation failures."""


class InvalidHorizon(ProjectionError):
    """Horizon length or withdrawal transition is out of range."""


class LengthMismatch(ProjectionError):
    """A return path does not line up with the time grid."""


class EmptyResultSet(ProjectionError):
    """Aggregation was requested over zero runs."""


class InvalidPlan(ProjectionError):
    """A plan dictionary could not be turned into a request."""


class ScenarioError(ProjectionError):
    """Bad distribution parameters or a degenerate sampled batch."""


__all__ = [
    "ProjectionError",
    "InvalidHorizon",
    "LengthMismatch",
    "EmptyResultSet",
    "InvalidPlan",
    "ScenarioError",
]
