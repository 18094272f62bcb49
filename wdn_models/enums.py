"""
Enumerations used in network data and solver results.
"""

from enum import Enum, IntEnum


class Status(IntEnum):
    """Operating status of a component."""
    INACTIVE = 0
    ACTIVE = 1
    UNKNOWN = 2


class FlowDirection(IntEnum):
    """Known sign of the flow through an arc."""
    NEGATIVE = -1
    UNKNOWN = 0
    POSITIVE = 1


class HeadCurveForm(Enum):
    """Functional form used to fit a pump head curve."""
    QUADRATIC = "quadratic"
    BEST_EFFICIENCY_POINT = "best_efficiency_point"
    EPANET = "epanet"


class HeadLossForm(Enum):
    """Pipe head-loss law."""
    HAZEN_WILLIAMS = "h-w"
    DARCY_WEISBACH = "d-w"


class TerminationStatus(Enum):
    """Solver termination status, independent of the solver plugin."""
    OPTIMAL = "optimal"
    LOCALLY_SOLVED = "locally_solved"
    FEASIBLE = "feasible"
    INFEASIBLE = "infeasible"
    UNBOUNDED = "unbounded"
    TIME_LIMIT = "time_limit"
    ITERATION_LIMIT = "iteration_limit"
    ERROR = "error"
    OTHER = "other"


class PrimalStatus(Enum):
    """Availability of a primal solution after solving."""
    FEASIBLE_POINT = "feasible_point"
    INFEASIBLE_POINT = "infeasible_point"
    NO_SOLUTION = "no_solution"
    UNKNOWN = "unknown"
