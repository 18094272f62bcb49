"""
Pydantic schemas for model building and solving.

Defines the option structures accepted by the build entry points and the
result structure returned after solving.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .config import get_config
from .enums import PrimalStatus, TerminationStatus

# Schema versions
SCHEMA_VERSION_OPTIONS = "1.0.0"
SCHEMA_VERSION_RESULTS = "1.0.0"


# ============================================================================
# Input Schemas
# ============================================================================

class BuildOptions(BaseModel):
    """Options recognized by the model build entry points."""

    breakpoints: int = Field(
        default_factory=lambda: get_config('build.breakpoints', 0),
        ge=0,
        description="Breakpoints for piecewise-linear formulations (0 disables, else >= 2)"
    )
    pipe_breakpoints: Optional[int] = Field(
        None, ge=0, description="Head-loss breakpoints; defaults to breakpoints"
    )
    pump_breakpoints: Optional[int] = Field(
        None, ge=0, description="Pump curve breakpoints; defaults to breakpoints"
    )
    bounded: bool = Field(
        default_factory=lambda: get_config('build.bounded', True),
        description="Attach derived bounds to the model variables"
    )
    report: bool = Field(
        default_factory=lambda: get_config('build.report', True),
        description="Report component values in built solutions"
    )

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @field_validator('breakpoints', 'pipe_breakpoints', 'pump_breakpoints')
    @classmethod
    def _check_breakpoint_count(cls, value):
        if value == 1:
            raise ValueError("A piecewise-linear approximation needs 0 or at least 2 breakpoints")
        return value

    @model_validator(mode='after')
    def _default_breakpoints(self):
        # Assigning through __dict__ keeps validate_assignment from recursing
        if self.pipe_breakpoints is None:
            self.__dict__['pipe_breakpoints'] = self.breakpoints
        if self.pump_breakpoints is None:
            self.__dict__['pump_breakpoints'] = self.breakpoints
        return self


class SolveOptions(BaseModel):
    """Solver invocation options."""

    solver: str = Field(
        default_factory=lambda: get_config('solver.default', 'ipopt'),
        description="Pyomo SolverFactory name"
    )
    time_limit: Optional[float] = Field(
        default_factory=lambda: get_config('solver.time_limit', None),
        gt=0,
        description="Wall-clock limit in seconds, mapped to the solver's own option"
    )
    tee: bool = Field(False, description="Stream solver output")
    solver_options: Dict[str, Any] = Field(
        default_factory=dict, description="Options passed through to the solver"
    )

    model_config = ConfigDict(validate_assignment=True)


# ============================================================================
# Output Schemas
# ============================================================================

class SolveResult(BaseModel):
    """Outcome of one solver invocation."""

    termination_status: TerminationStatus
    primal_status: PrimalStatus = PrimalStatus.UNKNOWN
    objective: Optional[float] = None
    solve_time: float = Field(0.0, ge=0)
    solver: str
    formulation: str
    solution: Dict[str, Any] = Field(default_factory=dict)
    schema_version: str = SCHEMA_VERSION_RESULTS

    @property
    def is_solved(self) -> bool:
        return self.termination_status in (
            TerminationStatus.OPTIMAL,
            TerminationStatus.LOCALLY_SOLVED,
            TerminationStatus.FEASIBLE,
        )
