"""
Solver invocation.

Models are solved through Pyomo's ``SolverFactory``. Solver failures are
passed through as ``TerminationStatus`` values; nothing here retries or
relaxes a model.
"""

import time
from typing import Optional

import pyomo.environ as pyo
from pyomo.opt import SolverStatus, TerminationCondition

from .config import get_config
from .enums import PrimalStatus, TerminationStatus
from .logging_config import get_configured_logger
from .schemas import SolveOptions, SolveResult
from .solution import build_solution

logger = get_configured_logger(__name__)

TERMINATION_MAP = {
    TerminationCondition.optimal: TerminationStatus.OPTIMAL,
    TerminationCondition.globallyOptimal: TerminationStatus.OPTIMAL,
    TerminationCondition.locallyOptimal: TerminationStatus.LOCALLY_SOLVED,
    TerminationCondition.feasible: TerminationStatus.FEASIBLE,
    TerminationCondition.infeasible: TerminationStatus.INFEASIBLE,
    TerminationCondition.invalidProblem: TerminationStatus.INFEASIBLE,
    TerminationCondition.infeasibleOrUnbounded: TerminationStatus.INFEASIBLE,
    TerminationCondition.unbounded: TerminationStatus.UNBOUNDED,
    TerminationCondition.maxTimeLimit: TerminationStatus.TIME_LIMIT,
    TerminationCondition.maxIterations: TerminationStatus.ITERATION_LIMIT,
    TerminationCondition.maxEvaluations: TerminationStatus.ITERATION_LIMIT,
    TerminationCondition.error: TerminationStatus.ERROR,
    TerminationCondition.solverFailure: TerminationStatus.ERROR,
    TerminationCondition.internalSolverError: TerminationStatus.ERROR,
    TerminationCondition.licensingProblems: TerminationStatus.ERROR,
}

SOLVED_STATUSES = (
    TerminationStatus.OPTIMAL,
    TerminationStatus.LOCALLY_SOLVED,
    TerminationStatus.FEASIBLE,
)


def map_termination_condition(condition) -> TerminationStatus:
    return TERMINATION_MAP.get(condition, TerminationStatus.OTHER)


def check_solver_status(results, context: str = "solve", raise_on_fail: bool = True) -> bool:
    """
    Check solver status and log the termination condition.

    Args:
        results: Pyomo solver results object
        context: Description of what was being solved
        raise_on_fail: Whether to raise on an unsolved termination

    Returns:
        bool: True if a solution is acceptable, False otherwise

    Raises:
        RuntimeError: If ``raise_on_fail`` and the solve did not succeed
    """
    condition = results.solver.termination_condition
    status = map_termination_condition(condition)

    if status == TerminationStatus.OPTIMAL:
        logger.info(f"{context}: Found optimal solution")
    elif status == TerminationStatus.LOCALLY_SOLVED:
        logger.info(f"{context}: Found locally optimal solution (acceptable for nonconvex formulations)")
    elif status == TerminationStatus.FEASIBLE:
        logger.warning(f"{context}: Found feasible but not optimal solution")
    elif status == TerminationStatus.TIME_LIMIT:
        logger.warning(f"{context}: Solver hit time limit")
        if getattr(results.solver, "time", None) is not None:
            logger.warning(f"  Time used: {results.solver.time:.1f}s")
    elif status == TerminationStatus.INFEASIBLE:
        logger.error(f"{context}: Problem is infeasible - check bounds, statuses and demands")
    else:
        logger.error(f"{context}: Solver failed with termination condition: {condition}")

    if results.solver.status == SolverStatus.warning:
        logger.warning(f"{context}: Solver returned with warning status")
    elif results.solver.status == SolverStatus.error:
        logger.error(f"{context}: Solver returned with error status")

    solved = status in SOLVED_STATUSES
    if raise_on_fail and not solved:
        raise RuntimeError(f"Solver failed during {context} with status: {condition}")
    return solved


def _solver_options(options: SolveOptions) -> dict:
    solver_options = dict(options.solver_options)
    if options.time_limit is not None:
        key = get_config(f"solver.time_limit_options.{options.solver}")
        if key is None:
            logger.warning(f"No time limit option known for solver {options.solver}; ignoring time_limit")
        else:
            solver_options.setdefault(key, options.time_limit)
    return solver_options


def solve_model(wm, solver: Optional[str] = None, options: Optional[SolveOptions] = None) -> SolveResult:
    """
    Solve a built WaterModel.

    Args:
        wm: Model returned by a ``build_*_model`` entry point
        solver: SolverFactory name, overriding ``options.solver``
        options: Solve options; defaults come from the configuration

    Returns:
        SolveResult with the mapped termination status, the objective and,
        when a solution was loaded, the built solution dictionary.
    """
    options = options if options is not None else SolveOptions()
    if solver is not None:
        options = options.model_copy(update={"solver": solver})

    opt = pyo.SolverFactory(options.solver)
    for key, value in _solver_options(options).items():
        opt.options[key] = value

    logger.info(f"Solving {wm.model.name} ({wm.formulation.name}) with {options.solver}")
    start_time = time.time()
    results = opt.solve(wm.model, tee=options.tee, load_solutions=False)
    solve_time = time.time() - start_time

    termination = map_termination_condition(results.solver.termination_condition)
    check_solver_status(results, context=f"{wm.model.name} solve", raise_on_fail=False)

    primal = PrimalStatus.NO_SOLUTION
    objective = None
    solution = {}
    if len(results.solution) > 0:
        wm.model.solutions.load_from(results)
        primal = PrimalStatus.FEASIBLE_POINT if termination in SOLVED_STATUSES else PrimalStatus.INFEASIBLE_POINT
        objective = pyo.value(wm.model.objective, exception=False)
        solution = build_solution(wm)

    return SolveResult(
        termination_status=termination,
        primal_status=primal,
        objective=objective,
        solve_time=solve_time,
        solver=options.solver,
        formulation=wm.formulation.value,
        solution=solution,
    )
