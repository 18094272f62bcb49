"""
Tests for solver invocation.

Solves run only when the solver executable is available.
"""

from types import SimpleNamespace

import pyomo.environ as pyo
import pytest
from pyomo.opt import SolverStatus, TerminationCondition

from wdn_models.enums import PrimalStatus, TerminationStatus
from wdn_models.problems import run_des, run_wf
from wdn_models.schemas import SolveOptions
from wdn_models.solver import _solver_options, check_solver_status, map_termination_condition


def solver_available(name: str) -> bool:
    return pyo.SolverFactory(name).available(exception_flag=False)


def first_available(*names):
    for name in names:
        if solver_available(name):
            return name
    return None


def _results(condition, status=SolverStatus.ok):
    return SimpleNamespace(solver=SimpleNamespace(termination_condition=condition, status=status, time=1.0))


class TestStatusMapping:
    """Tests for termination status handling."""

    @pytest.mark.unit
    def test_map_termination_condition(self):
        assert map_termination_condition(TerminationCondition.optimal) == TerminationStatus.OPTIMAL
        assert map_termination_condition(TerminationCondition.locallyOptimal) == TerminationStatus.LOCALLY_SOLVED
        assert map_termination_condition(TerminationCondition.infeasible) == TerminationStatus.INFEASIBLE
        assert map_termination_condition(TerminationCondition.maxTimeLimit) == TerminationStatus.TIME_LIMIT
        assert map_termination_condition(TerminationCondition.unknown) == TerminationStatus.OTHER

    @pytest.mark.unit
    def test_check_solver_status_solved(self):
        assert check_solver_status(_results(TerminationCondition.optimal))
        assert check_solver_status(_results(TerminationCondition.feasible, SolverStatus.warning))

    @pytest.mark.unit
    def test_check_solver_status_failure(self):
        results = _results(TerminationCondition.infeasible)
        assert not check_solver_status(results, raise_on_fail=False)
        with pytest.raises(RuntimeError, match="infeasible"):
            check_solver_status(results, context="test")

    @pytest.mark.unit
    def test_time_limit_is_unsolved(self):
        assert not check_solver_status(_results(TerminationCondition.maxTimeLimit), raise_on_fail=False)


class TestSolverOptions:
    """Tests for solver option mapping."""

    @pytest.mark.unit
    def test_time_limit_option(self):
        options = SolveOptions(solver="cbc", time_limit=10)
        assert _solver_options(options) == {"sec": 10}

    @pytest.mark.unit
    def test_explicit_option_wins(self):
        options = SolveOptions(solver="ipopt", time_limit=10, solver_options={"max_cpu_time": 5})
        assert _solver_options(options) == {"max_cpu_time": 5}

    @pytest.mark.unit
    def test_unknown_solver(self):
        options = SolveOptions(solver="not_a_solver", time_limit=10)
        assert _solver_options(options) == {}

    @pytest.mark.unit
    def test_no_time_limit(self):
        options = SolveOptions(solver="glpk", time_limit=None, solver_options={"mipgap": 0.01})
        assert _solver_options(options) == {"mipgap": 0.01}


@pytest.mark.solver
class TestSolve:
    """End-to-end solves on the small fixture networks."""

    @pytest.mark.integration
    @pytest.mark.skipif(not solver_available("ipopt"), reason="ipopt not available")
    def test_nc_wf(self, simple_network):
        result = run_wf(simple_network, "nc", solve_options=SolveOptions(solver="ipopt"))

        assert result.is_solved
        assert result.primal_status == PrimalStatus.FEASIBLE_POINT
        pipes = result.solution["pipe"]
        assert pipes["1"]["q"] == pytest.approx(0.03, abs=1e-5)
        assert pipes["2"]["q"] == pytest.approx(0.01, abs=1e-5)
        assert result.solution["node"]["1"]["h"] == pytest.approx(120.0, abs=1e-5)

    @pytest.mark.integration
    @pytest.mark.skipif(first_available("cbc", "glpk") is None, reason="no MILP solver available")
    def test_lrd_wf(self, simple_network):
        result = run_wf(simple_network, "lrd", solve_options=SolveOptions(solver=first_available("cbc", "glpk")))

        assert result.is_solved
        pipes = result.solution["pipe"]
        assert pipes["1"]["q"] == pytest.approx(0.03, abs=1e-6)
        assert pipes["2"]["q"] == pytest.approx(0.01, abs=1e-6)
        assert pipes["2"]["y"] == pytest.approx(1.0)

    @pytest.mark.integration
    @pytest.mark.skipif(first_available("cbc", "glpk") is None, reason="no MILP solver available")
    def test_lrd_des(self, design_network):
        """The cheapest candidate satisfies the relaxed heads."""
        result = run_des(design_network, "lrd", solve_options=SolveOptions(solver=first_available("cbc", "glpk")))

        assert result.is_solved
        assert result.solution["des_pipe"]["3"]["index"] == 0
        assert result.objective == pytest.approx(10.0 * 500.0)
