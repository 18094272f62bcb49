"""
Tests for option and result schemas.
"""

import pytest
from pydantic import ValidationError

from wdn_models.enums import PrimalStatus, TerminationStatus
from wdn_models.formulations import FlowRepresentation, Formulation, get_strategy
from wdn_models.schemas import BuildOptions, SolveOptions, SolveResult
from wdn_models.validation import NetworkDataError


class TestBuildOptions:
    """Tests for BuildOptions."""

    @pytest.mark.unit
    def test_defaults(self):
        """Breakpoint counts default to the shared value."""
        options = BuildOptions()
        assert options.breakpoints == 0
        assert options.pipe_breakpoints == 0
        assert options.pump_breakpoints == 0
        assert options.bounded is True
        assert options.report is True

    @pytest.mark.unit
    def test_specific_breakpoints(self):
        options = BuildOptions(breakpoints=5, pump_breakpoints=3)
        assert options.pipe_breakpoints == 5
        assert options.pump_breakpoints == 3

    @pytest.mark.unit
    def test_single_breakpoint_rejected(self):
        """A single breakpoint cannot define a piecewise-linear function."""
        with pytest.raises(ValidationError, match="0 or at least 2 breakpoints"):
            BuildOptions(breakpoints=1)

        with pytest.raises(ValidationError):
            BuildOptions(pipe_breakpoints=1)

    @pytest.mark.unit
    def test_negative_breakpoints_rejected(self):
        with pytest.raises(ValidationError):
            BuildOptions(breakpoints=-2)

    @pytest.mark.unit
    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            BuildOptions(relaxation="tight")


class TestSolveOptions:
    """Tests for SolveOptions."""

    @pytest.mark.unit
    def test_defaults(self):
        options = SolveOptions()
        assert options.solver == 'ipopt'
        assert options.time_limit is None
        assert options.solver_options == {}

    @pytest.mark.unit
    def test_time_limit_positive(self):
        assert SolveOptions(time_limit=10).time_limit == 10

        with pytest.raises(ValidationError):
            SolveOptions(time_limit=0)


class TestSolveResult:
    """Tests for SolveResult."""

    @pytest.mark.unit
    def test_is_solved(self):
        """Optimal, locally solved and feasible results count as solved."""
        for status in (TerminationStatus.OPTIMAL, TerminationStatus.LOCALLY_SOLVED, TerminationStatus.FEASIBLE):
            result = SolveResult(termination_status=status, solver='ipopt', formulation='nc')
            assert result.is_solved

        result = SolveResult(termination_status=TerminationStatus.INFEASIBLE, solver='ipopt', formulation='nc')
        assert not result.is_solved
        assert result.primal_status == PrimalStatus.UNKNOWN
        assert result.solution == {}

    @pytest.mark.unit
    def test_serialization(self):
        result = SolveResult(
            termination_status=TerminationStatus.OPTIMAL,
            objective=1.5,
            solver='cbc',
            formulation='lrd',
        )
        data = result.model_dump()
        assert data['objective'] == 1.5
        assert data['termination_status'] == TerminationStatus.OPTIMAL
        assert data['schema_version'] == '1.0.0'


class TestFormulationParsing:
    """Tests for formulation tags and strategies."""

    @pytest.mark.unit
    def test_parse(self):
        assert Formulation.parse('crd') == Formulation.CRD
        assert Formulation.parse('PWLRD') == Formulation.PWLRD
        assert Formulation.parse(Formulation.LA) == Formulation.LA

    @pytest.mark.unit
    def test_parse_invalid(self):
        with pytest.raises(NetworkDataError, match="Invalid formulation"):
            Formulation.parse('milp')

    @pytest.mark.unit
    def test_representations(self):
        """NC and LA use undirected flows; the other formulations split flows by direction."""
        for formulation in Formulation:
            strategy = get_strategy(formulation)
            assert strategy.formulation == formulation
            expected = formulation in (Formulation.NC, Formulation.LA)
            assert (strategy.representation == FlowRepresentation.UNDIRECTED) == expected
            assert strategy.directed == (not expected)
