"""
Tests for the formulation strategies.

Most models are built but not solved; the tests check which variables and
constraint families each formulation creates. Solver-marked classes run a
solve when an optimizer is installed.
"""

import numpy as np
import pyomo.environ as pyo
import pytest

from wdn_models.data import replicate, set_start_values
from wdn_models.formulations.outer_approximation import add_outer_approximation_cuts
from wdn_models.problems import build_owf_model, build_wf_model, run_des, run_owf, run_wf
from wdn_models.pump import calc_pump_energy_points
from wdn_models.schemas import BuildOptions, SolveOptions
from wdn_models.solution import build_solution, check_constraint_violations
from wdn_models.solver import solve_model
from wdn_models.validation import NetworkDataError

ALL_FORMULATIONS = ["nc", "ncd", "crd", "lrd", "pwlrd", "la"]
DIRECTED_FORMULATIONS = ["ncd", "crd", "lrd", "pwlrd"]


class TestUndirectedFormulations:
    """Tests for formulations with signed flows."""

    @pytest.mark.integration
    def test_nc_structure(self, simple_network):
        wm = build_wf_model(simple_network, "nc")

        assert not wm.strategy.directed
        assert len(wm.var("0", "pipe", "q")) == 2
        assert wm.find_var("0", "pipe", "qp") is None
        assert len(wm.constraints("0", "pipe", "head_loss")["1"]) == 2

    @pytest.mark.integration
    def test_no_directionality_cuts(self, simple_network):
        """Undirected flows have no direction binaries to prune."""
        wm = build_wf_model(simple_network, "nc")
        assert not wm.constraints("0", "node", "source_directionality")
        assert not wm.constraints("0", "node", "sink_directionality")

    @pytest.mark.integration
    def test_la_convex_combination(self, simple_network):
        """LA interpolates head loss between breakpoints."""
        wm = build_wf_model(simple_network, "la", BuildOptions(breakpoints=5))

        points = wm.expression("0", "pipe", "lambda_points")
        assert len(points["2"]) == 5
        assert points["2"][0] == pytest.approx(-0.03)
        assert points["2"][-1] == pytest.approx(0.03)
        assert len(wm.var("0", "pipe", "lambda")) == 10
        assert wm.constraints("0", "pipe", "pwl_lambda")["2"]

    @pytest.mark.integration
    def test_la_secant(self, simple_network):
        """Without breakpoints LA falls back to a single secant."""
        wm = build_wf_model(simple_network, "la")
        assert wm.expression("0", "pipe", "lambda_points")["1"] == pytest.approx([0.0, 0.03])


class TestDirectedFormulations:
    """Tests for formulations with split flows."""

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", DIRECTED_FORMULATIONS)
    def test_split_variables(self, simple_network, formulation):
        wm = build_wf_model(simple_network, formulation)

        assert wm.strategy.directed
        for symbol in ("qp", "qn", "y", "dhp", "dhn"):
            assert len(wm.var("0", "pipe", symbol)) == 2
        assert all(wm.var("0", "pipe", "y")[a].is_binary() for a in ("1", "2"))
        assert wm.constraints("0", "pipe", "direction")["2"]
        assert wm.constraints("0", "pipe", "head_split")["2"]
        assert wm.constraints("0", "pipe", "head_loss")["2"]

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", DIRECTED_FORMULATIONS)
    def test_directionality_cuts(self, simple_network, formulation):
        """The reservoir node gets the source rule, demand nodes the sink rule."""
        wm = build_wf_model(simple_network, formulation)

        assert list(wm.constraints("0", "node", "source_directionality")) == ["1"]
        assert set(wm.constraints("0", "node", "sink_directionality")) == {"2", "3"}

    @pytest.mark.integration
    def test_reverse_bound_of_forward_pipe(self, simple_network):
        """A pipe that cannot flow backwards gets a zero reverse split."""
        wm = build_wf_model(simple_network, "lrd")
        qn = wm.var("0", "pipe", "qn")
        assert qn["1"].ub == 0.0
        assert qn["2"].ub == pytest.approx(0.03)

    @pytest.mark.integration
    def test_pwlrd_without_breakpoints(self, simple_network):
        """PWLRD without breakpoints keeps only tangents and the majorant."""
        wm = build_wf_model(simple_network, "pwlrd")
        assert wm.find_var("0", "pipe", "lambda") is None

    @pytest.mark.integration
    def test_pwlrd_with_breakpoints(self, simple_network):
        wm = build_wf_model(simple_network, "pwlrd", BuildOptions(breakpoints=4))

        points = wm.expression("0", "pipe", "lambda_points")
        assert len(points["2", "p"]) == 4
        assert len(points["2", "n"]) == 4
        # pipe 1 cannot reverse, so its reverse piece collapses to one point
        assert points["1", "n"] == [0.0]
        assert wm.constraints("0", "pipe", "pwl_lambda")["2", "p"]

    @pytest.mark.integration
    def test_lrd_tangent_count(self, simple_network):
        """More breakpoints add more tangent cuts."""
        coarse = build_wf_model(simple_network, "lrd")
        fine = build_wf_model(simple_network, "lrd", BuildOptions(pipe_breakpoints=6))

        num_coarse = len(coarse.constraints("0", "pipe", "head_loss")["2"])
        num_fine = len(fine.constraints("0", "pipe", "head_loss")["2"])
        assert num_fine > num_coarse


class TestPumpFormulations:
    """Tests for pump head gain and energy."""

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", ALL_FORMULATIONS)
    def test_owf_structure(self, pump_network, formulation):
        wm = build_owf_model(pump_network, formulation)

        assert len(wm.var("0", "pump", "E")) == 1
        assert wm.var("0", "pump", "z")["1"].is_binary()
        assert wm.constraints("0", "pump", "power")["1"]
        assert wm.constraints("0", "pump", "head_gain")["1"]
        assert wm.constraints("0", "pump", "on_off")["1"]

    @pytest.mark.integration
    def test_wf_has_no_energy(self, pump_network):
        wm = build_wf_model(pump_network, "nc")
        assert wm.find_var("0", "pump", "E") is None

    @pytest.mark.integration
    def test_missing_energy_price(self, pump_network):
        pump_network["pump"]["1"].pop("energy_price")
        with pytest.raises(NetworkDataError, match="energy_price"):
            build_owf_model(pump_network, "crd")

    @pytest.mark.integration
    def test_missing_time_step(self, pump_network):
        pump_network.pop("time_step")
        with pytest.raises(NetworkDataError, match="time_step"):
            build_owf_model(pump_network, "nc")

    @pytest.mark.integration
    def test_fixed_indicator(self, pump_network):
        """z_min and z_max fix the pump indicator."""
        pump_network["pump"]["1"]["z_min"] = 1
        wm = build_wf_model(pump_network, "ncd")
        z = wm.var("0", "pump", "z")["1"]
        assert (z.lb, z.ub) == (1, 1)


class TestBuildOptions:
    """Tests for options applied at build time."""

    @pytest.mark.integration
    def test_unbounded_model(self, simple_network):
        """Derived bounds are not attached to the variables."""
        wm = build_wf_model(simple_network, "nc", BuildOptions(bounded=False))

        h = wm.var("0", "node", "h")
        assert h["2"].lb is None and h["2"].ub is None
        assert wm.var("0", "pipe", "q")["1"].ub is None

    @pytest.mark.integration
    def test_unbounded_keeps_indicator_bounds(self, pump_network):
        wm = build_wf_model(pump_network, "crd", BuildOptions(bounded=False))
        z = wm.var("0", "pump", "z")["1"]
        assert (z.lb, z.ub) == (0, 1)

    @pytest.mark.integration
    def test_bounded_model(self, simple_network):
        wm = build_wf_model(simple_network, "nc")
        h = wm.var("0", "node", "h")
        assert (h["2"].lb, h["2"].ub) == pytest.approx((50.0, 120.0))

    @pytest.mark.integration
    def test_start_values(self, simple_network):
        """``*_start`` attributes seed the initial values."""
        simple_network["pipe"]["1"]["q_start"] = 0.025
        simple_network["node"]["2"]["h_start"] = 90.0
        wm = build_wf_model(simple_network, "nc")

        assert wm.var("0", "pipe", "q")["1"].value == pytest.approx(0.025)
        assert wm.var("0", "node", "h")["2"].value == pytest.approx(90.0)

    @pytest.mark.unit
    def test_unknown_formulation(self, simple_network):
        with pytest.raises(NetworkDataError, match="Invalid formulation"):
            build_wf_model(simple_network, "milp")


class TestOuterApproximation:
    """Tests for tangent cuts at the current point."""

    @pytest.mark.integration
    def test_head_loss_cuts(self, simple_network):
        """One cut per directed piece with a positive flow."""
        wm = build_wf_model(simple_network, "crd")
        for a in ("1", "2"):
            wm.var("0", "pipe", "qp")[a].set_value(0.01)
            wm.var("0", "pipe", "qn")[a].set_value(0.0)

        assert add_outer_approximation_cuts(wm) == 2
        assert len(wm.constraints("0", "pipe", "oa_cut")["1"]) == 1

    @pytest.mark.integration
    def test_undirected_skips_head_loss(self, simple_network):
        wm = build_wf_model(simple_network, "nc")
        wm.var("0", "pipe", "q")["1"].set_value(0.03)
        assert add_outer_approximation_cuts(wm) == 0

    @pytest.mark.integration
    def test_pump_cuts(self, pump_network):
        wm = build_wf_model(pump_network, "nc")
        wm.var("0", "pump", "q")["1"].set_value(0.01)

        assert add_outer_approximation_cuts(wm) == 1
        assert wm.constraints("0", "pump", "oa_cut")["1"]

    @pytest.mark.integration
    def test_cuts_in_every_period(self, simple_network):
        wm = build_wf_model(replicate(simple_network, 2), "lrd")
        for n in wm.nw_ids:
            wm.var(n, "pipe", "qp")["1"].set_value(0.03)
            wm.var(n, "pipe", "qp")["2"].set_value(0.0)
            wm.var(n, "pipe", "qn")["1"].set_value(0.0)
            wm.var(n, "pipe", "qn")["2"].set_value(0.0)

        assert add_outer_approximation_cuts(wm) == 2


class TestControlComponents:
    """Regulators, shutoff valves, short pipes and check valves in every formulation."""

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", ALL_FORMULATIONS)
    def test_constraint_families(self, controls_network, formulation):
        wm = build_wf_model(controls_network, formulation)

        assert len(wm.constraints("0", "regulator", "head")["1"]) == 4
        assert wm.constraints("0", "regulator", "on_off")["1"]
        assert wm.constraints("0", "valve", "on_off")["1"]
        assert wm.constraints("0", "valve", "head")["1"]
        assert len(wm.constraints("0", "short_pipe", "head")["1"]) == 1
        assert wm.constraints("0", "check_valve", "on_off")["1"]
        assert wm.constraints("0", "check_valve", "head_loss")["1"]
        for comp_type in ("regulator", "valve", "check_valve"):
            assert wm.var("0", comp_type, "z")["1"].is_binary()

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", ALL_FORMULATIONS)
    def test_check_valve_has_no_reverse_flow(self, controls_network, formulation):
        wm = build_wf_model(controls_network, formulation)
        if wm.strategy.directed:
            assert wm.var("0", "check_valve", "qn")["1"].ub == 0.0
        else:
            assert wm.var("0", "check_valve", "q")["1"].lb == 0.0

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", ["nc", "lrd"])
    def test_open_regulator_point(self, controls_network, formulation):
        """Downstream head at elevation plus setting satisfies the regulator bands."""
        wm = build_wf_model(controls_network, formulation)
        h = wm.var("0", "node", "h")
        wm.var("0", "regulator", "z")["1"].set_value(1)
        h["2"].set_value(110.0)
        h["3"].set_value(60.0)

        regulator = [v for v in check_constraint_violations(wm) if v["component"] == "regulator" and v["family"] == "head"]
        assert regulator == []

        h["3"].set_value(65.0)
        regulator = [v for v in check_constraint_violations(wm) if v["component"] == "regulator" and v["family"] == "head"]
        assert regulator
        assert max(v["violation"] for v in regulator) == pytest.approx(5.0)

    @pytest.mark.integration
    def test_short_pipe_head_difference(self, controls_network):
        wm = build_wf_model(controls_network, "nc")
        h = wm.var("0", "node", "h")
        h["3"].set_value(60.0)
        h["4"].set_value(58.0)

        short_pipe = [v for v in check_constraint_violations(wm) if v["component"] == "short_pipe"]
        assert len(short_pipe) == 1
        assert short_pipe[0]["violation"] == pytest.approx(2.0)


@pytest.mark.solver
class TestControlComponentSolves:
    """Solved behavior of control components under the linear relaxation."""

    @pytest.mark.integration
    def test_regulator_fixes_downstream_head(self, controls_network, milp_solver):
        result = run_wf(controls_network, "lrd", solve_options=SolveOptions(solver=milp_solver))

        assert result.is_solved
        nodes = result.solution["node"]
        assert nodes["3"]["h"] == pytest.approx(40.0 + 20.0, abs=1e-6)
        assert result.solution["regulator"]["1"]["q"] == pytest.approx(0.01, abs=1e-6)
        assert result.solution["regulator"]["1"]["z"] == pytest.approx(1.0)

    @pytest.mark.integration
    def test_short_pipe_equal_heads(self, controls_network, milp_solver):
        result = run_wf(controls_network, "lrd", solve_options=SolveOptions(solver=milp_solver))

        assert result.is_solved
        nodes = result.solution["node"]
        assert nodes["4"]["h"] == pytest.approx(nodes["3"]["h"], abs=1e-6)
        assert result.solution["short_pipe"]["1"]["q"] == pytest.approx(0.01, abs=1e-6)

    @pytest.mark.integration
    def test_closed_valve_decouples_heads(self, controls_network, milp_solver):
        """A closed valve carries no flow and leaves its end heads independent."""
        controls_network["valve"]["1"]["z_max"] = 0
        result = run_wf(controls_network, "lrd", solve_options=SolveOptions(solver=milp_solver))

        assert result.is_solved
        nodes = result.solution["node"]
        assert result.solution["valve"]["1"]["q"] == pytest.approx(0.0, abs=1e-6)
        assert nodes["6"]["h"] == pytest.approx(45.0)
        assert nodes["2"]["h"] - nodes["6"]["h"] >= 15.0 - 1e-6

    @pytest.mark.integration
    def test_check_valve_blocks_reverse_flow(self, controls_network, milp_solver):
        """A higher reservoir behind the check valve cannot push water back through it."""
        controls_network["node"]["7"] = {"elevation": 100.0}
        controls_network["reservoir"]["3"] = {"node": "7", "head": 130.0}
        controls_network["pipe"]["3"] = {
            "node_fr": "7", "node_to": "5", "length": 100.0, "diameter": 0.3, "roughness": 130.0,
        }
        result = run_wf(controls_network, "lrd", solve_options=SolveOptions(solver=milp_solver))

        assert result.is_solved
        assert result.solution["check_valve"]["1"]["q"] == pytest.approx(0.0, abs=1e-6)
        assert result.solution["pipe"]["3"]["q"] == pytest.approx(0.01, abs=1e-6)


def _set_hydraulic_point(wm, flows, heads):
    """Load arc flows and node heads into either flow representation."""
    h = wm.var("0", "node", "h")
    for i, value in heads.items():
        h[i].set_value(value)

    for a, q in flows.items():
        comp = wm.ref("0", "pipe", a)
        dh = heads[comp["node_fr"]] - heads[comp["node_to"]]
        if not wm.strategy.directed:
            wm.var("0", "pipe", "q")[a].set_value(q)
            continue
        wm.var("0", "pipe", "qp")[a].set_value(max(q, 0.0))
        wm.var("0", "pipe", "qn")[a].set_value(max(-q, 0.0))
        wm.var("0", "pipe", "y")[a].set_value(1 if q >= 0.0 else 0)
        wm.var("0", "pipe", "dhp")[a].set_value(max(dh, 0.0))
        wm.var("0", "pipe", "dhn")[a].set_value(max(-dh, 0.0))


def _head_loss_violations(wm, a):
    return [
        v for v in check_constraint_violations(wm)
        if v["component"] == "pipe" and v["family"] == "head_loss" and v["key"] == a
    ]


class TestRelaxationOrdering:
    """Relaxations contain the exact hydraulic point and tighten with more breakpoints."""

    def _exact_point(self, wm):
        alpha = wm.alpha("0")
        pipe_1, pipe_2 = wm.ref("0", "pipe", "1"), wm.ref("0", "pipe", "2")
        h_2 = 120.0 - pipe_1["length"] * pipe_1["resistance"] * 0.03 ** alpha
        h_3 = h_2 - pipe_2["length"] * pipe_2["resistance"] * 0.01 ** alpha
        return {"1": 0.03, "2": 0.01}, {"1": 120.0, "2": h_2, "3": h_3}

    @pytest.mark.integration
    @pytest.mark.parametrize("formulation", ["nc", "ncd", "crd", "lrd", "pwlrd"])
    def test_exact_point_is_feasible(self, simple_network, formulation):
        """Every relaxation admits the exact solution, so its optimum is never worse."""
        wm = build_wf_model(simple_network, formulation)
        _set_hydraulic_point(wm, *self._exact_point(wm))

        assert _head_loss_violations(wm, "1") == []
        assert _head_loss_violations(wm, "2") == []

    @pytest.mark.integration
    def test_breakpoints_tighten_lrd(self, simple_network):
        """A point feasible with more tangents is feasible with fewer."""
        counts = [2, 3, 5, 9]
        models = [build_wf_model(simple_network, "lrd", BuildOptions(pipe_breakpoints=k)) for k in counts]
        pipe_2 = models[0].ref("0", "pipe", "2")
        alpha = models[0].alpha("0")

        tightened = False
        for q in (0.0025, 0.0075, 0.015, 0.0225, 0.03):
            for factor in (0.3, 0.6, 0.9, 1.0):
                dh = factor * pipe_2["length"] * pipe_2["resistance"] * q ** alpha
                heads = {"1": 120.0, "2": 110.0, "3": 110.0 - dh}
                feasible = []
                for wm in models:
                    _set_hydraulic_point(wm, {"1": 0.03, "2": q}, heads)
                    feasible.append(not _head_loss_violations(wm, "2"))

                assert feasible == sorted(feasible, reverse=True)
                if factor == 1.0:
                    assert all(feasible)
                tightened = tightened or (feasible[0] and not feasible[-1])

        assert tightened


class TestFlowRepresentationRoundTrip:
    """Signed flows and directed splits describe the same solution."""

    @pytest.mark.integration
    def test_signed_flows_seed_directed_model(self, simple_network):
        wm = build_wf_model(simple_network, "nc")
        wm.var("0", "pipe", "q")["1"].set_value(0.03)
        wm.var("0", "pipe", "q")["2"].set_value(-0.004)
        undirected = build_solution(wm)

        directed = build_wf_model(set_start_values(simple_network, undirected), "lrd")
        qp, qn = directed.var("0", "pipe", "qp"), directed.var("0", "pipe", "qn")
        assert (qp["2"].value, qn["2"].value) == pytest.approx((0.0, 0.004))
        assert (qp["1"].value, qn["1"].value) == pytest.approx((0.03, 0.0))

        reported = build_solution(directed)
        for a in ("1", "2"):
            assert reported["pipe"][a]["q"] == pytest.approx(undirected["pipe"][a]["q"])


@pytest.mark.solver
class TestSolvedRelaxations:
    """Solved objectives of the relaxations against the exact values."""

    @pytest.mark.integration
    def test_directed_flows_match_signed_flows(self, simple_network, nlp_solver, milp_solver):
        exact = run_wf(simple_network, "nc", solve_options=SolveOptions(solver=nlp_solver))
        relaxed = build_wf_model(simple_network, "lrd")
        result = solve_model(relaxed, options=SolveOptions(solver=milp_solver))

        assert exact.is_solved and result.is_solved
        for a in ("1", "2"):
            split = pyo.value(relaxed.var("0", "pipe", "qp")[a] - relaxed.var("0", "pipe", "qn")[a])
            assert split == pytest.approx(exact.solution["pipe"][a]["q"], abs=1e-5)

    @pytest.mark.integration
    def test_pump_energy_relaxation_bounds_exact_cost(self, pump_network, milp_solver):
        """The relaxed energy cost never exceeds the cost of the exact operating point."""
        wm = build_owf_model(pump_network, "lrd")
        pump = wm.ref("0", "pump", "1")
        q_true, energy = calc_pump_energy_points(pump, pump_network["time_step"])
        exact_cost = pump["energy_price"] * float(np.interp(0.02, q_true, energy))

        objectives = []
        for k in (2, 3, 5):
            result = run_owf(
                pump_network, "pwlrd", BuildOptions(pump_breakpoints=k), SolveOptions(solver=milp_solver)
            )
            assert result.is_solved
            objectives.append(result.objective)

        lrd = solve_model(wm, options=SolveOptions(solver=milp_solver))
        assert lrd.is_solved
        assert lrd.objective <= exact_cost + 1e-6
        for lower, higher in zip(objectives, objectives[1:]):
            assert lower <= higher + 1e-6
        assert objectives[-1] <= exact_cost + 1e-6

    @pytest.mark.integration
    def test_design_relaxation_bounds_exact_cost(self, design_network, milp_solver):
        """The cheapest candidate is exactly feasible, so no relaxation can price below it."""
        exact_cost = 10.0 * 500.0
        objectives = []
        for k in (2, 3, 5):
            result = run_des(design_network, "lrd", BuildOptions(pipe_breakpoints=k), SolveOptions(solver=milp_solver))
            assert result.is_solved
            objectives.append(result.objective)

        for lower, higher in zip(objectives, objectives[1:]):
            assert lower <= higher + 1e-6
        assert objectives[-1] == pytest.approx(exact_cost)
