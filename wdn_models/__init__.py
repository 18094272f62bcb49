"""
Water distribution network optimization models.

Builds Pyomo models of water flow feasibility, optimal water flow and
network design problems under exact, relaxed and piecewise-linear
formulations.
"""

# Bounds engine
from .bounds import (
    calc_capacity_max,
    calc_head_max,
    compute_flow_bounds,
    compute_head_bounds,
    correct_network_data,
    recompute_bounds,
)

# Configuration and logging
from .config import get_config, load_config, set_config
from .logging_config import configure_logging, silence

# Network data helpers
from .data import (
    correct_enums,
    fix_all_indicators,
    ismultinetwork,
    make_multinetwork,
    nw_ids,
    replicate,
    set_start_values,
    turn_on_all_components,
)
from .enums import FlowDirection, HeadCurveForm, HeadLossForm, PrimalStatus, Status, TerminationStatus
from .validation import NetworkDataError

# Head-loss and pump function library
from .head_loss import (
    calc_resistance_dw,
    calc_resistance_hw,
    calc_resistances,
    get_alpha,
    head_loss,
    head_loss_breakpoints,
    head_loss_derivative,
    head_loss_expr_directed,
    head_loss_expr_undirected,
    head_loss_tangent,
    linear_majorant_slope,
)
from .pump import (
    calc_efficiencies,
    calc_head_curve_coefficients,
    calc_pump_energy_linear_coefficients,
    calc_pump_energy_points,
    calc_pump_energy_quadratic_coefficients,
    calc_pump_energy_ua,
    calc_pump_flow_bounds,
    calc_pump_head_gain_max,
    correct_under_approximation,
    head_curve_derivative,
    head_curve_function,
)

# Formulations
from .formulations import FlowRepresentation, Formulation, FormulationStrategy, get_strategy
from .formulations.outer_approximation import add_outer_approximation_cuts

# Topology, tanks and design
from .topology import NetworkRef, NodeIncidence, build_incidence, build_network_ref
from .tank import calc_tank_area, calc_tank_volume_bounds, integrate_tank_volume
from .design import constraint_des_pipe_selection, select_design_resistance

# Models, problems and solving
from .model import WaterModel
from .problems import (
    build_des_model,
    build_owf_model,
    build_wf_model,
    instantiate_model,
    run_des,
    run_owf,
    run_wf,
)
from .schemas import BuildOptions, SolveOptions, SolveResult
from .solution import build_solution, check_constraint_violations
from .solver import check_solver_status, solve_model

__version__ = "0.1.0"

__all__ = [
    # Bounds engine
    "calc_capacity_max",
    "calc_head_max",
    "compute_flow_bounds",
    "compute_head_bounds",
    "correct_network_data",
    "recompute_bounds",

    # Configuration and logging
    "get_config",
    "load_config",
    "set_config",
    "configure_logging",
    "silence",

    # Network data
    "correct_enums",
    "fix_all_indicators",
    "ismultinetwork",
    "make_multinetwork",
    "nw_ids",
    "replicate",
    "set_start_values",
    "turn_on_all_components",
    "FlowDirection",
    "HeadCurveForm",
    "HeadLossForm",
    "PrimalStatus",
    "Status",
    "TerminationStatus",
    "NetworkDataError",

    # Head loss and pumps
    "calc_resistance_dw",
    "calc_resistance_hw",
    "calc_resistances",
    "get_alpha",
    "head_loss",
    "head_loss_breakpoints",
    "head_loss_derivative",
    "head_loss_expr_directed",
    "head_loss_expr_undirected",
    "head_loss_tangent",
    "linear_majorant_slope",
    "calc_efficiencies",
    "calc_head_curve_coefficients",
    "calc_pump_energy_linear_coefficients",
    "calc_pump_energy_points",
    "calc_pump_energy_quadratic_coefficients",
    "calc_pump_energy_ua",
    "calc_pump_flow_bounds",
    "calc_pump_head_gain_max",
    "correct_under_approximation",
    "head_curve_derivative",
    "head_curve_function",

    # Formulations
    "FlowRepresentation",
    "Formulation",
    "FormulationStrategy",
    "get_strategy",
    "add_outer_approximation_cuts",

    # Topology, tanks and design
    "NetworkRef",
    "NodeIncidence",
    "build_incidence",
    "build_network_ref",
    "calc_tank_area",
    "calc_tank_volume_bounds",
    "integrate_tank_volume",
    "constraint_des_pipe_selection",
    "select_design_resistance",

    # Models and solving
    "WaterModel",
    "build_des_model",
    "build_owf_model",
    "build_wf_model",
    "instantiate_model",
    "run_des",
    "run_owf",
    "run_wf",
    "BuildOptions",
    "SolveOptions",
    "SolveResult",
    "build_solution",
    "check_constraint_violations",
    "check_solver_status",
    "solve_model",
]
