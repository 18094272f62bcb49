"""
Problem entry points.

Each builder corrects the network data, assembles every period of a
(possibly multi-period) network into one Pyomo model under the requested
formulation, adds the inter-period tank and design links and sets the
objective of its problem class:

- ``build_wf_model``: water flow feasibility
- ``build_owf_model``: optimal water flow, minimizing pump energy cost
- ``build_des_model``: network design, minimizing the cost of the selected
  design pipe candidates

The ``run_*`` wrappers build and solve in one call.
"""

import time
from typing import Any, Callable, Dict, Optional, Union

from .constraints import constraint_arcs, constraint_nodes, count_arcs
from .design import constraint_des_pipe_link, constraint_des_pipes, variable_des_pipe_indicator
from .formulations import Formulation
from .logging_config import get_configured_logger
from .model import WaterModel
from .objective import objective_des, objective_owf, objective_wf
from .schemas import BuildOptions, SolveOptions, SolveResult
from .solver import solve_model
from .tank import constraint_recover_volume, constraint_tank_initial_state, constraint_tank_state
from .variables import variable_common, variable_pump_power

logger = get_configured_logger(__name__)


def _build_period(wm: WaterModel, n: str, energy: bool = False) -> None:
    strategy = wm.strategy

    variable_common(wm, n)
    strategy.variable_flow_des(wm, n)
    variable_des_pipe_indicator(wm, n)
    if energy:
        variable_pump_power(wm, n)
    strategy.variable_auxiliary(wm, n)

    constraint_arcs(wm, n)
    constraint_des_pipes(wm, n)
    constraint_nodes(wm, n)

    if energy:
        for a in wm.ids(n, "pump"):
            strategy.constraint_pump_power(wm, n, a)


def _build_links(wm: WaterModel) -> None:
    """Tank initial state, tank transitions, tank recovery and design links."""
    periods = wm.nw_ids
    first, last = periods[0], periods[-1]

    for i in wm.ids(first, "tank"):
        constraint_tank_initial_state(wm, first, i)

    for n_1, n_2 in zip(periods[:-1], periods[1:]):
        for i in wm.ids(n_2, "tank"):
            if i in wm.ids(n_1, "tank"):
                constraint_tank_state(wm, n_1, n_2, i)
        for a in wm.ids(n_2, "des_pipe"):
            if a in wm.ids(first, "des_pipe"):
                constraint_des_pipe_link(wm, first, n_2, a)

    if len(periods) > 1:
        for i in wm.ids(last, "tank"):
            if i in wm.ids(first, "tank"):
                constraint_recover_volume(wm, i, first, last)


def instantiate_model(
    network: Dict[str, Any],
    formulation: Union[Formulation, str],
    build_method: Callable[[WaterModel], None],
    options: Optional[BuildOptions] = None,
) -> WaterModel:
    """
    Create a WaterModel and populate it with ``build_method``.

    Args:
        network: Single- or multi-period network data (left unmodified)
        formulation: Formulation member or tag
        build_method: Callable adding variables, constraints and objective
        options: Build options

    Returns:
        The assembled model, ready for ``solve_model``.
    """
    start_time = time.time()
    wm = WaterModel(network, formulation, options)
    build_method(wm)

    num_arcs = sum(count_arcs(wm, n) for n in wm.nw_ids)
    logger.info(
        f"Built {wm.model.name} ({wm.formulation.name}, {len(wm.nw_ids)} period(s), "
        f"{num_arcs} arc(s)) in {time.time() - start_time:.2f}s"
    )
    return wm


def build_wf(wm: WaterModel) -> None:
    for n in wm.nw_ids:
        _build_period(wm, n)
    _build_links(wm)
    objective_wf(wm)


def build_owf(wm: WaterModel) -> None:
    for n in wm.nw_ids:
        _build_period(wm, n, energy=True)
    _build_links(wm)
    objective_owf(wm)


def build_des(wm: WaterModel) -> None:
    for n in wm.nw_ids:
        _build_period(wm, n)
    _build_links(wm)
    objective_des(wm)


def build_wf_model(network, formulation, options: Optional[BuildOptions] = None) -> WaterModel:
    """Water flow feasibility model."""
    return instantiate_model(network, formulation, build_wf, options)


def build_owf_model(network, formulation, options: Optional[BuildOptions] = None) -> WaterModel:
    """
    Optimal water flow model: minimize the pump energy cost.

    Raises:
        NetworkDataError: If a pump lacks an energy price, a period lacks a
            time step, or a pump has no finite flow bound
    """
    return instantiate_model(network, formulation, build_owf, options)


def build_des_model(network, formulation, options: Optional[BuildOptions] = None) -> WaterModel:
    """Network design model: minimize the cost of the selected design candidates."""
    return instantiate_model(network, formulation, build_des, options)


def _run(builder, network, formulation, options, solve_options) -> SolveResult:
    wm = builder(network, formulation, options)
    return solve_model(wm, options=solve_options)


def run_wf(
    network: Dict[str, Any],
    formulation: Union[Formulation, str],
    options: Optional[BuildOptions] = None,
    solve_options: Optional[SolveOptions] = None,
) -> SolveResult:
    return _run(build_wf_model, network, formulation, options, solve_options)


def run_owf(
    network: Dict[str, Any],
    formulation: Union[Formulation, str],
    options: Optional[BuildOptions] = None,
    solve_options: Optional[SolveOptions] = None,
) -> SolveResult:
    return _run(build_owf_model, network, formulation, options, solve_options)


def run_des(
    network: Dict[str, Any],
    formulation: Union[Formulation, str],
    options: Optional[BuildOptions] = None,
    solve_options: Optional[SolveOptions] = None,
) -> SolveResult:
    return _run(build_des_model, network, formulation, options, solve_options)
