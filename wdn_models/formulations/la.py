"""
LA: piecewise-linear approximation over undirected flows.

Head loss and pump head gain are replaced by their interpolation between
breakpoints spread over the flow bounds. A breakpoint count of 0 uses the
two bound endpoints, i.e. a single secant. Unlike the relaxations, the
approximation neither over- nor under-estimates the exact problem.
"""

from ..head_loss import head_loss, head_loss_breakpoints
from ..pump import head_curve_function
from .common import (
    arc_nodes,
    constraint_convex_combination,
    constraint_pump_power_pwl,
    convex_combination_value,
    head_difference,
    pipe_parameters,
    pump_flow_range,
    variable_convex_combination,
)


def _finite_bounds(wm, n: str, comp_type: str, a: str):
    q_lb, q_ub = wm.flow_bounds(n, comp_type, a)
    context = f"{comp_type} {a}"
    return wm.big_m(q_lb, context), wm.big_m(q_ub, context)


def variable_auxiliary(wm, n: str) -> None:
    """Convex-combination weights for every resistive arc, design candidate and pump."""
    num_points = wm.options.pipe_breakpoints

    for comp_type in ("pipe", "check_valve"):
        points = {
            a: head_loss_breakpoints(*_finite_bounds(wm, n, comp_type, a), num_points)
            for a in wm.ids(n, comp_type)
        }
        if points:
            variable_convex_combination(wm, n, comp_type, points)

    points = {}
    for a in wm.ids(n, "des_pipe"):
        comp = wm.ref(n, "des_pipe", a)
        for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
            context = f"des_pipe {a} candidate {k}"
            points[a, k] = head_loss_breakpoints(wm.big_m(lb, context), wm.big_m(ub, context), num_points)
    if points:
        variable_convex_combination(wm, n, "des_pipe", points)

    points = {
        a: head_loss_breakpoints(*pump_flow_range(wm, n, a), wm.options.pump_breakpoints)
        for a in wm.ids(n, "pump")
    }
    if points:
        variable_convex_combination(wm, n, "pump", points)


def _interpolated_loss(wm, n: str, comp_type: str, key, resistance: float, alpha: float):
    points = wm.expression(n, comp_type, "lambda_points")[key]
    return convex_combination_value(wm, n, comp_type, key, [resistance * head_loss(p, alpha) for p in points])


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
    q = wm.var(n, comp_type, "q")[a]
    dh = head_difference(wm, n, comp_type, a)

    if comp_type == "check_valve":
        z = wm.var(n, "check_valve", "z")[a]
        constraint_convex_combination(wm, n, comp_type, a, q, z)
        loss = length * _interpolated_loss(wm, n, comp_type, a, resistance, alpha)
        dh_lb, dh_ub = wm.head_difference_bounds(n, *arc_nodes(wm, n, comp_type, a))
        wm.add_constraint(n, comp_type, "head_loss", a, loss >= dh - dh_ub * (1 - z))
        wm.add_constraint(n, comp_type, "head_loss", a, loss <= dh - dh_lb * (1 - z))
        return

    constraint_convex_combination(wm, n, comp_type, a, q, 1)
    loss = length * _interpolated_loss(wm, n, comp_type, a, resistance, alpha)
    wm.add_constraint(n, comp_type, "head_loss", a, loss == dh)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    comp = wm.ref(n, "des_pipe", a)
    q = wm.var(n, "des_pipe", "q")
    z = wm.var(n, "des_pipe", "z")
    alpha = wm.alpha(n)

    loss = 0.0
    for k, r in enumerate(comp["resistances"]):
        constraint_convex_combination(wm, n, "des_pipe", (a, k), q[a, k], z[a, k])
        loss += _interpolated_loss(wm, n, "des_pipe", (a, k), float(r), alpha)

    dh = head_difference(wm, n, "des_pipe", a)
    wm.add_constraint(n, "des_pipe", "head_loss", a, float(comp["length"]) * loss == dh)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    q = wm.var(n, "pump", "q")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]
    curve = head_curve_function(wm.ref(n, "pump", a))

    constraint_convex_combination(wm, n, "pump", a, q, z)
    points = wm.expression(n, "pump", "lambda_points")[a]
    gain = convex_combination_value(wm, n, "pump", a, [float(curve(p)) for p in points])
    wm.add_constraint(n, "pump", "head_gain", a, g == gain)


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_pwl(wm, n, a, wm.var(n, "pump", "q")[a], wm.var(n, "pump", "z")[a])
