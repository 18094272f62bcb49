"""
PWLRD: piecewise-linear relaxation over directed flows.

Extends the linear relaxation with convex-combination secants: with at
least two breakpoints, the head loss of each direction is bounded above by
the piecewise-linear interpolation of ``r * q**alpha`` instead of the single
majorant, and the pump gain is bounded below by the interpolation of the
head curve instead of its chord. Without breakpoints the affine bounds are
used.
"""

from ..head_loss import head_loss_breakpoints
from ..pump import head_curve_function
from . import lrd
from .common import (
    constraint_convex_combination,
    constraint_head_loss_majorant,
    constraint_head_loss_tangents,
    constraint_pump_gain_lower_affine,
    constraint_pump_gain_upper_tangents,
    constraint_pump_power_pwl,
    convex_combination_value,
    directed_flow_bounds,
    directed_splits,
    has_convex_combination,
    pipe_parameters,
    pump_flow_range,
    variable_convex_combination,
)


def variable_auxiliary(wm, n: str) -> None:
    """Convex-combination weights for directed pipe pieces and running pumps."""
    if wm.options.pipe_breakpoints >= 2:
        for comp_type in ("pipe", "check_valve"):
            points = {}
            for a in wm.ids(n, comp_type):
                qp_ub, qn_ub = directed_flow_bounds(*wm.flow_bounds(n, comp_type, a))
                directions = [("p", qp_ub)] if comp_type == "check_valve" else [("p", qp_ub), ("n", qn_ub)]
                for direction, q_ub in directions:
                    q_ub = wm.big_m(q_ub, f"{comp_type} {a}")
                    points[a, direction] = head_loss_breakpoints(0.0, q_ub, wm.options.pipe_breakpoints)
            if points:
                variable_convex_combination(wm, n, comp_type, points)

    if wm.options.pump_breakpoints >= 2:
        points = {
            a: head_loss_breakpoints(*pump_flow_range(wm, n, a), wm.options.pump_breakpoints)
            for a in wm.ids(n, "pump")
        }
        if points:
            variable_convex_combination(wm, n, "pump", points)


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)

    for direction, q, dh, q_ub, gate in directed_splits(wm, n, comp_type, a):
        constraint_head_loss_tangents(
            wm, n, comp_type, a, q, dh, length, resistance, alpha, gate, q_ub, wm.options.pipe_breakpoints
        )

        key = (a, direction)
        if not has_convex_combination(wm, n, comp_type, key):
            constraint_head_loss_majorant(wm, n, comp_type, a, q, dh, length, resistance, alpha, q_ub)
            continue

        constraint_convex_combination(wm, n, comp_type, key, q, gate)
        points = wm.expression(n, comp_type, "lambda_points")[key]
        secant = convex_combination_value(wm, n, comp_type, key, [resistance * p ** alpha for p in points])
        wm.add_constraint(n, comp_type, "head_loss", a, dh / length <= secant)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    """Design pipes keep the tangent and majorant bounds of the linear relaxation."""
    lrd.constraint_des_pipe_head_loss(wm, n, a)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    qp = wm.var(n, "pump", "qp")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]

    constraint_pump_gain_upper_tangents(wm, n, a, qp, g, z, wm.options.pump_breakpoints)

    if not has_convex_combination(wm, n, "pump", a):
        constraint_pump_gain_lower_affine(wm, n, a, qp, g, z)
        return

    constraint_convex_combination(wm, n, "pump", a, qp, z)
    curve = head_curve_function(wm.ref(n, "pump", a))
    points = wm.expression(n, "pump", "lambda_points")[a]
    interpolation = convex_combination_value(wm, n, "pump", a, [float(curve(p)) for p in points])
    wm.add_constraint(n, "pump", "head_gain", a, g >= interpolation)


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_pwl(wm, n, a, wm.var(n, "pump", "qp")[a], wm.var(n, "pump", "z")[a])
