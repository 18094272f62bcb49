"""
LRD: linear relaxation over directed flows.

Head loss is bounded below by tangent cuts of ``r * q**alpha`` and above by
the linear majorant; the pump head curve is bounded above by tangent cuts
and below by its chord. The result is a mixed-integer linear program.
"""

from ..head_loss import linear_majorant_slope
from .common import (
    constraint_head_loss_majorant,
    constraint_head_loss_tangents,
    constraint_pump_gain_lower_affine,
    constraint_pump_gain_upper_tangents,
    constraint_pump_power_linear,
    des_pipe_splits,
    directed_splits,
    head_loss_tangent_expr,
    pipe_parameters,
    tangent_points,
)


def variable_auxiliary(wm, n: str) -> None:
    pass


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
    num_points = wm.options.pipe_breakpoints

    for _, q, dh, q_ub, gate in directed_splits(wm, n, comp_type, a):
        constraint_head_loss_tangents(
            wm, n, comp_type, a, q, dh, length, resistance, alpha, gate, q_ub, num_points
        )
        constraint_head_loss_majorant(wm, n, comp_type, a, q, dh, length, resistance, alpha, q_ub)


def constraint_des_pipe_tangents(wm, n: str, a: str) -> None:
    """
    Tangent cuts summed over candidates, each gated by its selection binary.

    Cut ``j`` uses the ``j``-th tangent point of every candidate; candidates
    with fewer points drop out of the later cuts.
    """
    comp = wm.ref(n, "des_pipe", a)
    length, alpha = float(comp["length"]), wm.alpha(n)
    resistances = [float(r) for r in comp["resistances"]]
    z = wm.var(n, "des_pipe", "z")

    for _, flows, dh, q_ubs in des_pipe_splits(wm, n, a):
        points = [tangent_points(q_ub, wm.options.pipe_breakpoints) for q_ub in q_ubs]
        for j in range(max((len(p) for p in points), default=0)):
            cut = sum(
                head_loss_tangent_expr(flows[k], z[a, k], resistances[k], points[k][j], alpha)
                for k in range(len(resistances))
                if j < len(points[k])
            )
            wm.add_constraint(n, "des_pipe", "head_loss", a, cut <= dh / length)


def constraint_des_pipe_majorant(wm, n: str, a: str) -> None:
    comp = wm.ref(n, "des_pipe", a)
    length, alpha = float(comp["length"]), wm.alpha(n)

    for _, flows, dh, q_ubs in des_pipe_splits(wm, n, a):
        majorant = sum(
            float(r) * linear_majorant_slope(q_ub, alpha) * q
            for q, r, q_ub in zip(flows, comp["resistances"], q_ubs)
        )
        wm.add_constraint(n, "des_pipe", "head_loss", a, dh / length <= majorant)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    constraint_des_pipe_tangents(wm, n, a)
    constraint_des_pipe_majorant(wm, n, a)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    qp = wm.var(n, "pump", "qp")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]

    constraint_pump_gain_upper_tangents(wm, n, a, qp, g, z, wm.options.pump_breakpoints)
    constraint_pump_gain_lower_affine(wm, n, a, qp, g, z)


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_linear(wm, n, a, wm.var(n, "pump", "qp")[a], wm.var(n, "pump", "z")[a])
