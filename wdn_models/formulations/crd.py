"""
CRD: convex relaxation over directed flows.

Each directed head-loss equality is replaced by the convex inequality
``r * q**alpha <= dh / L`` and the linear majorant
``dh / L <= r * q_ub**(alpha - 1) * q``. The concave pump head curve bounds
the gain from above and its chord bounds it from below. The optimum is a
bound on the exact problem, not necessarily a feasible hydraulic point.
"""

from ..head_loss import head_loss_expr_directed, linear_majorant_slope
from ..pump import head_curve_function
from .common import (
    constraint_head_loss_majorant,
    constraint_pump_gain_lower_affine,
    constraint_pump_power_linear,
    des_pipe_splits,
    directed_splits,
    pipe_parameters,
)


def variable_auxiliary(wm, n: str) -> None:
    pass


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
    for _, q, dh, q_ub, _ in directed_splits(wm, n, comp_type, a):
        wm.add_constraint(n, comp_type, "head_loss", a, resistance * head_loss_expr_directed(q, alpha) <= dh / length)
        constraint_head_loss_majorant(wm, n, comp_type, a, q, dh, length, resistance, alpha, q_ub)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    comp = wm.ref(n, "des_pipe", a)
    length, alpha = float(comp["length"]), wm.alpha(n)
    resistances = [float(r) for r in comp["resistances"]]

    for _, flows, dh, q_ubs in des_pipe_splits(wm, n, a):
        loss = sum(r * head_loss_expr_directed(q, alpha) for q, r in zip(flows, resistances))
        majorant = sum(
            r * linear_majorant_slope(q_ub, alpha) * q for q, r, q_ub in zip(flows, resistances, q_ubs)
        )
        wm.add_constraint(n, "des_pipe", "head_loss", a, loss <= dh / length)
        wm.add_constraint(n, "des_pipe", "head_loss", a, dh / length <= majorant)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    qp = wm.var(n, "pump", "qp")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]
    curve = head_curve_function(wm.ref(n, "pump", a))

    wm.add_constraint(n, "pump", "head_gain", a, g <= curve(qp, z))
    constraint_pump_gain_lower_affine(wm, n, a, qp, g, z)


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_linear(wm, n, a, wm.var(n, "pump", "qp")[a], wm.var(n, "pump", "z")[a])
