"""
NCD: exact nonconvex formulation over directed flows.
"""

from ..head_loss import head_loss_expr_directed
from ..pump import head_curve_function
from .common import constraint_pump_power_quadratic, des_pipe_splits, directed_splits, pipe_parameters


def variable_auxiliary(wm, n: str) -> None:
    pass


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    """``L * r * q**alpha`` equals the head split of each direction."""
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
    for _, q, dh, _, _ in directed_splits(wm, n, comp_type, a):
        loss = length * resistance * head_loss_expr_directed(q, alpha)
        wm.add_constraint(n, comp_type, "head_loss", a, loss <= dh)
        wm.add_constraint(n, comp_type, "head_loss", a, loss >= dh)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    comp = wm.ref(n, "des_pipe", a)
    length, alpha = float(comp["length"]), wm.alpha(n)
    for _, flows, dh, _ in des_pipe_splits(wm, n, a):
        loss = length * sum(
            float(r) * head_loss_expr_directed(q, alpha) for q, r in zip(flows, comp["resistances"])
        )
        wm.add_constraint(n, "des_pipe", "head_loss", a, loss <= dh)
        wm.add_constraint(n, "des_pipe", "head_loss", a, loss >= dh)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    qp = wm.var(n, "pump", "qp")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]
    curve = head_curve_function(wm.ref(n, "pump", a))

    wm.add_constraint(n, "pump", "head_gain", a, g <= curve(qp, z))
    wm.add_constraint(n, "pump", "head_gain", a, g >= curve(qp, z))


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_quadratic(wm, n, a, wm.var(n, "pump", "qp")[a], wm.var(n, "pump", "z")[a])
