"""
NC: exact nonconvex formulation over undirected flows.
"""

from ..head_loss import head_loss_expr_undirected
from ..pump import head_curve_function
from .common import arc_nodes, constraint_pump_power_quadratic, head_difference, pipe_parameters


def variable_auxiliary(wm, n: str) -> None:
    pass


def constraint_pipe_head_loss(wm, n: str, comp_type: str, a: str) -> None:
    """
    Head loss ``L * r * q * |q|**(alpha - 1)`` equals the head drop.

    For check valves the equality holds while open; closed valves only keep
    the head drop within its bounds.
    """
    length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
    q = wm.var(n, comp_type, "q")[a]
    dh = head_difference(wm, n, comp_type, a)
    loss = length * resistance * head_loss_expr_undirected(q, alpha)

    if comp_type == "check_valve":
        z = wm.var(n, "check_valve", "z")[a]
        dh_lb, dh_ub = wm.head_difference_bounds(n, *arc_nodes(wm, n, comp_type, a))
        wm.add_constraint(n, comp_type, "head_loss", a, loss >= dh - dh_ub * (1 - z))
        wm.add_constraint(n, comp_type, "head_loss", a, loss <= dh - dh_lb * (1 - z))
        return

    wm.add_constraint(n, comp_type, "head_loss", a, loss <= dh)
    wm.add_constraint(n, comp_type, "head_loss", a, loss >= dh)


def constraint_des_pipe_head_loss(wm, n: str, a: str) -> None:
    """Sum of the candidate head losses equals the head drop."""
    comp = wm.ref(n, "des_pipe", a)
    q = wm.var(n, "des_pipe", "q")
    dh = head_difference(wm, n, "des_pipe", a)
    alpha = wm.alpha(n)
    loss = float(comp["length"]) * sum(
        float(r) * head_loss_expr_undirected(q[a, k], alpha) for k, r in enumerate(comp["resistances"])
    )

    wm.add_constraint(n, "des_pipe", "head_loss", a, loss <= dh)
    wm.add_constraint(n, "des_pipe", "head_loss", a, loss >= dh)


def constraint_pump_head_gain(wm, n: str, a: str) -> None:
    q = wm.var(n, "pump", "q")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]
    curve = head_curve_function(wm.ref(n, "pump", a))

    wm.add_constraint(n, "pump", "head_gain", a, g <= curve(q, z))
    wm.add_constraint(n, "pump", "head_gain", a, g >= curve(q, z))


def constraint_pump_power(wm, n: str, a: str) -> None:
    constraint_pump_power_quadratic(wm, n, a, wm.var(n, "pump", "q")[a], wm.var(n, "pump", "z")[a])
