"""
Outer approximation cuts.

Adds tangent cuts at the current variable values of a built (usually
solved) model. Cuts are valid for the exact problem, so they tighten a
relaxation without removing feasible hydraulic points. Repeated
solve-and-cut rounds form an outer approximation loop.
"""

import pyomo.environ as pyo

from ..constants import FLOW_EPS
from ..logging_config import get_configured_logger
from ..pump import head_curve_derivative, head_curve_function
from .common import directed_splits, head_loss_tangent_expr, pipe_parameters

logger = get_configured_logger(__name__)


def _value(component) -> float:
    value = pyo.value(component, exception=False)
    return float(value) if value is not None else 0.0


def add_head_loss_cuts(wm, n: str) -> int:
    """Tangent cuts of the directed head loss at the current flows."""
    count = 0
    for comp_type in ("pipe", "check_valve"):
        for a in wm.ids(n, comp_type):
            length, resistance, alpha = pipe_parameters(wm, n, comp_type, a)
            for _, q, dh, _, gate in directed_splits(wm, n, comp_type, a):
                q_hat = _value(q)
                if q_hat <= FLOW_EPS:
                    continue
                cut = head_loss_tangent_expr(q, gate, resistance, q_hat, alpha)
                wm.add_constraint(n, comp_type, "oa_cut", a, cut <= dh / length)
                count += 1
    return count


def add_head_gain_cuts(wm, n: str) -> int:
    """Tangent cuts of the concave pump head curve at the current flows."""
    count = 0
    flow = wm.strategy.pump_flow
    for a in wm.ids(n, "pump"):
        q = flow(wm, n, a)
        q_hat = _value(q)
        if q_hat <= FLOW_EPS:
            continue

        comp = wm.ref(n, "pump", a)
        g = wm.var(n, "pump", "g")[a]
        z = wm.var(n, "pump", "z")[a]
        f_hat = float(head_curve_function(comp)(q_hat))
        df_hat = float(head_curve_derivative(comp)(q_hat))
        wm.add_constraint(n, "pump", "oa_cut", a, g <= f_hat * z + df_hat * (q - q_hat * z))
        count += 1
    return count


def add_outer_approximation_cuts(wm) -> int:
    """
    Add tangent cuts at the current solution of every period.

    Head-loss cuts need directed flows, since the signed head loss is neither
    convex nor concave; undirected formulations only receive pump cuts.

    Args:
        wm: A built WaterModel with variable values loaded

    Returns:
        Number of cuts added.
    """
    count = 0
    for n in wm.nw_ids:
        if wm.strategy.directed:
            count += add_head_loss_cuts(wm, n)
        count += add_head_gain_cuts(wm, n)

    logger.info(f"Added {count} outer approximation cut(s) to {wm.model.name}")
    return count
