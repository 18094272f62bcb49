"""
Helpers shared by the formulation modules.
"""

import math
from typing import Any, Dict, List, Sequence, Tuple

import pyomo.environ as pyo

from ..constants import FLOW_EPS
from ..head_loss import head_loss_breakpoints, head_loss_tangent, linear_majorant_slope
from ..logging_config import get_configured_logger
from ..pump import (
    calc_pump_energy_quadratic_coefficients,
    calc_pump_energy_ua,
    head_curve_derivative,
    head_curve_function,
)
from ..validation import validate_time_step

logger = get_configured_logger(__name__)


def arc_nodes(wm, n: str, comp_type: str, a: str) -> Tuple[str, str]:
    comp = wm.ref(n, comp_type, a)
    return str(comp["node_fr"]), str(comp["node_to"])


def head_difference(wm, n: str, comp_type: str, a: str):
    """Expression ``h_i - h_j`` across an arc."""
    i, j = arc_nodes(wm, n, comp_type, a)
    h = wm.var(n, "node", "h")
    return h[i] - h[j]


def pipe_parameters(wm, n: str, comp_type: str, a: str) -> Tuple[float, float, float]:
    """(length, resistance, alpha) of a pipe or check valve."""
    comp = wm.ref(n, comp_type, a)
    return float(comp["length"]), float(comp["resistance"]), wm.alpha(n)


def directed_head_bounds(wm, n: str, comp_type: str, a: str) -> Tuple[float, float]:
    """Upper bounds on the positive and negative head-difference splits."""
    i, j = arc_nodes(wm, n, comp_type, a)
    dh_lb, dh_ub = wm.head_difference_bounds(n, i, j)
    return max(0.0, dh_ub), max(0.0, -dh_lb)


def directed_flow_bounds(q_lb: float, q_ub: float) -> Tuple[float, float]:
    """Upper bounds on the positive and negative flow splits."""
    return max(0.0, q_ub), max(0.0, -q_lb)


def flow_start(comp: Dict[str, Any], q_lb: float, q_ub: float, symbol: str = "q") -> float:
    """Initial flow value: the ``<symbol>_start`` attribute, else a small interior point."""
    if comp.get(f"{symbol}_start") is not None:
        return float(comp[f"{symbol}_start"])
    start = FLOW_EPS if q_ub > 0.0 else 0.0
    if math.isfinite(q_lb) and math.isfinite(q_ub) and q_ub > q_lb:
        start = 0.5 * (q_lb + q_ub) or FLOW_EPS
    return min(max(start, q_lb), q_ub)


def tangent_points(q_ub: float, num_points: int) -> List[float]:
    """Positive tangent points on ``[0, q_ub]``; points too close to zero are dropped."""
    if q_ub <= FLOW_EPS:
        return []
    return [q for q in head_loss_breakpoints(0.0, q_ub, num_points) if q > FLOW_EPS]


# ============================================================================
# Convex-combination piecewise-linear approximations
# ============================================================================

def _flat_index(key: Any, k: int) -> Tuple:
    # Pyomo flattens nested index tuples
    return (*key, k) if isinstance(key, tuple) else (key, k)


def variable_convex_combination(
    wm,
    n: str,
    comp_type: str,
    points: Dict[Any, Sequence[float]],
    symbol: str = "lambda",
) -> None:
    """
    Create convex-combination weights and segment binaries for a set of keys.

    ``lambda[key, k]`` weights breakpoint ``k`` and ``x_pw[key, k]``
    selects segment ``k``.
    """
    lambda_index = [_flat_index(key, k) for key, pts in points.items() for k in range(len(pts))]
    segment_index = [_flat_index(key, k) for key, pts in points.items() for k in range(max(len(pts) - 1, 1))]

    wm.add_var(
        n, comp_type, symbol, lambda_index,
        bounds={idx: (0.0, 1.0) for idx in lambda_index},
        within=pyo.NonNegativeReals,
    )
    wm.add_var(n, comp_type, f"x_pw_{symbol}", segment_index, within=pyo.Binary)
    wm.add_expression(n, comp_type, f"{symbol}_points", {key: [float(p) for p in pts] for key, pts in points.items()})


def constraint_convex_combination(
    wm,
    n: str,
    comp_type: str,
    key: Any,
    x,
    gate,
    symbol: str = "lambda",
) -> List[Any]:
    """
    Tie ``x`` to a convex combination of the breakpoints registered for ``key``.

    The weights sum to ``gate`` and at most two adjacent weights are nonzero.

    Returns:
        The weight variables, ordered like the breakpoints.
    """
    points = wm.expression(n, comp_type, f"{symbol}_points")[key]
    lam = wm.var(n, comp_type, symbol)
    x_pw = wm.var(n, comp_type, f"x_pw_{symbol}")
    weights = [lam[_flat_index(key, k)] for k in range(len(points))]
    family = f"pwl_{symbol}"

    wm.add_constraint(n, comp_type, family, key, sum(weights) == gate)
    wm.add_constraint(n, comp_type, family, key, x == sum(w * p for w, p in zip(weights, points)))

    if len(points) == 1:
        wm.add_constraint(n, comp_type, family, key, x_pw[_flat_index(key, 0)] == gate)
        return weights

    segments = [x_pw[_flat_index(key, k)] for k in range(len(points) - 1)]
    wm.add_constraint(n, comp_type, family, key, sum(segments) == gate)
    wm.add_constraint(n, comp_type, family, key, weights[0] <= segments[0])
    for k in range(1, len(points) - 1):
        wm.add_constraint(n, comp_type, family, key, weights[k] <= segments[k - 1] + segments[k])
    wm.add_constraint(n, comp_type, family, key, weights[-1] <= segments[-1])

    return weights


def convex_combination_value(wm, n: str, comp_type: str, key: Any, values: Sequence[float], symbol: str = "lambda"):
    """Expression ``sum(lambda[key, k] * values[k])``."""
    lam = wm.var(n, comp_type, symbol)
    return sum(lam[_flat_index(key, k)] * float(v) for k, v in enumerate(values))


def has_convex_combination(wm, n: str, comp_type: str, key: Any, symbol: str = "lambda") -> bool:
    points = wm.find_expression(n, comp_type, f"{symbol}_points")
    return points is not None and key in points


# ============================================================================
# Directed head-loss cuts
# ============================================================================

def directed_splits(wm, n: str, comp_type: str, a: str) -> List[Tuple[str, Any, Any, float, Any]]:
    """
    Directed pieces of a pipe or check valve.

    Returns:
        ``(direction, flow, head split, flow bound, gate)`` per direction the
        arc may carry. Check valves only carry the forward direction, gated by
        their indicator.
    """
    qp_ub, qn_ub = directed_flow_bounds(*wm.flow_bounds(n, comp_type, a))
    context = f"{comp_type} {a}"
    qp = wm.var(n, comp_type, "qp")[a]
    dhp = wm.var(n, comp_type, "dhp")[a]

    if comp_type == "check_valve":
        z = wm.var(n, "check_valve", "z")[a]
        return [("p", qp, dhp, wm.big_m(qp_ub, context), z)]

    y = wm.var(n, comp_type, "y")[a]
    qn = wm.var(n, comp_type, "qn")[a]
    dhn = wm.var(n, comp_type, "dhn")[a]
    return [
        ("p", qp, dhp, wm.big_m(qp_ub, context), y),
        ("n", qn, dhn, wm.big_m(qn_ub, context), 1 - y),
    ]


def des_pipe_splits(wm, n: str, a: str) -> List[Tuple[str, List[Any], Any, List[float]]]:
    """``(direction, candidate flows, head split, candidate flow bounds)`` of a design pipe."""
    comp = wm.ref(n, "des_pipe", a)
    num = len(comp["resistances"])
    bounds = [
        directed_flow_bounds(lb, ub)
        for lb, ub in zip(comp["candidate_flow_min"], comp["candidate_flow_max"])
    ]
    context = f"des_pipe {a}"
    splits = []
    for direction, index in (("p", 0), ("n", 1)):
        q = wm.var(n, "des_pipe", f"q{direction}")
        dh = wm.var(n, "des_pipe", f"dh{direction}")[a]
        splits.append((
            direction,
            [q[a, k] for k in range(num)],
            dh,
            [wm.big_m(b[index], context) for b in bounds],
        ))
    return splits


def head_loss_tangent_expr(q, gate, resistance: float, q_hat: float, alpha: float):
    """``r * (slope * q + intercept * gate)``, the gated tangent of ``r * q**alpha`` at ``q_hat``."""
    slope, intercept = head_loss_tangent(q_hat, alpha)
    return resistance * (slope * q + intercept * gate)


def constraint_head_loss_tangents(
    wm, n: str, comp_type: str, key: Any, q, dh, length: float, resistance: float,
    alpha: float, gate, q_ub: float, num_points: int,
) -> None:
    """Outer tangent cuts ``r * tangent(q) <= dh / L`` on ``(0, q_ub]``."""
    for q_hat in tangent_points(q_ub, num_points):
        cut = head_loss_tangent_expr(q, gate, resistance, q_hat, alpha)
        wm.add_constraint(n, comp_type, "head_loss", key, cut <= dh / length)


def constraint_head_loss_majorant(
    wm, n: str, comp_type: str, key: Any, q, dh, length: float, resistance: float,
    alpha: float, q_ub: float,
) -> None:
    """Linear upper bound ``dh / L <= r * q_ub**(alpha - 1) * q``."""
    slope = resistance * linear_majorant_slope(q_ub, alpha)
    wm.add_constraint(n, comp_type, "head_loss", key, dh / length <= slope * q)


# ============================================================================
# Pump head-gain and power cuts
# ============================================================================

def pump_flow_range(wm, n: str, a: str) -> Tuple[float, float]:
    """Forward operating range ``[flow_min_forward, flow_max]`` of a running pump."""
    comp = wm.ref(n, "pump", a)
    return float(comp["flow_min_forward"]), wm.big_m(comp["flow_max"], f"pump {a}")


def constraint_pump_gain_lower_affine(wm, n: str, a: str, q, g, z) -> None:
    """Chord of the concave head curve over the operating range, a lower bound on the gain."""
    comp = wm.ref(n, "pump", a)
    q_lb, q_ub = pump_flow_range(wm, n, a)
    if q_ub <= q_lb:
        logger.debug(f"pump {a} has a zero-width flow range; skipping the affine lower bound")
        return

    curve = head_curve_function(comp)
    f_1, f_2 = float(curve(q_lb)), float(curve(q_ub))
    slope = (f_2 - f_1) / (q_ub - q_lb)
    wm.add_constraint(n, "pump", "head_gain", a, slope * (q - q_lb * z) + f_1 * z <= g)


def constraint_pump_gain_upper_tangents(wm, n: str, a: str, q, g, z, num_points: int) -> None:
    """Tangents of the concave head curve, upper bounds on the gain."""
    comp = wm.ref(n, "pump", a)
    q_lb, q_ub = pump_flow_range(wm, n, a)
    curve = head_curve_function(comp)
    derivative = head_curve_derivative(comp)

    for q_hat in head_loss_breakpoints(q_lb, q_ub, num_points):
        if q_hat <= 0.0:
            continue
        f_hat, df_hat = float(curve(q_hat)), float(derivative(q_hat))
        wm.add_constraint(n, "pump", "head_gain", a, g <= f_hat * z + df_hat * (q - q_hat * z))


def _pump_time_step(wm, n: str, a: str) -> float:
    time_step = wm.ref(n, "time_step")
    validate_time_step(time_step, f"period {n} (pump {a} energy)")
    return float(time_step)


def constraint_pump_power_quadratic(wm, n: str, a: str, q, z) -> None:
    """Energy bounded below by the least-squares quadratic fit."""
    comp = wm.ref(n, "pump", a)
    E = wm.var(n, "pump", "E")[a]
    p = [float(c) for c in calc_pump_energy_quadratic_coefficients(comp, _pump_time_step(wm, n, a))]
    wm.add_constraint(n, "pump", "power", a, E >= p[0] * q ** 2 + p[1] * q + p[2] * z)


def constraint_pump_power_linear(wm, n: str, a: str, q, z) -> None:
    """Energy bounded below by the corrected secant over the operating range."""
    comp = wm.ref(n, "pump", a)
    E = wm.var(n, "pump", "E")[a]
    q_lb, q_ub = pump_flow_range(wm, n, a)
    f = calc_pump_energy_ua(comp, _pump_time_step(wm, n, a), [q_lb, q_ub])

    if q_ub <= q_lb:
        wm.add_constraint(n, "pump", "power", a, E >= float(f[0]) * z)
        return

    slope = float(f[1] - f[0]) / (q_ub - q_lb)
    wm.add_constraint(n, "pump", "power", a, E >= slope * (q - q_lb * z) + float(f[0]) * z)


def constraint_pump_power_pwl(wm, n: str, a: str, q, z) -> None:
    """Energy bounded below by the corrected piecewise-linear under-approximation."""
    if not has_convex_combination(wm, n, "pump", a):
        constraint_pump_power_linear(wm, n, a, q, z)
        return

    comp = wm.ref(n, "pump", a)
    E = wm.var(n, "pump", "E")[a]
    points = wm.expression(n, "pump", "lambda_points")[a]
    f = calc_pump_energy_ua(comp, _pump_time_step(wm, n, a), points)
    wm.add_constraint(n, "pump", "power", a, E >= convex_combination_value(wm, n, "pump", a, f))
