"""
Head-loss function library.

Pure functions mapping flow to head loss for the Hazen-Williams and
Darcy-Weisbach laws, their tangent and majorant approximations, and the
Pyomo expression builders used by the formulations. Head loss per unit
length is ``r * sign(q) * |q|**alpha``.
"""

import math
from typing import Any, Dict, List, Tuple

import numpy as np

from .constants import (
    DEFAULT_VISCOSITY,
    DW_EXPONENT,
    DW_NOMINAL_VELOCITY,
    GRAVITY,
    HW_COEFFICIENT,
    HW_EXPONENT,
)
from .enums import HeadLossForm
from .logging_config import get_configured_logger
from .validation import NetworkDataError, parse_head_loss_form

logger = get_configured_logger(__name__)


def get_head_loss_form(network: Dict[str, Any]) -> HeadLossForm:
    return parse_head_loss_form(network.get("head_loss", HeadLossForm.HAZEN_WILLIAMS))


def get_alpha(network: Dict[str, Any]) -> float:
    """Return the head-loss exponent of the network's head-loss law."""
    if get_head_loss_form(network) == HeadLossForm.DARCY_WEISBACH:
        return float(DW_EXPONENT)
    return float(HW_EXPONENT)


def calc_resistance_hw(diameter: float, roughness: float) -> float:
    """
    Hazen-Williams resistance per unit length (SI units).

    Args:
        diameter: Pipe diameter in m
        roughness: Hazen-Williams C coefficient

    Returns:
        Resistance r such that head loss per meter is r * |q|**1.852.
    """
    return HW_COEFFICIENT / (roughness ** HW_EXPONENT * diameter ** 4.87)


def calc_friction_factor(diameter: float, roughness: float, viscosity: float) -> float:
    """Swamee-Jain friction factor at the nominal design velocity."""
    reynolds = DW_NOMINAL_VELOCITY * diameter / viscosity
    return 0.25 / math.log10(roughness / (3.7 * diameter) + 5.74 / reynolds ** 0.9) ** 2


def calc_resistance_dw(diameter: float, roughness: float, viscosity: float = DEFAULT_VISCOSITY) -> float:
    """
    Darcy-Weisbach resistance per unit length (SI units).

    Args:
        diameter: Pipe diameter in m
        roughness: Absolute roughness in m
        viscosity: Kinematic viscosity in m^2/s

    Returns:
        Resistance r such that head loss per meter is r * q**2.
    """
    friction = calc_friction_factor(diameter, roughness, viscosity)
    return 8.0 * friction / (math.pi ** 2 * GRAVITY * diameter ** 5)


def calc_resistance(
    diameter: float,
    roughness: float,
    form: HeadLossForm,
    viscosity: float = DEFAULT_VISCOSITY
) -> float:
    if form == HeadLossForm.DARCY_WEISBACH:
        return calc_resistance_dw(diameter, roughness, viscosity)
    return calc_resistance_hw(diameter, roughness)


def calc_resistances(network: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Compute resistances for every resistive component of a network.

    Explicit ``resistance`` (or ``resistances`` for design pipes) values take
    precedence over the physical attributes.

    Returns:
        ``{"pipe": {id: r}, "check_valve": {id: r}, "des_pipe": {id: [r, ...]}}``
    """
    form = get_head_loss_form(network)
    viscosity = network.get("viscosity", DEFAULT_VISCOSITY)
    resistances = {"pipe": {}, "check_valve": {}, "des_pipe": {}}

    for comp_type in ("pipe", "check_valve"):
        for a, comp in network.get(comp_type, {}).items():
            if comp.get("resistance") is not None:
                resistances[comp_type][a] = float(comp["resistance"])
            else:
                resistances[comp_type][a] = calc_resistance(
                    comp["diameter"], comp["roughness"], form, viscosity
                )

    for a, comp in network.get("des_pipe", {}).items():
        if comp.get("resistances") is not None:
            resistances["des_pipe"][a] = [float(r) for r in comp["resistances"]]
        else:
            resistances["des_pipe"][a] = [
                calc_resistance(c["diameter"], comp["roughness"], form, viscosity)
                for c in comp["diameters"]
            ]

    return resistances


# ============================================================================
# Scalar head-loss functions
# ============================================================================

def head_loss(q: float, alpha: float) -> float:
    """Signed head loss ``sign(q) * |q|**alpha``; zero at q == 0."""
    if q == 0.0:
        return 0.0
    return math.copysign(abs(q) ** alpha, q)


def head_loss_derivative(q: float, alpha: float) -> float:
    return alpha * abs(q) ** (alpha - 1.0)


def head_loss_tangent(q_hat: float, alpha: float) -> Tuple[float, float]:
    """
    Tangent line of the head-loss function at ``q_hat``.

    Returns:
        ``(slope, intercept)`` with ``head_loss(q) ~ slope * q + intercept``.
        On the positive branch the tangent under-estimates the convex curve.
    """
    slope = head_loss_derivative(q_hat, alpha)
    return slope, head_loss(q_hat, alpha) - slope * q_hat


def linear_majorant_slope(q_ub: float, alpha: float) -> float:
    """
    Slope of the linear head-loss majorant on ``[0, q_ub]``.

    The majorant ``q_ub**(alpha - 1) * q`` matches the head loss only at
    ``q == q_ub`` and lies above it elsewhere on the segment.
    """
    return abs(q_ub) ** (alpha - 1.0)


def head_loss_breakpoints(q_lb: float, q_ub: float, num_points: int) -> List[float]:
    """
    Evenly spaced flow breakpoints on ``[q_lb, q_ub]``.

    A count of 0 falls back to the two segment endpoints. A zero-width
    segment yields a single point so callers can skip it.
    """
    if not (math.isfinite(q_lb) and math.isfinite(q_ub)):
        raise NetworkDataError(
            f"Breakpoints require finite flow bounds, got [{q_lb}, {q_ub}]"
        )
    if q_ub <= q_lb:
        return [q_lb]
    return [float(q) for q in np.linspace(q_lb, q_ub, max(num_points, 2))]


# ============================================================================
# Pyomo expression builders
# ============================================================================

def head_loss_expr_undirected(q, alpha: float):
    """Head loss of a signed flow expression ``q * |q|**(alpha - 1)``."""
    return q * abs(q) ** (alpha - 1.0)


def head_loss_expr_directed(qp, alpha: float):
    """Head loss of a nonnegative directed flow expression."""
    return qp ** alpha
