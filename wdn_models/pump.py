"""
Pump head-curve and energy library.

Fits head curves in their three supported forms, derives the physically
meaningful flow domain of a pump, and samples its power curve for the
energy objective. Head gain is ``c1*q**2 + c2*q + c3`` for the quadratic
and best-efficiency-point forms and ``a + b*q**c`` for the EPANET form.
"""

import math
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .constants import (
    DEFAULT_PUMP_EFFICIENCY,
    DENSITY,
    ENERGY_POINTS,
    FLOW_MIN,
    GRAVITY,
    JOULES_PER_KWH,
    MAX_FLOW_FACTOR,
    SHUTOFF_HEAD_FACTOR,
)
from .enums import HeadCurveForm
from .logging_config import get_configured_logger
from .validation import NetworkDataError, parse_head_curve_form

logger = get_configured_logger(__name__)

INF = float("inf")


def _curve_array(points: Sequence[Sequence[float]]) -> np.ndarray:
    return np.array([[float(x[0]), float(x[1])] for x in points])


def _form(pump: Dict[str, Any]) -> HeadCurveForm:
    return parse_head_curve_form(pump.get("head_curve_form", HeadCurveForm.QUADRATIC))


# ============================================================================
# Head curve coefficients
# ============================================================================

def _coefficients_quadratic(pump: Dict[str, Any]) -> np.ndarray:
    curve = pump.get("head_curve") or []
    if len(curve) == 0:
        raise NetworkDataError(f"Pump {pump.get('name', '')!r} has no head curve points")

    if len(curve) == 1:
        q, h = curve[0]
        points = [(0.0, SHUTOFF_HEAD_FACTOR * h), (q, h), (MAX_FLOW_FACTOR * q, 0.0)]
    else:
        points = curve

    array = _curve_array(points)
    fit_array = np.column_stack((array[:, 0] ** 2, array[:, 0], np.ones(len(array))))
    coeffs, *_ = np.linalg.lstsq(fit_array, array[:, 1], rcond=None)
    return coeffs


def _coefficients_epanet(pump: Dict[str, Any]) -> np.ndarray:
    curve = pump["head_curve"]
    if len(curve) != 3:
        raise NetworkDataError("The epanet head curve form needs exactly 3 points")

    a = curve[0][1]
    h4 = curve[0][1] - curve[1][1]
    h5 = curve[0][1] - curve[2][1]
    q1, q2 = curve[1][0], curve[2][0]

    c = math.log(h5 / h4) / math.log(q2 / q1)
    b = -h4 / q1 ** c
    return np.array([a, b, c])


def calc_best_efficiency_flow(pump: Dict[str, Any]) -> float:
    """Flow at the best efficiency point, from the efficiency or head curve."""
    if pump.get("efficiency_curve"):
        array = _curve_array(pump["efficiency_curve"])
        fit_array = np.column_stack((array[:, 0] ** 2, array[:, 0]))
        coeffs, *_ = np.linalg.lstsq(fit_array, array[:, 1], rcond=None)
        return -0.5 * coeffs[1] / coeffs[0]

    curve = pump["head_curve"]
    if len(curve) == 1:
        return float(curve[0][0])

    coeffs = _best_efficiency_head_fit(pump)
    return math.sqrt(-0.25 * coeffs[1] / coeffs[0])


def calc_best_efficiency_head_gain(pump: Dict[str, Any]) -> float:
    """Head gain at the best efficiency point."""
    curve = pump["head_curve"]

    if pump.get("efficiency_curve"):
        q_best = calc_best_efficiency_flow(pump)
        array = _curve_array(curve)
        x = -array[:, 0] ** 2 / (3.0 * q_best ** 2) + 4.0 / 3.0
        return float(np.dot(x, array[:, 1]) / np.dot(x, x))

    if len(curve) == 1:
        return float(curve[0][1])
    return 0.75 * _best_efficiency_head_fit(pump)[1]


def calc_best_efficiency(pump: Dict[str, Any]) -> float:
    if pump.get("efficiency_curve"):
        array = _curve_array(pump["efficiency_curve"])
        fit_array = np.column_stack((array[:, 0] ** 2, array[:, 0]))
        coeffs, *_ = np.linalg.lstsq(fit_array, array[:, 1], rcond=None)
        return -0.25 * coeffs[1] ** 2 / coeffs[0]
    return pump.get("efficiency", DEFAULT_PUMP_EFFICIENCY)


def _best_efficiency_head_fit(pump: Dict[str, Any]) -> np.ndarray:
    array = _curve_array(pump["head_curve"])
    fit_array = np.column_stack((array[:, 0] ** 2, np.ones(len(array))))
    coeffs, *_ = np.linalg.lstsq(fit_array, array[:, 1], rcond=None)
    return coeffs


def _coefficients_best_efficiency_point(pump: Dict[str, Any]) -> np.ndarray:
    flow = calc_best_efficiency_flow(pump)
    head_gain = calc_best_efficiency_head_gain(pump)
    return np.array([-head_gain / (3.0 * flow ** 2), 0.0, 4.0 * head_gain / 3.0])


def calc_head_curve_coefficients(pump: Dict[str, Any]) -> np.ndarray:
    """
    Fit the head-curve coefficients of a pump.

    Args:
        pump: Pump attribute dictionary

    Returns:
        ``[c1, c2, c3]`` for quadratic and best-efficiency-point forms,
        ``[a, b, c]`` for the EPANET form.

    Raises:
        NetworkDataError: If the curve is missing or the form is unknown
    """
    if pump.get("head_curve") is None:
        raise NetworkDataError("Pump is missing its head_curve")

    form = _form(pump)
    if form == HeadCurveForm.QUADRATIC:
        return _coefficients_quadratic(pump)
    elif form == HeadCurveForm.BEST_EFFICIENCY_POINT:
        return _coefficients_best_efficiency_point(pump)
    return _coefficients_epanet(pump)


def _coefficients(pump: Dict[str, Any]) -> Tuple[float, float, float]:
    # Plain floats keep numpy scalars out of Pyomo expressions
    if pump.get("head_curve_coefficients") is not None:
        return tuple(float(x) for x in pump["head_curve_coefficients"])
    return tuple(float(x) for x in calc_head_curve_coefficients(pump))


def head_curve_function(pump: Dict[str, Any]) -> Callable:
    """
    Return the head gain as a function of flow.

    The returned callable accepts floats, numpy arrays and Pyomo expressions.
    An optional second argument gates the constant term, so the gain of a
    switched-off pump (``z == 0``) vanishes.
    """
    c = _coefficients(pump)

    if _form(pump) == HeadCurveForm.EPANET:
        return lambda q, z=1.0: c[0] * z + c[1] * q ** c[2]
    return lambda q, z=1.0: c[0] * q ** 2 + c[1] * q + c[2] * z


def head_curve_derivative(pump: Dict[str, Any]) -> Callable:
    c = _coefficients(pump)

    if _form(pump) == HeadCurveForm.EPANET:
        return lambda q: c[1] * c[2] * q ** (c[2] - 1.0)
    return lambda q: 2.0 * c[0] * q + c[1]


def calc_pump_head_gain_max(pump: Dict[str, Any]) -> float:
    """
    Maximum head gain the pump curve can deliver.

    For quadratic forms this is the curve value at the vertex flow
    ``-c2 / (2 c1)`` when that flow is positive, else the shutoff head.
    """
    c = _coefficients(pump)

    if _form(pump) == HeadCurveForm.EPANET:
        return float(c[0])

    flow_at_max = -c[1] / (2.0 * c[0]) if c[0] != 0.0 else 0.0
    flow_at_max = flow_at_max if flow_at_max > 0.0 else 0.0
    return float(c[0] * flow_at_max ** 2 + c[1] * flow_at_max + c[2])


def _max_quadratic_root(c1: float, c2: float, c3: float) -> float:
    """Largest root of ``c1*q**2 + c2*q + c3``; +inf if there is none."""
    if c1 == 0.0:
        return -c3 / c2 if c2 < 0.0 else INF

    discriminant = c2 ** 2 - 4.0 * c1 * c3
    if discriminant < 0.0:
        logger.warning(
            f"Head curve has no real root (discriminant {discriminant:.3g}); "
            "using explicit flow limits only"
        )
        return INF

    sqrt_d = math.sqrt(discriminant)
    return max((-c2 + sqrt_d) / (2.0 * c1), (-c2 - sqrt_d) / (2.0 * c1))


def calc_pump_flow_max(
    pump: Dict[str, Any],
    head_fr: Tuple[float, float] = (-INF, INF),
    head_to: Tuple[float, float] = (-INF, INF),
    context: str = "pump",
) -> float:
    """
    Largest flow the pump can deliver.

    The minimum of the zero-gain root of the curve, the root at which the
    gain falls to the smallest lift the incident node heads demand, and any
    explicit ``flow_max``.

    Args:
        pump: Pump attribute dictionary
        head_fr: (h_min, h_max) of the suction node
        head_to: (h_min, h_max) of the discharge node
        context: Name used in error messages

    Raises:
        NetworkDataError: If the smallest lift exceeds the largest head gain
    """
    c = _coefficients(pump)
    lift_min = head_to[0] - head_fr[1]

    gain_max = calc_pump_head_gain_max(pump)
    if math.isfinite(lift_min) and lift_min > gain_max:
        raise NetworkDataError(
            f"{context} cannot deliver the minimum lift {lift_min:.6g} between its nodes "
            f"(maximum head gain {gain_max:.6g}); mark it inactive"
        )

    if _form(pump) == HeadCurveForm.EPANET:
        q_zero = (-c[0] / c[1]) ** (1.0 / c[2])
        q_lift = INF
        if math.isfinite(lift_min) and lift_min < c[0]:
            q_lift = ((lift_min - c[0]) / c[1]) ** (1.0 / c[2])
        return min(q_zero, q_lift, pump.get("flow_max", INF))

    q_zero = _max_quadratic_root(c[0], c[1], c[2])
    q_lift = _max_quadratic_root(c[0], c[1], c[2] - lift_min) if math.isfinite(lift_min) else INF
    return min(q_zero, q_lift, pump.get("flow_max", INF))


def calc_pump_flow_bounds(
    pump: Dict[str, Any],
    head_fr: Tuple[float, float] = (-INF, INF),
    head_to: Tuple[float, float] = (-INF, INF),
    context: str = "pump",
) -> Dict[str, float]:
    """
    Derive the operating flow bounds of a pump.

    Returns:
        Dictionary with ``flow_min``, ``flow_min_forward``, ``flow_max`` and
        ``flow_max_reverse``.
    """
    flow_min = max(0.0, pump.get("flow_min", 0.0))
    flow_max = min(calc_pump_flow_max(pump, head_fr, head_to, context), pump.get("flow_max", INF))
    flow_min_forward = max(flow_min, pump.get("flow_min_forward", FLOW_MIN))
    flow_max_reverse = min(flow_max, pump.get("flow_max_reverse", 0.0))

    return {
        "flow_min": flow_min,
        "flow_min_forward": flow_min_forward,
        "flow_max": flow_max,
        "flow_max_reverse": flow_max_reverse,
    }


# ============================================================================
# Power and energy
# ============================================================================

def calc_efficiencies(q, pump: Dict[str, Any]):
    """Pump efficiency at the given flow(s), interpolated on the efficiency curve."""
    if pump.get("efficiency_curve"):
        array = _curve_array(pump["efficiency_curve"])
        return np.interp(q, array[:, 0], array[:, 1])
    return np.full_like(np.asarray(q, dtype=float), pump.get("efficiency", DEFAULT_PUMP_EFFICIENCY))


def calc_pump_energy_points(
    pump: Dict[str, Any],
    time_step: float,
    num_points: Optional[int] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample the energy used by a pump over one period.

    Args:
        pump: Corrected pump dictionary (needs flow_max)
        time_step: Period length in seconds
        num_points: Number of samples, defaults to the configured resolution

    Returns:
        ``(q, energy)`` arrays; energy in kWh.
    """
    num_points = num_points or ENERGY_POINTS
    q_min = pump.get("flow_min_forward", FLOW_MIN)
    q_max = pump["flow_max"]
    if not math.isfinite(q_max):
        raise NetworkDataError("Pump energy sampling needs a finite flow_max")

    q_build = np.linspace(q_min, q_max, num_points)
    f_build = head_curve_function(pump)(q_build) * q_build
    efficiency = calc_efficiencies(q_build, pump)

    constant = DENSITY * GRAVITY * time_step / JOULES_PER_KWH
    return q_build, constant * f_build / efficiency


def correct_under_approximation(
    q_true: np.ndarray,
    f_true: np.ndarray,
    q: Sequence[float],
) -> np.ndarray:
    """
    Interpolate sampled values at ``q`` and shift each segment below the samples.

    For each consecutive pair of points the largest positive deviation of the
    interpolating line above the true samples within the sub-interval is
    subtracted from both endpoints. Zero-width sub-intervals are skipped.
    """
    q = np.asarray(q, dtype=float)
    f_interp = np.interp(q, q_true, f_true)

    for i in range(1, len(q)):
        width = q[i] - q[i - 1]
        if width <= 0.0:
            continue

        slope = (f_interp[i] - f_interp[i - 1]) / width
        mask = (q_true >= q[i - 1]) & (q_true <= q[i])
        if not mask.any():
            continue

        f_est = f_interp[i - 1] + slope * (q_true[mask] - q[i - 1])
        est_err = max(0.0, float(np.max(f_est - f_true[mask])))
        f_interp[i - 1:i + 1] -= est_err

    return f_interp


def calc_pump_energy_ua(
    pump: Dict[str, Any],
    time_step: float,
    q: Sequence[float],
) -> np.ndarray:
    """Under-approximating energy values at the flows ``q``."""
    q_true, f_true = calc_pump_energy_points(pump, time_step)
    return correct_under_approximation(q_true, f_true, q)


def calc_pump_energy_linear_coefficients(pump: Dict[str, Any], time_step: float) -> np.ndarray:
    """Least-squares fit ``energy ~ p0*q + p1``."""
    q_true, f_true = calc_pump_energy_points(pump, time_step)
    fit_array = np.column_stack((q_true, np.ones(len(q_true))))
    coeffs, *_ = np.linalg.lstsq(fit_array, f_true, rcond=None)
    return coeffs


def calc_pump_energy_quadratic_coefficients(pump: Dict[str, Any], time_step: float) -> np.ndarray:
    """Least-squares fit ``energy ~ p0*q**2 + p1*q + p2``."""
    q_true, f_true = calc_pump_energy_points(pump, time_step)
    fit_array = np.column_stack((q_true ** 2, q_true, np.ones(len(q_true))))
    coeffs, *_ = np.linalg.lstsq(fit_array, f_true, rcond=None)
    return coeffs
