"""
Variables shared by all formulations.

Heads, pump head gains, on/off indicators, reservoir and tank flows, tank
volumes, dispatchable demands and pump energies. Flow variables depend on
the flow representation and are created by the formulation strategy.
"""

import math

import pyomo.environ as pyo

from .constants import CONTROLLABLE_TYPES
from .logging_config import get_configured_logger
from .pump import calc_pump_head_gain_max
from .tank import calc_tank_initial_volume, calc_tank_volume_bounds

logger = get_configured_logger(__name__)

INF = float("inf")


def _start(comp, symbol: str, default: float) -> float:
    value = comp.get(f"{symbol}_start")
    return float(value) if value is not None else default


def variable_head(wm, n: str) -> None:
    """Hydraulic head ``h`` at every node, bounded by the derived head bounds."""
    ids = wm.ids(n, "node")
    bounds = {i: wm.head_bounds(n, i) for i in ids}
    start = {}
    for i in ids:
        h_min, h_max = bounds[i]
        default = 0.5 * (h_min + h_max) if math.isfinite(h_min + h_max) else wm.ref(n, "node", i)["elevation"]
        start[i] = _start(wm.ref(n, "node", i), "h", default)
    wm.add_var(n, "node", "h", ids, bounds=bounds, start=start)


def variable_head_gain(wm, n: str) -> None:
    """Head gain ``g`` of every pump."""
    ids = wm.ids(n, "pump")
    bounds = {a: (0.0, calc_pump_head_gain_max(wm.ref(n, "pump", a))) for a in ids}
    start = {a: _start(wm.ref(n, "pump", a), "g", 0.0) for a in ids}
    wm.add_var(n, "pump", "g", ids, bounds=bounds, start=start, within=pyo.NonNegativeReals)


def variable_indicators(wm, n: str) -> None:
    """
    Binary on/off indicator ``z`` of every controllable component.

    ``z_min``/``z_max`` attributes fix an indicator; see ``fix_all_indicators``.
    """
    for comp_type in CONTROLLABLE_TYPES:
        ids = wm.ids(n, comp_type)
        bounds, start = {}, {}
        for a in ids:
            comp = wm.ref(n, comp_type, a)
            bounds[a] = (int(comp.get("z_min", 0)), int(comp.get("z_max", 1)))
            start[a] = _start(comp, "z", float(bounds[a][1]))
        # z_min/z_max are data, not derived bounds
        wm.add_var(n, comp_type, "z", ids, keep_bounds=True, bounds=bounds, start=start, within=pyo.Binary)


def variable_reservoir(wm, n: str) -> None:
    """Outflow ``qr`` of every reservoir into its node."""
    ids = wm.ids(n, "reservoir")
    bounds = {
        k: (wm.ref(n, "reservoir", k).get("flow_min", 0.0), wm.ref(n, "reservoir", k).get("flow_max", INF))
        for k in ids
    }
    start = {k: _start(wm.ref(n, "reservoir", k), "qr", 0.0) for k in ids}
    wm.add_var(n, "reservoir", "qr", ids, bounds=bounds, start=start)


def variable_tank(wm, n: str) -> None:
    """Outflow ``qt`` and stored volume ``V`` of every tank."""
    ids = wm.ids(n, "tank")
    wm.add_var(n, "tank", "qt", ids, start={i: _start(wm.ref(n, "tank", i), "qt", 0.0) for i in ids})
    wm.add_var(
        n, "tank", "V", ids,
        bounds={i: calc_tank_volume_bounds(wm.ref(n, "tank", i)) for i in ids},
        start={i: _start(wm.ref(n, "tank", i), "V", calc_tank_initial_volume(wm.ref(n, "tank", i))) for i in ids},
        within=pyo.NonNegativeReals,
    )


def variable_demand(wm, n: str) -> None:
    """Delivered flow ``q`` of every dispatchable demand."""
    ids = tuple(k for k in wm.ids(n, "demand") if wm.ref(n, "demand", k).get("dispatchable", False))
    bounds = {}
    for k in ids:
        demand = wm.ref(n, "demand", k)
        bounds[k] = (demand.get("flow_min", 0.0), demand.get("flow_max", demand.get("flow_nominal", INF)))
    start = {k: _start(wm.ref(n, "demand", k), "q", bounds[k][0]) for k in ids}
    wm.add_var(n, "demand", "q", ids, bounds=bounds, start=start)


def variable_pump_power(wm, n: str) -> None:
    """Energy ``E`` used by every pump over the period, in kWh."""
    ids = wm.ids(n, "pump")
    start = {a: _start(wm.ref(n, "pump", a), "E", 0.0) for a in ids}
    wm.add_var(n, "pump", "E", ids, start=start, within=pyo.NonNegativeReals)


def variable_common(wm, n: str) -> None:
    """Variables every problem needs, in build order."""
    variable_head(wm, n)
    variable_head_gain(wm, n)
    variable_indicators(wm, n)
    wm.strategy.variable_flow(wm, n)
    variable_reservoir(wm, n)
    variable_tank(wm, n)
    variable_demand(wm, n)
