"""
Solution extraction and constraint checks.

Values are read with explicit existence checks: a symbol a formulation
never created is reported as the configured default value, and inactive
components are reported with zero flow.
"""

from typing import Any, Dict, List, Optional

import pyomo.environ as pyo

from .constants import ARC_TYPES, CONTROLLABLE_TYPES, DEFAULT_VALUE, VIOLATION_TOLERANCE
from .design import select_design_resistance
from .enums import Status
from .logging_config import get_configured_logger

logger = get_configured_logger(__name__)


def _value(component) -> float:
    if component is None:
        return DEFAULT_VALUE
    value = pyo.value(component, exception=False)
    return float(value) if value is not None else DEFAULT_VALUE


def _symbol_value(wm, n: str, comp_type: str, symbol: str, i: str) -> float:
    var = wm.find_var(n, comp_type, symbol)
    if var is None or i not in var:
        return DEFAULT_VALUE
    return _value(var[i])


def _inactive_ids(wm, n: str, comp_type: str) -> List[str]:
    active = set(wm.ids(n, comp_type))
    return [i for i in wm.ref(n, comp_type) or {} if i not in active]


def _period_solution(wm, n: str) -> Dict[str, Any]:
    sol: Dict[str, Any] = {}
    strategy = wm.strategy

    sol["node"] = {i: {"h": _symbol_value(wm, n, "node", "h", i)} for i in wm.ids(n, "node")}

    sol["reservoir"] = {k: {"q": _symbol_value(wm, n, "reservoir", "qr", k)} for k in wm.ids(n, "reservoir")}

    sol["tank"] = {
        i: {"q": _symbol_value(wm, n, "tank", "qt", i), "V": _symbol_value(wm, n, "tank", "V", i)}
        for i in wm.ids(n, "tank")
    }

    sol["demand"] = {}
    for k in wm.ids(n, "demand"):
        demand = wm.ref(n, "demand", k)
        if demand.get("dispatchable", False):
            sol["demand"][k] = {"q": _symbol_value(wm, n, "demand", "q", k)}
        else:
            sol["demand"][k] = {"q": float(demand.get("flow_nominal", 0.0))}

    for comp_type in ARC_TYPES:
        table = {}
        for a in wm.ids(n, comp_type):
            values = {"q": _value(strategy.flow(wm, n, comp_type, a))}
            if comp_type in CONTROLLABLE_TYPES:
                values["z"] = _symbol_value(wm, n, comp_type, "z", a)
            if strategy.directed:
                values["y"] = _symbol_value(wm, n, comp_type, "y", a)
            if comp_type == "pump":
                values["g"] = _symbol_value(wm, n, "pump", "g", a)
                values["E"] = _symbol_value(wm, n, "pump", "E", a)
            if comp_type == "des_pipe":
                values.update(select_design_resistance(wm, n, a))
            table[a] = values

        for a in _inactive_ids(wm, n, comp_type):
            table[a] = {"q": 0.0, "status": int(Status.INACTIVE)}
            if comp_type in CONTROLLABLE_TYPES:
                table[a]["z"] = 0.0
        sol[comp_type] = table

    return sol


def build_solution(wm) -> Dict[str, Any]:
    """
    Collect the current variable values of a model into a plain dictionary.

    Directed flows are reported as ``q = qp - qn``. When the build option
    ``report`` is off only the objective is returned.

    Returns:
        ``{"objective": ..., <component>: {id: {symbol: value}}}`` for a
        single network, with components under ``nw[period]`` for a
        multinetwork.
    """
    objective = wm.model.component("objective")
    solution: Dict[str, Any] = {"objective": _value(objective)}
    if not wm.options.report:
        return solution

    if wm.ismultinetwork:
        solution["multinetwork"] = True
        solution["nw"] = {n: _period_solution(wm, n) for n in wm.nw_ids}
    else:
        solution.update(_period_solution(wm, wm.nw_ids[0]))
    return solution


def check_constraint_violations(wm, tol: Optional[float] = None) -> List[Dict[str, Any]]:
    """
    Evaluate every active constraint at the current variable values.

    No solver is involved, so this also checks hand-set values, e.g. a tank
    schedule against the volume recovery requirement.

    Args:
        wm: A built WaterModel
        tol: Absolute violation tolerance, defaults to the configured value

    Returns:
        One ``{"period", "component", "family", "key", "violation"}`` entry
        per violated constraint.
    """
    tol = VIOLATION_TOLERANCE if tol is None else tol
    violations = []

    for handle in wm.registry.constraint_handles():
        for key, cons in wm.registry.constraints(handle).items():
            for con in cons:
                if not con.active:
                    continue
                body = pyo.value(con.body, exception=False)
                if body is None:
                    logger.debug(f"Skipping {handle} at {key}: variables without values")
                    continue

                violation = 0.0
                if con.has_lb():
                    violation = max(violation, pyo.value(con.lower) - body)
                if con.has_ub():
                    violation = max(violation, body - pyo.value(con.upper))

                if violation > tol:
                    violations.append({
                        "period": handle.period,
                        "component": handle.component,
                        "family": handle.symbol,
                        "key": key,
                        "violation": float(violation),
                    })

    if violations:
        logger.warning(f"{len(violations)} constraint(s) of {wm.model.name} violated by more than {tol}")
    return violations
