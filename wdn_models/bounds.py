"""
Bounds engine.

Derives head bounds per node and flow bounds per arc from topology, demand
limits, elevations and component physics. ``correct_network_data`` is the
single normalization pass run before a model is built; it returns a new
dictionary and never mutates its input.
"""

import copy
import math
from typing import Any, Dict, List, Tuple

from .constants import ARC_TYPES, FLOW_MIN
from .data import correct_enums, ismultinetwork, iter_networks
from .enums import FlowDirection, Status
from .head_loss import calc_resistances, get_alpha
from .logging_config import get_configured_logger
from .pump import calc_head_curve_coefficients, calc_pump_flow_bounds, calc_pump_head_gain_max
from .tank import calc_tank_area, calc_tank_volume_bounds
from .validation import NetworkDataError, parse_status, validate_network

logger = get_configured_logger(__name__)

INF = float("inf")

Bounds = Tuple[float, float]


def _active(comp: Dict[str, Any]) -> bool:
    return parse_status(comp.get("status", Status.ACTIVE)) != Status.INACTIVE


def _active_items(network: Dict[str, Any], comp_type: str):
    return [(i, c) for i, c in network.get(comp_type, {}).items() if _active(c)]


def reservoir_head(network: Dict[str, Any], reservoir: Dict[str, Any]) -> float:
    """Fixed head of a reservoir (its ``head``, else the node's nominal head or elevation)."""
    if reservoir.get("head") is not None:
        return float(reservoir["head"])
    node = network["node"][str(reservoir["node"])]
    return float(node.get("head_nominal", node["elevation"]))


def regulator_head_setting(network: Dict[str, Any], regulator: Dict[str, Any]) -> float:
    """Downstream head enforced by an open regulator."""
    node_to = network["node"][str(regulator["node_to"])]
    return float(node_to["elevation"]) + float(regulator["setting"])


# ============================================================================
# Head bounds
# ============================================================================

def calc_head_max(network: Dict[str, Any]) -> float:
    """
    Global ceiling on the head at any node.

    The largest of the node head attributes, reservoir heads, tank tops and
    regulator settings, raised by the maximum gain of every active pump (pumps
    may run in series).

    Raises:
        NetworkDataError: If no finite head information exists
    """
    candidates = []

    for node in network.get("node", {}).values():
        for key in ("elevation", "head_min", "head_nominal", "head_max"):
            if node.get(key) is not None:
                candidates.append(float(node[key]))

    for _, reservoir in _active_items(network, "reservoir"):
        candidates.append(reservoir_head(network, reservoir))

    for _, tank in _active_items(network, "tank"):
        node = network["node"][str(tank["node"])]
        candidates.append(float(node["elevation"]) + float(tank["max_level"]))

    for _, regulator in _active_items(network, "regulator"):
        candidates.append(regulator_head_setting(network, regulator))

    finite = [h for h in candidates if math.isfinite(h)]
    if not finite:
        raise NetworkDataError("Cannot bound heads: no finite elevation or head data")

    gain = sum(max(0.0, calc_pump_head_gain_max(pump)) for _, pump in _active_items(network, "pump"))
    return max(finite) + gain


def compute_head_bounds(network: Dict[str, Any]) -> Dict[str, Bounds]:
    """
    Head bounds for every node of a single-period network.

    Args:
        network: Single-period network data

    Returns:
        ``{node_id: (h_min, h_max)}``

    Raises:
        NetworkDataError: If a node's bounds are empty
    """
    head_max = calc_head_max(network)
    bounds = {}

    for i, node in network["node"].items():
        h_min = node.get("head_min", node["elevation"])
        h_max = node.get("head_max", head_max)
        bounds[str(i)] = [float(h_min), float(h_max)]

    for _, reservoir in _active_items(network, "reservoir"):
        h = reservoir_head(network, reservoir)
        bounds[str(reservoir["node"])] = [h, h]

    for _, tank in _active_items(network, "tank"):
        i = str(tank["node"])
        elevation = float(network["node"][i]["elevation"])
        bounds[i][0] = max(bounds[i][0], elevation + float(tank["min_level"]))
        bounds[i][1] = min(bounds[i][1], elevation + float(tank["max_level"]))

    for i, (h_min, h_max) in bounds.items():
        if h_min > h_max:
            raise NetworkDataError(
                f"node {i} has empty head bounds [{h_min}, {h_max}]"
            )

    return {i: (b[0], b[1]) for i, b in bounds.items()}


# ============================================================================
# Flow bounds
# ============================================================================

def calc_capacity_max(network: Dict[str, Any]) -> float:
    """
    Largest flow any arc can carry: total demand plus total tank drain rate.

    Returns +inf when a reservoir may absorb flow or tanks exist without a
    time step.
    """
    total = 0.0

    for _, demand in _active_items(network, "demand"):
        nominal = float(demand.get("flow_nominal", 0.0))
        if demand.get("dispatchable", False):
            total += max(
                abs(float(demand.get("flow_min", nominal))),
                abs(float(demand.get("flow_max", nominal))),
            )
        else:
            total += abs(nominal)

    for _, reservoir in _active_items(network, "reservoir"):
        if reservoir.get("flow_min", 0.0) < 0.0:
            return INF

    tanks = _active_items(network, "tank")
    if tanks:
        time_step = network.get("time_step")
        if time_step is None or time_step <= 0:
            return INF
        for _, tank in tanks:
            v_min, v_max = calc_tank_volume_bounds(tank)
            total += (v_max - v_min) / float(time_step)

    return total


def _flow_from_head_difference(dh: float, resistance: float, length: float, alpha: float) -> float:
    if math.isinf(dh):
        return dh
    return math.copysign((abs(dh) / (length * resistance)) ** (1.0 / alpha), dh)


def _apply_direction(bounds: List[float], direction: FlowDirection) -> List[float]:
    if direction == FlowDirection.POSITIVE:
        bounds[0] = max(bounds[0], 0.0)
    elif direction == FlowDirection.NEGATIVE:
        bounds[1] = min(bounds[1], 0.0)
    return bounds


def _check_nonempty(bounds: List[float], context: str) -> Bounds:
    if bounds[0] > bounds[1]:
        raise NetworkDataError(f"{context} has an empty flow domain [{bounds[0]}, {bounds[1]}]")
    return bounds[0], bounds[1]


def _resistive_bounds(
    comp: Dict[str, Any],
    resistance: float,
    alpha: float,
    head_fr: Bounds,
    head_to: Bounds,
    capacity: float,
) -> List[float]:
    length = float(comp["length"])
    q_min = _flow_from_head_difference(head_fr[0] - head_to[1], resistance, length, alpha)
    q_max = _flow_from_head_difference(head_fr[1] - head_to[0], resistance, length, alpha)
    return [
        max(q_min, comp.get("flow_min", -INF), -capacity),
        min(q_max, comp.get("flow_max", INF), capacity),
    ]


def compute_flow_bounds(
    network: Dict[str, Any],
    head_bounds: Dict[str, Bounds] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Flow bounds for every active arc of a single-period network.

    Pipes invert the head-loss law at the extremes of the incident head
    bounds; pumps use their curve domain; every arc is capped by the network
    capacity, intersected with manual ``flow_min``/``flow_max`` and
    adjusted for a known ``flow_direction``.

    Args:
        network: Single-period network data
        head_bounds: Precomputed node head bounds (computed if omitted)

    Returns:
        ``{component_type: {arc_id: (q_min, q_max)}}``; design pipes map to a
        list of per-candidate tuples.
    """
    if head_bounds is None:
        head_bounds = compute_head_bounds(network)

    alpha = get_alpha(network)
    capacity = calc_capacity_max(network)
    resistances = calc_resistances(network)
    bounds = {comp_type: {} for comp_type in ARC_TYPES}

    for comp_type in ARC_TYPES:
        for a, comp in _active_items(network, comp_type):
            context = f"{comp_type} {a}"
            head_fr = head_bounds[str(comp["node_fr"])]
            head_to = head_bounds[str(comp["node_to"])]
            direction = comp.get("flow_direction", FlowDirection.UNKNOWN)

            if comp_type in ("pipe", "check_valve"):
                q = _resistive_bounds(comp, resistances[comp_type][a], alpha, head_fr, head_to, capacity)
                if comp_type == "check_valve":
                    # Reverse head difference only closes the valve
                    q = [max(q[0], 0.0), max(q[1], 0.0)]
                bounds[comp_type][a] = _check_nonempty(_apply_direction(q, direction), context)
            elif comp_type == "des_pipe":
                bounds[comp_type][a] = [
                    _check_nonempty(
                        _apply_direction(_resistive_bounds(comp, r, alpha, head_fr, head_to, capacity), direction),
                        f"{context} candidate {k}",
                    )
                    for k, r in enumerate(resistances["des_pipe"][a])
                ]
            elif comp_type == "pump":
                pump_bounds = calc_pump_flow_bounds(comp, head_fr, head_to, context)
                q = [pump_bounds["flow_min"], min(pump_bounds["flow_max"], capacity)]
                bounds[comp_type][a] = _check_nonempty(q, context)
            elif comp_type == "regulator":
                q = [max(0.0, comp.get("flow_min", 0.0)), min(comp.get("flow_max", INF), capacity)]
                bounds[comp_type][a] = _check_nonempty(q, context)
            else:
                q = [max(comp.get("flow_min", -INF), -capacity), min(comp.get("flow_max", INF), capacity)]
                bounds[comp_type][a] = _check_nonempty(_apply_direction(q, direction), context)

    return bounds


# ============================================================================
# Normalization pass
# ============================================================================

def _correct_period(network: Dict[str, Any]) -> None:
    validate_network(network)

    resistances = calc_resistances(network)
    for comp_type in ("pipe", "check_valve"):
        for a, r in resistances[comp_type].items():
            network[comp_type][a]["resistance"] = r
    for a, rs in resistances["des_pipe"].items():
        network["des_pipe"][a]["resistances"] = rs

    for pump in network.get("pump", {}).values():
        pump["head_curve_coefficients"] = [float(c) for c in calc_head_curve_coefficients(pump)]

    for tank in network.get("tank", {}).values():
        tank["area"] = calc_tank_area(tank["diameter"])

    head_bounds = compute_head_bounds(network)
    for i, (h_min, h_max) in head_bounds.items():
        network["node"][i]["h_min"], network["node"][i]["h_max"] = h_min, h_max

    flow_bounds = compute_flow_bounds(network, head_bounds)
    for comp_type, table in flow_bounds.items():
        for a, q in table.items():
            comp = network[comp_type][a]
            if comp_type == "des_pipe":
                comp["candidate_flow_min"] = [b[0] for b in q]
                comp["candidate_flow_max"] = [b[1] for b in q]
                q = (min(b[0] for b in q), max(b[1] for b in q))
            comp["flow_min"], comp["flow_max"] = q

            if comp_type in ("pump", "regulator"):
                forward_default = FLOW_MIN
            else:
                forward_default = 0.0
            comp["flow_min_forward"] = max(comp["flow_min"], comp.get("flow_min_forward", forward_default), 0.0)
            comp["flow_max_reverse"] = min(comp["flow_max"], comp.get("flow_max_reverse", 0.0), 0.0)


def correct_network_data(network: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize network data for model building.

    Stringifies ids, parses enum attributes, validates the data, then stores
    resistances, pump curve coefficients, tank areas, derived head bounds
    (``h_min``/``h_max`` on nodes) and derived flow bounds (``flow_min``,
    ``flow_max``, ``flow_min_forward``, ``flow_max_reverse`` on arcs).

    Args:
        network: Single- or multi-period network data

    Returns:
        A corrected copy; the input is left untouched.

    Raises:
        NetworkDataError: If the data is missing attributes or inconsistent
    """
    data = correct_enums(network)
    for n, nw in iter_networks(data):
        if ismultinetwork(data):
            logger.debug(f"Correcting network data of period {n}")
        _correct_period(nw)
    return data


def recompute_bounds(network: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reset derived flow bounds and recompute them.

    Call after changing statuses, head bounds or demands. Manual
    ``flow_min``/``flow_max`` limits are discarded along with the derived
    ones, so calling this twice in a row yields identical bounds.
    """
    data = copy.deepcopy(network)
    for _, nw in iter_networks(data):
        for comp_type in ARC_TYPES:
            for comp in nw.get(comp_type, {}).values():
                comp["flow_min"], comp["flow_max"] = -INF, INF
                for key in ("flow_min_forward", "flow_max_reverse", "candidate_flow_min", "candidate_flow_max"):
                    comp.pop(key, None)
    return correct_network_data(data)
