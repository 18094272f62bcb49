"""
Input validation utilities for network data.

Every problem found in network data is reported as a NetworkDataError, a
ValueError subclass, so callers can catch data problems separately from
solver failures.
"""

import math
from typing import Any, Dict, Iterable, Mapping

from .constants import ARC_TYPES, NODE_ATTACHED_TYPES
from .enums import FlowDirection, HeadCurveForm, HeadLossForm, Status


class NetworkDataError(ValueError):
    """Raised when network data is missing or inconsistent."""


def _coerce_enum(enum_cls, value: Any, attribute: str, context: str):
    if isinstance(value, enum_cls):
        return value
    for member in enum_cls:
        if value == member.value:
            return member
        if isinstance(value, str) and value.strip().upper() == member.name:
            return member
        if isinstance(value, str) and value.strip().lower() == str(member.value):
            return member
    valid = [member.name.lower() for member in enum_cls]
    raise NetworkDataError(
        f"Invalid {attribute} for {context}: {value!r}. Must be one of {valid}"
    )


def parse_status(value: Any, context: str = "component") -> Status:
    """Normalize a status attribute to a Status member."""
    return _coerce_enum(Status, value, "status", context)


def parse_flow_direction(value: Any, context: str = "component") -> FlowDirection:
    """Normalize a flow_direction attribute to a FlowDirection member."""
    return _coerce_enum(FlowDirection, value, "flow_direction", context)


def parse_head_curve_form(value: Any, context: str = "pump") -> HeadCurveForm:
    """Normalize a head_curve_form attribute to a HeadCurveForm member."""
    return _coerce_enum(HeadCurveForm, value, "head_curve_form", context)


def parse_head_loss_form(value: Any) -> HeadLossForm:
    """Normalize the network head_loss attribute."""
    return _coerce_enum(HeadLossForm, value, "head_loss", "network")


def require_attributes(
    component: Mapping[str, Any],
    attributes: Iterable[str],
    context: str
) -> None:
    """
    Check that a component defines every required attribute.

    Args:
        component: Component attribute dictionary
        attributes: Names that must be present and not None
        context: Component description used in the error message

    Raises:
        NetworkDataError: If any attribute is missing
    """
    missing = [name for name in attributes if component.get(name) is None]
    if missing:
        raise NetworkDataError(f"{context} is missing required attribute(s): {missing}")


def validate_positive(value: float, name: str, context: str) -> None:
    """
    Validate that a physical quantity is strictly positive and finite.

    Raises:
        NetworkDataError: If the value is not a positive finite number
    """
    if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise NetworkDataError(f"{name} of {context} must be positive, got {value}")


def validate_time_step(time_step: float, context: str = "network") -> None:
    """
    Validate a period length used to integrate tank volumes.

    Raises:
        NetworkDataError: If the time step is missing or not positive
    """
    if time_step is None:
        raise NetworkDataError(f"time_step of {context} is required for tank integration")
    if not isinstance(time_step, (int, float)) or time_step <= 0:
        raise NetworkDataError(
            f"time_step of {context} must be positive, got {time_step}"
        )


def validate_node(node_id: str, node: Dict[str, Any]) -> None:
    """
    Validate elevation and head bounds of a node.

    Raises:
        NetworkDataError: If elevation is missing or head bounds are inconsistent
    """
    context = f"node {node_id}"
    require_attributes(node, ["elevation"], context)

    head_min = node.get("head_min")
    head_nominal = node.get("head_nominal")
    head_max = node.get("head_max")

    if head_min is not None and head_max is not None and head_min > head_max:
        raise NetworkDataError(
            f"{context} has head_min {head_min} greater than head_max {head_max}"
        )
    if head_nominal is not None:
        if head_min is not None and head_nominal < head_min:
            raise NetworkDataError(f"{context} has head_nominal below head_min")
        if head_max is not None and head_nominal > head_max:
            raise NetworkDataError(f"{context} has head_nominal above head_max")


def validate_tank(tank_id: str, tank: Dict[str, Any]) -> None:
    """
    Validate tank geometry and levels.

    Raises:
        NetworkDataError: If levels are missing or out of order
    """
    context = f"tank {tank_id}"
    require_attributes(
        tank, ["node", "min_level", "max_level", "init_level", "diameter"], context
    )
    validate_positive(tank["diameter"], "diameter", context)

    if not tank["min_level"] <= tank["init_level"] <= tank["max_level"]:
        raise NetworkDataError(
            f"{context} must satisfy min_level <= init_level <= max_level, got "
            f"{tank['min_level']}, {tank['init_level']}, {tank['max_level']}"
        )


def validate_pipe(pipe_id: str, pipe: Dict[str, Any], component: str = "pipe") -> None:
    """
    Validate the physical attributes of a pipe or check valve.

    Raises:
        NetworkDataError: If length, diameter or roughness is missing or invalid
    """
    context = f"{component} {pipe_id}"
    require_attributes(pipe, ["length"], context)
    validate_positive(pipe["length"], "length", context)

    if pipe.get("resistance") is None:
        require_attributes(pipe, ["diameter", "roughness"], context)
        validate_positive(pipe["diameter"], "diameter", context)
        validate_positive(pipe["roughness"], "roughness", context)


def validate_des_pipe(pipe_id: str, pipe: Dict[str, Any]) -> None:
    """
    Validate a design pipe and its candidate diameters.

    Raises:
        NetworkDataError: If the candidate list is empty or malformed
    """
    context = f"des_pipe {pipe_id}"
    require_attributes(pipe, ["length"], context)
    validate_positive(pipe["length"], "length", context)

    candidates = pipe.get("diameters")
    if pipe.get("resistances") is not None:
        if len(pipe["resistances"]) == 0:
            raise NetworkDataError(f"{context} must define at least one candidate resistance")
        return
    if not candidates:
        raise NetworkDataError(f"{context} must define at least one candidate diameter")
    require_attributes(pipe, ["roughness"], context)
    for k, candidate in enumerate(candidates or []):
        require_attributes(candidate, ["diameter"], f"{context} candidate {k}")
        validate_positive(candidate["diameter"], "diameter", f"{context} candidate {k}")


def validate_pump(pump_id: str, pump: Dict[str, Any]) -> None:
    """
    Validate a pump head curve.

    Raises:
        NetworkDataError: If the head curve is missing or has too few points
    """
    context = f"pump {pump_id}"
    require_attributes(pump, ["head_curve"], context)
    form = pump.get("head_curve_form", HeadCurveForm.QUADRATIC)
    curve = pump["head_curve"]

    if len(curve) == 0:
        raise NetworkDataError(f"{context} has an empty head_curve")
    for point in curve:
        if len(point) != 2:
            raise NetworkDataError(f"{context} head_curve points must be (flow, head) pairs")

    if form == HeadCurveForm.EPANET and len(curve) != 3:
        raise NetworkDataError(
            f"{context} uses the epanet head_curve_form, which needs exactly 3 points, "
            f"got {len(curve)}"
        )


def validate_regulator(regulator_id: str, regulator: Dict[str, Any]) -> None:
    """Validate that a regulator has a downstream setting."""
    require_attributes(regulator, ["setting"], f"regulator {regulator_id}")


def validate_topology(network: Dict[str, Any]) -> None:
    """
    Validate that every arc and attached component references an existing node.

    Raises:
        NetworkDataError: If an endpoint references an unknown node
    """
    nodes = network.get("node", {})

    for comp_type in ARC_TYPES:
        for arc_id, arc in network.get(comp_type, {}).items():
            context = f"{comp_type} {arc_id}"
            require_attributes(arc, ["node_fr", "node_to"], context)
            for end in ("node_fr", "node_to"):
                if str(arc[end]) not in nodes:
                    raise NetworkDataError(
                        f"{context} references unknown {end} {arc[end]!r}"
                    )

    for comp_type in NODE_ATTACHED_TYPES:
        for comp_id, comp in network.get(comp_type, {}).items():
            context = f"{comp_type} {comp_id}"
            require_attributes(comp, ["node"], context)
            if str(comp["node"]) not in nodes:
                raise NetworkDataError(f"{context} references unknown node {comp['node']!r}")


def validate_network(network: Dict[str, Any]) -> None:
    """
    Validate a single-period network.

    Args:
        network: Network data dictionary

    Raises:
        NetworkDataError: On the first inconsistency found
    """
    if not network.get("node"):
        raise NetworkDataError("Network must define at least one node")

    for node_id, node in network["node"].items():
        validate_node(node_id, node)

    validate_topology(network)

    for pipe_id, pipe in network.get("pipe", {}).items():
        validate_pipe(pipe_id, pipe)
    for valve_id, valve in network.get("check_valve", {}).items():
        validate_pipe(valve_id, valve, component="check_valve")
    for pipe_id, pipe in network.get("des_pipe", {}).items():
        validate_des_pipe(pipe_id, pipe)
    for pump_id, pump in network.get("pump", {}).items():
        validate_pump(pump_id, pump)
    for regulator_id, regulator in network.get("regulator", {}).items():
        validate_regulator(regulator_id, regulator)
    for tank_id, tank in network.get("tank", {}).items():
        validate_tank(tank_id, tank)


def require_finite(value: float, context: str) -> float:
    """
    Return ``value`` if it is finite.

    Big-M coefficients and breakpoint ranges are taken from derived bounds;
    an infinite bound there means the data does not limit the quantity.

    Raises:
        NetworkDataError: If the value is infinite or NaN
    """
    if value is None or not math.isfinite(value):
        raise NetworkDataError(
            f"{context} needs a finite bound, got {value}; add explicit limits to the data"
        )
    return float(value)
