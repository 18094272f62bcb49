"""
Network data helpers.

Every function here is a pure transform: the input dictionary is deep-copied
and the copy is returned. Nothing mutates caller-owned network data.
"""

import copy
import math
from typing import Any, Dict, List, Sequence, Union

from .constants import ARC_TYPES, CONTROLLABLE_TYPES, NODE_ATTACHED_TYPES
from .enums import FlowDirection, HeadCurveForm, Status
from .logging_config import get_configured_logger
from .validation import (
    NetworkDataError,
    parse_flow_direction,
    parse_head_curve_form,
    parse_head_loss_form,
    parse_status,
    validate_time_step,
)

logger = get_configured_logger(__name__)

COMPONENT_TYPES = ("node",) + NODE_ATTACHED_TYPES + ARC_TYPES

# Keys of a multinetwork container that are not per-period data
_GLOBAL_KEYS = ("name", "multinetwork", "per_unit", "time_series")

# Solutions report node-attached flows as "q"; their variables are named apart
_START_SYMBOLS = {"reservoir": {"q": "qr"}, "tank": {"q": "qt"}}


def ismultinetwork(network: Dict[str, Any]) -> bool:
    """Return True if the data holds several time periods."""
    return bool(network.get("multinetwork", False))


def nw_ids(network: Dict[str, Any]) -> List[str]:
    """
    Return the period ids of a network in chronological order.

    A single-period network has the single id "0".
    """
    if not ismultinetwork(network):
        return ["0"]
    return sorted(network["nw"].keys(), key=_period_sort_key)


def _period_sort_key(n: str):
    return (0, int(n), n) if str(n).lstrip("-").isdigit() else (1, 0, str(n))


def iter_networks(network: Dict[str, Any]):
    """Yield ``(period_id, period_data)`` pairs in chronological order."""
    if ismultinetwork(network):
        for n in nw_ids(network):
            yield n, network["nw"][n]
    else:
        yield "0", network


def _stringify_ids(network: Dict[str, Any]) -> None:
    for comp_type in COMPONENT_TYPES:
        table = network.get(comp_type)
        if table is None:
            continue
        network[comp_type] = {str(k): v for k, v in table.items()}
        for comp in network[comp_type].values():
            for end in ("node", "node_fr", "node_to"):
                if end in comp and comp[end] is not None:
                    comp[end] = str(comp[end])


def _correct_component_enums(network: Dict[str, Any]) -> None:
    if "head_loss" in network:
        network["head_loss"] = parse_head_loss_form(network["head_loss"])

    for comp_type in NODE_ATTACHED_TYPES + ARC_TYPES:
        for comp_id, comp in network.get(comp_type, {}).items():
            context = f"{comp_type} {comp_id}"
            comp["status"] = parse_status(comp.get("status", Status.ACTIVE), context)
            if comp_type in ARC_TYPES:
                comp["flow_direction"] = parse_flow_direction(
                    comp.get("flow_direction", FlowDirection.UNKNOWN), context
                )

    for pump_id, pump in network.get("pump", {}).items():
        pump["head_curve_form"] = parse_head_curve_form(
            pump.get("head_curve_form", HeadCurveForm.QUADRATIC), f"pump {pump_id}"
        )


def correct_enums(network: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the network with ids stringified and enum attributes normalized.

    Args:
        network: Single- or multi-period network data

    Returns:
        Normalized deep copy.

    Raises:
        NetworkDataError: If an enum attribute cannot be parsed
    """
    data = copy.deepcopy(network)
    if ismultinetwork(data):
        data["nw"] = {str(n): nw for n, nw in data["nw"].items()}
        for _, nw in iter_networks(data):
            _stringify_ids(nw)
            _correct_component_enums(nw)
    else:
        _stringify_ids(data)
        _correct_component_enums(data)
    return data


def replicate(network: Dict[str, Any], count: int) -> Dict[str, Any]:
    """
    Build a multinetwork holding ``count`` identical copies of a snapshot.

    Args:
        network: Single-period network data
        count: Number of periods

    Returns:
        Multinetwork dictionary with period ids "1".."count".
    """
    if ismultinetwork(network):
        raise NetworkDataError("replicate expects a single-period network")
    if count < 1:
        raise NetworkDataError(f"Number of periods must be at least 1, got {count}")

    snapshot = {k: v for k, v in network.items() if k not in _GLOBAL_KEYS}
    return {
        "name": network.get("name", ""),
        "multinetwork": True,
        "nw": {str(n): copy.deepcopy(snapshot) for n in range(1, count + 1)},
    }


def make_multinetwork(network: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expand a snapshot with a ``time_series`` block into a multinetwork.

    The ``time_series`` block holds ``num_steps``, an optional ``time_step``
    (a scalar or one value per period) and per-component attribute series,
    e.g. ``{"demand": {"1": {"flow_nominal": [...]}}}``.

    Returns:
        Multinetwork dictionary with one period per time step.

    Raises:
        NetworkDataError: If the series lengths disagree with num_steps
    """
    if ismultinetwork(network):
        return copy.deepcopy(network)

    series = network.get("time_series")
    if not series:
        raise NetworkDataError("make_multinetwork requires a time_series block")

    num_steps = series.get("num_steps")
    if not isinstance(num_steps, int) or num_steps < 1:
        raise NetworkDataError(f"time_series num_steps must be a positive integer, got {num_steps}")

    mn = replicate(network, num_steps)
    time_steps = _expand_series(series.get("time_step", network.get("time_step")), num_steps, "time_step")

    for k, n in enumerate(nw_ids(mn)):
        nw = mn["nw"][n]
        if time_steps[k] is not None:
            validate_time_step(time_steps[k], f"period {n}")
            nw["time_step"] = time_steps[k]
        for comp_type, table in series.items():
            if comp_type in ("num_steps", "time_step"):
                continue
            for comp_id, attributes in table.items():
                comp = nw.get(comp_type, {}).get(str(comp_id), nw.get(comp_type, {}).get(comp_id))
                if comp is None:
                    raise NetworkDataError(
                        f"time_series references unknown {comp_type} {comp_id!r}"
                    )
                for attribute, values in attributes.items():
                    values = _expand_series(values, num_steps, f"{comp_type} {comp_id} {attribute}")
                    comp[attribute] = values[k]

    logger.debug(f"Built multinetwork with {num_steps} periods")
    return mn


def _expand_series(values: Union[None, float, Sequence], num_steps: int, name: str) -> List:
    if values is None or isinstance(values, (int, float)):
        return [values] * num_steps
    if len(values) != num_steps:
        raise NetworkDataError(
            f"time_series {name} has {len(values)} values, expected {num_steps}"
        )
    return list(values)


def turn_on_all_components(network: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy with every component status set to ACTIVE."""
    data = copy.deepcopy(network)
    for _, nw in iter_networks(data):
        for comp_type in NODE_ATTACHED_TYPES + ARC_TYPES:
            for comp in nw.get(comp_type, {}).values():
                comp["status"] = Status.ACTIVE
    return data


def fix_all_indicators(network: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy whose controllable components have their indicators fixed.

    ACTIVE components are fixed open and INACTIVE ones closed; UNKNOWN
    components stay free.
    """
    data = copy.deepcopy(network)
    for _, nw in iter_networks(data):
        for comp_type in CONTROLLABLE_TYPES:
            for comp in nw.get(comp_type, {}).values():
                status = parse_status(comp.get("status", Status.ACTIVE))
                if status == Status.ACTIVE:
                    comp["z_min"], comp["z_max"] = 1, 1
                elif status == Status.INACTIVE:
                    comp["z_min"], comp["z_max"] = 0, 0
    return data


def set_start_values(
    network: Dict[str, Any],
    solution: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Copy solution values into ``<symbol>_start`` attributes for warm starts.

    Reservoir and tank flows are reported as ``q`` but stored as
    ``qr_start`` and ``qt_start``, the names their variables read. Statuses
    and values that were never solved (NaN) are not copied.

    Args:
        network: Network data matching the solution's periods
        solution: The ``solution`` entry of a built solution dictionary

    Returns:
        Network copy with start attributes set.
    """
    data = copy.deepcopy(network)
    if ismultinetwork(data):
        periods = [(n, data["nw"][n], solution.get("nw", {}).get(n, {})) for n in nw_ids(data)]
    else:
        periods = [("0", data, solution)]

    for _, nw, sol in periods:
        for comp_type, table in sol.items():
            if comp_type not in COMPONENT_TYPES or not isinstance(table, dict):
                continue
            renames = _START_SYMBOLS.get(comp_type, {})
            for comp_id, values in table.items():
                comp = nw.get(comp_type, {}).get(comp_id)
                if comp is None or not isinstance(values, dict):
                    continue
                for symbol, value in values.items():
                    if symbol == "status" or isinstance(value, bool) or not isinstance(value, (int, float)):
                        continue
                    if math.isfinite(value):
                        comp[f"{renames.get(symbol, symbol)}_start"] = value
    return data
