"""
Directed flow representation.

Each arc carries nonnegative flows ``qp`` (from ``node_fr`` to ``node_to``)
and ``qn`` (the reverse), a binary direction ``y``, and for resistive and
controllable arcs nonnegative head-difference splits ``dhp``/``dhn`` with
``dhp - dhn = h_i - h_j``. The direction variable switches one split of
each pair off.
"""

from typing import Any, List, Tuple

import pyomo.environ as pyo

from ..constants import ARC_TYPES
from ..logging_config import get_configured_logger
from ..pump import calc_pump_head_gain_max
from .common import directed_flow_bounds, directed_head_bounds, flow_start, head_difference
from .undirected import regulator_head

logger = get_configured_logger(__name__)

# Arc types that carry head-difference splits
HEAD_SPLIT_TYPES = ("pipe", "des_pipe", "check_valve", "valve", "pump")


def _direction_bounds(q_lb: float, q_ub: float) -> Tuple[int, int]:
    """Tightened bounds of the direction binary from the flow bounds."""
    return (1 if q_lb > 0.0 else 0), (0 if q_ub < 0.0 else 1)


def _variable_head_splits(wm, n: str, comp_type: str, ids) -> None:
    dh_bounds = {a: directed_head_bounds(wm, n, comp_type, a) for a in ids}
    wm.add_var(n, comp_type, "dhp", ids, bounds={a: (0.0, b[0]) for a, b in dh_bounds.items()}, within=pyo.NonNegativeReals)
    wm.add_var(n, comp_type, "dhn", ids, bounds={a: (0.0, b[1]) for a, b in dh_bounds.items()}, within=pyo.NonNegativeReals)


def variable_flow(wm, n: str) -> None:
    """Directed flows, direction binaries and head splits of every arc type except design pipes."""
    for comp_type in ARC_TYPES:
        if comp_type == "des_pipe":
            continue
        ids = wm.ids(n, comp_type)
        q_bounds = {a: wm.flow_bounds(n, comp_type, a) for a in ids}
        split_bounds = {a: directed_flow_bounds(*q_bounds[a]) for a in ids}

        wm.add_var(
            n, comp_type, "qp", ids,
            bounds={a: (0.0, b[0]) for a, b in split_bounds.items()},
            start={a: max(0.0, flow_start(wm.ref(n, comp_type, a), *q_bounds[a])) for a in ids},
            within=pyo.NonNegativeReals,
        )
        wm.add_var(
            n, comp_type, "qn", ids,
            bounds={a: (0.0, b[1]) for a, b in split_bounds.items()},
            start={a: max(0.0, -flow_start(wm.ref(n, comp_type, a), *q_bounds[a])) for a in ids},
            within=pyo.NonNegativeReals,
        )
        wm.add_var(
            n, comp_type, "y", ids,
            bounds={a: _direction_bounds(*q_bounds[a]) for a in ids},
            start={a: 1.0 if q_bounds[a][1] > 0.0 else 0.0 for a in ids},
            within=pyo.Binary,
        )
        if comp_type in HEAD_SPLIT_TYPES:
            _variable_head_splits(wm, n, comp_type, ids)


def variable_flow_des(wm, n: str) -> None:
    """Per-candidate directed flows of design pipes; one direction per pipe."""
    ids = wm.ids(n, "des_pipe")
    qp_bounds, qn_bounds = {}, {}
    for a in ids:
        comp = wm.ref(n, "des_pipe", a)
        for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
            qp_bounds[a, k], qn_bounds[a, k] = [(0.0, b) for b in directed_flow_bounds(lb, ub)]

    index = list(qp_bounds.keys())
    qp = wm.add_var(n, "des_pipe", "qp", index, bounds=qp_bounds, within=pyo.NonNegativeReals)
    qn = wm.add_var(n, "des_pipe", "qn", index, bounds=qn_bounds, within=pyo.NonNegativeReals)
    wm.add_var(
        n, "des_pipe", "y", ids,
        bounds={a: _direction_bounds(*wm.flow_bounds(n, "des_pipe", a)) for a in ids},
        within=pyo.Binary,
    )
    _variable_head_splits(wm, n, "des_pipe", ids)

    wm.add_expression(n, "des_pipe", "q_sum", {
        a: sum(qp[a, k] - qn[a, k] for k in range(len(wm.ref(n, "des_pipe", a)["resistances"])))
        for a in ids
    })


def flow(wm, n: str, comp_type: str, a: str):
    if comp_type == "des_pipe":
        return wm.expression(n, "des_pipe", "q_sum")[a]
    return wm.var(n, comp_type, "qp")[a] - wm.var(n, comp_type, "qn")[a]


def pump_flow(wm, n: str, a: str):
    return wm.var(n, "pump", "qp")[a]


def _split_flow_bounds(wm, n: str, comp_type: str, a: str) -> Tuple[float, float]:
    q_lb, q_ub = wm.flow_bounds(n, comp_type, a)
    qp_ub, qn_ub = directed_flow_bounds(q_lb, q_ub)
    context = f"{comp_type} {a}"
    return wm.big_m(qp_ub, context), wm.big_m(qn_ub, context)


def _link_flow_direction(wm, n: str, comp_type: str, a: str) -> None:
    qp = wm.var(n, comp_type, "qp")[a]
    qn = wm.var(n, comp_type, "qn")[a]
    y = wm.var(n, comp_type, "y")[a]
    qp_ub, qn_ub = _split_flow_bounds(wm, n, comp_type, a)

    wm.add_constraint(n, comp_type, "direction", a, qp <= qp_ub * y)
    wm.add_constraint(n, comp_type, "direction", a, qn <= qn_ub * (1 - y))


def _link_head_direction(wm, n: str, comp_type: str, a: str) -> None:
    dhp = wm.var(n, comp_type, "dhp")[a]
    dhn = wm.var(n, comp_type, "dhn")[a]
    y = wm.var(n, comp_type, "y")[a]
    dhp_ub, dhn_ub = directed_head_bounds(wm, n, comp_type, a)

    wm.add_constraint(n, comp_type, "direction", a, dhp <= dhp_ub * y)
    wm.add_constraint(n, comp_type, "direction", a, dhn <= dhn_ub * (1 - y))


def _head_split(wm, n: str, comp_type: str, a: str) -> None:
    dhp = wm.var(n, comp_type, "dhp")[a]
    dhn = wm.var(n, comp_type, "dhn")[a]
    wm.add_constraint(n, comp_type, "head_split", a, dhp - dhn == head_difference(wm, n, comp_type, a))


def constraint_pipe_common(wm, n: str, a: str) -> None:
    _link_flow_direction(wm, n, "pipe", a)
    _link_head_direction(wm, n, "pipe", a)
    _head_split(wm, n, "pipe", a)


def constraint_des_pipe_common(wm, n: str, a: str) -> None:
    comp = wm.ref(n, "des_pipe", a)
    qp = wm.var(n, "des_pipe", "qp")
    qn = wm.var(n, "des_pipe", "qn")
    y = wm.var(n, "des_pipe", "y")[a]

    for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
        qp_ub, qn_ub = directed_flow_bounds(lb, ub)
        context = f"des_pipe {a} candidate {k}"
        wm.add_constraint(n, "des_pipe", "direction", a, qp[a, k] <= wm.big_m(qp_ub, context) * y)
        wm.add_constraint(n, "des_pipe", "direction", a, qn[a, k] <= wm.big_m(qn_ub, context) * (1 - y))

    _link_head_direction(wm, n, "des_pipe", a)
    _head_split(wm, n, "des_pipe", a)


def constraint_des_pipe_selection(wm, n: str, a: str) -> None:
    """Only the selected candidate of a design pipe may carry flow."""
    comp = wm.ref(n, "des_pipe", a)
    qp = wm.var(n, "des_pipe", "qp")
    qn = wm.var(n, "des_pipe", "qn")
    z = wm.var(n, "des_pipe", "z")

    for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
        qp_ub, qn_ub = directed_flow_bounds(lb, ub)
        context = f"des_pipe {a} candidate {k}"
        wm.add_constraint(n, "des_pipe", "flow_selection", a, qp[a, k] <= wm.big_m(qp_ub, context) * z[a, k])
        wm.add_constraint(n, "des_pipe", "flow_selection", a, qn[a, k] <= wm.big_m(qn_ub, context) * z[a, k])


def constraint_check_valve_common(wm, n: str, a: str) -> None:
    """Open: forward flow with ``dhn = 0``. Closed: no flow with ``dhp = 0``."""
    qp = wm.var(n, "check_valve", "qp")[a]
    dhp = wm.var(n, "check_valve", "dhp")[a]
    dhn = wm.var(n, "check_valve", "dhn")[a]
    z = wm.var(n, "check_valve", "z")[a]
    qp_ub, _ = _split_flow_bounds(wm, n, "check_valve", a)
    dhp_ub, dhn_ub = directed_head_bounds(wm, n, "check_valve", a)

    _link_flow_direction(wm, n, "check_valve", a)
    _link_head_direction(wm, n, "check_valve", a)
    wm.add_constraint(n, "check_valve", "on_off", a, qp <= qp_ub * z)
    wm.add_constraint(n, "check_valve", "on_off", a, dhp <= dhp_ub * z)
    wm.add_constraint(n, "check_valve", "on_off", a, dhn <= dhn_ub * (1 - z))
    _head_split(wm, n, "check_valve", a)


def constraint_valve(wm, n: str, a: str) -> None:
    """A shutoff valve: no head difference when open, no flow when closed."""
    qp = wm.var(n, "valve", "qp")[a]
    qn = wm.var(n, "valve", "qn")[a]
    dhp = wm.var(n, "valve", "dhp")[a]
    dhn = wm.var(n, "valve", "dhn")[a]
    z = wm.var(n, "valve", "z")[a]
    qp_ub, qn_ub = _split_flow_bounds(wm, n, "valve", a)
    dhp_ub, dhn_ub = directed_head_bounds(wm, n, "valve", a)

    _link_flow_direction(wm, n, "valve", a)
    wm.add_constraint(n, "valve", "on_off", a, qp <= qp_ub * z)
    wm.add_constraint(n, "valve", "on_off", a, qn <= qn_ub * z)
    wm.add_constraint(n, "valve", "head", a, dhp <= dhp_ub * (1 - z))
    wm.add_constraint(n, "valve", "head", a, dhn <= dhn_ub * (1 - z))
    _head_split(wm, n, "valve", a)


def constraint_short_pipe(wm, n: str, a: str) -> None:
    _link_flow_direction(wm, n, "short_pipe", a)
    wm.add_constraint(n, "short_pipe", "head", a, head_difference(wm, n, "short_pipe", a) == 0.0)


def constraint_regulator(wm, n: str, a: str) -> None:
    """Forward-only flow; the downstream head equals the setting when open."""
    regulator_head(wm, n, a)
    comp = wm.ref(n, "regulator", a)
    qp = wm.var(n, "regulator", "qp")[a]
    y = wm.var(n, "regulator", "y")[a]
    z = wm.var(n, "regulator", "z")[a]
    qp_ub, _ = _split_flow_bounds(wm, n, "regulator", a)

    _link_flow_direction(wm, n, "regulator", a)
    wm.add_constraint(n, "regulator", "on_off", a, qp >= comp["flow_min_forward"] * z)
    wm.add_constraint(n, "regulator", "on_off", a, qp <= qp_ub * z)
    wm.add_constraint(n, "regulator", "on_off", a, y >= z)


def constraint_pump_common(wm, n: str, a: str) -> None:
    """
    Forward flow and head coupling of a pump.

    When running, ``dhp`` vanishes and the lift ``dhn`` equals the gain. When
    off, both splits are free within their bounds.
    """
    comp = wm.ref(n, "pump", a)
    qp = wm.var(n, "pump", "qp")[a]
    qn = wm.var(n, "pump", "qn")[a]
    y = wm.var(n, "pump", "y")[a]
    z = wm.var(n, "pump", "z")[a]
    g = wm.var(n, "pump", "g")[a]
    dhp = wm.var(n, "pump", "dhp")[a]
    dhn = wm.var(n, "pump", "dhn")[a]
    qp_ub, qn_ub = _split_flow_bounds(wm, n, "pump", a)
    dhp_ub, dhn_ub = directed_head_bounds(wm, n, "pump", a)

    wm.add_constraint(n, "pump", "direction", a, qn <= qn_ub * (1 - y))
    wm.add_constraint(n, "pump", "on_off", a, qp <= qp_ub * z)
    wm.add_constraint(n, "pump", "on_off", a, qp >= comp["flow_min_forward"] * z)
    wm.add_constraint(n, "pump", "on_off", a, y >= z)
    wm.add_constraint(n, "pump", "on_off", a, g <= calc_pump_head_gain_max(comp) * z)
    wm.add_constraint(n, "pump", "head", a, dhp <= dhp_ub * (1 - z))
    wm.add_constraint(n, "pump", "head", a, dhn <= g + dhn_ub * (1 - z))
    wm.add_constraint(n, "pump", "head", a, dhn >= g)
    _head_split(wm, n, "pump", a)


# ============================================================================
# Directionality cuts
# ============================================================================

def _directions(wm, n: str, arcs) -> List[Any]:
    return [wm.var(n, comp_type, "y")[a] for comp_type, ids in arcs.items() for a in ids]


def constraint_node_directionality(wm, n: str, i: str) -> None:
    """
    Flow through a degree-2 junction without demand keeps one direction.

    Both arcs leaving (or both entering) the node must point opposite ways;
    one entering and one leaving must point the same way.
    """
    incidence = wm.incidence(n, i)
    if incidence.degree != 2:
        return

    y_out = _directions(wm, n, incidence.arcs_fr)
    y_in = _directions(wm, n, incidence.arcs_to)

    if len(y_in) == 1 and len(y_out) == 1:
        wm.add_constraint(n, "node", "directionality", i, y_in[0] == y_out[0])
    elif len(y_out) == 2:
        wm.add_constraint(n, "node", "directionality", i, y_out[0] + y_out[1] == 1)
    else:
        wm.add_constraint(n, "node", "directionality", i, y_in[0] + y_in[1] == 1)


def constraint_source_directionality(wm, n: str, i: str) -> None:
    """At least one arc at a reservoir node carries flow away from it."""
    incidence = wm.incidence(n, i)
    if incidence.degree == 0:
        return
    y_out = _directions(wm, n, incidence.arcs_fr)
    y_in = _directions(wm, n, incidence.arcs_to)
    wm.add_constraint(n, "node", "source_directionality", i, sum(y_out) - sum(y_in) >= 1 - len(y_in))


def constraint_sink_directionality(wm, n: str, i: str) -> None:
    """At least one arc at a demand node carries flow into it."""
    incidence = wm.incidence(n, i)
    if incidence.degree == 0:
        return
    y_out = _directions(wm, n, incidence.arcs_fr)
    y_in = _directions(wm, n, incidence.arcs_to)
    wm.add_constraint(n, "node", "sink_directionality", i, sum(y_in) - sum(y_out) >= 1 - len(y_out))
