"""
Undirected flow representation.

One signed flow variable ``q`` per arc; its sign gives the direction.
Controllable components are switched by their indicator ``z`` with big-M
bands built from the derived bounds.
"""

from ..bounds import regulator_head_setting
from ..constants import ARC_TYPES
from ..logging_config import get_configured_logger
from ..pump import calc_pump_head_gain_max
from .common import arc_nodes, flow_start, head_difference

logger = get_configured_logger(__name__)


def variable_flow(wm, n: str) -> None:
    """Signed flow ``q`` for every arc type except design pipes."""
    for comp_type in ARC_TYPES:
        if comp_type == "des_pipe":
            continue
        ids = wm.ids(n, comp_type)
        bounds = {a: wm.flow_bounds(n, comp_type, a) for a in ids}
        start = {a: flow_start(wm.ref(n, comp_type, a), *bounds[a]) for a in ids}
        wm.add_var(n, comp_type, "q", ids, bounds=bounds, start=start)


def variable_flow_des(wm, n: str) -> None:
    """Per-candidate flows of design pipes and their aggregate."""
    ids = wm.ids(n, "des_pipe")
    bounds = {}
    for a in ids:
        comp = wm.ref(n, "des_pipe", a)
        for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
            bounds[a, k] = (min(0.0, lb), max(0.0, ub))

    q = wm.add_var(n, "des_pipe", "q", list(bounds.keys()), bounds=bounds)
    wm.add_expression(n, "des_pipe", "q_sum", {
        a: sum(q[a, k] for k in range(len(wm.ref(n, "des_pipe", a)["resistances"])))
        for a in ids
    })


def flow(wm, n: str, comp_type: str, a: str):
    if comp_type == "des_pipe":
        return wm.expression(n, "des_pipe", "q_sum")[a]
    return wm.var(n, comp_type, "q")[a]


def pump_flow(wm, n: str, a: str):
    return wm.var(n, "pump", "q")[a]


def constraint_pipe_common(wm, n: str, a: str) -> None:
    pass


def constraint_des_pipe_common(wm, n: str, a: str) -> None:
    pass


def constraint_des_pipe_selection(wm, n: str, a: str) -> None:
    """Only the selected candidate of a design pipe may carry flow."""
    comp = wm.ref(n, "des_pipe", a)
    q = wm.var(n, "des_pipe", "q")
    z = wm.var(n, "des_pipe", "z")

    for k, (lb, ub) in enumerate(zip(comp["candidate_flow_min"], comp["candidate_flow_max"])):
        context = f"des_pipe {a} candidate {k}"
        wm.add_constraint(n, "des_pipe", "flow_selection", a, q[a, k] >= wm.big_m(min(0.0, lb), context) * z[a, k])
        wm.add_constraint(n, "des_pipe", "flow_selection", a, q[a, k] <= wm.big_m(max(0.0, ub), context) * z[a, k])


def constraint_check_valve_common(wm, n: str, a: str) -> None:
    """Open: forward flow and nonnegative head drop. Closed: no flow, head drop not positive."""
    i, j = arc_nodes(wm, n, "check_valve", a)
    q = wm.var(n, "check_valve", "q")[a]
    z = wm.var(n, "check_valve", "z")[a]
    dh = head_difference(wm, n, "check_valve", a)
    dh_lb, dh_ub = wm.head_difference_bounds(n, i, j)
    q_ub = wm.big_m(wm.flow_bounds(n, "check_valve", a)[1], f"check_valve {a}")

    wm.add_constraint(n, "check_valve", "on_off", a, q >= 0.0)
    wm.add_constraint(n, "check_valve", "on_off", a, q <= q_ub * z)
    wm.add_constraint(n, "check_valve", "on_off", a, dh >= dh_lb * (1 - z))
    wm.add_constraint(n, "check_valve", "on_off", a, dh <= dh_ub * z)


def constraint_valve(wm, n: str, a: str) -> None:
    """A shutoff valve: equal heads when open, zero flow when closed."""
    i, j = arc_nodes(wm, n, "valve", a)
    q = wm.var(n, "valve", "q")[a]
    z = wm.var(n, "valve", "z")[a]
    dh = head_difference(wm, n, "valve", a)
    dh_lb, dh_ub = wm.head_difference_bounds(n, i, j)
    q_lb, q_ub = wm.flow_bounds(n, "valve", a)
    context = f"valve {a}"

    wm.add_constraint(n, "valve", "on_off", a, q >= wm.big_m(q_lb, context) * z)
    wm.add_constraint(n, "valve", "on_off", a, q <= wm.big_m(q_ub, context) * z)
    wm.add_constraint(n, "valve", "head", a, dh >= dh_lb * (1 - z))
    wm.add_constraint(n, "valve", "head", a, dh <= dh_ub * (1 - z))


def constraint_short_pipe(wm, n: str, a: str) -> None:
    wm.add_constraint(n, "short_pipe", "head", a, head_difference(wm, n, "short_pipe", a) == 0.0)


def constraint_regulator(wm, n: str, a: str) -> None:
    """Fix the downstream head to the setting when the regulator is open."""
    regulator_head(wm, n, a)
    q = wm.var(n, "regulator", "q")[a]
    z = wm.var(n, "regulator", "z")[a]
    comp = wm.ref(n, "regulator", a)
    q_ub = wm.big_m(wm.flow_bounds(n, "regulator", a)[1], f"regulator {a}")

    wm.add_constraint(n, "regulator", "on_off", a, q >= comp["flow_min_forward"] * z)
    wm.add_constraint(n, "regulator", "on_off", a, q <= q_ub * z)


def regulator_head(wm, n: str, a: str) -> None:
    """Head bands of a regulator, shared by both flow representations."""
    i, j = arc_nodes(wm, n, "regulator", a)
    h = wm.var(n, "node", "h")
    z = wm.var(n, "regulator", "z")[a]
    setting = regulator_head_setting(wm.refs[n].data, wm.ref(n, "regulator", a))
    h_min_j, h_max_j = wm.head_bounds(n, j)
    dh_lb, dh_ub = wm.head_difference_bounds(n, i, j)
    dh = h[i] - h[j]

    wm.add_constraint(n, "regulator", "head", a, h[j] >= (1 - z) * h_min_j + z * setting)
    wm.add_constraint(n, "regulator", "head", a, h[j] <= (1 - z) * h_max_j + z * setting)
    wm.add_constraint(n, "regulator", "head", a, dh >= dh_lb * (1 - z))
    wm.add_constraint(n, "regulator", "head", a, dh <= dh_ub * z)


def constraint_pump_common(wm, n: str, a: str) -> None:
    """Flow range and head coupling of a pump, switched by its indicator."""
    i, j = arc_nodes(wm, n, "pump", a)
    comp = wm.ref(n, "pump", a)
    h = wm.var(n, "node", "h")
    q = wm.var(n, "pump", "q")[a]
    g = wm.var(n, "pump", "g")[a]
    z = wm.var(n, "pump", "z")[a]
    q_ub = wm.big_m(wm.flow_bounds(n, "pump", a)[1], f"pump {a}")
    lift_lb, lift_ub = wm.head_difference_bounds(n, j, i)

    wm.add_constraint(n, "pump", "on_off", a, q >= comp["flow_min_forward"] * z)
    wm.add_constraint(n, "pump", "on_off", a, q <= q_ub * z)
    wm.add_constraint(n, "pump", "on_off", a, g <= calc_pump_head_gain_max(comp) * z)
    wm.add_constraint(n, "pump", "head", a, h[j] - h[i] <= g + lift_ub * (1 - z))
    wm.add_constraint(n, "pump", "head", a, h[j] - h[i] >= g + lift_lb * (1 - z))


def constraint_node_directionality(wm, n: str, i: str) -> None:
    pass


def constraint_source_directionality(wm, n: str, i: str) -> None:
    pass


def constraint_sink_directionality(wm, n: str, i: str) -> None:
    pass
