"""
Network-level constraint assembly.

Flow conservation, reservoir heads and directionality pruning at nodes, and
the per-arc dispatch into the formulation strategy.
"""

from .bounds import reservoir_head
from .constants import ARC_TYPES
from .logging_config import get_configured_logger
from .tank import constraint_tank_volume

logger = get_configured_logger(__name__)


def constraint_flow_conservation(wm, n: str, i: str) -> None:
    """
    Flow balance at node ``i``.

    Arc inflow minus arc outflow equals the net withdrawal: demands minus
    the supply of reservoirs and tanks attached to the node.
    """
    incidence = wm.incidence(n, i)
    flow = wm.strategy.flow

    inflow = sum(flow(wm, n, t, a) for t, ids in incidence.arcs_to.items() for a in ids)
    outflow = sum(flow(wm, n, t, a) for t, ids in incidence.arcs_fr.items() for a in ids)

    supply = 0.0
    if incidence.reservoirs:
        qr = wm.var(n, "reservoir", "qr")
        supply = supply + sum(qr[k] for k in incidence.reservoirs)
    if incidence.tanks:
        qt = wm.var(n, "tank", "qt")
        supply = supply + sum(qt[k] for k in incidence.tanks)

    withdrawal = wm.refs[n].fixed_demand.get(i, 0.0)
    if incidence.dispatchable_demands:
        qd = wm.var(n, "demand", "q")
        withdrawal = withdrawal + sum(qd[k] for k in incidence.dispatchable_demands)

    wm.add_constraint(n, "node", "flow_conservation", i, inflow - outflow == withdrawal - supply)


def constraint_reservoir(wm, n: str, k: str) -> None:
    """Fix the head at a reservoir node and keep its supply above ``flow_min``."""
    reservoir = wm.ref(n, "reservoir", k)
    node = str(reservoir["node"])
    h = wm.var(n, "node", "h")[node]
    qr = wm.var(n, "reservoir", "qr")[k]

    wm.add_constraint(n, "reservoir", "head", k, h == reservoir_head(wm.refs[n].data, reservoir))
    wm.add_constraint(n, "reservoir", "flow", k, qr >= reservoir.get("flow_min", 0.0))


def constraint_directionality(wm, n: str, i: str) -> None:
    """
    Prune direction binaries at node ``i`` by its role.

    Reservoir nodes get the source rule, nodes with a positive fixed demand
    and no supply or dispatchable demand get the sink rule, and junctions
    with no attached component get the degree-2 rule. These cuts are
    necessary conditions only and do not guarantee connectivity. Tank nodes
    are left unconstrained since a tank may fill or drain.
    """
    incidence = wm.incidence(n, i)
    strategy = wm.strategy

    if incidence.reservoirs:
        strategy.constraint_source_directionality(wm, n, i)
    elif wm.refs[n].is_sink(i) and not incidence.dispatchable_demands:
        strategy.constraint_sink_directionality(wm, n, i)
    elif not (incidence.tanks or incidence.demands or incidence.dispatchable_demands):
        strategy.constraint_node_directionality(wm, n, i)


def constraint_arcs(wm, n: str) -> None:
    """Common and physics constraints of every fixed arc of period ``n``."""
    strategy = wm.strategy

    for a in wm.ids(n, "pipe"):
        strategy.constraint_pipe_common(wm, n, a)
        strategy.constraint_pipe_head_loss(wm, n, "pipe", a)

    for a in wm.ids(n, "check_valve"):
        strategy.constraint_check_valve_common(wm, n, a)
        strategy.constraint_pipe_head_loss(wm, n, "check_valve", a)

    for a in wm.ids(n, "valve"):
        strategy.constraint_valve(wm, n, a)

    for a in wm.ids(n, "short_pipe"):
        strategy.constraint_short_pipe(wm, n, a)

    for a in wm.ids(n, "regulator"):
        strategy.constraint_regulator(wm, n, a)

    for a in wm.ids(n, "pump"):
        strategy.constraint_pump_common(wm, n, a)
        strategy.constraint_pump_head_gain(wm, n, a)


def constraint_nodes(wm, n: str) -> None:
    """Conservation, reservoir, tank-volume and directionality constraints of period ``n``."""
    for i in wm.ids(n, "node"):
        constraint_flow_conservation(wm, n, i)
        if wm.strategy.directed:
            constraint_directionality(wm, n, i)

    for k in wm.ids(n, "reservoir"):
        constraint_reservoir(wm, n, k)

    for i in wm.ids(n, "tank"):
        constraint_tank_volume(wm, n, i)


def count_arcs(wm, n: str) -> int:
    return sum(len(wm.ids(n, comp_type)) for comp_type in ARC_TYPES)
