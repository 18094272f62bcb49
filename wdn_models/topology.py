"""
Network topology.

Partitions the arcs incident to each node into "from" and "to" sets by
component type, once per topology, and bundles them with the derived bounds
of one period into a read-only ``NetworkRef``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from .constants import ARC_TYPES, NODE_ATTACHED_TYPES
from .enums import Status
from .head_loss import get_alpha
from .logging_config import get_configured_logger

logger = get_configured_logger(__name__)

Bounds = Tuple[float, float]


@dataclass(frozen=True)
class NodeIncidence:
    """Components incident to one node."""
    node: str
    arcs_fr: Dict[str, Tuple[str, ...]]
    arcs_to: Dict[str, Tuple[str, ...]]
    reservoirs: Tuple[str, ...] = ()
    tanks: Tuple[str, ...] = ()
    demands: Tuple[str, ...] = ()
    dispatchable_demands: Tuple[str, ...] = ()

    @property
    def out_degree(self) -> int:
        return sum(len(ids) for ids in self.arcs_fr.values())

    @property
    def in_degree(self) -> int:
        return sum(len(ids) for ids in self.arcs_to.values())

    @property
    def degree(self) -> int:
        return self.out_degree + self.in_degree

    @property
    def is_source(self) -> bool:
        return bool(self.reservoirs or self.tanks)


def active_ids(network: Dict[str, Any], comp_type: str) -> Tuple[str, ...]:
    return tuple(
        str(i) for i, comp in network.get(comp_type, {}).items()
        if comp.get("status", Status.ACTIVE) != Status.INACTIVE
    )


def topology_signature(network: Dict[str, Any]) -> Tuple:
    """Hashable description of the active topology of one period."""
    arcs = tuple(
        (comp_type, a, str(network[comp_type][a]["node_fr"]), str(network[comp_type][a]["node_to"]))
        for comp_type in ARC_TYPES
        for a in active_ids(network, comp_type)
    )
    attached = tuple(
        (comp_type, i, str(network[comp_type][i]["node"]), bool(network[comp_type][i].get("dispatchable", False)))
        for comp_type in NODE_ATTACHED_TYPES
        for i in active_ids(network, comp_type)
    )
    return tuple(sorted(network["node"].keys())), arcs, attached


def build_incidence(network: Dict[str, Any]) -> Dict[str, NodeIncidence]:
    """
    Partition incident components of every node.

    Args:
        network: Corrected single-period network data

    Returns:
        ``{node_id: NodeIncidence}``
    """
    arcs_fr = {i: {t: [] for t in ARC_TYPES} for i in network["node"]}
    arcs_to = {i: {t: [] for t in ARC_TYPES} for i in network["node"]}
    attached = {i: {t: [] for t in NODE_ATTACHED_TYPES + ("dispatchable",)} for i in network["node"]}

    for comp_type in ARC_TYPES:
        for a in active_ids(network, comp_type):
            arc = network[comp_type][a]
            arcs_fr[str(arc["node_fr"])][comp_type].append(a)
            arcs_to[str(arc["node_to"])][comp_type].append(a)

    for comp_type in NODE_ATTACHED_TYPES:
        for k in active_ids(network, comp_type):
            comp = network[comp_type][k]
            i = str(comp["node"])
            if comp_type == "demand" and comp.get("dispatchable", False):
                attached[i]["dispatchable"].append(k)
            else:
                attached[i][comp_type].append(k)

    return {
        i: NodeIncidence(
            node=i,
            arcs_fr={t: tuple(ids) for t, ids in arcs_fr[i].items()},
            arcs_to={t: tuple(ids) for t, ids in arcs_to[i].items()},
            reservoirs=tuple(attached[i]["reservoir"]),
            tanks=tuple(attached[i]["tank"]),
            demands=tuple(attached[i]["demand"]),
            dispatchable_demands=tuple(attached[i]["dispatchable"]),
        )
        for i in network["node"]
    }


@dataclass
class NetworkRef:
    """Read-only view of one corrected period used while building a model."""
    data: Dict[str, Any]
    ids: Dict[str, Tuple[str, ...]]
    incidence: Dict[str, NodeIncidence]
    alpha: float
    time_step: Any = None
    head_bounds: Dict[str, Bounds] = field(default_factory=dict)
    fixed_demand: Dict[str, float] = field(default_factory=dict)

    def comp(self, comp_type: str, i: str) -> Dict[str, Any]:
        return self.data[comp_type][i]

    def head_min(self, i: str) -> float:
        return self.head_bounds[i][0]

    def head_max(self, i: str) -> float:
        return self.head_bounds[i][1]

    def is_sink(self, i: str) -> bool:
        """A node without supply that must receive a positive fixed demand."""
        return self.fixed_demand.get(i, 0.0) > 0.0 and not self.incidence[i].is_source


def build_network_ref(network: Dict[str, Any], incidence: Dict[str, NodeIncidence] = None) -> NetworkRef:
    """
    Bundle a corrected period with its incidence and head bounds.

    Args:
        network: Corrected single-period network data
        incidence: Incidence shared with other periods of the same topology
    """
    ids = {comp_type: active_ids(network, comp_type) for comp_type in ARC_TYPES + NODE_ATTACHED_TYPES}
    ids["node"] = tuple(network["node"].keys())

    fixed_demand = {i: 0.0 for i in ids["node"]}
    for k in ids["demand"]:
        demand = network["demand"][k]
        if not demand.get("dispatchable", False):
            fixed_demand[str(demand["node"])] += float(demand.get("flow_nominal", 0.0))

    return NetworkRef(
        data=network,
        ids=ids,
        incidence=incidence if incidence is not None else build_incidence(network),
        alpha=get_alpha(network),
        time_step=network.get("time_step"),
        head_bounds={
            i: (node["h_min"], node["h_max"]) for i, node in network["node"].items()
        },
        fixed_demand=fixed_demand,
    )
