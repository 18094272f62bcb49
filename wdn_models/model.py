"""
Water network model container.

A ``WaterModel`` owns the corrected network data, the per-period
``NetworkRef`` views, the Pyomo ``ConcreteModel`` and the registry of its
components, and the formulation strategy used to populate it.
"""

from typing import Any, Dict, List, Optional, Tuple, Union

import pyomo.environ as pyo

from .bounds import correct_network_data
from .data import ismultinetwork, iter_networks
from .formulations import Formulation, FormulationStrategy, get_strategy
from .logging_config import get_configured_logger
from .registry import Handle, ModelRegistry
from .schemas import BuildOptions
from .topology import NetworkRef, build_incidence, build_network_ref, topology_signature
from .validation import require_finite

logger = get_configured_logger(__name__)


class WaterModel:
    """
    A water network optimization model under one formulation.

    Args:
        network: Single- or multi-period network data (left unmodified)
        formulation: Formulation member or its tag, e.g. ``"crd"``
        options: Build options; defaults come from the configuration
    """

    def __init__(
        self,
        network: Dict[str, Any],
        formulation: Union[Formulation, str],
        options: Optional[BuildOptions] = None,
    ):
        self.formulation = Formulation.parse(formulation)
        self.strategy: FormulationStrategy = get_strategy(self.formulation)
        self.options = options if options is not None else BuildOptions()
        self.data = correct_network_data(network)
        self.model = pyo.ConcreteModel(name=str(self.data.get("name", "water_model")))
        self.registry = ModelRegistry(self.model)
        self.refs: Dict[str, NetworkRef] = {}

        incidence_cache = {}
        for n, nw in iter_networks(self.data):
            signature = topology_signature(nw)
            if signature not in incidence_cache:
                incidence_cache[signature] = build_incidence(nw)
            self.refs[n] = build_network_ref(nw, incidence_cache[signature])

        logger.debug(
            f"Prepared {len(self.refs)} period(s) with {len(incidence_cache)} distinct topology(ies) "
            f"for formulation {self.formulation.name}"
        )

    def __repr__(self):
        return f"WaterModel(name={self.model.name!r}, formulation={self.formulation.name}, periods={len(self.refs)})"

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------

    @property
    def nw_ids(self) -> List[str]:
        return list(self.refs.keys())

    @property
    def ismultinetwork(self) -> bool:
        return ismultinetwork(self.data)

    def ids(self, n: str, comp_type: str) -> Tuple[str, ...]:
        return self.refs[n].ids.get(comp_type, ())

    def ref(self, n: str, key: str, i: Optional[str] = None) -> Any:
        """
        Corrected data of period ``n``.

        ``ref(n, "pipe", "1")`` returns a component, ``ref(n, "time_step")``
        a period attribute.
        """
        ref = self.refs[n]
        if key == "time_step":
            return ref.time_step
        if i is None:
            return ref.data.get(key)
        return ref.data[key][i]

    def incidence(self, n: str, i: str):
        return self.refs[n].incidence[i]

    def alpha(self, n: str) -> float:
        return self.refs[n].alpha

    def head_bounds(self, n: str, i: str) -> Tuple[float, float]:
        return self.refs[n].head_bounds[i]

    def flow_bounds(self, n: str, comp_type: str, a: str) -> Tuple[float, float]:
        comp = self.ref(n, comp_type, a)
        return comp["flow_min"], comp["flow_max"]

    def head_difference_bounds(self, n: str, i: str, j: str) -> Tuple[float, float]:
        """Bounds on ``h_i - h_j``."""
        h_i, h_j = self.head_bounds(n, i), self.head_bounds(n, j)
        return h_i[0] - h_j[1], h_i[1] - h_j[0]

    def big_m(self, value: float, context: str) -> float:
        """A bound used as a big-M coefficient; must be finite."""
        return require_finite(value, context)

    # ------------------------------------------------------------------
    # Registry shortcuts
    # ------------------------------------------------------------------

    def add_var(self, n: str, comp_type: str, symbol: str, index, keep_bounds: bool = False, **kwargs) -> pyo.Var:
        """Register a variable; derived bounds are dropped unless the model is bounded."""
        if not (self.options.bounded or keep_bounds):
            kwargs.pop("bounds", None)
        return self.registry.add_var(Handle(n, comp_type, symbol), index, **kwargs)

    def var(self, n: str, comp_type: str, symbol: str) -> pyo.Var:
        return self.registry.var(Handle(n, comp_type, symbol))

    def find_var(self, n: str, comp_type: str, symbol: str) -> Optional[pyo.Var]:
        return self.registry.find_var(Handle(n, comp_type, symbol))

    def add_expression(self, n: str, comp_type: str, symbol: str, expressions: Dict[Any, Any]):
        return self.registry.add_expression(Handle(n, comp_type, symbol), expressions)

    def expression(self, n: str, comp_type: str, symbol: str) -> Dict[Any, Any]:
        return self.registry.expression(Handle(n, comp_type, symbol))

    def find_expression(self, n: str, comp_type: str, symbol: str) -> Optional[Dict[Any, Any]]:
        return self.registry.find_expression(Handle(n, comp_type, symbol))

    def add_constraint(self, n: str, comp_type: str, family: str, key: Any, expr):
        return self.registry.add_constraint(Handle(n, comp_type, family), key, expr)

    def constraints(self, n: str, comp_type: str, family: str) -> Dict[Any, List[Any]]:
        return self.registry.constraints(Handle(n, comp_type, family))
