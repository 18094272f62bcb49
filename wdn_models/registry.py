"""
Per-model registry of variables, expressions and constraints.

Every component added while building a model is stored under a typed
``Handle`` of ``(period, component type, symbol)``. Lookups either raise
(``var``) or return ``None`` (``find_var``) so callers decide explicitly
what absence means.
"""

import math
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import pyomo.environ as pyo

from .logging_config import get_configured_logger
from .validation import NetworkDataError

logger = get_configured_logger(__name__)


class Handle(NamedTuple):
    """Key of a registered model component."""
    period: str
    component: str
    symbol: str


def _bound(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return float(value)


class ModelRegistry:
    """Stores Pyomo components of one ConcreteModel by handle."""

    def __init__(self, model: pyo.ConcreteModel):
        self.model = model
        self._blocks: Dict[str, pyo.Block] = {}
        self._vars: Dict[Handle, pyo.Var] = {}
        self._expressions: Dict[Handle, Dict[Any, Any]] = {}
        self._constraints: Dict[Handle, pyo.ConstraintList] = {}
        self._constraint_keys: Dict[Handle, Dict[Any, List[Any]]] = {}

    def block(self, period: str) -> pyo.Block:
        """Block holding the components of one period, created on first use."""
        if period not in self._blocks:
            block = pyo.Block()
            self.model.add_component(f"nw_{period}", block)
            self._blocks[period] = block
        return self._blocks[period]

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def add_var(
        self,
        handle: Handle,
        index: Iterable,
        bounds: Optional[Dict[Any, tuple]] = None,
        start: Optional[Dict[Any, float]] = None,
        within=pyo.Reals,
    ) -> pyo.Var:
        """
        Create an indexed variable and register it.

        Args:
            handle: Registry key
            index: Index values (component ids or tuples)
            bounds: Optional ``{index: (lb, ub)}``; infinite values mean unbounded
            start: Optional ``{index: value}`` initial values
            within: Pyomo domain

        Returns:
            The new Pyomo variable.
        """
        if handle in self._vars:
            raise KeyError(f"Variable {handle} is already registered")

        index = list(index)
        bounds = bounds or {}
        start = start or {}

        def _bounds_rule(block, *key):
            key = key[0] if len(key) == 1 else key
            lb, ub = bounds.get(key, (None, None))
            return _bound(lb), _bound(ub)

        def _start_rule(block, *key):
            key = key[0] if len(key) == 1 else key
            return start.get(key, 0.0)

        var = pyo.Var(index, within=within, bounds=_bounds_rule, initialize=_start_rule, dense=True)
        self.block(handle.period).add_component(f"{handle.symbol}_{handle.component}", var)
        self._vars[handle] = var
        return var

    def var(self, handle: Handle) -> pyo.Var:
        """Registered variable; raises KeyError if the formulation never created it."""
        if handle not in self._vars:
            raise KeyError(f"No variable registered for {handle}")
        return self._vars[handle]

    def find_var(self, handle: Handle) -> Optional[pyo.Var]:
        return self._vars.get(handle)

    def variables(self, period: Optional[str] = None) -> Dict[Handle, pyo.Var]:
        return {h: v for h, v in self._vars.items() if period is None or h.period == period}

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def add_expression(self, handle: Handle, expressions: Dict[Any, Any]) -> Dict[Any, Any]:
        self._expressions[handle] = dict(expressions)
        return self._expressions[handle]

    def expression(self, handle: Handle) -> Dict[Any, Any]:
        if handle not in self._expressions:
            raise KeyError(f"No expression registered for {handle}")
        return self._expressions[handle]

    def find_expression(self, handle: Handle) -> Optional[Dict[Any, Any]]:
        return self._expressions.get(handle)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def add_constraint(self, handle: Handle, key: Any, expr) -> Optional[Any]:
        """
        Add one constraint to the list registered under ``handle``.

        Expressions that reduce to a constant are checked immediately: a
        satisfied one is skipped, a violated one is a data error.

        Returns:
            The Pyomo constraint data, or None if the expression was trivially true.
        """
        if isinstance(expr, bool):
            if expr:
                logger.debug(f"Skipping trivially satisfied constraint {handle} at {key}")
                return None
            raise NetworkDataError(f"Constraint {handle.symbol} of {handle.component} {key} cannot be satisfied")

        if handle not in self._constraints:
            con_list = pyo.ConstraintList()
            self.block(handle.period).add_component(f"{handle.symbol}_{handle.component}", con_list)
            self._constraints[handle] = con_list
            self._constraint_keys[handle] = {}

        con = self._constraints[handle].add(expr)
        self._constraint_keys[handle].setdefault(key, []).append(con)
        return con

    def constraints(self, handle: Handle) -> Dict[Any, List[Any]]:
        """Constraint data added under ``handle``, grouped by component key."""
        return self._constraint_keys.get(handle, {})

    def constraint_handles(self, period: Optional[str] = None) -> List[Handle]:
        return [h for h in self._constraints if period is None or h.period == period]
