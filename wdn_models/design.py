"""
Design-selection layer.

Every design pipe chooses exactly one candidate diameter. The choice is a
binary ``z[a, k]`` per candidate; each candidate carries its own flow
variables, which the formulation gates by the choice.
"""

from typing import Any, Dict, List, Optional

import pyomo.environ as pyo

from .logging_config import get_configured_logger
from .validation import NetworkDataError

logger = get_configured_logger(__name__)


def candidate_costs(pipe_id: str, pipe: Dict[str, Any]) -> List[float]:
    """
    Cost per unit length of every candidate of a design pipe.

    Read from ``diameters[k]["cost_per_unit_length"]``, else from a ``costs``
    list ordered like the candidates.

    Raises:
        NetworkDataError: If a candidate has no cost
    """
    num = len(pipe["resistances"])
    if pipe.get("diameters"):
        costs = [candidate.get("cost_per_unit_length") for candidate in pipe["diameters"]]
    else:
        costs = list(pipe.get("costs") or [])

    if len(costs) != num or any(c is None for c in costs):
        raise NetworkDataError(
            f"des_pipe {pipe_id} needs a cost_per_unit_length for each of its {num} candidate(s)"
        )
    return [float(c) for c in costs]


def variable_des_pipe_indicator(wm, n: str) -> None:
    """Binary selection ``z[a, k]`` of every design candidate."""
    index = [
        (a, k)
        for a in wm.ids(n, "des_pipe")
        for k in range(len(wm.ref(n, "des_pipe", a)["resistances"]))
    ]
    start = {}
    for a, k in index:
        chosen = wm.ref(n, "des_pipe", a).get("index_start")
        start[a, k] = 1.0 if chosen is not None and int(chosen) == k else 0.0
    wm.add_var(n, "des_pipe", "z", index, start=start, within=pyo.Binary)


def constraint_des_pipe_selection(wm, n: str, a: str) -> None:
    """Select exactly one candidate and gate the candidate flows by the choice."""
    z = wm.var(n, "des_pipe", "z")
    num = len(wm.ref(n, "des_pipe", a)["resistances"])
    wm.add_constraint(n, "des_pipe", "selection", a, sum(z[a, k] for k in range(num)) == 1)
    wm.strategy.constraint_des_pipe_selection(wm, n, a)


def constraint_des_pipe_link(wm, n_1: str, n_2: str, a: str) -> None:
    """Keep the design choice of period ``n_2`` equal to that of ``n_1``."""
    z_1 = wm.var(n_1, "des_pipe", "z")
    z_2 = wm.var(n_2, "des_pipe", "z")
    for k in range(len(wm.ref(n_2, "des_pipe", a)["resistances"])):
        wm.add_constraint(n_2, "des_pipe", "design_link", a, z_2[a, k] == z_1[a, k])


def constraint_des_pipes(wm, n: str) -> None:
    """Selection, common and head-loss constraints of every design pipe of period ``n``."""
    strategy = wm.strategy
    for a in wm.ids(n, "des_pipe"):
        constraint_des_pipe_selection(wm, n, a)
        strategy.constraint_des_pipe_common(wm, n, a)
        strategy.constraint_des_pipe_head_loss(wm, n, a)


def select_design_resistance(wm, n: str, a: str) -> Dict[str, Any]:
    """
    Recover the candidate chosen for design pipe ``a``.

    The candidate with the largest selection value wins. Without selection
    values (no indicator variables, or none loaded) the minimum-resistance
    candidate is reported.

    Returns:
        Dictionary with ``index``, ``resistance`` and, when known, ``diameter``.
    """
    comp = wm.ref(n, "des_pipe", a)
    resistances = [float(r) for r in comp["resistances"]]
    z = wm.find_var(n, "des_pipe", "z")

    weights: Optional[List[float]] = None
    if z is not None:
        values = [pyo.value(z[a, k], exception=False) for k in range(len(resistances))]
        if all(v is not None for v in values) and any(v > 0.0 for v in values):
            weights = values

    if weights is None:
        index = min(range(len(resistances)), key=lambda k: resistances[k])
        logger.debug(f"des_pipe {a} has no selection values; reporting minimum-resistance candidate {index}")
    else:
        index = max(range(len(weights)), key=lambda k: weights[k])

    choice = {"index": index, "resistance": resistances[index]}
    if comp.get("diameters"):
        choice["diameter"] = comp["diameters"][index].get("diameter")
    return choice
