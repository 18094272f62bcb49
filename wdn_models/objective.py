"""
Objectives of the problem classes.

- wf: feasibility, a constant objective
- owf: pump energy cost over all periods
- des: construction cost of the selected design candidates
"""

import pyomo.environ as pyo

from .design import candidate_costs
from .logging_config import get_configured_logger
from .validation import NetworkDataError

logger = get_configured_logger(__name__)


def objective_wf(wm) -> pyo.Objective:
    """Constant objective; any feasible point is optimal."""
    wm.model.objective = pyo.Objective(expr=0.0, sense=pyo.minimize)
    return wm.model.objective


def objective_owf(wm) -> pyo.Objective:
    """
    Minimize ``sum(energy_price * E)`` over pumps and periods.

    Raises:
        NetworkDataError: If an active pump has no ``energy_price``
    """
    cost = 0.0
    for n in wm.nw_ids:
        E = wm.var(n, "pump", "E")
        for a in wm.ids(n, "pump"):
            price = wm.ref(n, "pump", a).get("energy_price")
            if price is None:
                raise NetworkDataError(
                    f"pump {a} in period {n} needs an energy_price for the pump energy cost objective"
                )
            cost = cost + float(price) * E[a]

    wm.model.objective = pyo.Objective(expr=cost, sense=pyo.minimize)
    return wm.model.objective


def objective_des(wm) -> pyo.Objective:
    """
    Minimize ``sum(cost_per_unit_length * length * z)`` over design candidates.

    Design choices are linked across periods, so only the first period is
    priced.
    """
    n = wm.nw_ids[0]
    z = wm.var(n, "des_pipe", "z")
    cost = 0.0
    for a in wm.ids(n, "des_pipe"):
        pipe = wm.ref(n, "des_pipe", a)
        length = float(pipe["length"])
        for k, c in enumerate(candidate_costs(a, pipe)):
            cost = cost + c * length * z[a, k]

    if isinstance(cost, float):
        logger.warning(f"{wm.model.name} has no design pipes; the design objective is constant")
    wm.model.objective = pyo.Objective(expr=cost, sense=pyo.minimize)
    return wm.model.objective
