"""
Tank state model.

Tank volumes are integrated forward in time with one explicit Euler step
per period: ``V[n+1] = V[n] - dt[n] * q_tank[n]``, where ``q_tank`` is
the flow leaving the tank into the network.
"""

import math
from typing import Any, Dict, List, Sequence, Tuple

from .logging_config import get_configured_logger
from .validation import validate_time_step

logger = get_configured_logger(__name__)


def calc_tank_area(diameter: float) -> float:
    """Cross-sectional area of a cylindrical tank."""
    return 0.25 * math.pi * diameter ** 2


def calc_tank_volume_bounds(tank: Dict[str, Any]) -> Tuple[float, float]:
    """(V_min, V_max) from the tank levels, honoring an explicit ``min_vol``."""
    area = tank.get("area", calc_tank_area(tank["diameter"]))
    v_min = max(area * tank["min_level"], tank.get("min_vol", 0.0))
    return v_min, area * tank["max_level"]


def calc_tank_initial_volume(tank: Dict[str, Any]) -> float:
    area = tank.get("area", calc_tank_area(tank["diameter"]))
    return area * tank["init_level"]


def integrate_tank_volume(
    initial_volume: float,
    outflows: Sequence[float],
    time_steps: Sequence[float],
) -> List[float]:
    """
    Integrate a tank volume over a sequence of periods.

    Args:
        initial_volume: Volume at the start of the first period
        outflows: Tank outflow in each period
        time_steps: Length of each period

    Returns:
        Volumes at the start of each period followed by the final volume.

    Raises:
        NetworkDataError: If a time step is not positive
    """
    if len(outflows) != len(time_steps):
        raise ValueError("outflows and time_steps must have the same length")

    volumes = [float(initial_volume)]
    for k, (q, dt) in enumerate(zip(outflows, time_steps)):
        validate_time_step(dt, f"period {k + 1}")
        volumes.append(volumes[-1] - dt * q)
    return volumes


# ============================================================================
# Model constraints
# ============================================================================

def constraint_tank_volume(wm, n: str, i: str) -> None:
    """Link the head at the tank node to the stored volume."""
    tank = wm.ref(n, "tank", i)
    node = str(tank["node"])
    h = wm.var(n, "node", "h")[node]
    V = wm.var(n, "tank", "V")[i]
    elevation = wm.ref(n, "node", node)["elevation"]
    wm.add_constraint(n, "tank", "volume", i, h == elevation + V / tank["area"])


def constraint_tank_initial_state(wm, n: str, i: str) -> None:
    """Fix the first-period volume to the initial level."""
    V = wm.var(n, "tank", "V")[i]
    V_0 = calc_tank_initial_volume(wm.ref(n, "tank", i))
    wm.add_constraint(n, "tank", "state_initial", i, V == V_0)


def constraint_tank_state(wm, n_1: str, n_2: str, i: str) -> None:
    """
    Integrate the volume of tank ``i`` from period ``n_1`` into ``n_2``.

    Raises:
        NetworkDataError: If the time step of ``n_1`` is not positive
    """
    time_step = wm.ref(n_1, "time_step")
    validate_time_step(time_step, f"period {n_1}")

    V_1 = wm.var(n_1, "tank", "V")[i]
    V_2 = wm.var(n_2, "tank", "V")[i]
    qt = wm.var(n_1, "tank", "qt")[i]
    wm.add_constraint(n_2, "tank", "state", i, V_1 - time_step * qt == V_2)


def constraint_recover_volume(wm, i: str, n_1: str, n_f: str) -> None:
    """Require the final volume of a non-dispatchable tank to recover the first."""
    if wm.ref(n_f, "tank", i).get("dispatchable", False):
        return
    V_1 = wm.var(n_1, "tank", "V")[i]
    V_f = wm.var(n_f, "tank", "V")[i]
    wm.add_constraint(n_f, "tank", "recover_volume", i, V_f >= V_1)
