"""
Physical and numerical constants for water network models.

Values are read from the configuration system so they can be tuned with
YAML files or WDN_MODELS_* environment variables.
"""

from .config import get_config

# Physical properties of water
GRAVITY = float(get_config('physics.gravity', 9.80665))
DENSITY = float(get_config('physics.density', 1000.0))
DEFAULT_VISCOSITY = float(get_config('physics.viscosity', 1.0e-6))

# Head-loss laws
HW_COEFFICIENT = float(get_config('hazen_williams.coefficient', 10.67))
HW_EXPONENT = float(get_config('hazen_williams.exponent', 1.852))
DW_EXPONENT = float(get_config('darcy_weisbach.exponent', 2.0))
DW_NOMINAL_VELOCITY = float(get_config('darcy_weisbach.nominal_velocity', 1.0))

# Numerical tolerances
FLOW_MIN = float(get_config('numerics.flow_min', 1.0e-6))
FLOW_EPS = float(get_config('numerics.flow_eps', 1.0e-6))
ENERGY_POINTS = int(get_config('numerics.energy_points', 100))
DEFAULT_VALUE = get_config('numerics.default_value', float('nan'))
VIOLATION_TOLERANCE = float(get_config('numerics.violation_tolerance', 1.0e-6))

# Pump curve defaults
DEFAULT_PUMP_EFFICIENCY = float(get_config('pump.default_efficiency', 0.85))
SHUTOFF_HEAD_FACTOR = float(get_config('pump.shutoff_head_factor', 1.33))
MAX_FLOW_FACTOR = float(get_config('pump.max_flow_factor', 2.0))

JOULES_PER_KWH = float(get_config('energy.joules_per_kwh', 3.6e6))

# Component types that connect two nodes
ARC_TYPES = (
    "pipe",
    "des_pipe",
    "pump",
    "regulator",
    "short_pipe",
    "valve",
    "check_valve",
)

# Component types attached to a single node
NODE_ATTACHED_TYPES = ("demand", "reservoir", "tank")

# Arcs whose open/closed state is a decision
CONTROLLABLE_TYPES = ("pump", "regulator", "valve", "check_valve")

# Arcs that carry a pipe-like head-loss law
RESISTIVE_TYPES = ("pipe", "check_valve")
