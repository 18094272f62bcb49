"""
Shared network fixtures.

All networks use SI units and the Hazen-Williams head-loss law unless
stated otherwise.
"""

import copy

import pyomo.environ as pyo
import pytest


@pytest.fixture
def simple_network():
    """Reservoir feeding two demand nodes in series."""
    return {
        "name": "simple",
        "head_loss": "h-w",
        "node": {
            "1": {"elevation": 100.0},
            "2": {"elevation": 50.0},
            "3": {"elevation": 40.0},
        },
        "reservoir": {
            "1": {"node": "1", "head": 120.0},
        },
        "demand": {
            "1": {"node": "2", "flow_nominal": 0.02},
            "2": {"node": "3", "flow_nominal": 0.01},
        },
        "pipe": {
            "1": {"node_fr": "1", "node_to": "2", "length": 1000.0, "diameter": 0.3, "roughness": 130.0},
            "2": {"node_fr": "2", "node_to": "3", "length": 500.0, "diameter": 0.2, "roughness": 130.0},
        },
    }


@pytest.fixture
def pump_network():
    """Reservoir lifting water to a higher demand node through one pump."""
    return {
        "name": "pumped",
        "head_loss": "h-w",
        "time_step": 3600.0,
        "node": {
            "1": {"elevation": 0.0},
            "2": {"elevation": 20.0},
        },
        "reservoir": {
            "1": {"node": "1", "head": 10.0},
        },
        "demand": {
            "1": {"node": "2", "flow_nominal": 0.02},
        },
        "pump": {
            "1": {
                "node_fr": "1",
                "node_to": "2",
                "head_curve": [[0.0, 50.0], [0.05, 40.0], [0.1, 20.0]],
                "energy_price": 0.1,
            },
        },
    }


@pytest.fixture
def design_network(simple_network):
    """Simple network whose second pipe is sized from three candidates."""
    network = copy.deepcopy(simple_network)
    network["name"] = "design"
    network["pipe"].pop("2")
    network["des_pipe"] = {
        "3": {
            "node_fr": "2",
            "node_to": "3",
            "length": 500.0,
            "roughness": 130.0,
            "diameters": [
                {"diameter": 0.1, "cost_per_unit_length": 10.0},
                {"diameter": 0.2, "cost_per_unit_length": 20.0},
                {"diameter": 0.3, "cost_per_unit_length": 40.0},
            ],
        },
    }
    return network


@pytest.fixture
def tank_network():
    """Reservoir connected to a tank through one pipe."""
    return {
        "name": "tank",
        "head_loss": "h-w",
        "time_step": 3600.0,
        "node": {
            "1": {"elevation": 40.0},
            "2": {"elevation": 50.0},
        },
        "reservoir": {
            "1": {"node": "1", "head": 55.0},
        },
        "tank": {
            "1": {
                "node": "2",
                "min_level": 1.0,
                "max_level": 10.0,
                "init_level": 5.0,
                "diameter": 10.0,
            },
        },
        "pipe": {
            "1": {"node_fr": "1", "node_to": "2", "length": 1000.0, "diameter": 0.3, "roughness": 130.0},
        },
    }


@pytest.fixture
def controls_network():
    """
    Reservoir feeding a demand through a regulator, a short pipe and a check valve.

    A shutoff valve links the main line to a second, lower reservoir.
    """
    return {
        "name": "controls",
        "head_loss": "h-w",
        "node": {
            "1": {"elevation": 100.0},
            "2": {"elevation": 50.0},
            "3": {"elevation": 40.0},
            "4": {"elevation": 40.0},
            "5": {"elevation": 30.0},
            "6": {"elevation": 30.0},
        },
        "reservoir": {
            "1": {"node": "1", "head": 120.0},
            "2": {"node": "6", "head": 45.0},
        },
        "demand": {
            "1": {"node": "5", "flow_nominal": 0.01},
        },
        "pipe": {
            "1": {"node_fr": "1", "node_to": "2", "length": 1000.0, "diameter": 0.3, "roughness": 130.0},
        },
        "regulator": {
            "1": {"node_fr": "2", "node_to": "3", "setting": 20.0},
        },
        "short_pipe": {
            "1": {"node_fr": "3", "node_to": "4"},
        },
        "check_valve": {
            "1": {"node_fr": "4", "node_to": "5", "length": 100.0, "diameter": 0.2, "roughness": 130.0},
        },
        "valve": {
            "1": {"node_fr": "2", "node_to": "6"},
        },
    }


def _first_available(*names):
    for name in names:
        if pyo.SolverFactory(name).available(exception_flag=False):
            return name
    return None


@pytest.fixture
def milp_solver():
    """Name of an installed MILP solver; skips the test if there is none."""
    name = _first_available("cbc", "glpk")
    if name is None:
        pytest.skip("no MILP solver available")
    return name


@pytest.fixture
def nlp_solver():
    name = _first_available("ipopt")
    if name is None:
        pytest.skip("ipopt not available")
    return name
