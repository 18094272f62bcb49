"""
Formulation strategies.

A formulation pairs a flow representation (undirected scalar flows or
directed split flows) with a relaxation policy for head loss and pump head
gain. Each ``FormulationStrategy`` supplies the same fixed set of
operations, so model builders dispatch through the table instead of on
the formulation tag.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Union

from ..validation import NetworkDataError
from . import crd, directed, la, lrd, nc, ncd, pwlrd, undirected


class FlowRepresentation(Enum):
    UNDIRECTED = "undirected"
    DIRECTED = "directed"


class Formulation(Enum):
    """Supported formulations."""
    NC = "nc"          # undirected, exact nonconvex
    NCD = "ncd"        # directed, exact nonconvex
    CRD = "crd"        # directed, convex relaxation
    LRD = "lrd"        # directed, linear (tangent) relaxation
    PWLRD = "pwlrd"    # directed, piecewise-linear relaxation
    LA = "la"          # undirected, piecewise-linear approximation

    @classmethod
    def parse(cls, value: Union["Formulation", str]) -> "Formulation":
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).strip().lower() in (member.value, member.name.lower()):
                return member
        valid = [member.value for member in cls]
        raise NetworkDataError(f"Invalid formulation: {value!r}. Must be one of {valid}")


@dataclass(frozen=True)
class FormulationStrategy:
    """Operations a formulation provides to the model builders."""
    formulation: Formulation
    representation: FlowRepresentation

    # Flow representation
    variable_flow: Callable
    variable_flow_des: Callable
    flow: Callable
    pump_flow: Callable
    constraint_pipe_common: Callable
    constraint_des_pipe_common: Callable
    constraint_des_pipe_selection: Callable
    constraint_check_valve_common: Callable
    constraint_valve: Callable
    constraint_short_pipe: Callable
    constraint_regulator: Callable
    constraint_pump_common: Callable
    constraint_node_directionality: Callable
    constraint_source_directionality: Callable
    constraint_sink_directionality: Callable

    # Relaxation
    variable_auxiliary: Callable
    constraint_pipe_head_loss: Callable
    constraint_des_pipe_head_loss: Callable
    constraint_pump_head_gain: Callable
    constraint_pump_power: Callable

    @property
    def directed(self) -> bool:
        return self.representation == FlowRepresentation.DIRECTED


_REPRESENTATION_OPS = (
    "variable_flow",
    "variable_flow_des",
    "flow",
    "pump_flow",
    "constraint_pipe_common",
    "constraint_des_pipe_common",
    "constraint_des_pipe_selection",
    "constraint_check_valve_common",
    "constraint_valve",
    "constraint_short_pipe",
    "constraint_regulator",
    "constraint_pump_common",
    "constraint_node_directionality",
    "constraint_source_directionality",
    "constraint_sink_directionality",
)

_RELAXATION_OPS = (
    "variable_auxiliary",
    "constraint_pipe_head_loss",
    "constraint_des_pipe_head_loss",
    "constraint_pump_head_gain",
    "constraint_pump_power",
)


def _compose(formulation: Formulation, representation: FlowRepresentation, relaxation) -> FormulationStrategy:
    flow_module = directed if representation == FlowRepresentation.DIRECTED else undirected
    return FormulationStrategy(
        formulation=formulation,
        representation=representation,
        **{op: getattr(flow_module, op) for op in _REPRESENTATION_OPS},
        **{op: getattr(relaxation, op) for op in _RELAXATION_OPS},
    )


STRATEGIES: Dict[Formulation, FormulationStrategy] = {
    Formulation.NC: _compose(Formulation.NC, FlowRepresentation.UNDIRECTED, nc),
    Formulation.NCD: _compose(Formulation.NCD, FlowRepresentation.DIRECTED, ncd),
    Formulation.CRD: _compose(Formulation.CRD, FlowRepresentation.DIRECTED, crd),
    Formulation.LRD: _compose(Formulation.LRD, FlowRepresentation.DIRECTED, lrd),
    Formulation.PWLRD: _compose(Formulation.PWLRD, FlowRepresentation.DIRECTED, pwlrd),
    Formulation.LA: _compose(Formulation.LA, FlowRepresentation.UNDIRECTED, la),
}


def get_strategy(formulation: Union[Formulation, str]) -> FormulationStrategy:
    """Strategy record of a formulation."""
    return STRATEGIES[Formulation.parse(formulation)]


__all__ = [
    "Formulation",
    "FlowRepresentation",
    "FormulationStrategy",
    "STRATEGIES",
    "get_strategy",
]
