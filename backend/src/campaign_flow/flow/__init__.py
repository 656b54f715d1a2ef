"""Campaign sequence flow: graph store, node registry, switch conditions, compiler."""

from .graph import FlowGraph, Node, Edge
from .node_types import NODE_TYPES, default_payload, default_snapshot
from .delay import set_delay, format_delay_label
from .conditions import migrate_conditions, migrate_switch_nodes, select_output
from .connection import complete_connection
from .compiler import CampaignStep, StepEdge, compile_graph, compile_steps, steps_to_wire
from .errors import FlowError

__all__ = [
    "FlowGraph",
    "Node",
    "Edge",
    "NODE_TYPES",
    "default_payload",
    "default_snapshot",
    "set_delay",
    "format_delay_label",
    "migrate_conditions",
    "migrate_switch_nodes",
    "select_output",
    "complete_connection",
    "CampaignStep",
    "StepEdge",
    "compile_graph",
    "compile_steps",
    "steps_to_wire",
    "FlowError",
]
