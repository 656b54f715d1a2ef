"""Connection completion: drop a dangling connection on empty canvas to create a wired node."""

from __future__ import annotations

from typing import Any

from .delay import delay_payload
from .errors import InvalidValueError
from .graph import DELAY_EDGE, Edge, FlowGraph, Node
from .ids import new_id
from .node_types import ACTION, FILTER, SWITCH, TRIGGER, default_payload, require_node_type

# (node type, menu label) offered by the floating "Add Node" menu
CONNECTION_MENU: tuple[tuple[str, str], ...] = (
    (ACTION, "Email Action"),
    (SWITCH, "Switch / Split"),
    (TRIGGER, "Trigger"),
    (FILTER, "Data Filter"),
)

_MENU_TYPES = {t for t, _ in CONNECTION_MENU}


def menu_as_list() -> list[dict[str, str]]:
    return [{"type": t, "label": label} for t, label in CONNECTION_MENU]


def complete_connection(
    graph: FlowGraph,
    source_id: str,
    node_type: str,
    position: dict[str, float],
    source_handle: str | None = None,
) -> tuple[Node, Edge]:
    """Create a node at ``position`` and a zero-delay edge to it from ``source_id``.

    Both are written in one transaction: if either step fails nothing is kept.
    """
    graph.require_node(source_id)
    require_node_type(node_type)
    if node_type not in _MENU_TYPES:
        raise InvalidValueError(f"Node type {node_type!r} is not offered for connection completion")
    payload: dict[str, Any] = default_payload(node_type)
    with graph.transaction():
        node = graph.add_node(
            Node(id=new_id(node_type), type=node_type, position=dict(position), data=payload)
        )
        edge = graph.add_edge(
            Edge(
                id=new_id("edge"),
                source=source_id,
                target=node.id,
                source_handle=source_handle,
                type=DELAY_EDGE,
                data=delay_payload(),
            )
        )
    return node, edge
