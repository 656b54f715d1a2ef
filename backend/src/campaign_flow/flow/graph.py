"""Sequence graph store - nodes and edges of one campaign's flow."""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from .delay import delay_payload
from .errors import DanglingEdgeError, DuplicateIdError, InvalidValueError, NotFoundError
from .node_types import display_name, normalize_payload, require_node_type

logger = logging.getLogger(__name__)

# Change callback: (event_kind, data) -> None
ChangeCallback = Callable[[str, dict[str, Any]], None]

DELAY_EDGE = "delay"


def _as_dict(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{what} must be an object, got {type(value).__name__}")
    return dict(value)


@dataclass
class Node:
    """Typed vertex of the sequence graph. ``position`` is presentation only."""

    id: str
    type: str
    position: dict[str, float] = field(default_factory=lambda: {"x": 0, "y": 0})
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.data.get("label") or display_name(self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "position": dict(self.position),
            "data": copy.deepcopy(self.data),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Node:
        return cls(
            id=str(raw["id"]),
            type=str(raw["type"]),
            position=_as_dict(raw.get("position") or {"x": 0, "y": 0}, "position"),
            data=copy.deepcopy(_as_dict(raw.get("data") or {}, "data")),
        )


@dataclass
class Edge:
    """Directed connection; ``source_handle`` picks the output socket of multi-output nodes."""

    id: str
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    type: str = DELAY_EDGE
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "data": copy.deepcopy(self.data),
        }
        if self.source_handle is not None:
            out["sourceHandle"] = self.source_handle
        if self.target_handle is not None:
            out["targetHandle"] = self.target_handle
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Edge:
        return cls(
            id=str(raw["id"]),
            source=str(raw["source"]),
            target=str(raw["target"]),
            source_handle=raw.get("sourceHandle"),
            target_handle=raw.get("targetHandle"),
            type=str(raw.get("type") or DELAY_EDGE),
            data=copy.deepcopy(_as_dict(raw.get("data") or {}, "data")),
        )


def _normalize_edge_data(edge_type: str, data: dict[str, Any]) -> dict[str, Any]:
    if edge_type == DELAY_EDGE:
        data = dict(data)
        data.update(delay_payload(data.get("delayData")))
    return data


class FlowGraph:
    """Canonical node/edge set for one editing session.

    Mutations notify ``on_change`` after they commit. Inside ``transaction()``
    notifications are held back until the outermost block exits cleanly.
    """

    def __init__(self, on_change: ChangeCallback | None = None) -> None:
        self.nodes: dict[str, Node] = {}
        self.edges: list[Edge] = []
        self._on_change = on_change or (lambda k, d: None)
        self._tx_depth = 0
        self._pending: list[tuple[str, dict[str, Any]]] = []

    # -- lookups --

    def get_node(self, node_id: str) -> Node | None:
        return self.nodes.get(node_id)

    def require_node(self, node_id: str) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}")
        return node

    def get_edge(self, edge_id: str) -> Edge | None:
        for e in self.edges:
            if e.id == edge_id:
                return e
        return None

    def require_edge(self, edge_id: str) -> Edge:
        edge = self.get_edge(edge_id)
        if edge is None:
            raise NotFoundError(f"Edge not found: {edge_id}")
        return edge

    def outgoing_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def incoming_edges(self, node_id: str) -> list[Edge]:
        return [e for e in self.edges if e.target == node_id]

    # -- nodes --

    def add_node(self, node: Node) -> Node:
        require_node_type(node.type)
        if node.id in self.nodes:
            raise DuplicateIdError(f"Node id already exists: {node.id}")
        stored = Node(
            id=node.id,
            type=node.type,
            position=dict(node.position),
            data=normalize_payload(node.type, node.data),
        )
        self.nodes[stored.id] = stored
        self._emit("NodeAdded", {"node_id": stored.id, "type": stored.type})
        return stored

    def update_node(
        self,
        node_id: str,
        data: dict[str, Any] | None = None,
        position: dict[str, float] | None = None,
    ) -> Node:
        """Merge ``data`` key by key into the node payload (never a wholesale replace)."""
        node = self.require_node(node_id)
        merged = dict(node.data)
        merged.update(copy.deepcopy(data or {}))
        node.data = normalize_payload(node.type, merged)
        if position is not None:
            node.position = dict(position)
        self._emit("NodeUpdated", {"node_id": node_id, "keys": sorted((data or {}).keys())})
        return node

    def remove_node(self, node_id: str) -> list[Edge]:
        """Remove a node and every edge touching it. Returns the removed edges."""
        self.require_node(node_id)
        removed = [e for e in self.edges if e.source == node_id or e.target == node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        del self.nodes[node_id]
        self._emit("NodeRemoved", {"node_id": node_id, "edge_ids": [e.id for e in removed]})
        return removed

    # -- edges --

    def add_edge(self, edge: Edge) -> Edge:
        if self.get_edge(edge.id) is not None:
            raise DuplicateIdError(f"Edge id already exists: {edge.id}")
        for end in (edge.source, edge.target):
            if end not in self.nodes:
                raise DanglingEdgeError(f"Edge {edge.id} references missing node: {end}")
        stored = Edge(
            id=edge.id,
            source=edge.source,
            target=edge.target,
            source_handle=edge.source_handle,
            target_handle=edge.target_handle,
            type=edge.type,
            data=_normalize_edge_data(edge.type, copy.deepcopy(edge.data)),
        )
        self.edges.append(stored)
        self._emit("EdgeAdded", {"edge_id": stored.id, "source": stored.source, "target": stored.target})
        return stored

    def update_edge(self, edge_id: str, data: dict[str, Any]) -> Edge:
        edge = self.require_edge(edge_id)
        merged = dict(edge.data)
        merged.update(copy.deepcopy(data or {}))
        edge.data = _normalize_edge_data(edge.type, merged)
        self._emit("EdgeUpdated", {"edge_id": edge_id})
        return edge

    def remove_edge(self, edge_id: str) -> Edge:
        edge = self.require_edge(edge_id)
        self.edges = [e for e in self.edges if e.id != edge_id]
        self._emit("EdgeRemoved", {"edge_id": edge_id})
        return edge

    def remove_edges(self, predicate: Callable[[Edge], bool]) -> list[Edge]:
        removed = [e for e in self.edges if predicate(e)]
        if removed:
            self.edges = [e for e in self.edges if not predicate(e)]
            self._emit("EdgeRemoved", {"edge_ids": [e.id for e in removed]})
        return removed

    # -- snapshot / restore --

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges],
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Replace the whole graph. Edges pointing at missing nodes are dropped."""
        try:
            raw_nodes = list(snapshot.get("nodes") or [])
            raw_edges = list(snapshot.get("edges") or [])
            parsed_nodes = [Node.from_dict(n) for n in raw_nodes]
            parsed_edges = [Edge.from_dict(e) for e in raw_edges]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidValueError(f"Malformed graph snapshot: {e}") from e

        nodes: dict[str, Node] = {}
        for n in parsed_nodes:
            require_node_type(n.type)
            if n.id in nodes:
                raise DuplicateIdError(f"Node id already exists: {n.id}")
            try:
                n.data = normalize_payload(n.type, n.data)
            except (TypeError, ValueError) as e:
                raise InvalidValueError(f"Malformed payload for node {n.id}: {e}") from e
            nodes[n.id] = n

        edges: list[Edge] = []
        seen: set[str] = set()
        for e in parsed_edges:
            if e.id in seen:
                raise DuplicateIdError(f"Edge id already exists: {e.id}")
            seen.add(e.id)
            if e.source not in nodes or e.target not in nodes:
                logger.warning("Dropping dangling edge %s (%s -> %s)", e.id, e.source, e.target)
                continue
            e.data = _normalize_edge_data(e.type, e.data)
            edges.append(e)

        self.nodes = nodes
        self.edges = edges
        self._emit("GraphRestored", {"nodes": len(nodes), "edges": len(edges)})

    # -- transactions / notifications --

    @contextmanager
    def transaction(self) -> Iterator[FlowGraph]:
        """All-or-nothing block: any exception rolls the graph back to its state at entry."""
        saved_nodes = copy.deepcopy(self.nodes)
        saved_edges = copy.deepcopy(self.edges)
        pending_mark = len(self._pending)
        self._tx_depth += 1
        try:
            yield self
        except BaseException:
            self.nodes = saved_nodes
            self.edges = saved_edges
            del self._pending[pending_mark:]
            raise
        finally:
            self._tx_depth -= 1
        if self._tx_depth == 0:
            pending, self._pending = self._pending, []
            for kind, data in pending:
                self._on_change(kind, data)

    def _emit(self, kind: str, data: dict[str, Any]) -> None:
        if self._tx_depth:
            self._pending.append((kind, data))
        else:
            self._on_change(kind, data)
