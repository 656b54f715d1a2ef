"""Editing sessions: one live graph per campaign, mirrored to the local snapshot store."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from ..flow.conditions import migrate_switch_nodes
from ..flow.errors import FlowError, NotFoundError
from ..flow.graph import FlowGraph
from ..flow.node_types import default_snapshot
from .local_snapshots import load_snapshot, save_snapshot

logger = logging.getLogger(__name__)

_sessions: dict[str, FlowSession] = {}
_open_lock = threading.Lock()


@dataclass
class Selection:
    """Node or edge currently open in an editor panel (at most one of the two)."""

    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"nodeId": self.node_id, "edgeId": self.edge_id}


@dataclass
class FlowSession:
    campaign_id: str
    campaign_type: str
    graph: FlowGraph
    selection: Selection = field(default_factory=Selection)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def snapshot(self) -> dict[str, Any]:
        with self.lock:
            return self.graph.snapshot()

    def select_node(self, node_id: str) -> Selection:
        self.graph.require_node(node_id)
        self.selection = Selection(node_id=node_id)
        return self.selection

    def select_edge(self, edge_id: str) -> Selection:
        self.graph.require_edge(edge_id)
        self.selection = Selection(edge_id=edge_id)
        return self.selection

    def clear_selection(self) -> Selection:
        self.selection = Selection()
        return self.selection

    def selected_item(self) -> dict[str, Any] | None:
        if self.selection.node_id:
            node = self.graph.get_node(self.selection.node_id)
            return node.to_dict() if node else None
        if self.selection.edge_id:
            edge = self.graph.get_edge(self.selection.edge_id)
            return edge.to_dict() if edge else None
        return None

    def restore(self, snapshot: dict[str, Any]) -> None:
        with self.lock:
            with self.graph.transaction():
                self.graph.restore(snapshot)
                migrate_switch_nodes(self.graph)

    def _on_graph_change(self, kind: str, data: dict[str, Any]) -> None:
        sel = self.selection
        if sel.node_id and sel.node_id not in self.graph.nodes:
            self.selection = Selection()
        elif sel.edge_id and self.graph.get_edge(sel.edge_id) is None:
            self.selection = Selection()
        save_snapshot(self.campaign_id, self.graph.snapshot())


def _dispatch_change(campaign_id: str, kind: str, data: dict[str, Any]) -> None:
    session = _sessions.get(campaign_id)
    if session is not None:
        session._on_graph_change(kind, data)


def _start_session(campaign_id: str, campaign_type: str) -> FlowSession:
    graph = FlowGraph(on_change=lambda kind, data: _dispatch_change(campaign_id, kind, data))
    snapshot = load_snapshot(campaign_id)
    migrated: list[str] = []
    restored = False
    if snapshot is not None:
        try:
            with graph.transaction():
                graph.restore(snapshot)
                migrated = migrate_switch_nodes(graph)
            restored = True
        except FlowError as e:
            logger.warning("Discarding invalid snapshot for campaign %s: %s", campaign_id, e)
    if not restored:
        graph.restore(default_snapshot(campaign_type))
        migrated = migrate_switch_nodes(graph)
    if migrated:
        logger.info("Upgraded switch conditions for campaign %s: %s", campaign_id, migrated)

    save_snapshot(campaign_id, graph.snapshot())
    return FlowSession(campaign_id=campaign_id, campaign_type=campaign_type, graph=graph)


def open_session(campaign_id: str, campaign_type: str = "batch") -> FlowSession:
    """Return the live session, or start one from the local snapshot / the default graph."""
    with _open_lock:
        session = _sessions.get(campaign_id)
        if session is None:
            session = _start_session(campaign_id, campaign_type)
            _sessions[campaign_id] = session
    return session


def get_session(campaign_id: str) -> FlowSession | None:
    return _sessions.get(campaign_id)


def require_session(campaign_id: str) -> FlowSession:
    session = _sessions.get(campaign_id)
    if session is None:
        raise NotFoundError(f"No open editing session for campaign {campaign_id}")
    return session


def close_session(campaign_id: str) -> None:
    _sessions.pop(campaign_id, None)
