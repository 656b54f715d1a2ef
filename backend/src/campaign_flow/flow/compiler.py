"""Graph -> step list compiler for the backend step-execution engine.

Each node becomes one CampaignStep (step id == node id) carrying its outgoing
edges with resolved delay and branch-condition data. Compilation is pure: it
never generates ids and never mutates the graph, and it either returns the full
step list or raises.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterable

from .conditions import DEFAULT_HANDLE, find_case_for_handle, read_conditions
from .errors import CompileError, FlowError, MigrationInProgressError
from .graph import Edge, FlowGraph, Node
from .node_types import ACTION, EVENT, FILTER, SWITCH, TRIGGER

COMPILED_DELAY_UNITS = ("days", "hours", "minutes")


@dataclass
class StepEdge:
    target_step_id: str
    source_handle: str | None = None
    delay_days: int = 0
    delay_hours: int = 0
    delay_minutes: int = 0
    condition: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"targetStepId": self.target_step_id}
        if self.source_handle is not None:
            out["sourceHandle"] = self.source_handle
        out["delayDays"] = self.delay_days
        out["delayHours"] = self.delay_hours
        out["delayMinutes"] = self.delay_minutes
        out["condition"] = copy.deepcopy(self.condition)
        return out


@dataclass
class CampaignStep:
    id: str
    campaign_id: str
    type: str
    name: str
    config: dict[str, Any] | None = None
    subject: dict[str, Any] | None = None
    sections: list[Any] = field(default_factory=list)
    edges: list[StepEdge] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "campaignId": self.campaign_id,
            "type": self.type,
            "name": self.name,
        }
        if self.config is not None:
            out["config"] = copy.deepcopy(self.config)
        out["subject"] = copy.deepcopy(self.subject)
        out["sections"] = copy.deepcopy(self.sections)
        out["edges"] = [e.to_dict() for e in self.edges]
        return out


def _resolve_delay(edge: Edge) -> dict[str, int]:
    delay_data = (edge.data or {}).get("delayData")
    if delay_data is None:
        return {unit: 0 for unit in COMPILED_DELAY_UNITS}
    if not isinstance(delay_data, dict):
        raise CompileError(f"Edge {edge.id}: delayData must be an object")
    out: dict[str, int] = {}
    for unit in COMPILED_DELAY_UNITS:
        value = delay_data.get(unit, 0)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise CompileError(f"Edge {edge.id}: delay {unit} must be a non-negative integer, got {value!r}")
        out[unit] = value
    return out


def _resolve_condition(edge: Edge, source: Node) -> dict[str, Any] | None:
    if source.type != SWITCH or edge.source_handle is None:
        return None
    if edge.source_handle == DEFAULT_HANDLE:
        return {"default": True}
    if not edge.source_handle.startswith("case-"):
        return None
    case = find_case_for_handle(read_conditions(source), edge.source_handle)
    if case is None:
        raise CompileError(f"Edge {edge.id}: switch {source.id} has no case for socket {edge.source_handle}")
    return {
        "caseId": case["id"],
        "logic": case.get("logic", "AND"),
        "rules": copy.deepcopy(case.get("rules", [])),
    }


def _step_config(node: Node) -> dict[str, Any] | None:
    if node.type == SWITCH:
        return {
            "conditions": copy.deepcopy(read_conditions(node)),
            "inputIds": list(node.data.get("inputIds") or []),
        }
    if node.type in (TRIGGER, EVENT):
        return {"eventType": node.data.get("eventType") or ""}
    if node.type == FILTER:
        return {"source": node.data.get("label") or ""}
    return None


def _compile_node(node: Node, outgoing: list[Edge], nodes: dict[str, Node], campaign_id: str) -> CampaignStep:
    edges: list[StepEdge] = []
    for e in outgoing:
        if e.target not in nodes:
            raise CompileError(f"Edge {e.id} targets missing node {e.target}")
        delay = _resolve_delay(e)
        edges.append(
            StepEdge(
                target_step_id=e.target,
                source_handle=e.source_handle,
                delay_days=delay["days"],
                delay_hours=delay["hours"],
                delay_minutes=delay["minutes"],
                condition=_resolve_condition(e, node),
            )
        )
    is_action = node.type == ACTION
    sections = node.data.get("sections") if is_action else []
    if not isinstance(sections, list):
        raise CompileError(f"Node {node.id}: sections must be a list")
    return CampaignStep(
        id=node.id,
        campaign_id=campaign_id,
        type=node.type,
        name=node.display_name,
        config=_step_config(node),
        subject=copy.deepcopy(node.data.get("subject")) if is_action else None,
        sections=copy.deepcopy(sections),
        edges=edges,
    )


def compile_steps(
    nodes: Iterable[Node | dict[str, Any]],
    edges: Iterable[Edge | dict[str, Any]],
    campaign_id: str,
) -> list[CampaignStep]:
    """Compile nodes/edges (objects or snapshot dicts) into one step per node, in node order."""
    try:
        node_list = [n if isinstance(n, Node) else Node.from_dict(n) for n in nodes]
        edge_list = [e if isinstance(e, Edge) else Edge.from_dict(e) for e in edges]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise CompileError(f"Malformed graph data: {e}") from e

    by_id: dict[str, Node] = {}
    for n in node_list:
        if n.id in by_id:
            raise CompileError(f"Duplicate node id: {n.id}")
        by_id[n.id] = n

    outgoing: dict[str, list[Edge]] = {nid: [] for nid in by_id}
    for e in edge_list:
        if e.source not in by_id:
            raise CompileError(f"Edge {e.id} leaves missing node {e.source}")
        outgoing[e.source].append(e)

    steps: list[CampaignStep] = []
    for n in node_list:
        try:
            steps.append(_compile_node(n, outgoing[n.id], by_id, campaign_id))
        except (CompileError, MigrationInProgressError):
            raise
        except FlowError as e:
            raise CompileError(f"Node {n.id}: {e}") from e
    return steps


def compile_snapshot(snapshot: dict[str, Any], campaign_id: str) -> list[CampaignStep]:
    return compile_steps(snapshot.get("nodes") or [], snapshot.get("edges") or [], campaign_id)


def compile_graph(graph: FlowGraph, campaign_id: str) -> list[CampaignStep]:
    return compile_snapshot(graph.snapshot(), campaign_id)


def steps_to_wire(steps: list[CampaignStep]) -> list[dict[str, Any]]:
    return [s.to_dict() for s in steps]
