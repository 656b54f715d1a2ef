"""API routes - sequence graph editing, compilation and sync."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from typing import Any, AsyncGenerator

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from ..flow import conditions as switch
from ..flow.compiler import compile_graph, steps_to_wire
from ..flow.connection import complete_connection, menu_as_list
from ..flow.delay import set_delay
from ..flow.events import catalog_as_dict
from ..flow.graph import Edge, Node
from ..flow.ids import new_id
from ..flow.node_types import ATTRIBUTE_SOURCES, NODE_TYPES, default_payload, display_name
from ..models import (
    CaseLogicRequest,
    ConnectionCompleteRequest,
    ConnectionCompleteResponse,
    DelayRequest,
    EdgeCreateRequest,
    EdgeUpdateRequest,
    GraphResponse,
    NodeCreateRequest,
    NodeUpdateRequest,
    OpenGraphRequest,
    RestoreGraphRequest,
    RuleUpdateRequest,
    SelectionRequest,
    SelectionResponse,
    SwitchEventsResponse,
    SyncResponse,
    TaskListResponse,
)
from ..services.sessions import FlowSession, close_session, get_session, open_session, require_session
from ..services.sync import get_task, list_tasks, request_sync, run_sync

router = APIRouter(prefix="/api", tags=["api"])
_executor = ThreadPoolExecutor(max_workers=4)


def _graph_response(session: FlowSession) -> GraphResponse:
    snap = session.snapshot()
    return GraphResponse(
        campaign_id=session.campaign_id,
        campaign_type=session.campaign_type,
        nodes=snap["nodes"],
        edges=snap["edges"],
    )


# -- reference data --

@router.get("/events")
async def api_events():
    """Event catalog grouped by category."""
    return catalog_as_dict()


@router.get("/node-types")
async def api_node_types():
    return {
        "types": [
            {"type": t, "name": display_name(t), "default_data": default_payload(t)} for t in NODE_TYPES
        ],
        "connection_menu": menu_as_list(),
        "attribute_sources": list(ATTRIBUTE_SOURCES),
    }


# -- graph --

@router.post("/campaigns/{campaign_id}/graph/open", response_model=GraphResponse)
def api_open_graph(campaign_id: str, body: OpenGraphRequest):
    """Open (or resume) the editing session for a campaign."""
    return _graph_response(open_session(campaign_id, body.campaign_type))


@router.get("/campaigns/{campaign_id}/graph", response_model=GraphResponse)
def api_get_graph(campaign_id: str):
    return _graph_response(require_session(campaign_id))


@router.put("/campaigns/{campaign_id}/graph", response_model=GraphResponse)
def api_restore_graph(campaign_id: str, body: RestoreGraphRequest):
    """Replace the whole graph with a prior snapshot."""
    session = require_session(campaign_id)
    session.restore({"nodes": body.nodes, "edges": body.edges})
    return _graph_response(session)


@router.delete("/campaigns/{campaign_id}/graph/session")
def api_close_graph(campaign_id: str):
    """Drop the live session; the local snapshot is kept for the next open."""
    if get_session(campaign_id) is None:
        raise HTTPException(404, "No open editing session")
    close_session(campaign_id)
    return {"closed": campaign_id}


# -- nodes --

@router.post("/campaigns/{campaign_id}/nodes")
def api_add_node(campaign_id: str, body: NodeCreateRequest):
    session = require_session(campaign_id)
    with session.lock:
        node = session.graph.add_node(
            Node(
                id=body.id or new_id(body.type),
                type=body.type,
                position=body.position.model_dump(),
                data=body.data,
            )
        )
        return node.to_dict()


@router.patch("/campaigns/{campaign_id}/nodes/{node_id}")
def api_update_node(campaign_id: str, node_id: str, body: NodeUpdateRequest):
    session = require_session(campaign_id)
    with session.lock:
        position = body.position.model_dump() if body.position else None
        return session.graph.update_node(node_id, body.data, position=position).to_dict()


@router.delete("/campaigns/{campaign_id}/nodes/{node_id}")
def api_remove_node(campaign_id: str, node_id: str):
    session = require_session(campaign_id)
    with session.lock:
        removed = session.graph.remove_node(node_id)
    return {"removed_node": node_id, "removed_edges": [e.id for e in removed]}


# -- edges --

@router.post("/campaigns/{campaign_id}/edges")
def api_add_edge(campaign_id: str, body: EdgeCreateRequest):
    session = require_session(campaign_id)
    with session.lock:
        edge = session.graph.add_edge(
            Edge(
                id=body.id or new_id("edge"),
                source=body.source,
                target=body.target,
                source_handle=body.source_handle,
                target_handle=body.target_handle,
                type=body.type,
                data=body.data,
            )
        )
        return edge.to_dict()


@router.patch("/campaigns/{campaign_id}/edges/{edge_id}")
def api_update_edge(campaign_id: str, edge_id: str, body: EdgeUpdateRequest):
    session = require_session(campaign_id)
    with session.lock:
        return session.graph.update_edge(edge_id, body.data).to_dict()


@router.delete("/campaigns/{campaign_id}/edges/{edge_id}")
def api_remove_edge(campaign_id: str, edge_id: str):
    session = require_session(campaign_id)
    with session.lock:
        session.graph.remove_edge(edge_id)
    return {"removed_edge": edge_id}


@router.put("/campaigns/{campaign_id}/edges/{edge_id}/delay")
def api_set_delay(campaign_id: str, edge_id: str, body: DelayRequest):
    """Set an edge's wait time; negative units are clamped to 0."""
    session = require_session(campaign_id)
    with session.lock:
        return set_delay(session.graph, edge_id, body.model_dump()).to_dict()


# -- switch conditions --

@router.get("/campaigns/{campaign_id}/switches/{node_id}/events", response_model=SwitchEventsResponse)
def api_switch_events(campaign_id: str, node_id: str):
    session = require_session(campaign_id)
    with session.lock:
        events = [
            {"node_id": n.id, "event_type": n.data.get("eventType", ""), "label": n.data.get("label", "")}
            for n in switch.connected_events(session.graph, node_id)
        ]
        return SwitchEventsResponse(
            event_types=switch.available_event_types(session.graph, node_id),
            events=events,
            stale_rules=switch.stale_rules(session.graph, node_id),
        )


@router.post("/campaigns/{campaign_id}/switches/{node_id}/cases")
def api_add_case(campaign_id: str, node_id: str):
    session = require_session(campaign_id)
    with session.lock:
        return switch.add_case(session.graph, node_id)


@router.delete("/campaigns/{campaign_id}/switches/{node_id}/cases/{case_index}")
def api_remove_case(campaign_id: str, node_id: str, case_index: int):
    session = require_session(campaign_id)
    with session.lock:
        return switch.remove_case(session.graph, node_id, case_index)


@router.put("/campaigns/{campaign_id}/switches/{node_id}/cases/{case_index}/logic")
def api_set_case_logic(campaign_id: str, node_id: str, case_index: int, body: CaseLogicRequest):
    session = require_session(campaign_id)
    with session.lock:
        return switch.set_case_logic(session.graph, node_id, case_index, body.logic)


@router.post("/campaigns/{campaign_id}/switches/{node_id}/cases/{case_index}/rules")
def api_add_rule(campaign_id: str, node_id: str, case_index: int):
    session = require_session(campaign_id)
    with session.lock:
        return switch.add_rule(session.graph, node_id, case_index)


@router.put("/campaigns/{campaign_id}/switches/{node_id}/cases/{case_index}/rules/{rule_index}")
def api_set_rule(campaign_id: str, node_id: str, case_index: int, rule_index: int, body: RuleUpdateRequest):
    session = require_session(campaign_id)
    with session.lock:
        return switch.set_rule(session.graph, node_id, case_index, rule_index, body.field, body.value)


@router.delete("/campaigns/{campaign_id}/switches/{node_id}/cases/{case_index}/rules/{rule_index}")
def api_remove_rule(campaign_id: str, node_id: str, case_index: int, rule_index: int):
    session = require_session(campaign_id)
    with session.lock:
        return switch.remove_rule(session.graph, node_id, case_index, rule_index)


@router.post("/campaigns/{campaign_id}/switches/{node_id}/inputs")
def api_add_input(campaign_id: str, node_id: str):
    session = require_session(campaign_id)
    with session.lock:
        return {"input_id": switch.add_input_socket(session.graph, node_id)}


@router.delete("/campaigns/{campaign_id}/switches/{node_id}/inputs/{input_id}")
def api_remove_input(campaign_id: str, node_id: str, input_id: str):
    """Remove a data input. Removing the only remaining input is a no-op."""
    session = require_session(campaign_id)
    with session.lock:
        removed = switch.remove_input_socket(session.graph, node_id, input_id)
        return {"removed": removed, "input_ids": session.graph.require_node(node_id).data["inputIds"]}


# -- connection completion --

@router.post("/campaigns/{campaign_id}/connections/complete", response_model=ConnectionCompleteResponse)
def api_complete_connection(campaign_id: str, body: ConnectionCompleteRequest):
    """Create a node where a dragged connection was dropped, wired to its source."""
    session = require_session(campaign_id)
    with session.lock:
        node, edge = complete_connection(
            session.graph,
            body.source_node_id,
            body.node_type,
            body.position.model_dump(),
            source_handle=body.source_handle,
        )
        return ConnectionCompleteResponse(node=node.to_dict(), edge=edge.to_dict())


# -- selection --

@router.get("/campaigns/{campaign_id}/selection", response_model=SelectionResponse)
def api_get_selection(campaign_id: str):
    session = require_session(campaign_id)
    with session.lock:
        sel = session.selection
        return SelectionResponse(node_id=sel.node_id, edge_id=sel.edge_id, item=session.selected_item())


@router.put("/campaigns/{campaign_id}/selection", response_model=SelectionResponse)
def api_set_selection(campaign_id: str, body: SelectionRequest):
    if body.node_id and body.edge_id:
        raise HTTPException(400, "Select either a node or an edge, not both")
    session = require_session(campaign_id)
    with session.lock:
        if body.node_id:
            sel = session.select_node(body.node_id)
        elif body.edge_id:
            sel = session.select_edge(body.edge_id)
        else:
            sel = session.clear_selection()
        return SelectionResponse(node_id=sel.node_id, edge_id=sel.edge_id, item=session.selected_item())


# -- compile / sync --

@router.get("/campaigns/{campaign_id}/steps")
def api_compile_steps(campaign_id: str) -> list[dict[str, Any]]:
    """Preview the step list a sync would submit."""
    session = require_session(campaign_id)
    with session.lock:
        return steps_to_wire(compile_graph(session.graph, campaign_id))


@router.post("/campaigns/{campaign_id}/sync", response_model=SyncResponse)
async def api_sync(campaign_id: str):
    """Start a backend sync, or join the one already running for this campaign."""
    started = request_sync(campaign_id)
    if not started["coalesced"]:
        _executor.submit(run_sync, campaign_id, started["task_id"])
    return SyncResponse(**started)


@router.get("/sync-tasks/{task_id}")
async def api_sync_task(task_id: str):
    t = get_task(task_id)
    if not t:
        raise HTTPException(404, "Task not found")
    return t


@router.get("/sync-tasks/{task_id}/stream")
async def api_sync_task_stream(task_id: str):
    """SSE stream for sync progress. Events: progress, error, then result."""
    if not get_task(task_id):
        raise HTTPException(404, "Task not found")

    async def event_generator() -> AsyncGenerator[str, None]:
        import asyncio
        last_index = 0
        while True:
            t = get_task(task_id)
            if not t:
                break
            events = t.get("events", [])
            for ev in events[last_index:]:
                yield f"data: {json.dumps(ev)}\n\n"
            last_index = len(events)
            status = t.get("status", "running")
            if status != "running":
                result = t.get("result")
                if result:
                    yield f"data: {json.dumps({'kind': 'result', 'data': result})}\n\n"
                break
            await asyncio.sleep(0.3)

    return EventSourceResponse(event_generator())


@router.get("/sync-tasks", response_model=TaskListResponse)
async def api_sync_tasks_list(page: int = 1, size: int = 20):
    """List sync task history."""
    data = list_tasks(page=page, size=size)
    return TaskListResponse(**data)
