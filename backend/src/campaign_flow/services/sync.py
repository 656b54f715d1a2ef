"""Save/sync: compile the live graph and hand the step list to the backend.

At most one sync runs per campaign. A request made while one is in flight is
coalesced into it: the running sync compiles and submits once more from the
then-current graph before finishing, so submissions never mix two snapshots.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable

from ..flow.compiler import compile_snapshot, steps_to_wire
from ..flow.conditions import migrate_switch_nodes
from ..flow.errors import SaveConflictError
from .backend_client import put_campaign_steps
from .sessions import require_session

logger = logging.getLogger(__name__)

# (campaign_id, wire steps) -> backend response
StepPusher = Callable[[str, list[dict[str, Any]]], Any]

# In-memory task store for status and events
_task_store: dict[str, dict[str, Any]] = {}
# campaign_id -> {"running", "pending", "task_id"}
_sync_state: dict[str, dict[str, Any]] = {}
_state_lock = threading.Lock()


def _emit(task_id: str, kind: str, data: dict[str, Any]) -> None:
    task = _task_store.get(task_id)
    if task is not None:
        task["events"].append({"kind": kind, "data": data})


def _begin_sync_locked(campaign_id: str) -> str:
    state = _sync_state.setdefault(campaign_id, {"running": False, "pending": False, "task_id": None})
    if state["running"]:
        raise SaveConflictError(f"Sync already in flight for campaign {campaign_id}")
    task_id = str(uuid.uuid4())
    state.update(running=True, pending=False, task_id=task_id)
    _task_store[task_id] = {
        "task_id": task_id,
        "campaign_id": campaign_id,
        "status": "running",
        "events": [],
        "result": None,
        "failure_reason": None,
    }
    return task_id


def request_sync(campaign_id: str) -> dict[str, Any]:
    """Start a sync task, or fold the request into the one already running."""
    require_session(campaign_id)
    with _state_lock:
        try:
            task_id = _begin_sync_locked(campaign_id)
        except SaveConflictError:
            state = _sync_state[campaign_id]
            state["pending"] = True
            _emit(state["task_id"], "progress", {"step": "coalesced"})
            return {"task_id": state["task_id"], "coalesced": True}
    return {"task_id": task_id, "coalesced": False}


def run_sync(campaign_id: str, task_id: str, push: StepPusher | None = None) -> str:
    """Compile the current graph and submit it; repeat while coalesced requests are pending."""
    push = push or put_campaign_steps
    rounds = 0
    try:
        session = require_session(campaign_id)
        while True:
            rounds += 1
            with session.lock:
                migrate_switch_nodes(session.graph)
                snapshot = session.graph.snapshot()
            _emit(task_id, "progress", {"step": "compiling", "round": rounds})
            steps = steps_to_wire(compile_snapshot(snapshot, campaign_id))
            _emit(task_id, "progress", {"step": "submitting", "steps": len(steps)})
            push(campaign_id, steps)
            with _state_lock:
                state = _sync_state[campaign_id]
                if state["pending"]:
                    state["pending"] = False
                    continue
                state["running"] = False
                task = _task_store[task_id]
                task["status"] = "completed"
                task["result"] = {"status": "success", "steps": len(steps), "rounds": rounds}
            break
        logger.info("Synced %d steps for campaign %s (%d rounds)", len(steps), campaign_id, rounds)
    except Exception as e:
        logger.warning("Sync failed for campaign %s: %s", campaign_id, e)
        with _state_lock:
            state = _sync_state.get(campaign_id)
            if state is not None:
                state.update(running=False, pending=False)
            task = _task_store[task_id]
            task["status"] = "failed"
            task["failure_reason"] = str(e)
            task["result"] = {"status": "failed", "failure_reason": str(e)}
        _emit(task_id, "error", {"message": str(e)})
    return task_id


def is_syncing(campaign_id: str) -> bool:
    with _state_lock:
        state = _sync_state.get(campaign_id)
        return bool(state and state["running"])


def get_task(task_id: str) -> dict[str, Any] | None:
    return _task_store.get(task_id)


def list_tasks(page: int = 1, size: int = 20) -> dict[str, Any]:
    items = list(_task_store.values())
    items.reverse()
    total = len(items)
    start = (page - 1) * size
    page_items = items[start : start + size]
    return {
        "tasks": [
            {
                "task_id": t["task_id"],
                "campaign_id": t["campaign_id"],
                "status": t["status"],
                "failure_reason": t.get("failure_reason"),
            }
            for t in page_items
        ],
        "total": total,
    }
