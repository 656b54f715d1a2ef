"""Node type registry: the fixed node variants and the shape of their payloads.

Every component that creates or trusts a node's ``data`` goes through
``default_payload`` / ``normalize_payload`` here.
"""

from __future__ import annotations

import copy
from typing import Any, Callable

from .delay import delay_payload
from .errors import InvalidValueError, UnknownNodeTypeError
from .events import event_label
from .ids import new_id

TRIGGER = "trigger"
EVENT = "event"
ACTION = "action"
SWITCH = "switch"
FILTER = "filter"

NODE_TYPES: tuple[str, ...] = (TRIGGER, EVENT, ACTION, SWITCH, FILTER)

DISPLAY_NAMES: dict[str, str] = {
    TRIGGER: "Trigger",
    EVENT: "Event",
    ACTION: "Email",
    SWITCH: "Switch",
    FILTER: "Data Filter",
}

ATTRIBUTE_SOURCES: tuple[str, ...] = (
    "User Profile",
    "Company Details",
    "Activity Logs",
    "External API",
)

CAMPAIGN_TYPES: tuple[str, ...] = ("batch", "always_on")

DEFAULT_INPUT_ID = "input-1"


def new_rule(event_id: str = "", operator: str = "has_occurred") -> dict[str, Any]:
    return {"id": new_id("rule"), "eventId": event_id, "operator": operator}


def new_case(event_id: str = "", logic: str = "AND") -> dict[str, Any]:
    return {"id": new_id("case"), "logic": logic, "rules": [new_rule(event_id)]}


def _trigger_payload() -> dict[str, Any]:
    return {"label": "Select Trigger", "eventType": ""}


def _event_payload() -> dict[str, Any]:
    return {"label": "Select Event", "eventType": ""}


def _action_payload() -> dict[str, Any]:
    return {
        "label": "New Email",
        "subject": {"mode": "static", "content": ""},
        "sections": [],
    }


def _switch_payload() -> dict[str, Any]:
    return {"conditions": [new_case()], "inputIds": [DEFAULT_INPUT_ID]}


def _filter_payload() -> dict[str, Any]:
    return {"label": ""}


_DEFAULTS: dict[str, Callable[[], dict[str, Any]]] = {
    TRIGGER: _trigger_payload,
    EVENT: _event_payload,
    ACTION: _action_payload,
    SWITCH: _switch_payload,
    FILTER: _filter_payload,
}


def require_node_type(node_type: str) -> str:
    if node_type not in _DEFAULTS:
        raise UnknownNodeTypeError(f"Unknown node type: {node_type!r}")
    return node_type


def default_payload(node_type: str) -> dict[str, Any]:
    """Fresh payload for a newly created node of ``node_type``."""
    return _DEFAULTS[require_node_type(node_type)]()


def normalize_payload(node_type: str, data: dict[str, Any] | None) -> dict[str, Any]:
    """Fill missing payload keys with defaults and keep derived fields consistent.

    Trigger/Event labels are recomputed from ``eventType`` so the two never
    diverge. Switch conditions are left as-is: the legacy shape is upgraded by
    the condition engine, not here.
    """
    base = default_payload(node_type)
    merged = dict(base)
    merged.update(copy.deepcopy(data or {}))

    if node_type in (TRIGGER, EVENT):
        event_type = merged.get("eventType") or ""
        merged["eventType"] = event_type
        merged["label"] = event_label(event_type) if event_type else base["label"]
    elif node_type == FILTER:
        source = merged.get("label") or ""
        if source and source not in ATTRIBUTE_SOURCES:
            raise InvalidValueError(f"Unknown attribute source: {source!r}")
        merged["label"] = source
    elif node_type == SWITCH:
        if not isinstance(merged.get("conditions"), list):
            raise InvalidValueError("Switch conditions must be a list")
        input_ids = merged.get("inputIds")
        if not isinstance(input_ids, list) or not input_ids:
            merged["inputIds"] = [DEFAULT_INPUT_ID]
    elif node_type == ACTION:
        if not isinstance(merged.get("sections"), list):
            raise InvalidValueError("Email sections must be a list")
    return merged


def display_name(node_type: str) -> str:
    return DISPLAY_NAMES[require_node_type(node_type)]


def default_snapshot(campaign_type: str) -> dict[str, list[dict[str, Any]]]:
    """Starting graph for a campaign with no saved work.

    Batch campaigns start from a single email; always-on campaigns start from a
    trigger feeding that email.
    """
    if campaign_type not in CAMPAIGN_TYPES:
        raise ValueError(f"Unknown campaign type: {campaign_type!r}")
    action = {
        "id": new_id("action"),
        "type": ACTION,
        "position": {"x": 250, "y": 200},
        "data": default_payload(ACTION),
    }
    if campaign_type == "batch":
        return {"nodes": [action], "edges": []}

    trigger = {
        "id": new_id("trigger"),
        "type": TRIGGER,
        "position": {"x": 250, "y": 50},
        "data": default_payload(TRIGGER),
    }
    edge = {
        "id": new_id("edge"),
        "source": trigger["id"],
        "target": action["id"],
        "type": "delay",
        "data": delay_payload(),
    }
    return {"nodes": [trigger, action], "edges": [edge]}
