"""Pydantic models for API request/response."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Position(BaseModel):
    x: float = 0
    y: float = 0


class OpenGraphRequest(BaseModel):
    campaign_type: Literal["batch", "always_on"] = "batch"


class GraphResponse(BaseModel):
    campaign_id: str
    campaign_type: str
    nodes: list[dict[str, Any]]
    edges: list[dict[str, Any]]


class RestoreGraphRequest(BaseModel):
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)


class NodeCreateRequest(BaseModel):
    id: str | None = None
    type: str
    position: Position = Field(default_factory=Position)
    data: dict[str, Any] = Field(default_factory=dict)


class NodeUpdateRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    position: Position | None = None


class EdgeCreateRequest(BaseModel):
    id: str | None = None
    source: str
    target: str
    source_handle: str | None = None
    target_handle: str | None = None
    type: str = "delay"
    data: dict[str, Any] = Field(default_factory=dict)


class EdgeUpdateRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class DelayRequest(BaseModel):
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0


class CaseLogicRequest(BaseModel):
    logic: Literal["AND", "OR"]


class RuleUpdateRequest(BaseModel):
    field: Literal["eventId", "operator"]
    value: str = ""


class SwitchEventsResponse(BaseModel):
    event_types: list[str]
    events: list[dict[str, Any]]
    stale_rules: list[dict[str, Any]]


class ConnectionCompleteRequest(BaseModel):
    source_node_id: str
    source_handle: str | None = None
    node_type: str
    position: Position = Field(default_factory=Position)


class ConnectionCompleteResponse(BaseModel):
    node: dict[str, Any]
    edge: dict[str, Any]


class SelectionRequest(BaseModel):
    node_id: str | None = None
    edge_id: str | None = None


class SelectionResponse(BaseModel):
    node_id: str | None = None
    edge_id: str | None = None
    item: dict[str, Any] | None = None


class SyncResponse(BaseModel):
    task_id: str
    coalesced: bool = False


class TaskListItem(BaseModel):
    task_id: str
    campaign_id: str
    status: str
    failure_reason: str | None = None


class TaskListResponse(BaseModel):
    tasks: list[TaskListItem]
    total: int
