"""Delay edge payload: wait duration and its derived label."""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .graph import Edge, FlowGraph

DELAY_UNITS: tuple[tuple[str, str], ...] = (
    ("days", "d"),
    ("hours", "h"),
    ("minutes", "m"),
    ("seconds", "s"),
)
ZERO_LABEL = "0m"


def _clamp(value: Any) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return n if n > 0 else 0


def normalize_delay(values: dict[str, Any] | None) -> dict[str, int]:
    """Coerce every unit to a non-negative int; missing or non-numeric units become 0."""
    if not isinstance(values, dict):
        values = {}
    return {unit: _clamp(values.get(unit)) for unit, _ in DELAY_UNITS}


def format_delay_label(delay: dict[str, int]) -> str:
    parts = [f"{delay[unit]}{suffix}" for unit, suffix in DELAY_UNITS if delay.get(unit, 0) > 0]
    return " ".join(parts) if parts else ZERO_LABEL


def delay_payload(values: dict[str, Any] | None = None) -> dict[str, Any]:
    """Edge `data` for a delay: numeric fields plus the label computed from them."""
    delay = normalize_delay(values)
    return {"delay": format_delay_label(delay), "delayData": delay}


def set_delay(graph: FlowGraph, edge_id: str, values: dict[str, Any]) -> Edge:
    return graph.update_edge(edge_id, delay_payload(values))
