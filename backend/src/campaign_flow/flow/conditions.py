"""Switch condition engine: ordered cases of AND/OR event rules.

A Switch node routes a recipient to the output socket of the first case whose
rules hold (``case-<case id>``), or to the reserved ``default`` socket when
none does. Rules reference event types supplied by Event nodes wired into the
switch's data inputs.

Older switches stored a flat list of ``{id, eventId, operator}`` conditions;
``migrate_conditions`` upgrades that shape and must run before anything else
reads ``conditions``.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Collection

from .errors import (
    CaseRequiredError,
    InvalidValueError,
    MigrationInProgressError,
    NotFoundError,
    RuleRequiredError,
)
from .events import event_label
from .graph import FlowGraph, Node
from .ids import new_id
from .node_types import EVENT, SWITCH, new_case, new_rule

HAS_OCCURRED = "has_occurred"
HAS_NOT_OCCURRED = "has_not_occurred"
OPERATORS = (HAS_OCCURRED, HAS_NOT_OCCURRED)
LOGICS = ("AND", "OR")
DEFAULT_HANDLE = "default"
RULE_FIELDS = ("eventId", "operator")

_INPUT_RE = re.compile(r"^input-(\d+)$")


def case_handle(case: dict[str, Any]) -> str:
    return f"case-{case['id']}"


def find_case_for_handle(conditions: list[dict[str, Any]], handle: str) -> dict[str, Any] | None:
    for case in conditions:
        if case_handle(case) == handle:
            return case
    return None


# -- migration --

def is_legacy(conditions: list[Any] | None) -> bool:
    if not conditions:
        return False
    first = conditions[0]
    return not isinstance(first, dict) or "rules" not in first


def _upgrade_legacy(condition: Any) -> dict[str, Any]:
    if isinstance(condition, dict) and "rules" in condition:
        return copy.deepcopy(condition)
    raw = condition if isinstance(condition, dict) else {}
    operator = raw.get("operator")
    if operator not in OPERATORS:
        operator = HAS_OCCURRED
    case_id = raw.get("id")
    return {
        "id": case_id if case_id not in (None, "") else new_id("case"),
        "logic": "AND",
        "rules": [{"id": new_id("rule"), "eventId": raw.get("eventId") or "", "operator": operator}],
    }


def migrate_conditions(conditions: list[Any] | None, event_types: list[str] | None = None) -> list[dict[str, Any]]:
    """Upgrade legacy conditions to cases; seed one case when empty. Idempotent."""
    if not conditions:
        seed = event_types[0] if event_types else ""
        return [new_case(seed)]
    if not is_legacy(conditions):
        return copy.deepcopy(conditions)
    return [_upgrade_legacy(c) for c in conditions]


def needs_migration(node: Node) -> bool:
    conditions = node.data.get("conditions")
    return not conditions or is_legacy(conditions)


def migrate_switch_nodes(graph: FlowGraph) -> list[str]:
    """Migrate every switch in ``graph`` that still needs it. Returns migrated node ids."""
    migrated: list[str] = []
    with graph.transaction():
        for node in list(graph.nodes.values()):
            if node.type != SWITCH or not needs_migration(node):
                continue
            upgraded = migrate_conditions(node.data.get("conditions"), available_event_types(graph, node.id))
            graph.update_node(node.id, {"conditions": upgraded})
            migrated.append(node.id)
    return migrated


def read_conditions(node: Node) -> list[dict[str, Any]]:
    """Conditions of a migrated switch. Legacy shapes raise MigrationInProgressError."""
    conditions = node.data.get("conditions") or []
    if is_legacy(conditions):
        raise MigrationInProgressError(f"Switch {node.id} conditions are being upgraded")
    return conditions


# -- connected events --

def connected_events(graph: FlowGraph, switch_id: str) -> list[Node]:
    """Event nodes wired into the switch, in connection order."""
    seen: set[str] = set()
    out: list[Node] = []
    for e in graph.incoming_edges(switch_id):
        src = graph.get_node(e.source)
        if src is None or src.type != EVENT or src.id in seen:
            continue
        seen.add(src.id)
        out.append(src)
    return out


def available_event_types(graph: FlowGraph, switch_id: str) -> list[str]:
    types: list[str] = []
    for node in connected_events(graph, switch_id):
        et = node.data.get("eventType") or ""
        if et and et not in types:
            types.append(et)
    return types


def stale_rules(graph: FlowGraph, switch_id: str) -> list[dict[str, Any]]:
    """Rules whose event is set but no longer provided by a connected Event node."""
    available = set(available_event_types(graph, switch_id))
    out = []
    for ci, case in enumerate(read_conditions(_require_switch(graph, switch_id))):
        for ri, rule in enumerate(case.get("rules", [])):
            event_id = rule.get("eventId") or ""
            if event_id and event_id not in available:
                out.append({"caseIndex": ci, "ruleIndex": ri, "rule": copy.deepcopy(rule)})
    return out


# -- case / rule editing --

def _require_switch(graph: FlowGraph, switch_id: str) -> Node:
    node = graph.require_node(switch_id)
    if node.type != SWITCH:
        raise InvalidValueError(f"Node {switch_id} is not a switch")
    return node


def _editable_cases(graph: FlowGraph, switch_id: str) -> list[dict[str, Any]]:
    return copy.deepcopy(read_conditions(_require_switch(graph, switch_id)))


def _at(items: list[Any], index: int, what: str) -> Any:
    if index < 0 or index >= len(items):
        raise NotFoundError(f"{what} index out of range: {index}")
    return items[index]


def add_case(graph: FlowGraph, switch_id: str) -> dict[str, Any]:
    cases = _editable_cases(graph, switch_id)
    case = new_case()
    cases.append(case)
    graph.update_node(switch_id, {"conditions": cases})
    return case


def remove_case(graph: FlowGraph, switch_id: str, case_index: int) -> dict[str, Any]:
    """Drop a case and the edges leaving its output socket."""
    cases = _editable_cases(graph, switch_id)
    case = _at(cases, case_index, "Case")
    if len(cases) == 1:
        raise CaseRequiredError("A switch must keep at least one case")
    del cases[case_index]
    handle = case_handle(case)
    with graph.transaction():
        graph.update_node(switch_id, {"conditions": cases})
        graph.remove_edges(lambda e: e.source == switch_id and e.source_handle == handle)
    return case


def add_rule(graph: FlowGraph, switch_id: str, case_index: int) -> dict[str, Any]:
    cases = _editable_cases(graph, switch_id)
    rule = new_rule()
    _at(cases, case_index, "Case")["rules"].append(rule)
    graph.update_node(switch_id, {"conditions": cases})
    return rule


def remove_rule(graph: FlowGraph, switch_id: str, case_index: int, rule_index: int) -> dict[str, Any]:
    cases = _editable_cases(graph, switch_id)
    rules = _at(cases, case_index, "Case")["rules"]
    rule = _at(rules, rule_index, "Rule")
    if len(rules) == 1:
        raise RuleRequiredError("A case must keep at least one rule")
    del rules[rule_index]
    graph.update_node(switch_id, {"conditions": cases})
    return rule


def set_case_logic(graph: FlowGraph, switch_id: str, case_index: int, logic: str) -> dict[str, Any]:
    if logic not in LOGICS:
        raise InvalidValueError(f"Logic must be one of {LOGICS}, got {logic!r}")
    cases = _editable_cases(graph, switch_id)
    case = _at(cases, case_index, "Case")
    case["logic"] = logic
    graph.update_node(switch_id, {"conditions": cases})
    return case


def set_rule(
    graph: FlowGraph,
    switch_id: str,
    case_index: int,
    rule_index: int,
    field: str,
    value: str,
) -> dict[str, Any]:
    if field == "eventId":
        if value:
            event_label(value)
    elif field == "operator":
        if value not in OPERATORS:
            raise InvalidValueError(f"Operator must be one of {OPERATORS}, got {value!r}")
    else:
        raise InvalidValueError(f"Rule field must be one of {RULE_FIELDS}, got {field!r}")
    cases = _editable_cases(graph, switch_id)
    rule = _at(_at(cases, case_index, "Case")["rules"], rule_index, "Rule")
    rule[field] = value
    graph.update_node(switch_id, {"conditions": cases})
    return rule


# -- data input sockets --

def add_input_socket(graph: FlowGraph, switch_id: str) -> str:
    node = _require_switch(graph, switch_id)
    input_ids = list(node.data.get("inputIds") or [])
    numbers = [int(m.group(1)) for m in (_INPUT_RE.match(i) for i in input_ids) if m]
    socket_id = f"input-{max(numbers, default=0) + 1}"
    input_ids.append(socket_id)
    graph.update_node(switch_id, {"inputIds": input_ids})
    return socket_id


def remove_input_socket(graph: FlowGraph, switch_id: str, socket_id: str | None = None) -> bool:
    """Remove a data input and the edges plugged into it. The last socket always stays."""
    node = _require_switch(graph, switch_id)
    input_ids = list(node.data.get("inputIds") or [])
    if len(input_ids) <= 1:
        return False
    target = socket_id or input_ids[-1]
    if target not in input_ids:
        raise NotFoundError(f"Input socket not found: {target}")
    input_ids.remove(target)
    with graph.transaction():
        graph.update_node(switch_id, {"inputIds": input_ids})
        graph.remove_edges(lambda e: e.target == switch_id and e.target_handle == target)
    return True


# -- evaluation --

def evaluate_rule(rule: dict[str, Any], fired_events: Collection[str]) -> bool:
    occurred = rule.get("eventId") in fired_events
    if rule.get("operator") == HAS_NOT_OCCURRED:
        return not occurred
    return occurred


def evaluate_case(case: dict[str, Any], fired_events: Collection[str]) -> bool:
    results = [evaluate_rule(r, fired_events) for r in case.get("rules", [])]
    if case.get("logic") == "OR":
        return any(results)
    return bool(results) and all(results)


def select_output(conditions: list[dict[str, Any]], fired_events: Collection[str]) -> str:
    """Output socket taken for a recipient who has fired ``fired_events``."""
    if is_legacy(conditions):
        raise MigrationInProgressError("Conditions are being upgraded")
    for case in conditions:
        if evaluate_case(case, fired_events):
            return case_handle(case)
    return DEFAULT_HANDLE
