import pytest

from campaign_flow.flow.delay import delay_payload
from campaign_flow.flow.errors import (
    DanglingEdgeError,
    DuplicateIdError,
    InvalidValueError,
    NotFoundError,
    UnknownNodeTypeError,
)
from campaign_flow.flow.graph import Edge, FlowGraph, Node


def _graph_with_chain():
    g = FlowGraph()
    g.add_node(Node(id="t1", type="trigger", data={"eventType": "listing_clicked"}))
    g.add_node(Node(id="a1", type="action"))
    g.add_node(Node(id="a2", type="action"))
    g.add_edge(Edge(id="e1", source="t1", target="a1", data=delay_payload({"days": 1})))
    g.add_edge(Edge(id="e2", source="a1", target="a2", data=delay_payload({"hours": 3})))
    return g


def test_add_node_duplicate_id_rejected_and_state_kept():
    g = FlowGraph()
    g.add_node(Node(id="a1", type="action", data={"label": "Welcome"}))
    with pytest.raises(DuplicateIdError):
        g.add_node(Node(id="a1", type="switch"))
    assert list(g.nodes) == ["a1"]
    assert g.nodes["a1"].type == "action"
    assert g.nodes["a1"].data["label"] == "Welcome"


def test_add_node_unknown_type_rejected():
    g = FlowGraph()
    with pytest.raises(UnknownNodeTypeError):
        g.add_node(Node(id="x", type="webhook"))
    assert g.nodes == {}


def test_add_edge_requires_both_endpoints():
    g = FlowGraph()
    g.add_node(Node(id="a1", type="action"))
    with pytest.raises(DanglingEdgeError):
        g.add_edge(Edge(id="e1", source="a1", target="missing"))
    assert g.edges == []


def test_duplicate_edge_id_rejected():
    g = _graph_with_chain()
    with pytest.raises(DuplicateIdError):
        g.add_edge(Edge(id="e1", source="t1", target="a2"))
    assert len(g.edges) == 2


def test_update_node_merges_partial_data():
    g = FlowGraph()
    g.add_node(Node(id="a1", type="action"))
    g.update_node("a1", {"subject": {"mode": "static", "content": "Hello"}})
    g.update_node("a1", {"sections": [{"id": "s1", "name": "Intro", "content": "Hi"}]})
    data = g.nodes["a1"].data
    assert data["subject"] == {"mode": "static", "content": "Hello"}
    assert data["sections"] == [{"id": "s1", "name": "Intro", "content": "Hi"}]
    assert data["label"] == "New Email"


def test_update_node_position_only():
    g = FlowGraph()
    g.add_node(Node(id="a1", type="action", data={"label": "Keep"}))
    g.update_node("a1", position={"x": 10, "y": 20})
    assert g.nodes["a1"].position == {"x": 10, "y": 20}
    assert g.nodes["a1"].data["label"] == "Keep"


def test_update_missing_node_raises_not_found():
    g = FlowGraph()
    with pytest.raises(NotFoundError):
        g.update_node("nope", {"label": "x"})


def test_event_label_follows_event_type():
    g = FlowGraph()
    g.add_node(Node(id="ev", type="event"))
    g.update_node("ev", {"eventType": "webinar_signup"})
    assert g.nodes["ev"].data["label"] == "Webinar Signup"
    # A label-only edit cannot make the pair diverge
    g.update_node("ev", {"label": "Something else"})
    assert g.nodes["ev"].data == {"label": "Webinar Signup", "eventType": "webinar_signup"}


def test_remove_node_cascades_edges():
    g = _graph_with_chain()
    removed = g.remove_node("a1")
    assert {e.id for e in removed} == {"e1", "e2"}
    assert all(e.source != "a1" and e.target != "a1" for e in g.edges)
    assert g.edges == []


def test_delete_action_with_in_and_out_edges_leaves_no_reference():
    g = _graph_with_chain()
    g.add_node(Node(id="a3", type="action"))
    g.add_edge(Edge(id="e3", source="t1", target="a3"))
    g.remove_node("a1")
    assert [e.id for e in g.edges] == ["e3"]
    assert not any("a1" in (e.source, e.target) for e in g.edges)


def test_update_edge_merges_and_keeps_delay_label_consistent():
    g = _graph_with_chain()
    g.update_edge("e1", {"delayData": {"days": 0, "hours": 2, "minutes": 30, "seconds": 0}, "delay": "bogus"})
    assert g.get_edge("e1").data["delay"] == "2h 30m"


def test_snapshot_restore_round_trip():
    g = _graph_with_chain()
    snap = g.snapshot()
    other = FlowGraph()
    other.restore(snap)
    assert other.snapshot() == snap


def test_restore_replaces_state_and_drops_dangling_edges():
    g = _graph_with_chain()
    g.restore(
        {
            "nodes": [{"id": "only", "type": "action", "position": {"x": 0, "y": 0}, "data": {}}],
            "edges": [{"id": "bad", "source": "only", "target": "gone", "type": "delay", "data": {}}],
        }
    )
    assert list(g.nodes) == ["only"]
    assert g.edges == []


def test_restore_rejects_duplicate_ids_without_touching_state():
    g = _graph_with_chain()
    before = g.snapshot()
    with pytest.raises(DuplicateIdError):
        g.restore(
            {
                "nodes": [
                    {"id": "x", "type": "action"},
                    {"id": "x", "type": "action"},
                ],
                "edges": [],
            }
        )
    assert g.snapshot() == before


def test_restore_rejects_malformed_snapshot():
    g = FlowGraph()
    with pytest.raises(InvalidValueError):
        g.restore({"nodes": [{"type": "action"}], "edges": []})


def test_transaction_rolls_back_on_error():
    g = _graph_with_chain()
    before = g.snapshot()
    with pytest.raises(DanglingEdgeError):
        with g.transaction():
            g.add_node(Node(id="new", type="action"))
            g.add_edge(Edge(id="e9", source="new", target="missing"))
    assert g.snapshot() == before


def test_change_events_fire_after_mutations_and_once_per_transaction():
    events = []
    g = FlowGraph(on_change=lambda kind, data: events.append(kind))
    g.add_node(Node(id="a1", type="action"))
    assert events == ["NodeAdded"]

    with g.transaction():
        g.add_node(Node(id="a2", type="action"))
        g.add_edge(Edge(id="e1", source="a1", target="a2"))
        assert events == ["NodeAdded"]
    assert events == ["NodeAdded", "NodeAdded", "EdgeAdded"]


def test_rolled_back_transaction_emits_nothing():
    events = []
    g = FlowGraph(on_change=lambda kind, data: events.append(kind))
    with pytest.raises(DuplicateIdError):
        with g.transaction():
            g.add_node(Node(id="a1", type="action"))
            g.add_node(Node(id="a1", type="action"))
    assert events == []
    assert g.nodes == {}


def test_edge_lookups():
    g = _graph_with_chain()
    assert [e.id for e in g.outgoing_edges("a1")] == ["e2"]
    assert [e.id for e in g.incoming_edges("a1")] == ["e1"]
    assert g.get_edge("missing") is None
    with pytest.raises(NotFoundError):
        g.require_edge("missing")


def test_restore_rejects_non_object_payloads_without_touching_state():
    g = _graph_with_chain()
    before = g.snapshot()
    for bad in (
        {"nodes": [{"id": "a", "type": "action", "data": "oops"}], "edges": []},
        {"nodes": [{"id": "a", "type": "action", "position": [0, 0]}], "edges": []},
        {"nodes": [{"id": "ev", "type": "event", "data": {"eventType": ["page_view"]}}], "edges": []},
        {"nodes": [{"id": "a", "type": "action"}], "edges": [{"id": "e", "source": "a", "target": "a", "data": 3}]},
    ):
        with pytest.raises(InvalidValueError):
            g.restore(bad)
    assert g.snapshot() == before


def test_restore_clamps_garbage_delay_data():
    g = FlowGraph()
    g.restore(
        {
            "nodes": [{"id": "a", "type": "action"}, {"id": "b", "type": "action"}],
            "edges": [{"id": "e", "source": "a", "target": "b", "data": {"delayData": "1d"}}],
        }
    )
    assert g.get_edge("e").data["delay"] == "0m"
