from campaign_flow.flow.delay import delay_payload, format_delay_label, normalize_delay, set_delay
from campaign_flow.flow.graph import Edge, FlowGraph, Node


def test_label_lists_only_non_zero_units_in_order():
    assert format_delay_label({"days": 1, "hours": 0, "minutes": 30, "seconds": 0}) == "1d 30m"
    assert format_delay_label({"days": 0, "hours": 2, "minutes": 0, "seconds": 15}) == "2h 15s"


def test_all_zero_label():
    assert format_delay_label(normalize_delay({})) == "0m"


def test_negative_and_garbage_values_clamp_to_zero():
    assert normalize_delay({"days": -3, "hours": "x", "minutes": None, "seconds": "5"}) == {
        "days": 0,
        "hours": 0,
        "minutes": 0,
        "seconds": 5,
    }


def test_payload_carries_label_and_numbers():
    assert delay_payload({"days": 2}) == {
        "delay": "2d",
        "delayData": {"days": 2, "hours": 0, "minutes": 0, "seconds": 0},
    }


def test_set_delay_on_edge():
    g = FlowGraph()
    g.add_node(Node(id="a", type="action"))
    g.add_node(Node(id="b", type="action"))
    g.add_edge(Edge(id="e", source="a", target="b"))
    assert g.get_edge("e").data["delay"] == "0m"

    set_delay(g, "e", {"days": 1, "hours": -5, "minutes": 30})
    edge = g.get_edge("e")
    assert edge.data["delay"] == "1d 30m"
    assert edge.data["delayData"] == {"days": 1, "hours": 0, "minutes": 30, "seconds": 0}


def test_overflowing_values_clamp_to_zero():
    assert normalize_delay({"days": float("inf"), "hours": float("nan"), "minutes": 4}) == {
        "days": 0,
        "hours": 0,
        "minutes": 4,
        "seconds": 0,
    }


def test_non_object_delay_values_become_zero():
    assert delay_payload("1d") == delay_payload()
    assert delay_payload([1, 2]) == delay_payload()
