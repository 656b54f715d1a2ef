from campaign_flow.flow.graph import Node
from campaign_flow.services import sessions, sync
from campaign_flow.services.local_snapshots import load_snapshot


def test_sync_compiles_and_pushes_current_graph():
    sessions.open_session("camp-1")
    pushed = []

    started = sync.request_sync("camp-1")
    assert started["coalesced"] is False
    sync.run_sync("camp-1", started["task_id"], push=lambda cid, steps: pushed.append((cid, steps)))

    assert len(pushed) == 1
    cid, steps = pushed[0]
    assert cid == "camp-1"
    assert [s["type"] for s in steps] == ["action"]

    task = sync.get_task(started["task_id"])
    assert task["status"] == "completed"
    assert task["result"] == {"status": "success", "steps": 1, "rounds": 1}
    assert [ev["data"]["step"] for ev in task["events"]] == ["compiling", "submitting"]
    assert not sync.is_syncing("camp-1")


def test_request_during_sync_is_coalesced_into_one_more_round():
    session = sessions.open_session("camp-1")
    started = sync.request_sync("camp-1")
    pushed = []

    def push(cid, steps):
        pushed.append([s["id"] for s in steps])
        if len(pushed) == 1:
            # The author keeps editing and saves again while the first submit is in flight
            session.graph.add_node(Node(id="late", type="action"))
            again = sync.request_sync("camp-1")
            assert again == {"task_id": started["task_id"], "coalesced": True}

    sync.run_sync("camp-1", started["task_id"], push=push)

    assert len(pushed) == 2
    assert "late" not in pushed[0]
    assert "late" in pushed[1]
    task = sync.get_task(started["task_id"])
    assert task["status"] == "completed"
    assert task["result"]["rounds"] == 2
    assert not sync.is_syncing("camp-1")


def test_only_one_sync_runs_per_campaign():
    sessions.open_session("camp-1")
    first = sync.request_sync("camp-1")
    second = sync.request_sync("camp-1")
    third = sync.request_sync("camp-1")
    assert second["task_id"] == first["task_id"] == third["task_id"]
    assert second["coalesced"] and third["coalesced"]
    assert sync.is_syncing("camp-1")


def test_failed_push_keeps_local_work_and_frees_campaign():
    session = sessions.open_session("camp-1")
    before = load_snapshot("camp-1")
    started = sync.request_sync("camp-1")

    def push(cid, steps):
        raise RuntimeError("HTTP 500 from backend")

    sync.run_sync("camp-1", started["task_id"], push=push)

    task = sync.get_task(started["task_id"])
    assert task["status"] == "failed"
    assert "HTTP 500" in task["failure_reason"]
    assert task["events"][-1]["kind"] == "error"
    assert load_snapshot("camp-1") == before
    assert session.snapshot() == before
    assert not sync.is_syncing("camp-1")

    # A later save starts a fresh task
    assert sync.request_sync("camp-1")["coalesced"] is False


def test_compile_error_fails_task_without_push():
    session = sessions.open_session("camp-1")
    action_id = next(iter(session.graph.nodes))
    session.graph.nodes[action_id].data["sections"] = "broken"
    started = sync.request_sync("camp-1")
    pushed = []

    sync.run_sync("camp-1", started["task_id"], push=lambda cid, steps: pushed.append(steps))

    assert pushed == []
    assert sync.get_task(started["task_id"])["status"] == "failed"


def test_list_tasks_newest_first():
    sessions.open_session("a")
    sessions.open_session("b")
    ta = sync.request_sync("a")["task_id"]
    tb = sync.request_sync("b")["task_id"]
    listed = sync.list_tasks(page=1, size=20)
    assert listed["total"] == 2
    assert [t["task_id"] for t in listed["tasks"]] == [tb, ta]
    assert sync.list_tasks(page=2, size=1)["tasks"][0]["task_id"] == ta
