import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client() -> TestClient:
    from campaign_flow.main import app

    return TestClient(app)


@pytest.fixture(autouse=True)
def _clear_in_memory_stores(tmp_path, monkeypatch):
    # Ensure deterministic tests across runs.
    from campaign_flow.services import local_snapshots
    from campaign_flow.services import sessions
    from campaign_flow.services import sync

    # Use a temp data dir for persisted snapshots in tests
    monkeypatch.setenv("CAMPAIGN_FLOW_DATA_DIR", str(tmp_path))

    local_snapshots._snapshot_store.clear()
    sessions._sessions.clear()
    sync._task_store.clear()
    sync._sync_state.clear()
    yield
