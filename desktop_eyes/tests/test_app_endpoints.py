import pytest
from fastapi.testclient import TestClient

from desktop_eyes import app as app_module
from desktop_eyes.app import app
from desktop_eyes.contracts.elements import DetectionMethod
from desktop_eyes.executor.tools import DesktopTools


@pytest.fixture
def client(pipeline_factory, strategy_factory, element_factory, session):
    pipeline = pipeline_factory([strategy_factory(DetectionMethod.ACCESSIBILITY, [element_factory("Save", 0.5, 0.1)])])
    app_module.set_tools(DesktopTools(pipeline, session=session))
    try:
        yield TestClient(app)
    finally:
        app_module.set_tools(None)


def test_root_health(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_tool_listing(client):
    names = [tool["name"] for tool in client.get("/api/tools").json()["tools"]]

    assert "get_clickable_elements" in names
    assert "test_detection_methods" in names


def test_tool_call_returns_report(client):
    resp = client.post("/api/tools/get_clickable_elements", json={"arguments": {"appName": "Demo"}})

    assert resp.status_code == 200
    data = resp.json()
    assert data["isError"] is False
    assert data["request_id"]
    assert '1. "Save" (button)' in data["content"][0]["text"]


def test_tool_errors_are_payloads_not_exceptions(client):
    resp = client.post("/api/tools/click_element", json={"arguments": {"appName": "Demo", "elementIndex": 5}})

    assert resp.status_code == 200
    body = resp.json()
    assert body["isError"] is True
    assert body["error"]["code"] == "element_index_out_of_range"


def test_unknown_tool_is_404(client):
    assert client.post("/api/tools/teleport", json={"arguments": {}}).status_code == 404


def test_dispatcher_build_failure_is_internal_error(monkeypatch):
    app_module.set_tools(None)

    def explode(*args, **kwargs):
        raise RuntimeError("no desktop")

    monkeypatch.setattr(app_module.DesktopTools, "from_settings", classmethod(lambda cls, *a, **k: explode()))

    resp = TestClient(app).post("/api/tools/list_applications", json={"arguments": {}})

    assert resp.status_code == 200
    assert resp.json()["error"]["code"] == "internal_error"
