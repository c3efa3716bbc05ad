import json

import pytest
from fastapi.testclient import TestClient

from agency.api.routes import get_organizations
from agency.main import app


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as client:
        yield client


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


def test_list_organizations(client):
    resp = client.get("/organizations")
    assert resp.status_code == 200, resp.text
    summaries = {o["name"]: o for o in resp.json()["organizations"]}
    assert summaries["blogAgency"]["workflows"] == ["createBlogPost"]
    assert summaries["blogAgency"]["groups"] == ["researchTeam", "writingTeam"]


def test_get_organization(client):
    resp = client.get("/organizations/blogAgency")
    assert resp.status_code == 200, resp.text
    info = resp.json()
    assert info["groups"]["writingTeam"]["jobs"]["title"]["unit_name"] == "titler"
    assert len(info["workflows"]["createBlogPost"]["steps"]) == 3


def test_unknown_organization(client):
    assert client.get("/organizations/nope").status_code == 404
    resp = client.post("/organizations/nope/run", json={"workflow": "x"})
    assert resp.status_code == 404


def test_run_workflow(client):
    resp = client.post(
        "/organizations/blogAgency/run",
        json={
            "workflow": "createBlogPost",
            "initial_inputs": {"topic": "rabbit training"},
            "initial_context": {"audience": "new pet owners"},
        },
    )
    assert resp.status_code == 200, resp.text
    payload = resp.json()
    assert payload["failed_steps"] == []
    assert payload["results"]["headline"] == "A Practical Guide to Rabbit Training"
    assert payload["results"]["writing"]["post"].startswith("# Post")


def test_run_unknown_workflow(client):
    resp = client.post("/organizations/blogAgency/run", json={"workflow": "nope"})
    assert resp.status_code == 404
    assert "nope" in resp.json()["detail"]


def test_run_single_group_job(client):
    resp = client.post(
        "/organizations/blogAgency/groups/writingTeam/run",
        json={"initial_inputs": {"topic": "hay"}, "job_name": "title"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["result"] == "A Practical Guide to Hay"


def test_run_whole_group(client):
    resp = client.post(
        "/organizations/blogAgency/groups/writingTeam/run",
        json={"initial_inputs": {"brief": "BRIEF\nRabbits like hay."}},
    )
    assert resp.status_code == 200, resp.text
    result = resp.json()["result"]
    assert result["draft"].startswith("# Draft")
    assert result["edit"]["post"].startswith("# Post")


def test_run_group_not_found(client):
    resp = client.post("/organizations/blogAgency/groups/nope/run", json={})
    assert resp.status_code == 404
    resp = client.post(
        "/organizations/blogAgency/groups/writingTeam/run", json={"job_name": "nope"}
    )
    assert resp.status_code == 404


def test_websocket_streams_events(client):
    with client.websocket_connect("/organizations/blogAgency/events") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"

        resp = client.post(
            "/organizations/blogAgency/groups/writingTeam/run",
            json={"initial_inputs": {"topic": "hay"}, "job_name": "title"},
        )
        assert resp.status_code == 200

        message = ws.receive_json()
        assert set(message) == {"event", "payload"}
        assert message["payload"]["owner"] in {"blogAgency", "writingTeam"}


def test_organization_loaded_from_config_path(tmp_path, monkeypatch):
    config = {
        "name": "fileAgency",
        "groups": {
            "titles": {
                "units": {"titler": {"role": "Headline Writer", "handler": "headline"}},
                "jobs": {"title": {"unitName": "titler"}},
                "workflow": ["title"],
            }
        },
        "workflows": {"name": {"steps": [{"groupName": "titles", "outputKey": "title"}]}},
    }
    path = tmp_path / "agency.json"
    path.write_text(json.dumps(config))
    monkeypatch.setenv("AGENCY_CONFIG_PATH", str(path))

    with TestClient(app) as client:
        resp = client.post(
            "/organizations/fileAgency/run",
            json={"workflow": "name", "initial_inputs": {"topic": "carrots"}},
        )

    assert "fileAgency" in get_organizations()
    assert resp.status_code == 200, resp.text
    assert resp.json()["results"] == {"step1": "A Practical Guide to Carrots"}
