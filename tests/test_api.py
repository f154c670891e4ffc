"""
HTTP API tests.

Exercises the service in-process through FastAPI's TestClient.
"""

import json

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus

from varspeed.config import reset_settings
from varspeed.main import create_app


@pytest.fixture
def client(monkeypatch):
    # sse-starlette keeps a process-wide exit event bound to the first loop
    monkeypatch.setattr(AppStatus, "should_exit_event", None, raising=False)
    with TestClient(create_app()) as test_client:
        yield test_client


def parse_events(body: str) -> list[dict]:
    """Split an SSE body into its event payloads."""
    events = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        for line in block.splitlines():
            if line.startswith("data:"):
                events.append(json.loads(line[len("data:"):].strip()))
    return events


def test_health(client):
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok", "version": "0.1.0"}


def test_election_flow(client):
    # 1. Run an election
    r = client.post("/api/elections", json={"ids": [5, 3, 8, 1, 9]})
    assert r.status_code == 200, r.text
    data = r.json()
    election_id = data["election_id"]

    assert data["status"] == "elected"
    assert data["leader_id"] == 1
    assert data["rounds"] == 12
    assert [o["id"] for o in data["outcomes"]] == [5, 3, 8, 1, 9]
    assert [o["id"] for o in data["outcomes"] if o["is_leader"]] == [1]

    # 2. Fetch it back
    r = client.get(f"/api/elections/{election_id}")
    assert r.status_code == 200
    assert r.json()["leader_id"] == 1

    # 3. It appears in the listing
    r = client.get("/api/elections")
    assert r.status_code == 200
    assert r.json()["elections"] == [election_id]


def test_declared_size_truncates(client):
    r = client.post("/api/elections", json={"ids": [2, 1, 0], "size": 2})

    assert r.status_code == 200
    assert r.json()["roster"] == [2, 1]
    assert r.json()["leader_id"] == 1


def test_duplicate_ids_rejected(client):
    r = client.post("/api/elections", json={"ids": [4, 4, 1]})

    assert r.status_code == 422
    body = r.json()
    assert body["type"] == "DuplicateIdentifierError"
    assert body["field"] == "ids"
    assert body["value"] == [4]
    assert client.get("/api/elections").json()["elections"] == []


def test_round_budget_rejected(client, monkeypatch):
    monkeypatch.setenv("VARSPEED_MAX_ROUNDS", "100")
    reset_settings()
    r = client.post("/api/elections", json={"ids": [7, 8]})

    assert r.status_code == 422
    assert r.json()["type"] == "RoundBudgetError"


def test_huge_minimum_rejected(client):
    r = client.post("/api/elections", json={"ids": [10**12, 10**12 + 1]})

    assert r.status_code == 422
    assert r.json()["type"] == "RoundBudgetError"

    r = client.post("/api/elections/stream", json={"ids": [10**12, 10**12 + 1]})
    assert r.status_code == 422


def test_unknown_election(client):
    r = client.get("/api/elections/does-not-exist")

    assert r.status_code == 404
    assert r.json()["election_id"] == "does-not-exist"


def test_stream_election(client):
    r = client.post("/api/elections/stream", json={"ids": [2, 1]})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")

    events = parse_events(r.text)
    kinds = [e["event_type"] for e in events]

    assert kinds[0] == "election_start"
    assert kinds[-1] == "election_end"
    assert "leader_elected" in kinds
    assert [e["sequence"] for e in events] == list(range(len(events)))

    rounds = [e["data"]["round"] for e in events if e["event_type"] == "round_end"]
    assert rounds == [2, 4, 5]

    leader = next(e for e in events if e["event_type"] == "leader_elected")
    assert leader["data"] == {"leader_id": 1, "round": 5}

    result = events[-1]["data"]
    assert result["leader_id"] == 1
    r = client.get(f"/api/elections/{result['election_id']}")
    assert r.status_code == 200


def test_stream_rejects_bad_roster(client):
    r = client.post("/api/elections/stream", json={"ids": []})

    assert r.status_code == 422
    assert r.json()["type"] == "EmptyRosterError"
