# Elastic License 2.0
# Copyright (c) 2025 sliptonic
# SPDX-License-Identifier: Elastic-2.0

"""
Integration tests for press reporting endpoints.

Assumptions:
- GET /api/v1/presses/{press_number}/summaries - Tool usage timeline
- GET /api/v1/presses/{press_number}/stats - Aggregates
- GET /api/v1/presses/utilization - Active tools per press
- GET /api/v1/tools/overlaps - Cross-press overlaps
- POST /api/v1/presses/{press_number}/changeover - Tool changeover
- /api/v1/presses/{press_number}/regenerations - Press regenerations
"""
import pytest


@pytest.fixture
def press_three(db_session, make_tool, record):
    """Tool G01 on press 3 top with readings 100, 150, 300; B01 on bottom."""
    top = make_tool("top", code="G01", press=3)
    bottom = make_tool("bottom", code="B01", press=3)
    for hours, total in enumerate((100, 150, 300)):
        record(3, top.id, "top", total, hours=hours)
    record(3, bottom.id, "bottom", 40, hours=1)
    return top, bottom


@pytest.mark.integration
def test_press_summaries(client, press_three):
    top, bottom = press_three

    response = client.get("/api/v1/presses/3/summaries")

    assert response.status_code == 200
    data = response.json()
    assert [s["tool_id"] for s in data] == [bottom.id, top.id]
    top_summary = data[1]
    assert top_summary["tool_code"] == "120x60 G01"
    assert top_summary["position"] == "top"
    assert top_summary["max_cycles"] == 300
    assert top_summary["total_partial"] == 300
    assert top_summary["is_first_appearance"] is True


@pytest.mark.integration
def test_press_summaries_empty_and_invalid(client):
    assert client.get("/api/v1/presses/0/summaries").json() == []
    assert client.get("/api/v1/presses/9/summaries").status_code == 400


@pytest.mark.integration
def test_press_stats(client, press_three):
    response = client.get("/api/v1/presses/3/stats")

    assert response.status_code == 200
    assert response.json() == {
        "press_number": 3,
        "max_total_cycles": 300,
        "total_partial_cycles": 340,
        "active_tools": 2,
        "entries": 4,
    }


@pytest.mark.integration
def test_press_utilization(client, press_three):
    response = client.get("/api/v1/presses/utilization")

    assert response.status_code == 200
    by_press = {u["press_number"]: u for u in response.json()}
    assert by_press[3]["count"] == 2
    assert [t["position"] for t in by_press[3]["tools"]] == ["top", "bottom"]
    assert by_press[2]["available"] is True


@pytest.mark.integration
def test_overlapping_tools(client, make_tool, record):
    tool = make_tool("top", code="G07")
    record(2, tool.id, "top", 100, hours=0)
    record(2, tool.id, "top", 200, hours=4)
    record(5, tool.id, "top", 10, hours=2)
    record(5, tool.id, "top", 60, hours=6)

    response = client.get("/api/v1/tools/overlaps")

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["tool_id"] == tool.id
    assert data[0]["tool_code"] == "120x60 G07 (top)"
    assert sorted(o["press_number"] for o in data[0]["overlaps"]) == [2, 5]


@pytest.mark.integration
def test_changeover(client, press_three, make_tool, actor_headers):
    top, bottom = press_three
    new_top = make_tool("top", code="G02")
    new_bottom = make_tool("bottom", code="B02")

    response = client.post(
        "/api/v1/presses/3/changeover",
        json={"top_id": new_top.id, "bottom_id": new_bottom.id, "total_cycles": 400},
        headers=actor_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert sorted(data["removed_tool_ids"]) == sorted([top.id, bottom.id])
    assert len(data["cycle_ids"]) == 2

    utilization = {u["press_number"]: u for u in client.get("/api/v1/presses/utilization").json()}
    assert [t["id"] for t in utilization[3]["tools"]] == [new_top.id, new_bottom.id]


@pytest.mark.integration
def test_changeover_rejections(client, press_three, make_tool, actor_headers):
    new_top = make_tool("top", code="G02")
    narrow_bottom = make_tool("bottom", code="B09", width=90)
    body = {"top_id": new_top.id, "bottom_id": narrow_bottom.id, "total_cycles": 400}

    assert client.post("/api/v1/presses/3/changeover", json=body, headers=actor_headers).status_code == 400
    assert client.post("/api/v1/presses/3/changeover", json=body).status_code == 400

    body["bottom_id"] = 999
    assert client.post("/api/v1/presses/3/changeover", json=body, headers=actor_headers).status_code == 404


@pytest.mark.integration
def test_press_regeneration_lifecycle(client, actor_headers):
    started = client.post(
        "/api/v1/presses/4/regenerations",
        json={"reason": "new clutch", "started_at": "2025-04-01T08:00:00+02:00"},
        headers=actor_headers,
    )
    assert started.status_code == 201
    assert started.json()["in_progress"] is True
    assert started.json()["started_at"] == "2025-04-01T06:00:00"

    again = client.post("/api/v1/presses/4/regenerations", json={}, headers=actor_headers)
    assert again.status_code == 400

    stopped = client.post(
        "/api/v1/presses/4/regenerations/stop",
        json={"completed_at": "2025-04-02T06:00:00"},
        headers=actor_headers,
    )
    assert stopped.status_code == 200
    assert stopped.json()["in_progress"] is False

    last = client.get("/api/v1/presses/4/regenerations/last")
    assert last.status_code == 200
    assert last.json()["id"] == started.json()["id"]
    assert [r["id"] for r in client.get("/api/v1/presses/4/regenerations").json()] == [started.json()["id"]]


@pytest.mark.integration
def test_press_regeneration_delete(client, actor_headers):
    regeneration_id = client.post(
        "/api/v1/presses/2/regenerations", json={}, headers=actor_headers
    ).json()["id"]

    wrong_press = client.delete(f"/api/v1/presses/5/regenerations/{regeneration_id}", headers=actor_headers)
    assert wrong_press.status_code == 404

    deleted = client.delete(f"/api/v1/presses/2/regenerations/{regeneration_id}", headers=actor_headers)
    assert deleted.status_code == 204
    assert client.get("/api/v1/presses/2/regenerations").json() == []
    assert client.get("/api/v1/presses/2/regenerations/last").status_code == 404


@pytest.mark.integration
def test_press_regeneration_stop_without_start(client, actor_headers):
    response = client.post("/api/v1/presses/3/regenerations/stop", json={}, headers=actor_headers)

    assert response.status_code == 400
