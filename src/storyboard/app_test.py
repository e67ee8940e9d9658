"""
Tests for the HTTP endpoints.

The tool router is backed by mock services, so no database is needed.
"""

import pytest

from storyboard.errors import NotFoundError, ParentNotFoundError


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_list_tools(client):
    response = client.get("/api/tools")

    assert response.status_code == 200
    names = [t["name"] for t in response.get_json()]
    assert "get_user_story" in names


def test_call_tool_success(client, tool_router):
    tool_router.criteria.count_by_user_story_id.return_value = 2

    response = client.post("/api/tools/count_acceptance_criteria_for_story", json={"user_story_id": "US-001"})

    assert response.status_code == 200
    assert response.get_json() == {"ok": True, "result": {"count": 2}}


@pytest.mark.parametrize("error,status", [
    (NotFoundError("User story not found: US-404"), 404),
    (ParentNotFoundError("User story not found: US-404"), 404),
])
def test_call_tool_error_status(client, tool_router, error, status):
    tool_router.stories.delete.side_effect = error

    response = client.post("/api/tools/delete_user_story", json={"id": "US-404"})

    assert response.status_code == status
    assert response.get_json()["ok"] is False
    assert response.get_json()["error"]["kind"] == error.kind


def test_call_tool_validation_is_bad_request(client):
    response = client.post("/api/tools/get_user_story", json={})

    assert response.status_code == 400
    assert response.get_json()["error"]["field"] == "id"


def test_call_unknown_tool(client):
    response = client.post("/api/tools/nope", json={})

    assert response.status_code == 404
    assert response.get_json()["error"]["kind"] == "unknown_tool"


def test_call_tool_without_body(client, tool_router):
    tool_router.stories.get_statistics.return_value = {"total_stories": 0}

    response = client.post("/api/tools/get_user_stories_statistics")

    assert response.status_code == 200
    assert response.get_json()["result"] == {"total_stories": 0}
