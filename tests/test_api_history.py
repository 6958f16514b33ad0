"""Tests for the chat history endpoints."""

import uuid

MESSAGES = [
    {"role": "user", "content": "What is the capital of France?"},
    {"role": "assistant", "content": "Paris."},
]


def _save(api_client, auth_headers, messages=None):
    return api_client.post(
        "/api/history", headers=auth_headers, json={"messages": messages or MESSAGES}
    )


class TestHistoryApi:
    """Tests for /api/history."""

    def test_save(self, api_client, auth_headers):
        response = _save(api_client, auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "What is the capital of France?"
        assert data["messageCount"] == 2
        assert uuid.UUID(data["id"])

    def test_save_requires_messages(self, api_client, auth_headers):
        response = api_client.post("/api/history", headers=auth_headers, json={"messages": []})

        assert response.status_code == 400
        assert response.json() == {"error": "Messages are required"}

    def test_requires_auth(self, api_client):
        assert api_client.get("/api/history").status_code == 401

    def test_list_and_get(self, api_client, auth_headers):
        saved = _save(api_client, auth_headers).json()

        listed = api_client.get("/api/history", headers=auth_headers).json()
        detail = api_client.get(f"/api/history/{saved['id']}", headers=auth_headers).json()

        assert [c["id"] for c in listed] == [saved["id"]]
        assert detail["messages"] == MESSAGES

    def test_get_unknown(self, api_client, auth_headers):
        response = api_client.get(f"/api/history/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404
        assert response.json() == {"error": "Conversation not found"}

    def test_delete(self, api_client, auth_headers):
        saved = _save(api_client, auth_headers).json()

        deleted = api_client.delete(f"/api/history/{saved['id']}", headers=auth_headers)
        again = api_client.delete(f"/api/history/{saved['id']}", headers=auth_headers)

        assert deleted.json() == {"success": True}
        assert again.status_code == 404

    def test_export(self, api_client, auth_headers):
        _save(api_client, auth_headers)
        _save(api_client, auth_headers, [{"role": "user", "content": "Second chat"}])

        response = api_client.get("/api/history/export", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "attachment" in response.headers["content-disposition"]
        assert "You: What is the capital of France?" in response.text
        assert "AI: Paris." in response.text
        assert "=" * 50 in response.text
