"""
End-to-end tests against the example users API in examples/api_app.py.
"""

import json
from pathlib import Path

import pytest

from sprout import AppConfig, Request


EXAMPLES_DIR = Path(__file__).parent.parent.parent / "examples"


@pytest.fixture
def api_app(monkeypatch):
    monkeypatch.syspath_prepend(str(EXAMPLES_DIR))
    from api_app import create_app

    return create_app(AppConfig())


def send_json(method: str, path: str, data) -> Request:
    return Request(
        method, path,
        headers={"Content-Type": "application/json", "Accept": "application/json"},
        raw_body=json.dumps(data).encode("utf-8"),
    )


class TestUsersAPI:
    def test_list(self, api_app):
        res = api_app.handle(Request("GET", "/api/users"))

        assert res.status_code == 200
        assert [user["name"] for user in json.loads(res.body)["users"]] == ["Alice", "Bob"]

    def test_show_and_missing(self, api_app):
        assert json.loads(api_app.handle(Request("GET", "/api/users/1")).body)["name"] == "Alice"

        missing = api_app.handle(Request("GET", "/api/users/99", headers={"Accept": "application/json"}))
        assert missing.status_code == 404
        assert json.loads(missing.body)["error"]["message"] == "User 99 not found"

    def test_non_numeric_id_does_not_match(self, api_app):
        assert api_app.handle(Request("GET", "/api/users/abc")).status_code == 404

    def test_create(self, api_app):
        res = api_app.handle(send_json("POST", "/api/users", {"name": "Charlie"}))

        assert res.status_code == 201
        assert res.get("Location") == "/api/users/3"
        assert json.loads(res.body) == {"id": 3, "name": "Charlie", "email": None}

    def test_create_validation(self, api_app):
        res = api_app.handle(send_json("POST", "/api/users", {"nickname": "C"}))

        assert res.status_code == 400
        assert json.loads(res.body)["error"]["message"] == "Unknown fields: nickname"

    def test_update_and_delete(self, api_app):
        updated = api_app.handle(send_json("PUT", "/api/users/2", {"email": "bob@new.example"}))
        assert json.loads(updated.body)["email"] == "bob@new.example"

        assert api_app.handle(Request("DELETE", "/api/users/2")).status_code == 204
        assert api_app.handle(Request("GET", "/api/users/2")).status_code == 404

    def test_options_and_cors(self, api_app):
        res = api_app.handle(Request("OPTIONS", "/api/users"))

        assert res.get("Allow") == "GET, POST"
        assert res.get("Access-Control-Allow-Origin") == "*"

    def test_health(self, api_app):
        assert json.loads(api_app.handle(Request("GET", "/health")).body) == {"status": "healthy"}
