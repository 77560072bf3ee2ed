"""Tests for context registration and repository URL normalization."""

import pytest

from kontexto.exceptions import ValidationError
from kontexto.services.context_service import normalize_repo_url
from tests.conftest import headers_for


class TestNormalizeRepoUrl:

    @pytest.mark.parametrize("raw", [
        "https://github.com/octo/demo",
        "https://github.com/octo/demo/",
        "https://github.com/octo/demo.git",
        "  https://github.com/octo/demo.git/ ",
    ])
    def test_accepts_github_urls(self, raw):
        assert normalize_repo_url(raw) == "https://github.com/octo/demo"

    @pytest.mark.parametrize("raw", [
        "",
        "http://github.com/octo/demo",
        "https://gitlab.com/octo/demo",
        "https://github.com/octo",
        "https://github.com/octo/demo/tree/main",
        "git@github.com:octo/demo.git",
    ])
    def test_rejects_everything_else(self, raw):
        with pytest.raises(ValidationError):
            normalize_repo_url(raw)


class TestContextsApi:

    def test_create_and_get(self, client, auth_headers, user):
        resp = client.post(
            "/api/contexts",
            json={"name": " Demo ", "repoUrl": "https://github.com/octo/demo.git", "branch": "develop"},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["name"] == "Demo"
        assert data["repoUrl"] == "https://github.com/octo/demo"
        assert data["branch"] == "develop"
        assert data["ownerId"] == user.id
        assert data["isActive"] is True

        fetched = client.get(f"/api/contexts/{data['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["id"] == data["id"]

    def test_invalid_repo_url_returns_400(self, client, auth_headers):
        resp = client.post(
            "/api/contexts",
            json={"name": "Bad", "repoUrl": "https://example.com/x/y"},
            headers=auth_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"
        assert resp.json()["details"]["field"] == "repoUrl"

    def test_list_shows_only_own_active_contexts(self, client, auth_headers, context, other_user):
        client.post(
            "/api/contexts",
            json={"name": "Theirs", "repoUrl": "https://github.com/someone/else"},
            headers=headers_for(other_user.id),
        )
        resp = client.get("/api/contexts", headers=auth_headers)
        assert [c["id"] for c in resp.json()] == [context.id]

    def test_deactivate(self, client, auth_headers, context):
        resp = client.delete(f"/api/contexts/{context.id}", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["isActive"] is False
        assert client.get("/api/contexts", headers=auth_headers).json() == []

        start = client.post("/api/analysis", json={"contextId": context.id}, headers=auth_headers)
        assert start.status_code == 400

    def test_other_users_context_is_forbidden(self, client, context, other_user):
        resp = client.get(f"/api/contexts/{context.id}", headers=headers_for(other_user.id))
        assert resp.status_code == 403
        resp = client.delete(f"/api/contexts/{context.id}", headers=headers_for(other_user.id))
        assert resp.status_code == 403
