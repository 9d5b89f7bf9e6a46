"""Tests for the webhook setup, OAuth and health endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
from fastapi.testclient import TestClient

from buzzguard.core import oauth
from buzzguard.core.exceptions import GitHubAPIError, GitHubAuthError, TunnelNotFoundError


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestWebhookSetup:
    def test_hook_is_created_with_process_secret(self, client: TestClient) -> None:
        github = client.app.state.runtime.github
        with patch.object(github, "create_hook", AsyncMock(return_value=77)) as create_hook:
            response = client.post(
                "/webhook/setup",
                json={"repo": "octo/widgets", "url": "https://x.ngrok.io/webhook"},
            )

        assert response.status_code == 201
        assert response.json()["hook_id"] == 77
        create_hook.assert_awaited_once_with(
            "octo/widgets", "https://x.ngrok.io/webhook", client.app.state.runtime.secret.text
        )

    def test_github_failure_returns_503(self, client: TestClient) -> None:
        github = client.app.state.runtime.github
        with patch.object(github, "create_hook", AsyncMock(side_effect=GitHubAPIError("nope", 404))):
            response = client.post("/webhook/setup", json={"repo": "octo/widgets", "url": "https://x/webhook"})
        assert response.status_code == 503

    def test_missing_url_without_tunnel_returns_400(self, client: TestClient) -> None:
        with patch(
            "buzzguard.api.setup.find_tunnel_url",
            AsyncMock(side_effect=TunnelNotFoundError("none")),
        ):
            response = client.post("/webhook/setup", json={"repo": "octo/widgets"})
        assert response.status_code == 400

    def test_url_defaults_to_tunnel(self, client: TestClient) -> None:
        github = client.app.state.runtime.github
        with (
            patch("buzzguard.api.setup.find_tunnel_url", AsyncMock(return_value="https://t.ngrok.io")),
            patch.object(github, "create_hook", AsyncMock(return_value=1)) as create_hook,
        ):
            response = client.post("/webhook/setup", json={"repo": "octo/widgets"})
        assert response.status_code == 201
        assert create_hook.await_args.args[1] == "https://t.ngrok.io/webhook"

    def test_list_repos(self, client: TestClient) -> None:
        github = client.app.state.runtime.github
        with (
            patch("buzzguard.api.setup.find_tunnel_url", AsyncMock(side_effect=TunnelNotFoundError("none"))),
            patch.object(github, "list_repositories", AsyncMock(return_value=["octo/a"])),
        ):
            response = client.get("/webhook/setup")
        assert response.status_code == 200
        assert response.json() == {"repos": ["octo/a"], "tunnel_url": None}


class TestOAuthRoutes:
    def test_authorize_redirects_to_github(self, client: TestClient) -> None:
        response = client.get("/oauth/authorize", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"].startswith("https://github.com/login/oauth/authorize?")

    def test_callback_stores_token(self, client: TestClient) -> None:
        with patch(
            "buzzguard.api.oauth.oauth.exchange_code_for_token",
            AsyncMock(return_value="gho_fresh"),
        ):
            response = client.get("/oauth/callback", params={"code": "abc"})
        assert response.status_code == 200
        assert client.app.state.runtime.github.access_token == "gho_fresh"

    def test_callback_non_json_token_response_returns_503(self, client: TestClient) -> None:
        exchange = oauth.exchange_code_for_token
        html = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))

        async def exchange_against_html(*args, **kwargs):
            return await exchange(*args, transport=html, **kwargs)

        with patch("buzzguard.api.oauth.oauth.exchange_code_for_token", exchange_against_html):
            response = client.get("/oauth/callback", params={"code": "abc"})
        assert response.status_code == 503

    def test_check_token_failure_returns_503(self, client: TestClient) -> None:
        with patch(
            "buzzguard.api.oauth.oauth.check_token",
            AsyncMock(side_effect=GitHubAuthError("revoked")),
        ):
            response = client.get("/oauth/check_token")
        assert response.status_code == 503
