"""GitHub OAuth web flow helpers.

Only what the setup pages need: the authorize URL, the code-for-token
exchange, and a token validity check.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx

from buzzguard.core.exceptions import GitHubAPIError, GitHubAuthError, GitHubResponseError
from buzzguard.core.github_client import GITHUB_API_BASE

logger = logging.getLogger(__name__)

GITHUB_OAUTH_BASE = "https://github.com/login/oauth"
REQUESTED_SCOPES = "repo admin:repo_hook"


def authorization_url(client_id: str, callback_url: str, oauth_base: str = GITHUB_OAUTH_BASE) -> str:
    """URL the user is redirected to in order to grant repository access."""
    query = urlencode(
        {"client_id": client_id, "redirect_uri": callback_url, "scope": REQUESTED_SCOPES}
    )
    return f"{oauth_base.rstrip('/')}/authorize?{query}"


async def exchange_code_for_token(
    client_id: str,
    client_secret: str,
    code: str,
    *,
    oauth_base: str = GITHUB_OAUTH_BASE,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Trade an authorization code for an access token.

    Raises:
        GitHubAuthError: GitHub refused the code (expired, reused, wrong app).
        GitHubAPIError: Transport failure or unexpected status.
        GitHubResponseError: The response body is not a JSON object.
    """
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        try:
            response = await client.post(
                f"{oauth_base.rstrip('/')}/access_token",
                headers={"Accept": "application/json"},
                json={"client_id": client_id, "client_secret": client_secret, "code": code},
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"OAuth token exchange failed: {exc}") from exc

    if response.status_code >= 400:
        raise GitHubAPIError(
            f"OAuth token exchange returned {response.status_code}",
            status_code=response.status_code,
        )

    try:
        data = response.json()
    except ValueError as exc:
        raise GitHubResponseError(f"Non-JSON OAuth token response: {response.text[:200]}") from exc
    if not isinstance(data, dict):
        raise GitHubResponseError("OAuth token response is not a JSON object")
    if "error" in data or not data.get("access_token"):
        raise GitHubAuthError(str(data.get("error_description") or data.get("error") or "No access token"))

    logger.info("Got an OAuth access token", extra={"scopes": data.get("scope", "")})
    return str(data["access_token"])


async def check_token(
    client_id: str,
    client_secret: str,
    access_token: str,
    *,
    api_base: str = GITHUB_API_BASE,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Ask GitHub whether ``access_token`` is still valid for this app.

    Raises:
        GitHubAuthError: The token was revoked or never belonged to this app.
    """
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        try:
            response = await client.post(
                f"{api_base.rstrip('/')}/applications/{client_id}/token",
                auth=(client_id, client_secret),
                headers={"Accept": "application/vnd.github+json"},
                json={"access_token": access_token},
            )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"Token check failed: {exc}") from exc

    if response.status_code in (401, 404, 422):
        raise GitHubAuthError("OAuth token is no longer valid")
    if response.status_code >= 400:
        raise GitHubAPIError(
            f"Token check returned {response.status_code}",
            status_code=response.status_code,
        )
