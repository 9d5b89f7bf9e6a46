"""Webhook registration endpoints.

GET  /webhook/setup: repositories we can hook, plus the ngrok URL if any
POST /webhook/setup: register the ``pull_request`` hook on one repository

The hook is created with the same secret token the verifier checks.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from buzzguard.core.exceptions import GitHubError, TunnelNotFoundError
from buzzguard.core.tunnel import find_tunnel_url
from buzzguard.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["setup"])


class HookSetupRequest(BaseModel):
    repo: str
    url: str | None = None


async def _tunnel_webhook_url(runtime: Runtime) -> str | None:
    try:
        url = await find_tunnel_url(runtime.settings.port, runtime.settings.tunnel_api_url)
    except TunnelNotFoundError:
        return None
    return url.rstrip("/") + "/webhook"


@router.get("/webhook/setup")
async def list_hookable_repos(runtime: Runtime = Depends(get_runtime)) -> dict:
    """List repositories and the tunnel URL the hook should point at."""
    try:
        repos = await runtime.github.list_repositories()
    except GitHubError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"repos": repos, "tunnel_url": await _tunnel_webhook_url(runtime)}


@router.post("/webhook/setup", status_code=201)
async def create_webhook(
    body: HookSetupRequest,
    runtime: Runtime = Depends(get_runtime),
) -> dict:
    """Register our webhook on ``body.repo``."""
    url = body.url or await _tunnel_webhook_url(runtime)
    if not url:
        raise HTTPException(status_code=400, detail="No hook URL given and no ngrok tunnel found")

    try:
        hook_id = await runtime.github.create_hook(body.repo, url, runtime.secret.text)
    except GitHubError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    logger.info("Webhook set up", extra={"repo": body.repo, "hook_id": hook_id})
    return {"status": "created", "repo": body.repo, "hook_id": hook_id, "url": url}
