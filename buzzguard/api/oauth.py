"""OAuth endpoints used to obtain the access token the checks run with."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from buzzguard.core import oauth
from buzzguard.core.exceptions import GitHubError
from buzzguard.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["oauth"])


@router.get("/authorize")
async def request_authorization(runtime: Runtime = Depends(get_runtime)) -> RedirectResponse:
    settings = runtime.settings
    return RedirectResponse(
        oauth.authorization_url(
            settings.github_client_id,
            settings.oauth_callback_url,
            settings.github_oauth_url,
        )
    )


@router.get("/callback")
async def exchange_code(code: str, runtime: Runtime = Depends(get_runtime)) -> dict[str, str]:
    """Trade GitHub's authorization code for a token and start using it."""
    settings = runtime.settings
    try:
        token = await oauth.exchange_code_for_token(
            settings.github_client_id,
            settings.github_client_secret,
            code,
            oauth_base=settings.github_oauth_url,
        )
    except GitHubError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    runtime.github.access_token = token
    return {"status": "authorized"}


@router.get("/check_token")
async def check_token(runtime: Runtime = Depends(get_runtime)) -> dict[str, str]:
    settings = runtime.settings
    try:
        await oauth.check_token(
            settings.github_client_id,
            settings.github_client_secret,
            runtime.github.access_token,
            api_base=settings.github_api_url,
        )
    except GitHubError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"status": "valid"}
