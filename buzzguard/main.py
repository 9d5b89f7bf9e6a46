"""FastAPI application entry point.

Start with:
    uvicorn buzzguard.main:app --port 45678

The app skeleton wires:
- Lifespan startup: logging, secret token and GitHub client (``Runtime``)
- One exception handler turning webhook denials into plain-text replies
- Router includes for the webhook, setup, OAuth and health endpoints
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from buzzguard.config import get_settings
from buzzguard.core.exceptions import GitHubError, TunnelNotFoundError, WebhookDenial
from buzzguard.core.tunnel import find_tunnel_url
from buzzguard.runtime import Runtime

logger = logging.getLogger(__name__)

# Below this the API treats us as anonymous (60 requests/hour).
ANONYMOUS_RATE_LIMIT = 60


# ---------------------------------------------------------------------------
#  Lifespan: startup / shutdown
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: build the runtime and announce how to reach us."""
    settings = get_settings()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Buzzguard starting up", extra={"public_url": settings.public_url})

    runtime = Runtime.from_settings(settings)
    app.state.runtime = runtime

    if settings.startup_checks:
        await _check_credentials(runtime)
        await _announce_tunnel(runtime)

    yield

    logger.info("Buzzguard shutting down")


async def _check_credentials(runtime: Runtime) -> None:
    if not runtime.github.access_token:
        logger.warning("No GitHub access token yet; authorize the app via /oauth/authorize")
        return
    try:
        limit = await runtime.github.get_rate_limit()
    except GitHubError as exc:
        logger.error("Error when verifying GitHub credentials: %s", exc)
        return
    if limit <= ANONYMOUS_RATE_LIMIT:
        logger.error("GitHub credentials seem to fail authentication", extra={"limit": limit})
    else:
        logger.info("GitHub credentials successfully authenticate", extra={"limit": limit})


async def _announce_tunnel(runtime: Runtime) -> None:
    port = runtime.settings.port
    try:
        url = await find_tunnel_url(port, runtime.settings.tunnel_api_url)
    except TunnelNotFoundError:
        logger.info("No ngrok session found; launch one with: ngrok http %d", port)
        return
    logger.info("Running ngrok session for our port: %s", url)


# ---------------------------------------------------------------------------
#  FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Buzzguard",
    description="Flags pull requests whose commit messages went overboard with buzzwords",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(WebhookDenial)
async def webhook_denial_handler(request: Request, exc: WebhookDenial) -> PlainTextResponse:
    """Reply to a refused delivery with its status and a plain-text reason."""
    return PlainTextResponse(exc.message, status_code=exc.status_code)


# ---------------------------------------------------------------------------
#  Router Registration
# ---------------------------------------------------------------------------

from buzzguard.api.webhooks import router as webhook_router  # noqa: E402
from buzzguard.api.setup import router as setup_router  # noqa: E402
from buzzguard.api.oauth import router as oauth_router  # noqa: E402
from buzzguard.api.health import router as health_router  # noqa: E402

app.include_router(webhook_router)
app.include_router(setup_router)
app.include_router(oauth_router, prefix="/oauth")
app.include_router(health_router)
