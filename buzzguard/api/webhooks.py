"""GitHub webhook receiver.

POST /webhook receives the repository hook deliveries.
  1. Read the raw body and compute its HMAC-SHA1 concurrently
  2. Verify the signature (FIRST check, before any parsing)
  3. Parse the payload
  4. Schedule an eligible event's check run as a background task
  5. Return "OK" immediately

The check run itself starts only once this response has been sent.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import PlainTextResponse

from buzzguard.runtime import Runtime, get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    runtime: Runtime = Depends(get_runtime),
) -> PlainTextResponse:
    """Receive and validate a GitHub webhook delivery.

    Returns:
        ``200 OK`` once the delivery is verified, eligible or not.

    Raises:
        WebhookDenial: Rendered as 403 (bad signature), or the transport /
            parse status with a short reason.
    """
    event = await runtime.verifier.verify(request)
    runtime.dispatcher.dispatch(event, background_tasks, runtime.workflow.run)
    return PlainTextResponse("OK")
