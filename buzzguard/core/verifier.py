"""Webhook delivery verification.

Strict ordering for every ``POST /webhook``:
  1. Read the body and compute its HMAC-SHA1 at the same time
  2. Compare signatures in constant time (403 on mismatch, body never parsed)
  3. Parse the verified payload as JSON

Any failure raises a ``WebhookDenial``; the application turns it into a
single plain-text response.  On success the caller owns the reply.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

from starlette.requests import Request

from buzzguard.core.body import BodyTee, collect_body
from buzzguard.core.exceptions import PayloadParseError, SignatureMismatch, TransportError
from buzzguard.core.security import (
    SecretToken,
    compute_signature,
    expected_signature,
    signatures_match,
)

logger = logging.getLogger(__name__)

EVENT_HEADER = "x-github-event"
DELIVERY_HEADER = "x-github-delivery"
SIGNATURE_HEADER = "x-hub-signature"


@dataclass(frozen=True)
class VerifiedEvent:
    """A delivery whose signature checked out, with its parsed payload."""

    event_type: str
    delivery_id: str
    payload: dict[str, Any]

    @property
    def action(self) -> str:
        action = self.payload.get("action", "")
        return action if isinstance(action, str) else ""


class WebhookVerifier:
    """Authenticates deliveries against the process-wide secret token."""

    def __init__(self, secret: SecretToken, max_body_bytes: int | None = None) -> None:
        self._secret = secret
        self._max_body_bytes = max_body_bytes

    async def verify(self, request: Request) -> VerifiedEvent:
        """Verify ``request`` and return the authenticated event.

        Raises:
            TransportError: The body could not be read or decoded.
            SignatureMismatch: ``X-Hub-Signature`` does not match the body.
            PayloadParseError: The verified body is not a JSON object.
        """
        digest, text = await self._read_signed_body(request)

        event_type = request.headers.get(EVENT_HEADER, "")
        delivery_id = request.headers.get(DELIVERY_HEADER, "")
        logger.info(
            "===== %s (%s) =====",
            event_type,
            delivery_id,
            extra={"event": event_type, "delivery_id": delivery_id},
        )

        if not signatures_match(expected_signature(digest), request.headers.get(SIGNATURE_HEADER)):
            logger.warning(
                "Invalid signature: denying request",
                extra={"event": event_type, "delivery_id": delivery_id},
            )
            raise SignatureMismatch()

        return VerifiedEvent(
            event_type=event_type,
            delivery_id=delivery_id,
            payload=_parse_payload(text, delivery_id),
        )

    async def _read_signed_body(self, request: Request) -> tuple[str, str]:
        tee = BodyTee(
            request.stream(),
            limit=self._max_body_bytes,
            declared_length=_declared_length(request),
        )
        signer_chunks, text_chunks = tee.branches
        tasks = [
            asyncio.ensure_future(compute_signature(signer_chunks, self._secret.key)),
            asyncio.ensure_future(collect_body(text_chunks)),
            asyncio.ensure_future(tee.pump()),
        ]
        try:
            digest, text, _ = await asyncio.gather(*tasks)
        except TransportError as exc:
            for task in tasks:
                task.cancel()
            logger.warning(
                "Could not read webhook body: %s",
                exc.message,
                extra={"status_code": exc.status_code, "received": tee.received},
            )
            raise
        return digest, text


def _declared_length(request: Request) -> int | None:
    raw = request.headers.get("content-length")
    if raw is None or not raw.strip().isdigit():
        return None
    return int(raw)


def _parse_payload(text: str, delivery_id: str) -> dict[str, Any]:
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError) as exc:
        logger.warning("Malformed payload after valid signature", extra={"delivery_id": delivery_id})
        raise PayloadParseError() from exc
    if not isinstance(payload, dict):
        logger.warning("Payload is not a JSON object", extra={"delivery_id": delivery_id})
        raise PayloadParseError()
    return payload
