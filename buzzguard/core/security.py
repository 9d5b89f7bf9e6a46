"""HMAC-SHA1 webhook signatures and the shared secret token.

GitHub signs every delivery with ``X-Hub-Signature: sha1=<hex_digest>``,
an HMAC-SHA1 of the raw body keyed with the secret given at hook creation.
The digest is computed incrementally so it can run over the same chunks the
body collector is reading, and compared with hmac.compare_digest() so the
check takes the same time wherever the first differing byte is.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import AsyncIterable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = "sha1="
SECRET_TOKEN_BYTES = 32


@dataclass(frozen=True)
class SecretToken:
    """Webhook secret shared by hook registration and signature verification.

    The value never shows up in ``repr()`` so it cannot leak through logs.
    """

    text: str = field(repr=False)

    @classmethod
    def generate(cls) -> SecretToken:
        """Create a fresh random token for this process."""
        return cls(secrets.token_hex(SECRET_TOKEN_BYTES))

    @classmethod
    def from_config(cls, configured: str) -> SecretToken:
        """Use the configured secret, or generate one when none is set."""
        if configured:
            return cls(configured)
        logger.info("No webhook secret configured, generated a fresh one for this run")
        return cls.generate()

    @property
    def key(self) -> bytes:
        return self.text.encode("utf-8")


class StreamSigner:
    """Incremental HMAC-SHA1 over a body that arrives in chunks."""

    def __init__(self, key: bytes) -> None:
        self._mac = hmac.new(key, digestmod=hashlib.sha1)

    def update(self, chunk: bytes) -> None:
        self._mac.update(chunk)

    def hexdigest(self) -> str:
        return self._mac.hexdigest()


async def compute_signature(chunks: AsyncIterable[bytes], key: bytes) -> str:
    """Return the lowercase hex HMAC-SHA1 of every chunk in ``chunks``.

    Errors raised by the stream propagate untouched: a broken read never
    yields the signature of an empty (or truncated) body.
    """
    signer = StreamSigner(key)
    async for chunk in chunks:
        signer.update(chunk)
    return signer.hexdigest()


def expected_signature(hexdigest: str) -> str:
    """Format a digest the way GitHub sends it in ``X-Hub-Signature``."""
    return SIGNATURE_SCHEME + hexdigest


def signatures_match(expected: str, supplied: str | None) -> bool:
    """Compare two signatures in constant time.

    A missing header is compared as an empty value rather than short-circuited,
    so absent and wrong signatures follow the same path.
    """
    return hmac.compare_digest(
        expected.encode("utf-8"),
        (supplied or "").encode("utf-8"),
    )
