"""Shared fixtures: a running app with a known secret and no startup network calls."""

from __future__ import annotations

import hashlib
import hmac
from collections.abc import Callable, Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from buzzguard.config import Settings
from buzzguard.main import app

# Test secret used in all HMAC tests.
TEST_SECRET = "test_webhook_secret_1234567890abcdef"


@pytest.fixture()
def settings() -> Settings:
    """Settings with the test secret; ignores any local .env file."""
    return Settings(
        _env_file=None,
        webhook_secret=TEST_SECRET,
        startup_checks=False,
        max_body_bytes=64 * 1024,
    )


@pytest.fixture()
def client(settings: Settings) -> Iterator[TestClient]:
    """A TestClient running the app lifespan with the test settings."""
    with patch("buzzguard.main.get_settings", return_value=settings):
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client


@pytest.fixture()
def sign() -> Callable[..., str]:
    """Compute a valid HMAC-SHA1 ``X-Hub-Signature`` value for a payload."""

    def _sign(payload: bytes, secret: str = TEST_SECRET) -> str:
        signature = hmac.new(
            key=secret.encode("utf-8"),
            msg=payload,
            digestmod=hashlib.sha1,
        ).hexdigest()
        return f"sha1={signature}"

    return _sign


@pytest.fixture()
def workflow_run(client: TestClient) -> AsyncMock:
    """Replace the check workflow so background runs are recorded, not executed."""
    run = AsyncMock()
    client.app.state.runtime.workflow = MagicMock(run=run)
    return run
