"""Process-lifetime collaborators, built once at startup.

The secret token, GitHub client, verifier, dispatcher and workflow are
created in the FastAPI lifespan and kept on ``app.state.runtime``.  Routes
reach them through the ``get_runtime`` dependency.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from fastapi import Request

from buzzguard.config import Settings
from buzzguard.core.dispatcher import EventDispatcher
from buzzguard.core.github_client import GitHubClient
from buzzguard.core.security import SecretToken
from buzzguard.core.verifier import WebhookVerifier
from buzzguard.core.workflow import CheckWorkflow

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    secret: SecretToken
    github: GitHubClient
    verifier: WebhookVerifier
    dispatcher: EventDispatcher
    workflow: CheckWorkflow

    @classmethod
    def from_settings(cls, settings: Settings, github: GitHubClient | None = None) -> Runtime:
        secret = SecretToken.from_config(settings.webhook_secret.get_secret_value())
        if github is None:
            github = GitHubClient(settings.github_access_token, base_url=settings.github_api_url)
        return cls(
            settings=settings,
            secret=secret,
            github=github,
            verifier=WebhookVerifier(secret, max_body_bytes=settings.max_body_bytes),
            dispatcher=EventDispatcher(settings.eligible_event, settings.eligible_actions),
            workflow=CheckWorkflow(
                github,
                settings.status_context,
                re.compile(settings.buzzword_pattern, re.IGNORECASE),
            ),
        )


def get_runtime(request: Request) -> Runtime:
    """FastAPI dependency returning the collaborators built at startup."""
    runtime: Runtime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise RuntimeError("Runtime not initialized: is the app running inside its lifespan?")
    return runtime
