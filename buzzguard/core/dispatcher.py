"""Verified event classification and hand-off to the check workflow.

Only ``pull_request`` events whose action is in the configured allow-set
start a workflow run.  Runs are queued on FastAPI ``BackgroundTasks``, which
Starlette executes after the response has been sent, so the route never
awaits them.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable

from fastapi import BackgroundTasks

from buzzguard.core.exceptions import PayloadShapeError
from buzzguard.core.verifier import VerifiedEvent
from buzzguard.core.workflow import PullRequestContext

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "pull_request"
DEFAULT_ACTIONS: frozenset[str] = frozenset({"opened", "synchronize"})

WorkflowRunner = Callable[[PullRequestContext], Awaitable[object]]


class EventDispatcher:
    """Decides which verified events deserve a check run."""

    def __init__(
        self,
        event_type: str = DEFAULT_EVENT_TYPE,
        actions: Iterable[str] = DEFAULT_ACTIONS,
    ) -> None:
        self.event_type = event_type
        self.actions = frozenset(actions)

    def is_eligible(self, event: VerifiedEvent) -> bool:
        return event.event_type == self.event_type and event.action in self.actions

    def dispatch(
        self,
        event: VerifiedEvent,
        background_tasks: BackgroundTasks,
        run: WorkflowRunner,
    ) -> bool:
        """Schedule ``run`` for an eligible event.  Returns whether it was scheduled."""
        if not self.is_eligible(event):
            logger.debug(
                "Event not eligible for a check run, ignoring",
                extra={"event": event.event_type, "action": event.action, "delivery_id": event.delivery_id},
            )
            return False

        try:
            pr = PullRequestContext.from_payload(event.payload)
        except PayloadShapeError as exc:
            logger.warning(
                "Eligible event without pull request coordinates, ignoring: %s",
                exc,
                extra={"event": event.event_type, "delivery_id": event.delivery_id},
            )
            return False

        logger.info(
            "Processing PR payload…",
            extra={
                "action": event.action,
                "delivery_id": event.delivery_id,
                "repo": pr.repo_full_name,
                "pr_number": pr.pull_number,
                "head_sha": pr.head_sha[:8],
            },
        )
        background_tasks.add_task(run, pr)
        return True
