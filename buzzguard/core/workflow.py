"""Banned-buzzword check workflow.

A strictly sequential state machine, run after the webhook response:

    PENDING ──report pending──▶ INSPECTING ──list commits──▶ REPORTING ──report result──▶ DONE
       │                            │                            │
       └────────────────────────────┴────────────────────────────┴──▶ FAILED

Each stage makes one attempt; failures are never retried.  The outcome is
logged once, when the run ends.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from buzzguard.core.buzzwords import (
    BUZZWORD_PATTERN,
    BuzzwordReport,
    compose_failure_message,
    detect_buzzwords,
)
from buzzguard.core.exceptions import GitHubError, PayloadShapeError, WorkflowStageError
from buzzguard.core.github_client import MAX_PAGE_SIZE, CheckState, CommitStatus, GitHubClient

logger = logging.getLogger(__name__)

PENDING_DESCRIPTION = "Reviewing commit messages for banned wording…"
SUCCESS_DESCRIPTION = "I like your commit messages!"


@dataclass(frozen=True)
class PullRequestContext:
    """Coordinates shared by every call of one run."""

    repo_full_name: str
    head_sha: str
    pull_number: int

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> PullRequestContext:
        """Derive the context from a ``pull_request`` event payload.

        Raises:
            PayloadShapeError: If the base repository, head sha or number is missing.
        """
        # Fork PRs: the number belongs to the base repository, not the head one.
        try:
            pr = payload["pull_request"]
            repo_full_name = pr["base"]["repo"]["full_name"]
            head_sha = pr["head"]["sha"]
            pull_number = pr["number"]
        except (KeyError, TypeError) as exc:
            raise PayloadShapeError(f"Missing pull request field: {exc}") from exc

        if not isinstance(repo_full_name, str) or not repo_full_name:
            raise PayloadShapeError("Empty base repository name")
        if not isinstance(head_sha, str) or not head_sha:
            raise PayloadShapeError("Empty head sha")
        if not isinstance(pull_number, int) or isinstance(pull_number, bool) or pull_number <= 0:
            raise PayloadShapeError(f"Invalid pull request number: {pull_number!r}")

        return cls(repo_full_name=repo_full_name, head_sha=head_sha, pull_number=pull_number)


class WorkflowState(enum.Enum):
    PENDING = "pending"
    INSPECTING = "inspecting"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class WorkflowOutcome:
    """What one run did: where it stopped and which states it reported."""

    state: WorkflowState = WorkflowState.PENDING
    reported: list[CheckState] = field(default_factory=list)
    report: BuzzwordReport = field(default_factory=dict)
    message: str | None = None
    error: WorkflowStageError | None = None


class CheckWorkflow:
    """Runs the buzzword check for one pull request head and reports the result."""

    def __init__(
        self,
        github: GitHubClient,
        context_label: str,
        pattern: re.Pattern[str] = BUZZWORD_PATTERN,
    ) -> None:
        self.github = github
        self.context_label = context_label
        self.pattern = pattern

    async def run(self, pr: PullRequestContext) -> WorkflowOutcome:
        """Drive the state machine to DONE or FAILED.  Never raises GitHubError."""
        outcome = WorkflowOutcome()
        try:
            await self._report(pr, outcome, CheckState.PENDING, PENDING_DESCRIPTION)
            outcome.state = WorkflowState.INSPECTING

            outcome.report = await self._inspect(pr)
            outcome.state = WorkflowState.REPORTING

            outcome.message = compose_failure_message(outcome.report)
            if outcome.message:
                await self._report(pr, outcome, CheckState.FAILURE, outcome.message)
            else:
                await self._report(pr, outcome, CheckState.SUCCESS, SUCCESS_DESCRIPTION)
            outcome.state = WorkflowState.DONE
        except WorkflowStageError as exc:
            outcome.error = exc
            outcome.state = WorkflowState.FAILED

        self._log_outcome(pr, outcome)
        return outcome

    async def _report(
        self,
        pr: PullRequestContext,
        outcome: WorkflowOutcome,
        state: CheckState,
        description: str,
    ) -> None:
        status = CommitStatus(state=state, description=description, context=self.context_label)
        try:
            await self.github.create_status(pr.repo_full_name, pr.head_sha, status)
        except GitHubError as exc:
            raise WorkflowStageError(f"report {state.value} status", exc) from exc
        outcome.reported.append(state)

    async def _inspect(self, pr: PullRequestContext) -> BuzzwordReport:
        try:
            commits = await self.github.list_pull_request_commits(
                pr.repo_full_name, pr.pull_number, per_page=MAX_PAGE_SIZE
            )
        except GitHubError as exc:
            raise WorkflowStageError("list commits", exc) from exc
        return detect_buzzwords(commits, self.pattern)

    @staticmethod
    def _log_outcome(pr: PullRequestContext, outcome: WorkflowOutcome) -> None:
        extra = {
            "repo": pr.repo_full_name,
            "pr_number": pr.pull_number,
            "head_sha": pr.head_sha[:8],
            "state": outcome.state.value,
            "reported": [state.value for state in outcome.reported],
        }
        if outcome.error is not None:
            logger.error(
                "Error while processing pull request commits: %s",
                outcome.error,
                extra=extra,
            )
        else:
            logger.info(
                "Pull request commits successfully processed (%d offending)",
                len(outcome.report),
                extra=extra,
            )
