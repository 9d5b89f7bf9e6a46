"""Banned-buzzword detection in commit messages.

Two pure functions:
- ``detect_buzzwords(commits) -> BuzzwordReport`` scans every commit message
- ``compose_failure_message(report) -> str | None`` renders one sentence

Pure stdlib: ``re`` and dataclasses only.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from buzzguard.core.github_client import CommitRecord

logger = logging.getLogger(__name__)


# =============================================================================
#  Constants
# =============================================================================

DEFAULT_BUZZWORD_REGEX = r"utili[sz]e|synerg(?:y|i[sz]e)|growth hack(?:er|ing)?|leverag(?:e|ing)"
BUZZWORD_PATTERN = re.compile(DEFAULT_BUZZWORD_REGEX, re.IGNORECASE)

SENTENCE_THRESHOLD = 3
ABBREV_SHA_LENGTH = 7


# =============================================================================
#  Report
# =============================================================================


@dataclass
class BuzzwordFinding:
    """Buzzwords found in one commit, in the order they appear."""

    author: str
    culprits: list[str] = field(default_factory=list)


BuzzwordReport = dict[str, BuzzwordFinding]


def detect_buzzwords(
    commits: Iterable[CommitRecord],
    pattern: re.Pattern[str] = BUZZWORD_PATTERN,
) -> BuzzwordReport:
    """Map each offending commit sha to its author and matched terms.

    Commits without a match get no entry, so an empty report means the
    pull request is clean.
    """
    report: BuzzwordReport = {}
    for commit in commits:
        for match in pattern.finditer(commit.message):
            finding = report.setdefault(commit.sha, BuzzwordFinding(author=commit.author_login))
            finding.culprits.append(match.group(0))
    return report


# =============================================================================
#  Message
# =============================================================================


def to_sentence(items: Sequence[str], overflow_label: str, threshold: int = SENTENCE_THRESHOLD) -> str:
    """Join ``items`` as English prose.

    >>> to_sentence(["a", "b", "c"], "authors including")
    'a, b and c'
    >>> to_sentence(["a", "b", "c", "d"], "authors including")
    '4 authors including a, b and c'
    """
    shown = list(items[:threshold])
    if len(shown) > 1:
        shown[-2:] = [" and ".join(shown[-2:])]
    sentence = ", ".join(shown)
    if len(items) > threshold:
        sentence = f"{len(items)} {overflow_label} {sentence}"
    return sentence


def compose_failure_message(report: BuzzwordReport) -> str | None:
    """Summarize a report as ``<who> went overboard with <what> in <where>``.

    Returns None for an empty report (nothing to complain about).
    """
    if not report:
        return None

    abbrevs = list(dict.fromkeys(sha[:ABBREV_SHA_LENGTH] for sha in report))
    authors = sorted({finding.author for finding in report.values()})
    terms = [
        f"“{term}”"
        for term in sorted(
            {culprit.lower() for finding in report.values() for culprit in finding.culprits}
        )
    ]

    who = to_sentence(authors, "authors including")
    what = to_sentence(terms, "terms such as")
    where = to_sentence(abbrevs, "commits including")
    return f"{who} went overboard with {what} in {where}"
