"""Issue ledger: the authoritative store of every issue raised in a run.

The ledger assigns stable identifiers, applies reviewer status updates,
registers new issues with advisory duplicate detection, and is the single
source of truth for which issues block approval. Nothing derived from it
(blockers, counts) is cached.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Iterator
from typing import Any

import structlog

from crossreview.review.models import (
    DedupWarning,
    Issue,
    IssueStatus,
    NewIssue,
    PriorIssueUpdate,
    SeverityCounts,
)
from crossreview.review.similarity import jaccard_similarity

logger = structlog.get_logger(__name__)

ISSUE_ID_PREFIX = "ISS"
_ISSUE_ID_PATTERN = re.compile(r"ISS-(\d+)")

DEFAULT_DEDUP_THRESHOLD = 0.6

# Statuses that close an issue when set by a reviewer
_RESOLVING_STATUSES = {IssueStatus.RESOLVED, IssueStatus.NOT_APPLICABLE}


class IssueLedger:
    """Ordered collection of every issue raised during a review run.

    Issues are never removed. Identifiers are derived from the highest
    numeric suffix ever assigned, so resolving an issue never frees its id.

    Attributes:
        issues: Issues in the order they were registered.
    """

    def __init__(self, issues: Iterable[Issue] = ()) -> None:
        self.issues: list[Issue] = list(issues)
        self._logger = logger.bind(component="IssueLedger")

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> IssueLedger:
        """Build a ledger from persisted issue records."""
        return cls(Issue.model_validate(record) for record in records)

    def snapshot(self) -> list[dict[str, Any]]:
        """Serialize the ledger to JSON-compatible records."""
        return [issue.model_dump(mode="json") for issue in self.issues]

    def __iter__(self) -> Iterator[Issue]:
        return iter(self.issues)

    def __len__(self) -> int:
        return len(self.issues)

    def get(self, issue_id: str) -> Issue | None:
        """Look up an issue by id."""
        for issue in self.issues:
            if issue.id == issue_id:
                return issue
        return None

    # -----------------------------------------------------------------------
    # Identity
    # -----------------------------------------------------------------------

    def next_issue_id(self) -> str:
        """Return the next unused identifier (``ISS-001``, ``ISS-002``, ...).

        Computed from the maximum numeric suffix across all issues ever
        created, not only the open ones.
        """
        highest = 0
        for issue in self.issues:
            match = _ISSUE_ID_PATTERN.search(issue.id)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{ISSUE_ID_PREFIX}-{highest + 1:03d}"

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def apply_prior_updates(
        self, updates: Iterable[PriorIssueUpdate], round_number: int
    ) -> list[str]:
        """Apply reviewer status updates to previously raised issues.

        Resolving statuses stamp ``round_resolved``; reopening statuses
        clear it. Evidence is overwritten, never accumulated. Updates that
        reference an unknown id are skipped and logged.

        Args:
            updates: Status updates from the reviewer, applied in order.
            round_number: Round the updates belong to.

        Returns:
            Ids referenced by updates that matched no issue.
        """
        unknown_ids: list[str] = []

        for update in updates:
            issue = self.get(update.id)
            if issue is None:
                unknown_ids.append(update.id)
                self._logger.warning(
                    "unknown_issue_reference",
                    issue_id=update.id,
                    round=round_number,
                )
                continue

            previous = issue.status
            issue.status = update.status
            if update.status in _RESOLVING_STATUSES:
                issue.round_resolved = round_number
            else:
                issue.round_resolved = None
            issue.last_evidence = update.evidence

            self._logger.info(
                "issue_status_updated",
                issue_id=issue.id,
                from_status=previous.value,
                to_status=update.status.value,
                round=round_number,
            )

        return unknown_ids

    def register_new_issues(
        self,
        raw_issues: Iterable[NewIssue],
        round_number: int,
        threshold: float = DEFAULT_DEDUP_THRESHOLD,
    ) -> tuple[list[Issue], list[DedupWarning]]:
        """Register newly raised issues, flagging likely duplicates.

        Each new issue is compared against every currently open issue,
        including those registered earlier in the same call. A maximum
        similarity at or above ``threshold`` produces a warning naming the
        closest candidate. The issue is registered either way.

        Args:
            raw_issues: New issues in submission order.
            round_number: Round the issues were raised in.
            threshold: Minimum Jaccard similarity for a warning.

        Returns:
            Tuple of (registered issues, dedup warnings).
        """
        registered: list[Issue] = []
        warnings: list[DedupWarning] = []

        for index, raw in enumerate(raw_issues):
            best_score = 0.0
            best_match: str | None = None
            for candidate in self.open_issues():
                score = jaccard_similarity(raw.problem, candidate.problem)
                if score > best_score:
                    best_score = score
                    best_match = candidate.id

            issue = Issue(
                id=self.next_issue_id(),
                severity=raw.severity,
                location=raw.location,
                problem=raw.problem,
                fix=raw.fix,
                status=IssueStatus.OPEN,
                round_found=round_number,
            )
            self.issues.append(issue)
            registered.append(issue)

            if best_match is not None and best_score >= threshold:
                warning = DedupWarning(
                    new_issue_index=index,
                    new_issue_id=issue.id,
                    possible_duplicate_of=best_match,
                    similarity=math.floor(best_score * 100 + 0.5) / 100,
                    note=(
                        f"New issue overlaps significantly with {best_match}. "
                        "Confirm if distinct."
                    ),
                )
                warnings.append(warning)
                self._logger.warning(
                    "dedup_warning",
                    issue_id=issue.id,
                    possible_duplicate_of=best_match,
                    similarity=warning.similarity,
                )

            self._logger.info(
                "issue_registered",
                issue_id=issue.id,
                severity=issue.severity.value,
                round=round_number,
            )

        return registered, warnings

    def force_approve(self, issue_ids: Iterable[str], round_number: int) -> None:
        """Close the given issues as force-approved in ``round_number``."""
        for issue_id in issue_ids:
            issue = self.get(issue_id)
            if issue is None:
                continue
            issue.status = IssueStatus.FORCE_APPROVED
            issue.round_resolved = round_number

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def open_issues(self) -> list[Issue]:
        """Issues whose status is open, still-open or regressed."""
        return [issue for issue in self.issues if issue.is_open]

    def resolved_issues(self) -> list[Issue]:
        """Issues closed by resolution, withdrawal or force-approval."""
        return [issue for issue in self.issues if not issue.is_open]

    def blockers(self) -> list[Issue]:
        """Open CRITICAL or HIGH issues; approval is gated on this being empty."""
        return [issue for issue in self.issues if issue.is_blocker]

    def force_approved_issues(self) -> list[Issue]:
        return [
            issue
            for issue in self.issues
            if issue.status == IssueStatus.FORCE_APPROVED
        ]

    def severity_counts(self) -> SeverityCounts:
        counts = SeverityCounts()
        for issue in self.issues:
            key = issue.severity.value.lower()
            setattr(counts, key, getattr(counts, key) + 1)
        return counts
