"""Finalization and the force-approval override protocol.

A workspace with no open CRITICAL/HIGH issues finalizes as APPROVED. With
blockers remaining, finalization fails closed unless a human supplies an
override reason and confirms it, either interactively (typing the
confirmation token) or unattended (an explicit force flag). A successful
override closes every blocker as ``force-approved`` and records an audit
log in the summary.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import structlog

from crossreview.review.errors import OverrideRejectedError
from crossreview.review.models import (
    ConfirmationMethod,
    ForceApproveLog,
    OverallVerdict,
    ReviewSummary,
)
from crossreview.review.state import WorkspaceState

logger = structlog.get_logger(__name__)

# Receives the warning prompt, returns what the human typed
ConfirmCallback = Callable[[str], str]

DEFAULT_CONFIRMATION_TOKEN = "CONFIRM"
DEFAULT_MIN_REASON_LENGTH = 10


class Finalizer:
    """Closes a review run and produces its summary.

    Attributes:
        min_reason_length: Minimum override reason length.
        confirmation_token: Exact text an interactive user must type.
    """

    def __init__(
        self,
        min_reason_length: int = DEFAULT_MIN_REASON_LENGTH,
        confirmation_token: str = DEFAULT_CONFIRMATION_TOKEN,
    ) -> None:
        self.min_reason_length = min_reason_length
        self.confirmation_token = confirmation_token
        self._logger = logger.bind(component="Finalizer")

    def finalize(
        self,
        workspace: WorkspaceState,
        override_reason: str | None = None,
        force: bool = False,
        confirm: ConfirmCallback | None = None,
        actor: str = "unknown",
        now: datetime | None = None,
    ) -> ReviewSummary:
        """Finalize the workspace, force-approving blockers if authorized.

        Args:
            workspace: Workspace state; updated in place on success.
            override_reason: Why open blockers may be bypassed.
            force: Unattended confirmation flag.
            confirm: Interactive confirmation callback. Ignored when
                ``force`` is set.
            actor: Who is finalizing, recorded in the audit log.
            now: Completion timestamp, defaults to the current UTC time.

        Returns:
            The review summary.

        Raises:
            OverrideRejectedError: If blockers remain and the override is
                missing, too short, or not confirmed. Nothing is mutated.
        """
        completed_at = now or datetime.now(timezone.utc)
        ledger = workspace.ledger
        meta = workspace.meta
        blockers = ledger.blockers()

        force_log: ForceApproveLog | None = None
        if blockers:
            blocker_ids = [issue.id for issue in blockers]
            method = self._authorize(blocker_ids, override_reason, force, confirm)
            force_log = ForceApproveLog(
                actor=actor,
                reason=(override_reason or "").strip(),
                timestamp=completed_at,
                overridden_issue_ids=blocker_ids,
                confirmation_method=method,
            )
            ledger.force_approve(blocker_ids, meta.current_round)
            meta.force_approve_log = force_log
            self._logger.warning(
                "force_approved",
                actor=actor,
                issue_ids=blocker_ids,
                confirmation_method=method.value,
            )
        elif ledger.force_approved_issues():
            # Re-run after an earlier override: keep that verdict and audit log
            force_log = meta.force_approve_log

        verdict = (
            OverallVerdict.FORCE_APPROVED
            if ledger.force_approved_issues()
            else OverallVerdict.APPROVED
        )

        resolved = len(ledger.resolved_issues())
        summary = ReviewSummary(
            rounds=meta.current_round,
            planner_model=meta.planner_model,
            reviewer_model=meta.reviewer_model,
            total_issues_found=len(ledger),
            issues_by_severity=ledger.severity_counts(),
            issues_resolved=resolved,
            issues_unresolved=len(ledger) - resolved,
            final_verdict=verdict,
            completed_at=completed_at,
            force_approve_log=force_log,
        )

        meta.verdict = verdict
        meta.completed_at = completed_at

        self._logger.info(
            "workspace_finalized",
            verdict=verdict.value,
            rounds=summary.rounds,
            issues_found=summary.total_issues_found,
            issues_resolved=resolved,
        )
        return summary

    def _authorize(
        self,
        blocker_ids: list[str],
        override_reason: str | None,
        force: bool,
        confirm: ConfirmCallback | None,
    ) -> ConfirmationMethod:
        reason = (override_reason or "").strip()
        if not reason:
            raise OverrideRejectedError(
                f"Cannot finalize: {len(blocker_ids)} CRITICAL/HIGH issue(s) still "
                "open. Supply an override reason to force-approve",
                blocker_ids,
            )
        if len(reason) < self.min_reason_length:
            raise OverrideRejectedError(
                f"Override reason must be at least {self.min_reason_length} characters",
                blocker_ids,
            )

        if force:
            return ConfirmationMethod.UNATTENDED

        if confirm is None:
            raise OverrideRejectedError(
                "Force-approve in non-interactive mode requires both an override "
                "reason and the force flag",
                blocker_ids,
            )

        prompt = (
            "FORCE APPROVE: This will bypass unresolved CRITICAL/HIGH issues.\n"
            f"Unresolved: {', '.join(blocker_ids)}\n"
            f'Override reason: "{reason}"\n'
            f"Type {self.confirmation_token} to proceed"
        )
        answer = confirm(prompt)
        if answer.strip() != self.confirmation_token:
            raise OverrideRejectedError(
                f"Force-approve aborted (did not receive {self.confirmation_token})",
                blocker_ids,
            )
        return ConfirmationMethod.INTERACTIVE
