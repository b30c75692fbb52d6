"""Workflow facade tying the engine to workspace persistence.

Each operation loads the workspace, runs one engine step, and persists the
result only when the step succeeds. A rejected submission or a rejected
override therefore leaves every file on disk exactly as it was.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from crossreview.config import ReviewConfig
from crossreview.logging import bind_review_context
from crossreview.review.finalizer import ConfirmCallback, Finalizer
from crossreview.review.models import OverallVerdict, RoundOutcome, ReviewSummary
from crossreview.review.processor import RoundProcessor
from crossreview.review.providers import FamilyDetector, detect_provider_family
from crossreview.workspace import WorkspaceStore

logger = structlog.get_logger(__name__)

_PROBLEM_PREVIEW_LENGTH = 80


class ReviewWorkflow:
    """Runs init / process-round / finalize / status against workspaces.

    Attributes:
        config: Review configuration.
        processor: Round processor.
        finalizer: Finalizer implementing the override protocol.
    """

    def __init__(
        self,
        config: ReviewConfig | None = None,
        detector: FamilyDetector = detect_provider_family,
    ) -> None:
        self.config = config or ReviewConfig()
        self.detector = detector
        self.processor = RoundProcessor(dedup_threshold=self.config.dedup_threshold)
        self.finalizer = Finalizer(
            min_reason_length=self.config.min_override_reason_length,
            confirmation_token=self.config.confirmation_token,
        )

    def init_workspace(
        self,
        plan_text: str,
        reviewer_model: str,
        planner_model: str,
        root: Path | None = None,
        max_rounds: int | None = None,
    ) -> WorkspaceStore:
        """Create a workspace for a new review run."""
        return WorkspaceStore.create(
            root or self.config.workspace_root,
            plan_text,
            reviewer_model,
            planner_model,
            max_rounds=max_rounds or self.config.max_rounds,
            detector=self.detector,
        )

    def process_round(
        self, workspace: Path, raw_text: str | bytes, round_number: int | None = None
    ) -> RoundOutcome:
        """Apply one raw reviewer response to a workspace.

        Args:
            workspace: Workspace directory.
            raw_text: Raw reviewer output, as text or UTF-8 bytes.
            round_number: Round being submitted; defaults to the round after
                the last processed one.

        Returns:
            The persisted round outcome.
        """
        store = WorkspaceStore.open(workspace)
        state = store.load_state()
        if round_number is None:
            round_number = state.meta.current_round + 1
        bind_review_context(str(workspace), round_number)

        outcome = self.processor.process(state, raw_text, round_number)

        store.save_state(state)
        store.write_round_outcome(outcome)
        store.log_round(state, outcome)
        return outcome

    def finalize(
        self,
        workspace: Path,
        override_reason: str | None = None,
        force: bool = False,
        confirm: ConfirmCallback | None = None,
        actor: str = "unknown",
    ) -> ReviewSummary:
        """Finalize a workspace, writing summary.json and plan-final.md."""
        store = WorkspaceStore.open(workspace)
        state = store.load_state()
        bind_review_context(str(workspace))

        summary = self.finalizer.finalize(
            state,
            override_reason=override_reason,
            force=force,
            confirm=confirm,
            actor=actor,
        )

        store.save_state(state)
        store.write_summary(summary)
        store.write_final_plan()
        store.log_final(summary)
        return summary

    def status(self, workspace: Path) -> dict[str, Any]:
        """Report the current ledger state of a workspace."""
        store = WorkspaceStore.open(workspace)
        state = store.load_state()
        ledger = state.ledger
        meta = state.meta

        def preview(text: str) -> str:
            if len(text) > _PROBLEM_PREVIEW_LENGTH:
                return text[:_PROBLEM_PREVIEW_LENGTH] + "..."
            return text

        return {
            "workspace": str(workspace),
            "verdict": meta.verdict.value,
            "current_round": meta.current_round,
            "max_rounds": meta.max_rounds,
            "reviewer_model": meta.reviewer_model,
            "planner_model": meta.planner_model,
            "finalized": state.frozen,
            "total_issues": len(ledger),
            "open_issues": len(ledger.open_issues()),
            "resolved_issues": len(ledger.resolved_issues()),
            "blockers": [
                {
                    "id": issue.id,
                    "severity": issue.severity.value,
                    "problem": issue.problem,
                }
                for issue in ledger.blockers()
            ],
            "all_issues": [
                {
                    "id": issue.id,
                    "severity": issue.severity.value,
                    "status": issue.status.value,
                    "location": issue.location,
                    "problem": preview(issue.problem),
                }
                for issue in ledger
            ],
        }


def is_approved(verdict: OverallVerdict | str) -> bool:
    """True for APPROVED and FORCE_APPROVED verdicts."""
    return OverallVerdict(verdict) in {
        OverallVerdict.APPROVED,
        OverallVerdict.FORCE_APPROVED,
    }
