"""Round processing for the review workflow.

Applies one reviewer submission to a workspace. A round moves through:

    PENDING_VALIDATION -> VALIDATED -> LEDGER_UPDATED -> VERDICT_RESOLVED

A submission that fails validation moves to REJECTED and leaves the
workspace untouched. Prior-issue updates are applied before new issues
are registered so that duplicate detection sees the post-update open set.

The effective verdict is computed here, never trusted from input: any
open CRITICAL/HIGH issue forces REVISE even when the reviewer said
APPROVED.
"""

from __future__ import annotations

from enum import Enum

import structlog

from crossreview.review.errors import (
    CrossReviewError,
    RoundSequenceError,
    WorkspaceFrozenError,
)
from crossreview.review.ledger import DEFAULT_DEDUP_THRESHOLD
from crossreview.review.models import OverallVerdict, RoundOutcome, RoundVerdict, Verdict
from crossreview.review.state import WorkspaceState
from crossreview.review.validator import parse_round_verdict

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class RoundState(str, Enum):
    """Processing states of a single round.

    States:
        PENDING_VALIDATION: Raw submission received.
        VALIDATED: Submission parsed and schema-checked.
        LEDGER_UPDATED: Prior updates applied and new issues registered.
        VERDICT_RESOLVED: Gating rule applied, outcome produced.
        REJECTED: Submission failed validation; nothing was mutated.
    """

    PENDING_VALIDATION = "pending_validation"
    VALIDATED = "validated"
    LEDGER_UPDATED = "ledger_updated"
    VERDICT_RESOLVED = "verdict_resolved"
    REJECTED = "rejected"


VALID_ROUND_TRANSITIONS: dict[RoundState, set[RoundState]] = {
    RoundState.PENDING_VALIDATION: {RoundState.VALIDATED, RoundState.REJECTED},
    RoundState.VALIDATED: {RoundState.LEDGER_UPDATED},
    RoundState.LEDGER_UPDATED: {RoundState.VERDICT_RESOLVED},
    RoundState.VERDICT_RESOLVED: set(),
    RoundState.REJECTED: set(),
}


class InvalidRoundTransitionError(CrossReviewError):
    """Raised when a round state transition is not allowed.

    Attributes:
        current: The current round state.
        target: The attempted target state.
        round_number: The round being processed.
    """

    def __init__(
        self,
        current: RoundState,
        target: RoundState,
        round_number: int | None = None,
    ) -> None:
        self.current = current
        self.target = target
        self.round_number = round_number
        msg = f"Invalid round transition from {current.value} to {target.value}"
        if round_number is not None:
            msg += f" for round {round_number}"
        super().__init__(msg)


def validate_round_transition(current: RoundState, target: RoundState) -> bool:
    """Return True if the transition is allowed by VALID_ROUND_TRANSITIONS."""
    return target in VALID_ROUND_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class RoundProcessor:
    """Applies reviewer submissions to a workspace, one round at a time.

    Attributes:
        dedup_threshold: Similarity at or above which new issues are
            flagged as possible duplicates.
        state: State of the round most recently processed.
    """

    def __init__(self, dedup_threshold: float = DEFAULT_DEDUP_THRESHOLD) -> None:
        self.dedup_threshold = dedup_threshold
        self.state = RoundState.PENDING_VALIDATION
        self._logger = logger.bind(component="RoundProcessor")

    def _transition(self, target: RoundState, round_number: int) -> None:
        if not validate_round_transition(self.state, target):
            raise InvalidRoundTransitionError(self.state, target, round_number)
        self._logger.debug(
            "round_transition",
            round=round_number,
            from_state=self.state.value,
            to_state=target.value,
        )
        self.state = target

    def _check_sequence(self, workspace: WorkspaceState, round_number: int) -> None:
        meta = workspace.meta
        if workspace.frozen:
            raise WorkspaceFrozenError(meta.workspace)
        if round_number <= meta.current_round or round_number > meta.max_rounds:
            raise RoundSequenceError(round_number, meta.current_round, meta.max_rounds)

    def process(
        self, workspace: WorkspaceState, raw_text: str | bytes, round_number: int
    ) -> RoundOutcome:
        """Validate a raw reviewer response and apply it to the workspace.

        Args:
            workspace: Workspace state to update in place.
            raw_text: Raw reviewer output, as text or UTF-8 bytes.
            round_number: Round being submitted.

        Returns:
            The round outcome with the effective verdict.

        Raises:
            WorkspaceFrozenError: If the workspace is finalized.
            RoundSequenceError: If the round number is out of order or
                beyond the budget.
            MalformedResponseError: If the bytes are not UTF-8 or no JSON
                could be extracted.
            SchemaViolationError: If the document's fields are invalid.
        """
        self.state = RoundState.PENDING_VALIDATION
        self._check_sequence(workspace, round_number)

        try:
            verdict = parse_round_verdict(raw_text)
        except CrossReviewError:
            self._transition(RoundState.REJECTED, round_number)
            self._logger.warning("round_rejected", round=round_number)
            raise

        return self.process_verdict(workspace, verdict, round_number)

    def process_verdict(
        self, workspace: WorkspaceState, verdict: RoundVerdict, round_number: int
    ) -> RoundOutcome:
        """Apply an already-validated RoundVerdict to the workspace.

        Args:
            workspace: Workspace state to update in place.
            verdict: Validated reviewer submission.
            round_number: Round being submitted.

        Returns:
            The round outcome with the effective verdict.
        """
        self.state = RoundState.PENDING_VALIDATION
        self._check_sequence(workspace, round_number)
        self._transition(RoundState.VALIDATED, round_number)

        ledger = workspace.ledger
        unknown_ids = ledger.apply_prior_updates(verdict.prior_issues, round_number)
        new_issues, dedup_warnings = ledger.register_new_issues(
            verdict.new_issues, round_number, threshold=self.dedup_threshold
        )
        self._transition(RoundState.LEDGER_UPDATED, round_number)

        blockers = ledger.blockers()
        effective = Verdict.REVISE if blockers else verdict.verdict

        if effective != verdict.verdict:
            self._logger.warning(
                "verdict_overridden",
                round=round_number,
                reviewer_verdict=verdict.verdict.value,
                effective_verdict=effective.value,
                blockers=[issue.id for issue in blockers],
            )

        workspace.meta.current_round = round_number
        workspace.meta.verdict = OverallVerdict(effective.value)
        self._transition(RoundState.VERDICT_RESOLVED, round_number)

        outcome = RoundOutcome(
            round=round_number,
            verdict=effective,
            reviewer_verdict=verdict.verdict,
            summary=verdict.summary,
            new_issue_ids=[issue.id for issue in new_issues],
            dedup_warnings=dedup_warnings,
            blockers=[issue.id for issue in blockers],
            unknown_issue_ids=unknown_ids,
        )

        self._logger.info(
            "round_processed",
            round=round_number,
            verdict=effective.value,
            new_issues=len(new_issues),
            dedup_warnings=len(dedup_warnings),
            blockers=len(blockers),
        )
        return outcome
