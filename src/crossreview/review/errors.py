"""Error taxonomy for the crossreview engine.

Every error raised by the engine derives from ``CrossReviewError`` and
carries enough context (field, issue id, round, path) for the caller to act
without re-deriving workspace state. The CLI maps all of them to exit
code 2.
"""

from __future__ import annotations

from pathlib import Path


class CrossReviewError(Exception):
    """Base class for all crossreview errors."""


class MalformedResponseError(CrossReviewError):
    """Raised when no structured document can be extracted from a response.

    Attributes:
        excerpt: Leading slice of the offending raw text.
    """

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.excerpt = raw_text[:200]
        super().__init__(message)


class SchemaViolationError(CrossReviewError):
    """Raised when a response parsed but its fields are invalid.

    Attributes:
        errors: Field-level error messages, never empty.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(
            f"Response failed schema validation ({len(self.errors)} errors)"
        )


class UnknownWorkspaceError(CrossReviewError):
    """Raised when an operation targets a workspace that was never initialized.

    Attributes:
        path: The path that was expected to hold a workspace.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Not a review workspace: {path}")


class CorruptWorkspaceError(CrossReviewError):
    """Raised when a workspace document cannot be read or fails validation.

    Attributes:
        path: The unreadable document.
        detail: Underlying decode or validation error.
    """

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Corrupt workspace document {path}: {detail}")


class SameProviderFamilyError(CrossReviewError):
    """Raised when reviewer and planner resolve to the same provider family.

    Attributes:
        family: The shared provider family.
        reviewer_model: Reviewer model identifier.
        planner_model: Planner model identifier.
    """

    def __init__(self, family: str, reviewer_model: str, planner_model: str) -> None:
        self.family = family
        self.reviewer_model = reviewer_model
        self.planner_model = planner_model
        super().__init__(
            f"Reviewer ({reviewer_model}) and planner ({planner_model}) are from "
            f"the same provider family ({family}). Cross-provider review required."
        )


class OverrideRejectedError(CrossReviewError):
    """Raised when a force-approval attempt does not satisfy the protocol.

    Attributes:
        blocker_ids: Ids of the issues still blocking approval.
        reason: Why the override was rejected.
    """

    def __init__(self, reason: str, blocker_ids: list[str]) -> None:
        self.reason = reason
        self.blocker_ids = list(blocker_ids)
        blockers = ", ".join(self.blocker_ids) or "none"
        super().__init__(f"{reason} (open blockers: {blockers})")


class RoundSequenceError(CrossReviewError):
    """Raised when a round number breaks the monotonic round history.

    Attributes:
        round_number: The round that was submitted.
        current_round: The last processed round.
        max_rounds: The workspace round budget.
    """

    def __init__(self, round_number: int, current_round: int, max_rounds: int) -> None:
        self.round_number = round_number
        self.current_round = current_round
        self.max_rounds = max_rounds
        if round_number > max_rounds:
            msg = f"Round {round_number} exceeds the round budget of {max_rounds}"
        else:
            msg = (
                f"Round {round_number} must be greater than the last "
                f"processed round ({current_round})"
            )
        super().__init__(msg)


class WorkspaceFrozenError(CrossReviewError):
    """Raised when a round is submitted to an already finalized workspace."""

    def __init__(self, workspace: str) -> None:
        self.workspace = workspace
        super().__init__(f"Workspace {workspace} has been finalized")
