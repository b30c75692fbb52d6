"""Data models for the review workflow.

Defines the enums and Pydantic models shared by the validator, the issue
ledger, the round processor and the finalizer: tracked issues, the
documents a reviewer submits each round, the per-round outcome, the
workspace metadata and the finalize-time summary.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    computed_field,
    field_validator,
)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class IssueSeverity(str, Enum):
    """Severity of a criticism raised by the reviewer.

    CRITICAL and HIGH issues block approval while they remain open.
    """

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IssueStatus(str, Enum):
    """Lifecycle status of a tracked issue.

    Statuses:
        OPEN: Raised this run and not yet re-assessed.
        RESOLVED: Reviewer confirmed the plan now addresses it.
        STILL_OPEN: Reviewer re-assessed it and it persists.
        REGRESSED: Was addressed, then broke again.
        NOT_APPLICABLE: Reviewer withdrew it.
        FORCE_APPROVED: Closed by an audited human override.
    """

    OPEN = "open"
    RESOLVED = "resolved"
    STILL_OPEN = "still-open"
    REGRESSED = "regressed"
    NOT_APPLICABLE = "not-applicable"
    FORCE_APPROVED = "force-approved"


class Verdict(str, Enum):
    """Verdict a reviewer may state for a round."""

    APPROVED = "APPROVED"
    REVISE = "REVISE"


class OverallVerdict(str, Enum):
    """Workspace-level verdict recorded in the metadata."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REVISE = "REVISE"
    FORCE_APPROVED = "FORCE_APPROVED"


class ConfirmationMethod(str, Enum):
    """How a force-approval was confirmed."""

    INTERACTIVE = "interactive"
    UNATTENDED = "unattended"


OPEN_STATUSES: frozenset[IssueStatus] = frozenset(
    {IssueStatus.OPEN, IssueStatus.STILL_OPEN, IssueStatus.REGRESSED}
)
CLOSED_STATUSES: frozenset[IssueStatus] = frozenset(
    {IssueStatus.RESOLVED, IssueStatus.NOT_APPLICABLE, IssueStatus.FORCE_APPROVED}
)
# Statuses a reviewer may assign to a prior issue. An issue can never go
# back to "open", and only the finalizer may force-approve.
REVIEWER_STATUSES: frozenset[IssueStatus] = frozenset(
    {
        IssueStatus.RESOLVED,
        IssueStatus.STILL_OPEN,
        IssueStatus.REGRESSED,
        IssueStatus.NOT_APPLICABLE,
    }
)
BLOCKING_SEVERITIES: frozenset[IssueSeverity] = frozenset(
    {IssueSeverity.CRITICAL, IssueSeverity.HIGH}
)


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


class Issue(BaseModel):
    """A single criticism tracked across the whole run.

    Identity, severity, the criticism text and the round it was found in
    are frozen; only the status fields change after creation.

    Attributes:
        id: Stable identifier (``ISS-001``), never reused.
        severity: Severity level.
        location: Free-text pointer into the plan.
        problem: Description of the problem.
        fix: Proposed fix.
        status: Current lifecycle status.
        round_found: Round the issue was first raised.
        round_resolved: Round the issue was closed, None while open.
        last_evidence: Evidence from the most recent status update.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(frozen=True)
    severity: IssueSeverity = Field(frozen=True)
    location: str = Field(frozen=True)
    problem: str = Field(frozen=True)
    fix: str = Field(frozen=True)
    status: IssueStatus = IssueStatus.OPEN
    round_found: int = Field(frozen=True, ge=1)
    round_resolved: int | None = None
    last_evidence: str | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_blocker(self) -> bool:
        return self.is_open and self.severity in BLOCKING_SEVERITIES


# ---------------------------------------------------------------------------
# Submitted documents
# ---------------------------------------------------------------------------


class PriorIssueUpdate(BaseModel):
    """Reviewer's re-assessment of a previously raised issue."""

    id: StrictStr = Field(..., min_length=1)
    status: IssueStatus
    evidence: StrictStr | None = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: IssueStatus) -> IssueStatus:
        """Reject statuses a reviewer is not allowed to assign.

        Raises:
            ValueError: If status is ``open`` or ``force-approved``.
        """
        if v not in REVIEWER_STATUSES:
            allowed = sorted(s.value for s in REVIEWER_STATUSES)
            raise ValueError(f"Invalid status: {v.value}. Must be one of {allowed}")
        return v


class NewIssue(BaseModel):
    """A newly raised issue, before the ledger assigns it an id."""

    severity: IssueSeverity
    location: StrictStr = Field(..., min_length=1)
    problem: StrictStr = Field(..., min_length=1)
    fix: StrictStr = Field(..., min_length=1)


class RoundVerdict(BaseModel):
    """The document a reviewer submits for one round.

    Attributes:
        verdict: Stated verdict (APPROVED or REVISE).
        prior_issues: Status updates for previously raised issues.
        new_issues: Issues raised for the first time this round.
        summary: Human-readable summary of the review.
    """

    verdict: Verdict
    prior_issues: list[PriorIssueUpdate]
    new_issues: list[NewIssue]
    summary: StrictStr


# ---------------------------------------------------------------------------
# Derived records
# ---------------------------------------------------------------------------


class DedupWarning(BaseModel):
    """Advisory flag that a new issue resembles one that is already open."""

    new_issue_index: int = Field(..., ge=0)
    new_issue_id: str
    possible_duplicate_of: str
    similarity: float = Field(..., ge=0.0, le=1.0)
    note: str


class RoundOutcome(BaseModel):
    """Result of processing one round, persisted as round-N-outcome.json.

    Attributes:
        round: Round number.
        verdict: Effective verdict after the gating rule.
        reviewer_verdict: Verdict the reviewer stated.
        summary: Reviewer summary text.
        new_issue_ids: Ids assigned to this round's new issues.
        dedup_warnings: Advisory duplicate warnings.
        blockers: Ids blocking approval after this round.
        unknown_issue_ids: Prior-issue references that matched no issue.
    """

    round: int = Field(..., ge=1)
    verdict: Verdict
    reviewer_verdict: Verdict
    summary: str
    new_issue_ids: list[str] = Field(default_factory=list)
    dedup_warnings: list[DedupWarning] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)
    unknown_issue_ids: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def verdict_overridden(self) -> bool:
        """True when the reviewer said APPROVED but blockers forced REVISE."""
        return self.verdict != self.reviewer_verdict


class ForceApproveLog(BaseModel):
    """Audit record of a force-approval."""

    actor: str
    reason: str
    timestamp: datetime
    overridden_issue_ids: list[str]
    confirmation_method: ConfirmationMethod


class SeverityCounts(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class ReviewSummary(BaseModel):
    """Finalize-time summary, persisted as summary.json."""

    rounds: int
    planner_model: str
    reviewer_model: str
    total_issues_found: int
    issues_by_severity: SeverityCounts
    issues_resolved: int
    issues_unresolved: int
    final_verdict: OverallVerdict
    completed_at: datetime
    force_approve_log: ForceApproveLog | None = None


class WorkspaceMeta(BaseModel):
    """Workspace metadata, persisted as meta.json.

    Attributes:
        created_at: Creation timestamp.
        reviewer_model: Reviewer model identifier.
        planner_model: Planner model identifier.
        reviewer_family: Detected reviewer provider family.
        planner_family: Detected planner provider family.
        max_rounds: Round budget.
        current_round: Last processed round, 0 before the first.
        verdict: Current overall verdict.
        workspace: Workspace directory.
        completed_at: Set once the workspace is finalized.
        force_approve_log: Audit record kept for finalize re-runs.
    """

    created_at: datetime
    reviewer_model: str
    planner_model: str
    reviewer_family: str
    planner_family: str
    max_rounds: int = Field(default=5, ge=1)
    current_round: int = Field(default=0, ge=0)
    verdict: OverallVerdict = OverallVerdict.PENDING
    workspace: str
    completed_at: datetime | None = None
    force_approve_log: ForceApproveLog | None = None
