"""Review-workflow state engine.

This package implements the core of a cross-model plan review: validating
each round's reviewer submission, tracking issue identity and lifecycle
across rounds, flagging likely duplicate issues, gating approval on open
CRITICAL/HIGH issues, and the audited force-approval protocol.
"""

from crossreview.review.errors import (
    CorruptWorkspaceError,
    CrossReviewError,
    MalformedResponseError,
    OverrideRejectedError,
    RoundSequenceError,
    SameProviderFamilyError,
    SchemaViolationError,
    UnknownWorkspaceError,
    WorkspaceFrozenError,
)
from crossreview.review.finalizer import Finalizer
from crossreview.review.ledger import IssueLedger
from crossreview.review.models import (
    ConfirmationMethod,
    DedupWarning,
    ForceApproveLog,
    Issue,
    IssueSeverity,
    IssueStatus,
    NewIssue,
    OverallVerdict,
    PriorIssueUpdate,
    ReviewSummary,
    RoundOutcome,
    RoundVerdict,
    Verdict,
    WorkspaceMeta,
)
from crossreview.review.processor import (
    InvalidRoundTransitionError,
    RoundProcessor,
    RoundState,
    VALID_ROUND_TRANSITIONS,
    validate_round_transition,
)
from crossreview.review.providers import detect_provider_family, ensure_cross_provider
from crossreview.review.similarity import jaccard_similarity
from crossreview.review.state import WorkspaceState
from crossreview.review.validator import (
    collect_schema_errors,
    decode_response,
    extract_payload,
    parse_round_verdict,
    validate_round_verdict,
)

__all__ = [
    "ConfirmationMethod",
    "CorruptWorkspaceError",
    "CrossReviewError",
    "DedupWarning",
    "Finalizer",
    "ForceApproveLog",
    "InvalidRoundTransitionError",
    "Issue",
    "IssueLedger",
    "IssueSeverity",
    "IssueStatus",
    "MalformedResponseError",
    "NewIssue",
    "OverallVerdict",
    "OverrideRejectedError",
    "PriorIssueUpdate",
    "ReviewSummary",
    "RoundOutcome",
    "RoundProcessor",
    "RoundSequenceError",
    "RoundState",
    "RoundVerdict",
    "SameProviderFamilyError",
    "SchemaViolationError",
    "UnknownWorkspaceError",
    "VALID_ROUND_TRANSITIONS",
    "Verdict",
    "WorkspaceFrozenError",
    "WorkspaceMeta",
    "WorkspaceState",
    "collect_schema_errors",
    "decode_response",
    "detect_provider_family",
    "ensure_cross_provider",
    "extract_payload",
    "jaccard_similarity",
    "parse_round_verdict",
    "validate_round_transition",
    "validate_round_verdict",
]
