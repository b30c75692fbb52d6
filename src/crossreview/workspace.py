"""On-disk persistence of review workspaces.

A workspace is a directory holding the documents of one review run:

    meta.json               workspace metadata and overall verdict
    issues.json             the issue ledger (authoritative)
    plan-v1.md              plan text as submitted at init
    round-N-outcome.json    one per processed round
    changelog.md            human-readable, append-only, derived
    summary.json            written at finalize (authoritative)
    plan-final.md           latest plan with review comments stripped

JSON documents are written through a temporary file and ``os.replace`` so
a crash never leaves a half-written document behind.
"""

from __future__ import annotations

import json
import os
import re
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TypeVar

import structlog

from crossreview.review.errors import CorruptWorkspaceError, UnknownWorkspaceError
from crossreview.review.ledger import IssueLedger
from crossreview.review.models import (
    IssueStatus,
    RoundOutcome,
    ReviewSummary,
    WorkspaceMeta,
)
from crossreview.review.providers import (
    FamilyDetector,
    detect_provider_family,
    ensure_cross_provider,
)
from crossreview.review.state import WorkspaceState

logger = structlog.get_logger(__name__)

META_FILE = "meta.json"
ISSUES_FILE = "issues.json"
CHANGELOG_FILE = "changelog.md"
SUMMARY_FILE = "summary.json"
FINAL_PLAN_FILE = "plan-final.md"

_PLAN_VERSION_PATTERN = re.compile(r"^plan-v(\d+)\.md$")
_HTML_COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)
_BLANK_RUN_PATTERN = re.compile(r"\n{3,}")

T = TypeVar("T")


def _write_json(path: Path, data: Any) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp_path, path)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        # ValueError covers both JSONDecodeError and UnicodeDecodeError
        raise CorruptWorkspaceError(path, str(e)) from e


def _load_document(path: Path, build: Callable[[Any], T]) -> T:
    """Read a workspace JSON document and build a model from it."""
    data = _read_json(path)
    try:
        return build(data)
    except (TypeError, ValueError) as e:
        raise CorruptWorkspaceError(path, str(e)) from e


class WorkspaceStore:
    """Reads and writes the documents of one review workspace.

    Attributes:
        path: Workspace directory.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        root: Path,
        plan_text: str,
        reviewer_model: str,
        planner_model: str,
        max_rounds: int = 5,
        detector: FamilyDetector = detect_provider_family,
        now: datetime | None = None,
    ) -> WorkspaceStore:
        """Create a new workspace directory under ``root``.

        The provider-family check runs before anything touches the
        filesystem.

        Args:
            root: Base directory for workspaces.
            plan_text: Plan content, stored as plan-v1.md.
            reviewer_model: Reviewer model identifier.
            planner_model: Planner model identifier.
            max_rounds: Round budget.
            detector: Provider-family classification function.
            now: Creation timestamp, defaults to the current UTC time.

        Returns:
            Store for the new workspace.

        Raises:
            SameProviderFamilyError: If both models share a provider family.
        """
        reviewer_family, planner_family = ensure_cross_provider(
            reviewer_model, planner_model, detector
        )
        created_at = now or datetime.now(timezone.utc)

        stamp = created_at.strftime("%Y-%m-%dT%H-%M-%S")
        path = root / f"{stamp}-{uuid.uuid4().hex[:8]}"
        path.mkdir(parents=True, exist_ok=False)

        store = cls(path)
        meta = WorkspaceMeta(
            created_at=created_at,
            reviewer_model=reviewer_model,
            planner_model=planner_model,
            reviewer_family=reviewer_family,
            planner_family=planner_family,
            max_rounds=max_rounds,
            workspace=str(path),
        )
        (path / "plan-v1.md").write_text(plan_text, encoding="utf-8")
        store.save_state(WorkspaceState(meta=meta))
        (path / CHANGELOG_FILE).write_text(
            "# Review Changelog\n\n"
            f"Workspace: {path}\n"
            f"Started: {created_at.isoformat()}\n"
            f"Reviewer: {reviewer_model}\n"
            f"Planner: {planner_model}\n\n",
            encoding="utf-8",
        )

        logger.info(
            "workspace_created",
            workspace=str(path),
            reviewer_family=reviewer_family,
            planner_family=planner_family,
        )
        return store

    @classmethod
    def open(cls, path: Path) -> WorkspaceStore:
        """Open an existing workspace.

        Raises:
            UnknownWorkspaceError: If ``path`` holds no meta.json.
        """
        if not (path / META_FILE).is_file():
            raise UnknownWorkspaceError(path)
        return cls(path)

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------

    def load_state(self) -> WorkspaceState:
        meta = _load_document(self.path / META_FILE, WorkspaceMeta.model_validate)
        issues_path = self.path / ISSUES_FILE
        if issues_path.exists():
            ledger = _load_document(issues_path, IssueLedger.from_records)
        else:
            ledger = IssueLedger()
        return WorkspaceState(meta=meta, ledger=ledger)

    def save_state(self, state: WorkspaceState) -> None:
        _write_json(self.path / ISSUES_FILE, state.ledger.snapshot())
        _write_json(self.path / META_FILE, state.meta.model_dump(mode="json"))

    def round_outcome_path(self, round_number: int) -> Path:
        return self.path / f"round-{round_number}-outcome.json"

    def write_round_outcome(self, outcome: RoundOutcome) -> Path:
        path = self.round_outcome_path(outcome.round)
        _write_json(path, outcome.model_dump(mode="json"))
        return path

    def read_round_outcome(self, round_number: int) -> RoundOutcome:
        return _load_document(
            self.round_outcome_path(round_number), RoundOutcome.model_validate
        )

    def write_summary(self, summary: ReviewSummary) -> Path:
        path = self.path / SUMMARY_FILE
        _write_json(path, summary.model_dump(mode="json"))
        return path

    # -----------------------------------------------------------------------
    # Plan files
    # -----------------------------------------------------------------------

    def latest_plan(self) -> Path:
        """Return the highest-numbered plan-vN.md.

        Raises:
            FileNotFoundError: If the workspace holds no plan version.
        """
        versions: list[tuple[int, Path]] = []
        for entry in self.path.iterdir():
            match = _PLAN_VERSION_PATTERN.match(entry.name)
            if match:
                versions.append((int(match.group(1)), entry))
        if not versions:
            raise FileNotFoundError(f"No plan versions found in {self.path}")
        return max(versions)[1]

    def write_final_plan(self) -> Path:
        """Write plan-final.md: latest plan without HTML review comments."""
        text = self.latest_plan().read_text(encoding="utf-8")
        text = _HTML_COMMENT_PATTERN.sub("", text)
        text = _BLANK_RUN_PATTERN.sub("\n\n", text).strip() + "\n"
        path = self.path / FINAL_PLAN_FILE
        path.write_text(text, encoding="utf-8")
        return path

    # -----------------------------------------------------------------------
    # Changelog
    # -----------------------------------------------------------------------

    def append_changelog(self, entry: str) -> None:
        with open(self.path / CHANGELOG_FILE, "a", encoding="utf-8") as f:
            f.write(entry)

    def log_round(self, state: WorkspaceState, outcome: RoundOutcome) -> None:
        """Append the changelog entry for a processed round."""
        ledger = state.ledger
        new_issues = [ledger.get(issue_id) for issue_id in outcome.new_issue_ids]
        listed = ", ".join(
            f"{issue.id} {issue.severity.value}" for issue in new_issues if issue
        )
        resolved = sum(1 for issue in ledger if issue.status == IssueStatus.RESOLVED)
        lines = [
            f"\n## Round {outcome.round} - {datetime.now(timezone.utc).isoformat()}",
            f"Verdict: **{outcome.verdict.value}**",
            f"Summary: {outcome.summary}",
            f"New issues: {len(outcome.new_issue_ids)} ({listed or 'none'})",
            f"Dedup warnings: {len(outcome.dedup_warnings)}",
            f"Open blockers: {len(outcome.blockers)}",
            f"Total open: {len(ledger.open_issues())} | Resolved: {resolved}",
            "",
        ]
        self.append_changelog("\n".join(lines))

    def log_final(self, summary: ReviewSummary) -> None:
        """Append the closing changelog entry."""
        lines = [
            f"\n## FINAL - {summary.completed_at.isoformat()}",
            f"Verdict: **{summary.final_verdict.value}**",
            f"Rounds: {summary.rounds}",
            f"Issues found: {summary.total_issues_found} | "
            f"Resolved: {summary.issues_resolved} | "
            f"Unresolved: {summary.issues_unresolved}",
        ]
        log = summary.force_approve_log
        if log is not None:
            lines.append(f'Force-approved by: {log.actor} - "{log.reason}"')
        lines.append("")
        self.append_changelog("\n".join(lines))
