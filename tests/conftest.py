"""Shared pytest fixtures for crossreview tests.

Provides factories for reviewer submissions and in-memory workspace state,
and resets logging between tests so that a configured handler never
outlives the stream it was bound to.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

import pytest
import structlog

from crossreview.logging import set_correlation_id
from crossreview.review.ledger import IssueLedger
from crossreview.review.models import WorkspaceMeta
from crossreview.review.state import WorkspaceState

SubmissionFactory = Callable[..., str]
StateFactory = Callable[..., WorkspaceState]


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Reset stdlib and structlog configuration around each test."""
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    set_correlation_id(None)
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    set_correlation_id(None)


@pytest.fixture
def new_issue() -> Callable[..., dict[str, Any]]:
    """Factory producing a raw new-issue entry as a reviewer would submit it."""

    def _build(
        severity: str = "CRITICAL",
        problem: str = "No rate limiting on login",
        location: str = "Section 2: Authentication",
        fix: str = "Add a per-IP token bucket in front of the login handler",
    ) -> dict[str, Any]:
        return {"severity": severity, "location": location, "problem": problem, "fix": fix}

    return _build


@pytest.fixture
def submission() -> SubmissionFactory:
    """Factory producing raw reviewer responses as JSON text.

    Example:
        >>> submission("REVISE", new=[new_issue()])
    """

    def _build(
        verdict: str = "REVISE",
        prior: list[dict[str, Any]] | None = None,
        new: list[dict[str, Any]] | None = None,
        summary: str = "Review complete",
    ) -> str:
        return json.dumps(
            {
                "verdict": verdict,
                "prior_issues": prior or [],
                "new_issues": new or [],
                "summary": summary,
            }
        )

    return _build


@pytest.fixture
def make_state() -> StateFactory:
    """Factory producing a fresh, empty workspace state."""

    def _build(max_rounds: int = 5) -> WorkspaceState:
        meta = WorkspaceMeta(
            created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            reviewer_model="openai/gpt-4o",
            planner_model="anthropic/claude-sonnet-4-6",
            reviewer_family="openai",
            planner_family="anthropic",
            max_rounds=max_rounds,
            workspace="tasks/reviews/test-workspace",
        )
        return WorkspaceState(meta=meta, ledger=IssueLedger())

    return _build
