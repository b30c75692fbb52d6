"""Main CLI entry point for crossreview.

This module provides the Typer application that drives the review engine.

Usage:
    crossreview init --plan plan.md --reviewer-model openai/gpt-4o \\
        --planner-model anthropic/claude-sonnet-4-6
    crossreview process-round --workspace <dir> --response reply.txt
    crossreview finalize --workspace <dir>
    crossreview status --workspace <dir>

Exit codes:
    0   Approved / OK
    1   Revise / Unapproved
    2   Error (parse failure, schema violation, rejected override, bad flags)
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console

from crossreview.config import CrossReviewConfig, load_config
from crossreview.logging import get_logger, set_correlation_id, setup_logging
from crossreview.review.errors import CrossReviewError, SchemaViolationError
from crossreview.review.models import Verdict
from crossreview.review.workflow import ReviewWorkflow, is_approved

EXIT_OK = 0
EXIT_REVISE = 1
EXIT_ERROR = 2

app = typer.Typer(
    name="crossreview",
    help="crossreview: cross-model adversarial plan review",
    no_args_is_help=True,
)

err_console = Console(stderr=True)
logger = get_logger(__name__)


class AppContext:
    """Application context shared across CLI commands.

    Attributes:
        config: Loaded crossreview configuration
        workflow: Review workflow bound to the review configuration
    """

    def __init__(self, config: CrossReviewConfig):
        self.config = config
        self.workflow = ReviewWorkflow(config.review)


_app_context: AppContext | None = None


def get_app_context() -> AppContext:
    """Get the shared application context.

    Raises:
        RuntimeError: If context has not been initialized
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized. Call initialize_context first.")
    return _app_context


def initialize_context(config: CrossReviewConfig) -> AppContext:
    """Initialize the global application context."""
    global _app_context
    _app_context = AppContext(config)
    return _app_context


def _emit(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(error: CrossReviewError) -> typer.Exit:
    err_console.print(f"[red]ERROR:[/red] {error}", highlight=False)
    if isinstance(error, SchemaViolationError):
        for message in error.errors:
            err_console.print(f"  - {message}", highlight=False)
    return typer.Exit(code=EXIT_ERROR)


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


def _prompt_confirmation(prompt: str) -> str:
    try:
        return typer.prompt(prompt, default="", show_default=False, err=True)
    except typer.Abort:
        # EOF or Ctrl-C at the prompt counts as a refused confirmation
        return ""


def _resolve_actor(actor: str | None) -> str:
    return actor or os.environ.get("USER") or os.environ.get("CI_ACTOR") or "unknown"


@app.command()
def init(
    plan: Annotated[
        Path,
        typer.Option(
            "--plan",
            help="Path to the plan file",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    reviewer_model: Annotated[
        str, typer.Option("--reviewer-model", help="Reviewer model identifier")
    ],
    planner_model: Annotated[
        str, typer.Option("--planner-model", help="Planner model identifier")
    ],
    out: Annotated[
        Optional[Path],
        typer.Option("--out", help="Base directory for workspaces"),
    ] = None,
    max_rounds: Annotated[
        Optional[int],
        typer.Option("--max-rounds", min=1, help="Round budget for this review"),
    ] = None,
) -> None:
    """Create a review workspace and print its path."""
    ctx = get_app_context()
    try:
        store = ctx.workflow.init_workspace(
            plan.read_text(encoding="utf-8"),
            reviewer_model,
            planner_model,
            root=out,
            max_rounds=max_rounds,
        )
    except CrossReviewError as e:
        raise _fail(e)
    typer.echo(str(store.path))


def _process_round(workspace: Path, response: Path, round_number: int | None) -> None:
    ctx = get_app_context()
    raw_bytes = response.read_bytes()
    try:
        outcome = ctx.workflow.process_round(workspace, raw_bytes, round_number)
    except CrossReviewError as e:
        raise _fail(e)

    if outcome.verdict_overridden:
        err_console.print(
            f"[yellow]WARNING:[/yellow] Reviewer said APPROVED but "
            f"{len(outcome.blockers)} CRITICAL/HIGH issue(s) are still open. "
            "Overriding verdict to REVISE.",
            highlight=False,
        )

    _emit(
        {
            "verdict": outcome.verdict.value,
            "reviewer_verdict": outcome.reviewer_verdict.value,
            "verdict_overridden": outcome.verdict_overridden,
            "round": outcome.round,
            "new_issues": outcome.new_issue_ids,
            "blockers": outcome.blockers,
            "unknown_issue_ids": outcome.unknown_issue_ids,
            "dedup_warnings": [w.model_dump(mode="json") for w in outcome.dedup_warnings],
        }
    )
    raise typer.Exit(code=EXIT_OK if outcome.verdict == Verdict.APPROVED else EXIT_REVISE)


WorkspaceOption = Annotated[
    Path,
    typer.Option("--workspace", "-w", help="Path to the review workspace"),
]
ResponseOption = Annotated[
    Path,
    typer.Option(
        "--response",
        help="Path to the raw reviewer response",
        exists=True,
        dir_okay=False,
        readable=True,
    ),
]
RoundOption = Annotated[
    Optional[int],
    typer.Option("--round", min=1, help="Round number (default: next round)"),
]


@app.command("process-round")
def process_round(
    workspace: WorkspaceOption,
    response: ResponseOption,
    round_number: RoundOption = None,
) -> None:
    """Parse a reviewer response and update the issue ledger."""
    _process_round(workspace, response, round_number)


@app.command("parse-round", hidden=True)
def parse_round(
    workspace: WorkspaceOption,
    response: ResponseOption,
    round_number: RoundOption = None,
) -> None:
    """Alias of process-round."""
    _process_round(workspace, response, round_number)


@app.command()
def finalize(
    workspace: WorkspaceOption,
    override_reason: Annotated[
        Optional[str],
        typer.Option(
            "--override-reason",
            help="Reason for force-approving with open blockers (min 10 chars)",
        ),
    ] = None,
    ci_force: Annotated[
        bool,
        typer.Option(
            "--ci-force",
            help="Confirm a force-approve without a terminal prompt",
        ),
    ] = False,
    actor: Annotated[
        Optional[str],
        typer.Option("--actor", help="Who is finalizing (default: $USER or $CI_ACTOR)"),
    ] = None,
) -> None:
    """Write summary.json and plan-final.md, force-approving if authorized."""
    ctx = get_app_context()

    interactive = not ci_force and _is_interactive()
    confirm = _prompt_confirmation if interactive else None

    try:
        summary = ctx.workflow.finalize(
            workspace,
            override_reason=override_reason,
            force=ci_force,
            confirm=confirm,
            actor=_resolve_actor(actor),
        )
    except CrossReviewError as e:
        raise _fail(e)

    _emit(
        {
            "verdict": summary.final_verdict.value,
            "rounds": summary.rounds,
            "issues_found": summary.total_issues_found,
            "issues_resolved": summary.issues_resolved,
            "force_approved": summary.force_approve_log is not None,
            "summary_json": str(workspace / "summary.json"),
            "plan_final": str(workspace / "plan-final.md"),
        }
    )


@app.command()
def status(workspace: WorkspaceOption) -> None:
    """Print the current workspace state."""
    ctx = get_app_context()
    try:
        report = ctx.workflow.status(workspace)
    except CrossReviewError as e:
        raise _fail(e)
    _emit(report)
    raise typer.Exit(code=EXIT_OK if is_approved(report["verdict"]) else EXIT_REVISE)


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Configure global options and initialize application context."""
    try:
        config = load_config(config_path)
    except Exception as e:
        err_console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=EXIT_ERROR)

    if verbose:
        config.logging.level = "DEBUG"
    setup_logging(config.logging)
    set_correlation_id(os.urandom(4).hex())

    initialize_context(config)
    logger.debug("cli_initialized", config_path=str(config_path) if config_path else None)


if __name__ == "__main__":
    app()
