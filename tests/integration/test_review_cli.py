"""Integration tests for CLI commands.

This module drives the Typer application end to end against a temporary
workspace root and checks the 0 / 1 / 2 exit-code contract.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from crossreview import main
from crossreview.main import EXIT_ERROR, EXIT_OK, EXIT_REVISE, app

REVIEWER = "openai/gpt-4o"
PLANNER = "anthropic/claude-sonnet-4-6"


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Typer CLI runner."""
    return CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate config lookup and keep logs quiet."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("CROSSREVIEW_LOGGING__LEVEL", "ERROR")
    monkeypatch.delenv("CI_ACTOR", raising=False)
    return tmp_path


@pytest.fixture
def plan_file(cli_env: Path) -> Path:
    """A plan document on disk."""
    path = cli_env / "plan.md"
    path.write_text("# Plan\n\nShip the login page.\n", encoding="utf-8")
    return path


@pytest.fixture
def workspace(cli_runner: CliRunner, cli_env: Path, plan_file: Path) -> Path:
    """Workspace created through the init command."""
    result = cli_runner.invoke(
        app,
        [
            "init",
            "--plan", str(plan_file),
            "--reviewer-model", REVIEWER,
            "--planner-model", PLANNER,
            "--out", str(cli_env / "reviews"),
        ],
    )
    assert result.exit_code == EXIT_OK, result.output
    created = list((cli_env / "reviews").iterdir())
    assert len(created) == 1
    return created[0]


def _response(cli_env: Path, name: str, text: str) -> Path:
    path = cli_env / name
    path.write_text(text, encoding="utf-8")
    return path


def _process(cli_runner: CliRunner, workspace: Path, response: Path, *extra: str):
    return cli_runner.invoke(
        app,
        ["process-round", "--workspace", str(workspace), "--response", str(response), *extra],
    )


@pytest.mark.integration
class TestInit:
    """Test the init command."""

    def test_prints_workspace_path(self, workspace: Path) -> None:
        """Init creates the workspace documents."""
        assert (workspace / "meta.json").is_file()
        assert (workspace / "plan-v1.md").read_text(encoding="utf-8").startswith("# Plan")

    def test_same_family_exits_with_error(
        self, cli_runner: CliRunner, cli_env: Path, plan_file: Path
    ) -> None:
        """Same-vendor models are refused with exit code 2."""
        result = cli_runner.invoke(
            app,
            [
                "init",
                "--plan", str(plan_file),
                "--reviewer-model", "anthropic/claude-opus-4",
                "--planner-model", PLANNER,
                "--out", str(cli_env / "reviews"),
            ],
        )
        assert result.exit_code == EXIT_ERROR
        assert not (cli_env / "reviews").exists()

    def test_missing_plan_is_usage_error(self, cli_runner: CliRunner, cli_env: Path) -> None:
        """A nonexistent plan file is rejected before anything runs."""
        result = cli_runner.invoke(
            app,
            [
                "init",
                "--plan", str(cli_env / "nope.md"),
                "--reviewer-model", REVIEWER,
                "--planner-model", PLANNER,
            ],
        )
        assert result.exit_code == EXIT_ERROR


@pytest.mark.integration
class TestProcessRound:
    """Test the process-round command."""

    def test_revise_exits_one(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """A REVISE round exits 1 and prints the outcome as JSON."""
        response = _response(cli_env, "r1.txt", submission("REVISE", new=[new_issue()]))

        result = _process(cli_runner, workspace, response, "--round", "1")

        assert result.exit_code == EXIT_REVISE
        payload = json.loads(result.stdout)
        assert payload["verdict"] == "REVISE"
        assert payload["new_issues"] == ["ISS-001"]
        assert payload["blockers"] == ["ISS-001"]

    def test_approved_exits_zero(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """Resolving the blocker lets an APPROVED round exit 0."""
        _process(cli_runner, workspace, _response(cli_env, "r1.txt", submission(new=[new_issue()])))
        response = _response(
            cli_env,
            "r2.txt",
            "```json\n"
            + submission("APPROVED", prior=[{"id": "ISS-001", "status": "resolved"}])
            + "\n```",
        )

        result = _process(cli_runner, workspace, response)

        assert result.exit_code == EXIT_OK
        assert json.loads(result.stdout)["round"] == 2

    def test_overridden_approval_exits_one(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """APPROVED with an open CRITICAL is recorded as REVISE."""
        response = _response(cli_env, "r1.txt", submission("APPROVED", new=[new_issue()]))

        result = _process(cli_runner, workspace, response)

        assert result.exit_code == EXIT_REVISE
        outcome = json.loads((workspace / "round-1-outcome.json").read_text(encoding="utf-8"))
        assert outcome["verdict"] == "REVISE"
        assert outcome["reviewer_verdict"] == "APPROVED"
        assert outcome["verdict_overridden"] is True

    def test_malformed_response_exits_two(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path
    ) -> None:
        """Unparseable reviewer output is an error and changes nothing."""
        before = (workspace / "issues.json").read_bytes()
        response = _response(cli_env, "bad.txt", "Looks good to me!")

        result = _process(cli_runner, workspace, response)

        assert result.exit_code == EXIT_ERROR
        assert (workspace / "issues.json").read_bytes() == before

    def test_undecodable_response_exits_two(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path
    ) -> None:
        """A response file that is not UTF-8 is an error and changes nothing."""
        before = (workspace / "meta.json").read_bytes()
        response = cli_env / "latin1.txt"
        response.write_bytes(b'{"verdict": "REVISE", "summary": "\xff\xfe"}')

        result = _process(cli_runner, workspace, response)

        assert result.exit_code == EXIT_ERROR
        assert "not valid UTF-8" in result.output
        assert (workspace / "meta.json").read_bytes() == before
        assert not (workspace / "round-1-outcome.json").exists()

    def test_corrupt_ledger_exits_two(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission
    ) -> None:
        """A damaged issues.json is reported as corrupt."""
        (workspace / "issues.json").write_text("[{broken", encoding="utf-8")
        response = _response(cli_env, "r1.txt", submission("APPROVED"))

        result = _process(cli_runner, workspace, response)

        assert result.exit_code == EXIT_ERROR
        assert "Corrupt workspace document" in result.output

    def test_schema_violation_exits_two(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path
    ) -> None:
        """A document with invalid fields is an error."""
        response = _response(
            cli_env,
            "bad.json",
            json.dumps({"verdict": "MAYBE", "prior_issues": [], "new_issues": [], "summary": ""}),
        )
        assert _process(cli_runner, workspace, response).exit_code == EXIT_ERROR

    def test_unknown_workspace_exits_two(
        self, cli_runner: CliRunner, cli_env: Path, submission
    ) -> None:
        """Pointing at a directory that was never initialized is an error."""
        response = _response(cli_env, "r1.txt", submission())
        result = _process(cli_runner, cli_env / "not-a-workspace", response)
        assert result.exit_code == EXIT_ERROR

    def test_parse_round_alias(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission
    ) -> None:
        """The parse-round alias behaves like process-round."""
        response = _response(cli_env, "r1.txt", submission("APPROVED"))
        result = cli_runner.invoke(
            app,
            ["parse-round", "--workspace", str(workspace), "--response", str(response)],
        )
        assert result.exit_code == EXIT_OK
        assert (workspace / "round-1-outcome.json").is_file()


@pytest.mark.integration
class TestFinalizeAndStatus:
    """Test the finalize and status commands."""

    def test_finalize_with_blockers_and_no_override(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """Open blockers without an override reason exit 2."""
        _process(cli_runner, workspace, _response(cli_env, "r1.txt", submission(new=[new_issue()])))

        result = cli_runner.invoke(app, ["finalize", "--workspace", str(workspace)])

        assert result.exit_code == EXIT_ERROR
        assert not (workspace / "summary.json").exists()

    def test_finalize_reason_without_force(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """Non-interactive override needs --ci-force as well as a reason."""
        _process(cli_runner, workspace, _response(cli_env, "r1.txt", submission(new=[new_issue()])))

        result = cli_runner.invoke(
            app,
            [
                "finalize",
                "--workspace", str(workspace),
                "--override-reason", "Accepted risk for internal beta",
            ],
        )

        assert result.exit_code == EXIT_ERROR
        assert not (workspace / "summary.json").exists()

    def test_finalize_ci_force(
        self, cli_runner: CliRunner, cli_env: Path, workspace: Path, submission, new_issue
    ) -> None:
        """Reason plus --ci-force force-approves and status then exits 0."""
        _process(cli_runner, workspace, _response(cli_env, "r1.txt", submission(new=[new_issue()])))

        result = cli_runner.invoke(
            app,
            [
                "finalize",
                "--workspace", str(workspace),
                "--override-reason", "Accepted risk for internal beta",
                "--ci-force",
                "--actor", "ci",
            ],
        )

        assert result.exit_code == EXIT_OK, result.output
        payload = json.loads(result.stdout)
        assert payload["verdict"] == "FORCE_APPROVED"
        assert payload["force_approved"] is True

        summary = json.loads((workspace / "summary.json").read_text(encoding="utf-8"))
        assert summary["force_approve_log"]["actor"] == "ci"

        status = cli_runner.invoke(app, ["status", "--workspace", str(workspace)])
        assert status.exit_code == EXIT_OK
        assert json.loads(status.stdout)["finalized"] is True

    def test_status_before_approval_exits_one(
        self, cli_runner: CliRunner, workspace: Path
    ) -> None:
        """A pending workspace is not approved."""
        result = cli_runner.invoke(app, ["status", "--workspace", str(workspace)])

        assert result.exit_code == EXIT_REVISE
        report = json.loads(result.stdout)
        assert report["verdict"] == "PENDING"
        assert report["total_issues"] == 0

    def test_status_unknown_workspace(self, cli_runner: CliRunner, cli_env: Path) -> None:
        """Status on a missing workspace exits 2."""
        result = cli_runner.invoke(app, ["status", "--workspace", str(cli_env / "missing")])
        assert result.exit_code == EXIT_ERROR

    @pytest.mark.parametrize(
        ("document", "content"),
        [
            ("issues.json", b"[{broken"),
            ("meta.json", b'{"current_round": "\xff"}'),
            ("meta.json", b'{"current_round": 0}'),
        ],
    )
    def test_status_corrupt_document_exits_two(
        self, cli_runner: CliRunner, workspace: Path, document: str, content: bytes
    ) -> None:
        """Undecodable or invalid workspace documents exit 2."""
        (workspace / document).write_bytes(content)

        result = cli_runner.invoke(app, ["status", "--workspace", str(workspace)])

        assert result.exit_code == EXIT_ERROR
        assert "Corrupt workspace document" in result.output

    def test_interactive_finalize_eof_exits_two(
        self,
        cli_runner: CliRunner,
        cli_env: Path,
        workspace: Path,
        submission,
        new_issue,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Closing stdin at the confirmation prompt rejects the override."""
        _process(cli_runner, workspace, _response(cli_env, "r1.txt", submission(new=[new_issue()])))
        monkeypatch.setattr(main, "_is_interactive", lambda: True)

        result = cli_runner.invoke(
            app,
            [
                "finalize",
                "--workspace", str(workspace),
                "--override-reason", "Accepted risk for internal beta",
            ],
            input="",
        )

        assert result.exit_code == EXIT_ERROR
        assert not (workspace / "summary.json").exists()
        assert json.loads((workspace / "meta.json").read_text(encoding="utf-8"))[
            "force_approve_log"
        ] is None


@pytest.mark.integration
class TestPromptConfirmation:
    """Test the interactive confirmation helper."""

    def test_abort_returns_empty_answer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Ctrl-C at the prompt is treated as no answer."""

        def interrupted(*args, **kwargs):
            raise typer.Abort()

        monkeypatch.setattr(main.typer, "prompt", interrupted)
        assert main._prompt_confirmation("Type CONFIRM to proceed") == ""

    def test_typed_answer_returned(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A typed answer is passed through unchanged."""
        monkeypatch.setattr(main.typer, "prompt", lambda *args, **kwargs: "CONFIRM")
        assert main._prompt_confirmation("Type CONFIRM to proceed") == "CONFIRM"
