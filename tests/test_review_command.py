"""Tests for the terminal review command."""

import asyncio
from types import SimpleNamespace
from unittest.mock import patch

from conftest import FakeModel

from rebasekit.command.review import ReviewCommand
from rebasekit.git.gateway import GitGateway
from rebasekit.resolution.engine import ResolutionEngine
from rebasekit.resolution.file_resolver import FileConflictResolver


def run_review(repos, config, answers, **flags):
    engine = ResolutionEngine(
        GitGateway(repos.work), FileConflictResolver(FakeModel())
    )
    state = SimpleNamespace(config=config)
    with patch(
        "rebasekit.command.context.engine_for", return_value=engine
    ), patch("builtins.input", side_effect=answers):
        return asyncio.run(ReviewCommand(**flags).run_workflow(state))


def test_abort_after_reviewing_previews(stopped_rebase, test_config, capsys):
    """auto-fix, approve both files, then abort instead of applying."""
    repos = stopped_rebase

    exit_code = run_review(repos, test_config, ["a", "y", "y", "b"])

    assert exit_code == 0
    assert not repos.in_rebase()
    assert (repos.work / "a.ts").read_text() == "export const a = 3;\n"
    out = capsys.readouterr().out
    assert "Rebase aborted" in out
    assert "Backup kept at" in out


def test_apply_after_reviewing_previews(stopped_rebase, test_config):
    repos = stopped_rebase

    exit_code = run_review(repos, test_config, ["a", "y", "y", "a"])

    assert exit_code == 0
    assert not repos.in_rebase()


def test_no_rebase_in_progress(two_file_conflict, test_config):
    exit_code = run_review(two_file_conflict, test_config, [])

    assert exit_code == 0
