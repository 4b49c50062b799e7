"""Pytest configuration and fixtures for rebasekit tests."""

import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

import pytest

from rebasekit.core.log import ConsoleSink, setup_logger
from rebasekit.resolution.markers import take_side

GIT_TEST_ENV = {
    **os.environ,
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_EDITOR": "true",
}


@pytest.fixture(autouse=True, scope="session")
def configure_logging():
    """Configure logging for console-only mode during tests.

    This enables debug output during test runs without requiring
    authentication or sending logs to logfire.dev.
    """
    test_log_root = Path(tempfile.gettempdir()) / "rebasekit-tests"
    setup_logger(
        log_root=test_log_root,
        run_name="test",
        console=ConsoleSink(level="debug"),
    )


@pytest.fixture(scope="session")
def test_config():
    """Load configuration for tests without CLI parsing conflicts.

    Temporarily replaces sys.argv so pydantic-settings does not try
    to parse pytest's own arguments.
    """
    from rebasekit.core.config import State

    old_argv = sys.argv
    sys.argv = ['rebasekit']

    try:
        state = State()
        return state.config
    finally:
        sys.argv = old_argv


# ============================================================
# GIT REPOSITORIES
# ============================================================

def git(cwd: Path, *args: str) -> str:
    """Run git in cwd for test setup; raises on failure."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=GIT_TEST_ENV,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_files(repo: Path, files: dict[str, str], message: str) -> str:
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        git(repo, "add", "--", name)
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@dataclass
class Repos:
    """An upstream repo and a clone with a feature branch checked out."""

    upstream: Path
    work: Path

    def git(self, *args: str) -> str:
        return git(self.work, *args)

    def in_rebase(self) -> bool:
        git_dir = self.work / ".git"
        return (
            (git_dir / "rebase-merge").exists()
            or (git_dir / "rebase-apply").exists()
        )

    def staged(self) -> list[str]:
        return self.git("diff", "--cached", "--name-only").splitlines()


@pytest.fixture
def make_repos(tmp_path):
    """Factory: build upstream/main and work/feature from file maps.

    Args (of the returned callable):
        base: Files of the common ancestor commit
        main: Files committed on upstream main after the fork
        feature: One dict per feature commit, applied in order
    """
    def _make(
        base: dict[str, str],
        main: dict[str, str] | None = None,
        feature: list[dict[str, str]] | None = None,
    ) -> Repos:
        upstream = tmp_path / "upstream"
        upstream.mkdir()
        git(upstream, "init", "-q", "-b", "main")
        commit_files(upstream, base, "base")

        work = tmp_path / "work"
        git(tmp_path, "clone", "-q", str(upstream), str(work))
        git(work, "config", "user.name", "Test")
        git(work, "config", "user.email", "test@example.com")
        git(work, "checkout", "-q", "-b", "feature")
        for i, files in enumerate(feature or []):
            commit_files(work, files, f"feature {i + 1}")

        if main:
            commit_files(upstream, main, "main update")
        return Repos(upstream=upstream, work=work)

    return _make


@pytest.fixture
def two_file_conflict(make_repos):
    """a.ts and b.ts both changed on main and on feature."""
    return make_repos(
        base={
            "a.ts": "export const a = 1;\n",
            "b.ts": "export const b = 1;\n",
        },
        main={
            "a.ts": "export const a = 2;\n",
            "b.ts": "export const b = 2;\n",
        },
        feature=[{
            "a.ts": "export const a = 3;\n",
            "b.ts": "export const b = 3;\n",
        }],
    )


@pytest.fixture
def stopped_rebase(two_file_conflict):
    """two_file_conflict with the rebase already stopped on conflicts."""
    repos = two_file_conflict
    repos.git("fetch", "-q", "origin", "main")
    result = subprocess.run(
        ["git", "rebase", "origin/main"],
        cwd=repos.work,
        env=GIT_TEST_ENV,
        capture_output=True,
        text=True,
    )
    assert result.returncode != 0
    assert repos.in_rebase()
    return repos


# ============================================================
# FAKE RESOLUTION MODEL
# ============================================================

class FakeModel:
    """Stands in for ConflictModel.

    replies maps a file path to the successive replies for it; a file
    without an entry gets the "ours" side of every hunk. None replies
    simulate a failed model call.
    """

    directive = "Resolve this conflict."
    retry_directive = "CRITICAL: remove ALL conflict markers."

    def __init__(self, replies=None, analysis=None):
        self.replies = {k: list(v) for k, v in (replies or {}).items()}
        self.analysis = analysis
        self.calls = []
        self.analyze_calls = []

    async def resolve(
        self,
        file_path,
        language,
        current_branch,
        incoming_branch,
        conflicted_content,
        directive,
    ):
        self.calls.append((file_path, directive))
        queue = self.replies.get(file_path)
        if queue:
            return queue.pop(0)
        return take_side(conflicted_content, "ours")

    async def analyze(self, file_path, conflicted_content):
        self.analyze_calls.append(file_path)
        return self.analysis

    def calls_for(self, file_path):
        return [c for c in self.calls if c[0] == file_path]


@pytest.fixture
def fake_model():
    return FakeModel()
