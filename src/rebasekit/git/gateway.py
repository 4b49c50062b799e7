"""Git command gateway for a single working copy."""

import shlex
from pathlib import Path

from invoke import Result

from rebasekit.core.log import logger
from rebasekit.core.result import GitOutcome, GitStatus
from rebasekit.core.runner import Runner

# Never wait on an editor or a credential prompt; keep messages in
# English so "up to date" detection works under any locale.
GIT_ENV = {
    "GIT_EDITOR": "true",
    "GIT_TERMINAL_PROMPT": "0",
    "LC_ALL": "C",
}

REBASE_DIRS = ("rebase-merge", "rebase-apply")


class GitCommandError(RuntimeError):
    """A git command exited non-zero."""

    def __init__(
        self, args: list[str], exit_code: int, stdout: str, stderr: str
    ):
        self.args_list = args
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        detail = (stderr or stdout).strip()
        super().__init__(
            f"git {' '.join(args)} failed with exit code {exit_code}"
            + (f": {detail}" if detail else "")
        )


class GitGateway:
    """Runs git subcommands against one working copy.

    Plain commands go through run(), which returns stdout or raises
    GitCommandError. The rebase family returns a GitOutcome instead,
    because for those a non-zero exit usually means "stopped on a
    conflict" rather than "broken".
    """

    def __init__(
        self,
        workdir: Path,
        runner: Runner | None = None,
        remote: str = "origin",
        timeout: int | None = None,
    ):
        self.workdir = Path(workdir)
        self.runner = runner or Runner()
        self.remote = remote
        self.timeout = timeout

    def _command(self, args: list[str]) -> str:
        parts = ["git", "-c", "core.quotePath=false", *args]
        return " ".join(shlex.quote(part) for part in parts)

    def execute(self, args: list[str]) -> Result:
        """Run git without raising on a non-zero exit."""
        result = self.runner.execute(
            self._command(args),
            cwd=self.workdir,
            timeout=self.timeout,
            check=False,
            env=GIT_ENV,
        )
        logger.debug(
            f"git {' '.join(args)} → {result.exited}",
            workdir=str(self.workdir),
            exit_code=result.exited,
        )
        return result

    def run(self, args: list[str]) -> str:
        """Run git and return stripped stdout.

        Raises:
            GitCommandError: On non-zero exit (or timeout)
        """
        result = self.execute(args)
        if result.exited != 0:
            raise GitCommandError(
                args, result.exited, result.stdout, result.stderr
            )
        return result.stdout.strip()

    # --------------------------------------------------------
    # Plain commands
    # --------------------------------------------------------

    def fetch(self, ref: str) -> str:
        return self.run(["fetch", self.remote, ref])

    def remote_ref(self, branch: str) -> str:
        """Name of the fetched remote-tracking ref for a branch."""
        return f"{self.remote}/{branch}"

    def conflicted_files(self) -> list[str]:
        """Paths with unmerged index entries, in git's order."""
        output = self.run(["diff", "--name-only", "--diff-filter=U"])
        # dict keeps order and drops the duplicates some versions emit
        return list(dict.fromkeys(
            line.strip() for line in output.splitlines() if line.strip()
        ))

    def add(self, path: str) -> None:
        self.run(["add", "--", path])

    def status(self) -> str:
        return self.run(["status", "--porcelain"])

    def git_dir(self) -> Path:
        git_dir = Path(self.run(["rev-parse", "--git-dir"]))
        if not git_dir.is_absolute():
            git_dir = self.workdir / git_dir
        return git_dir

    def rev_parse(self, ref: str) -> str:
        return self.run(["rev-parse", "--verify", ref])

    def current_branch(self) -> str:
        """Checked-out branch; during a rebase, the branch being rebased."""
        branch = self.run(["branch", "--show-current"])
        if branch:
            return branch
        for name in REBASE_DIRS:
            head_name = self.git_dir() / name / "head-name"
            if head_name.is_file():
                return head_name.read_text().strip().removeprefix(
                    "refs/heads/"
                )
        return "HEAD"

    def branch_exists(self, name: str) -> bool:
        result = self.execute(
            ["rev-parse", "--verify", "--quiet", f"refs/heads/{name}"]
        )
        return result.exited == 0

    def create_branch(self, name: str, start: str = "HEAD") -> None:
        """Create or move a branch to start (never checks it out)."""
        self.run(["branch", "--force", name, start])

    def delete_branch(self, name: str) -> None:
        self.run(["branch", "-D", name])

    def rebase_in_progress(self) -> bool:
        """True while rebase metadata exists in the git directory.

        Raises:
            GitCommandError: If workdir is not a git repository
        """
        git_dir = self.git_dir()
        return any((git_dir / name).exists() for name in REBASE_DIRS)

    # --------------------------------------------------------
    # Working tree files
    # --------------------------------------------------------

    def read_file(self, path: str) -> str:
        return (self.workdir / path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        file_path = self.workdir / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")

    # --------------------------------------------------------
    # Rebase family (explicit outcomes)
    # --------------------------------------------------------

    def _stopped(self) -> bool:
        try:
            return self.rebase_in_progress()
        except GitCommandError:
            return False

    def _outcome(self, status: GitStatus, result: Result) -> GitOutcome:
        return GitOutcome(
            status=status, stdout=result.stdout, stderr=result.stderr
        )

    def rebase(self, onto: str) -> GitOutcome:
        """Start rebasing the current branch onto a ref."""
        result = self.execute(["rebase", onto])
        if result.exited == 0:
            output = result.stdout + result.stderr
            if "is up to date" in output:
                return self._outcome(GitStatus.NO_OP, result)
            return self._outcome(GitStatus.SUCCESS, result)
        if self._stopped():
            return self._outcome(GitStatus.CONFLICT, result)
        return self._outcome(GitStatus.FAILED, result)

    def rebase_continue(self) -> GitOutcome:
        """Continue a stopped rebase.

        NO_OP when nothing is in progress, SUCCESS when the rebase
        finished, CONFLICT when it stopped on the next commit.
        """
        if not self._stopped():
            return GitOutcome(status=GitStatus.NO_OP)
        result = self.execute(["rebase", "--continue"])
        if not self._stopped():
            if result.exited == 0:
                return self._outcome(GitStatus.SUCCESS, result)
            return self._outcome(GitStatus.FAILED, result)
        try:
            has_conflicts = bool(self.conflicted_files())
        except GitCommandError:
            has_conflicts = False
        if has_conflicts or result.exited == 0:
            return self._outcome(GitStatus.CONFLICT, result)
        return self._outcome(GitStatus.FAILED, result)

    def rebase_abort(self) -> GitOutcome:
        """Abort a rebase in progress; never raises."""
        if not self._stopped():
            return GitOutcome(status=GitStatus.NO_OP)
        result = self.execute(["rebase", "--abort"])
        if result.exited == 0:
            return self._outcome(GitStatus.SUCCESS, result)
        logger.warn(
            "git rebase --abort failed",
            workdir=str(self.workdir),
            stderr=result.stderr.strip(),
        )
        return self._outcome(GitStatus.FAILED, result)
