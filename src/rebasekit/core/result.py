"""Result types for git operations whose exit code is ambiguous."""

from enum import StrEnum

from pydantic import BaseModel


class GitStatus(StrEnum):
    """What a rebase-family command actually did.

    git reports both "stopped on a conflict" and "could not run" as a
    non-zero exit; callers branch on this instead.
    """

    SUCCESS = "success"
    NO_OP = "no_op"
    CONFLICT = "conflict"
    FAILED = "failed"


class GitOutcome(BaseModel):
    """Result of a rebase, rebase --continue or rebase --abort."""

    status: GitStatus
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (GitStatus.SUCCESS, GitStatus.NO_OP)

    @property
    def detail(self) -> str:
        """Most useful line of output for messages."""
        text = (self.stderr or self.stdout).strip()
        return text.splitlines()[0] if text else self.status.value
