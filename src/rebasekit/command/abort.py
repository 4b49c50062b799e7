"""Abort command - abort a rebase in progress."""

from pathlib import Path

from pydantic import BaseModel, Field

from rebasekit.core.log import logger


class AbortCommand(BaseModel):
    """Abort the rebase in progress and restore the branch."""

    repo: Path | None = Field(
        default=None,
        description="Working copy (default: config.git.repo_path)",
    )

    async def run_workflow(self, state: "State") -> int:
        from rebasekit.api import abort_rebase, is_rebase_in_progress

        repo = self.repo or state.config.git.repo_path
        if not is_rebase_in_progress(repo):
            logger.info(f"No rebase in progress in {repo}")
            return 0
        if abort_rebase(repo):
            logger.info(
                "Rebase aborted. Repository restored to previous state."
            )
            return 0
        logger.error(f"Failed to abort rebase in {repo}")
        return 1
