"""Rebase command - headless rebase with automatic resolution."""

from pathlib import Path

from pydantic import BaseModel, Field

from rebasekit.core.log import logger


class RebaseCommand(BaseModel):
    """Rebase the current branch onto the target branch, resolving
    conflicts with the configured model.

    Each conflict batch must resolve completely or the rebase is
    aborted; the repository is never left mid-rebase.
    """

    repo: Path | None = Field(
        default=None,
        description=(
            "Working copy to rebase (default: config.git.repo_path)"
        ),
    )
    onto: str | None = Field(
        default=None,
        description=(
            "Branch to rebase onto (default: config.git.target_branch)"
        ),
    )
    max_retries: int | None = Field(
        default=None,
        alias="max-retries",
        ge=0,
        description=(
            "Resolve-and-continue cycles (default: config.git.max_retries)"
        ),
    )

    model_config = {"populate_by_name": True}

    async def run_workflow(self, state: "State") -> int:
        """Run the rebase graph.

        Returns:
            Exit code (0=success, 1=failure)
        """
        from rebasekit.command.context import engine_for
        from rebasekit.workflow.rebase import create_session, run_rebase

        git = state.config.git
        engine = engine_for(state, self.repo)
        session = create_session(
            engine,
            self.onto or git.target_branch,
            max_retries=(
                git.max_retries if self.max_retries is None
                else self.max_retries
            ),
            detect_cycles=git.detect_cycles,
        )
        outcome = await run_rebase(session)

        for result in outcome.resolutions:
            status = "resolved" if result.resolved else result.error
            logger.info(f"  {result.file}: {status}")
        if outcome.success:
            logger.info(outcome.message)
            return 0
        logger.error(outcome.message)
        return 1
