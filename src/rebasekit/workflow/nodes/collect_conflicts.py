"""CollectConflicts node - decide what the next loop iteration does."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from rebasekit.core.log import logger
from rebasekit.git.gateway import GitCommandError
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class CollectConflicts(BaseNode[RebaseSession]):
    """List unmerged paths and pick the next step.

    Leaves the loop for Verify when cancelled, when the retry budget
    is spent, or when the rebase is no longer running.
    """

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> ResolveBatch | ContinueRebase | Verify:
        from rebasekit.workflow.nodes.continue_rebase import ContinueRebase
        from rebasekit.workflow.nodes.resolve_batch import ResolveBatch
        from rebasekit.workflow.nodes.verify import Verify

        session = ctx.state

        if session.cancelled:
            logger.info("Rebase cancelled", session=session.session_id)
            return Verify()
        if session.retries >= session.max_retries:
            logger.info(
                f"Retry budget spent ({session.retries}/"
                f"{session.max_retries})",
                session=session.session_id,
            )
            return Verify()

        try:
            if not session.engine.rebase_in_progress():
                return Verify()
            files = session.gateway.conflicted_files()
        except GitCommandError as e:
            logger.error(
                "Could not list conflicted files",
                session=session.session_id,
                error=str(e),
            )
            return Verify()

        if not files:
            logger.debug(
                "No conflicted files, continuing",
                session=session.session_id,
            )
            return ContinueRebase(count_attempt=False)

        session.enter(RebasePhase.RESOLVING)
        logger.info(
            f"Found {len(files)} conflicted file(s)",
            session=session.session_id,
            files=files,
        )
        return ResolveBatch(files=files)
