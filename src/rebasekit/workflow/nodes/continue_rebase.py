"""ContinueRebase node - move the rebase on to the next commit."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from rebasekit.core.log import logger
from rebasekit.core.result import GitStatus
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class ContinueRebase(BaseNode[RebaseSession]):
    """Run rebase --continue.

    After a resolved batch the attempt counts against the retry
    budget and git's answer does not matter: CollectConflicts looks
    at the repository again either way. A continue with no conflicts
    staged is free, but a hard failure there ends the loop.
    """

    count_attempt: bool = True

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> CollectConflicts | Verify:
        from rebasekit.workflow.nodes.collect_conflicts import (
            CollectConflicts,
        )
        from rebasekit.workflow.nodes.verify import Verify

        session = ctx.state
        session.enter(RebasePhase.CONTINUING)

        outcome = session.gateway.rebase_continue()
        logger.info(
            f"rebase --continue: {outcome.status}",
            session=session.session_id,
            status=outcome.status.value,
            detail=outcome.detail,
        )

        if self.count_attempt:
            session.retries += 1
            return CollectConflicts()

        if outcome.status == GitStatus.FAILED:
            return Verify()
        return CollectConflicts()
