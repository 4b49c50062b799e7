"""StartRebase node - rebase onto the fetched target."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from rebasekit.core.log import logger
from rebasekit.core.result import GitStatus
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class StartRebase(BaseNode[RebaseSession, None, RebaseOutcome]):
    """Start the rebase and route on what git reports."""

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> CollectConflicts | End[RebaseOutcome]:
        session = ctx.state
        session.enter(RebasePhase.REBASING)

        outcome = session.gateway.rebase(session.incoming_ref)
        logger.info(
            f"Rebase of {session.current_branch} onto "
            f"{session.incoming_ref}: {outcome.status}",
            session=session.session_id,
            status=outcome.status.value,
        )

        if outcome.status in (GitStatus.SUCCESS, GitStatus.NO_OP):
            return End(session.finish(
                True, "Rebase completed without conflicts"
            ))
        if outcome.status == GitStatus.FAILED:
            # git refused to start (dirty tree, unknown ref); no rebase
            # is in progress, so there is nothing to abort
            return End(session.finish(
                False, f"Rebase failed: {outcome.detail}"
            ))

        from rebasekit.workflow.nodes.collect_conflicts import (
            CollectConflicts,
        )

        return CollectConflicts()
