"""Verify node - make sure no rebase is left running."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from rebasekit.git.gateway import GitCommandError
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class Verify(BaseNode[RebaseSession, None, RebaseOutcome]):
    """Final check: success only if the rebase metadata is gone."""

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> End[RebaseOutcome]:
        session = ctx.state

        try:
            in_progress = session.engine.rebase_in_progress()
        except GitCommandError:
            session.abort()
            session.enter(RebasePhase.FAILED)
            return End(session.finish(False, "Rebase status check failed"))

        if in_progress:
            session.abort()
            session.enter(RebasePhase.ABORTED)
            message = (
                "Rebase cancelled. Rebase aborted."
                if session.cancelled
                else "Rebase could not complete after max retries"
            )
            return End(session.finish(False, message))

        resolved = sum(1 for r in session.resolutions if r.resolved)
        return End(session.finish(
            True, f"Rebase completed. Resolved {resolved} conflict(s)."
        ))
