"""Fetch node - update the remote-tracking ref of the target branch."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from rebasekit.git.gateway import GitCommandError
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class Fetch(BaseNode[RebaseSession, None, RebaseOutcome]):
    """Fetch the target branch; without it there is nothing to rebase
    onto."""

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> StartRebase | End[RebaseOutcome]:
        session = ctx.state
        session.enter(RebasePhase.FETCHING)

        try:
            session.current_branch = session.gateway.current_branch()
            session.gateway.fetch(session.target_branch)
        except GitCommandError as e:
            session.enter(RebasePhase.FAILED)
            return End(session.finish(
                False,
                f"Failed to fetch {session.target_branch}: "
                f"{(e.stderr or e.stdout).strip() or e}",
            ))

        from rebasekit.workflow.nodes.start_rebase import StartRebase

        return StartRebase()
