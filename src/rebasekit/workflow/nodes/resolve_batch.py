"""ResolveBatch node - resolve, then write and stage, one conflict batch."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic_graph import BaseNode, End, GraphRunContext

from rebasekit.core.log import logger
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebasePhase, RebaseSession


@dataclass
class ResolveBatch(BaseNode[RebaseSession, None, RebaseOutcome]):
    """All files of a batch resolve and stage, or the rebase aborts."""

    files: list[str]

    def _abort(
        self, session: RebaseSession, message: str
    ) -> End[RebaseOutcome]:
        session.abort()
        session.enter(RebasePhase.ABORTED)
        return End(session.finish(False, message))

    async def run(
        self, ctx: GraphRunContext[RebaseSession]
    ) -> ContinueRebase | End[RebaseOutcome]:
        session = ctx.state

        if session.detect_cycles:
            signature = session.batch_signature(self.files)
            if signature in session.batch_signatures:
                logger.error(
                    "Conflict batch repeats an earlier one",
                    session=session.session_id,
                    files=self.files,
                )
                return self._abort(
                    session,
                    "Rebase keeps producing the same conflicts. "
                    "Rebase aborted.",
                )
            session.batch_signatures.add(signature)

        results = await session.engine.resolve_files(
            self.files, session.current_branch, session.target_branch
        )
        failed = [r for r in results if not r.resolved]
        if failed:
            session.resolutions.extend(results)
            return self._abort(
                session,
                f"Failed to resolve {len(failed)} conflict(s). "
                f"Rebase aborted.",
            )

        applied = session.engine.apply_resolutions(results)
        session.resolutions.extend(applied)
        failed = [r for r in applied if not r.resolved]
        if failed:
            return self._abort(
                session,
                f"Failed to stage {len(failed)} resolved file(s). "
                f"Rebase aborted.",
            )

        from rebasekit.workflow.nodes.continue_rebase import ContinueRebase

        return ContinueRebase(count_attempt=True)
