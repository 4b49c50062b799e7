"""Graph workflow definition."""

from pydantic_graph import Graph

from rebasekit.core.log import logger
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebaseSession


def create_workflow() -> Graph[RebaseSession, None, RebaseOutcome]:
    """Create the headless rebase graph.

    Fetch → StartRebase → CollectConflicts ⇄ (ResolveBatch |
        ContinueRebase) → Verify → End

    Returns:
        Graph workflow with RebaseSession as state_type
    """
    logger.debug("Building rebase workflow graph")

    # Import nodes (lazy to avoid circular imports)
    from rebasekit.workflow.nodes.collect_conflicts import CollectConflicts
    from rebasekit.workflow.nodes.continue_rebase import ContinueRebase
    from rebasekit.workflow.nodes.fetch import Fetch
    from rebasekit.workflow.nodes.resolve_batch import ResolveBatch
    from rebasekit.workflow.nodes.start_rebase import StartRebase
    from rebasekit.workflow.nodes.verify import Verify

    return Graph(
        nodes=(
            Fetch,
            StartRebase,
            CollectConflicts,
            ResolveBatch,
            ContinueRebase,
            Verify,
        ),
        state_type=RebaseSession,
        run_end_type=RebaseOutcome,
    )
