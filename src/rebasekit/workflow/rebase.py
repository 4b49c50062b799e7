"""Headless rebase: drive a rebase to completion or a clean abort."""

from pathlib import Path

from rebasekit.core.config import GitConfig, LLMConfig
from rebasekit.core.log import logger
from rebasekit.resolution.engine import ResolutionEngine, create_engine
from rebasekit.resolution.file_resolver import ResolutionModel
from rebasekit.resolution.models import RebaseOutcome
from rebasekit.workflow.session import RebasePhase, RebaseSession


def create_session(
    engine: ResolutionEngine,
    target_branch: str,
    max_retries: int = 3,
    detect_cycles: bool = True,
    session_id: str | None = None,
) -> RebaseSession:
    extra = {"session_id": session_id} if session_id else {}
    return RebaseSession(
        repo_path=engine.gateway.workdir,
        target_branch=target_branch,
        max_retries=max_retries,
        detect_cycles=detect_cycles,
        gateway=engine.gateway,
        engine=engine,
        **extra,
    )


async def run_rebase(session: RebaseSession) -> RebaseOutcome:
    """Run the rebase graph for a session.

    If anything unexpected escapes the graph, the rebase is aborted
    before the exception propagates, so the repository is never left
    mid-rebase.
    """
    from rebasekit.workflow.graph import create_workflow
    from rebasekit.workflow.nodes.fetch import Fetch

    workflow = create_workflow()

    logger.info(
        f"Rebasing {session.repo_path} onto {session.target_branch}",
        session=session.session_id,
        max_retries=session.max_retries,
    )
    try:
        with logger.span("rebase", session=session.session_id):
            async with workflow.iter(Fetch(), state=session) as run:
                async for node in run:
                    if hasattr(node, 'data'):
                        return node.data
    except Exception:
        session.abort()
        session.enter(RebasePhase.FAILED)
        raise

    # Workflow ended without reaching End node (shouldn't happen)
    session.abort()
    return session.finish(False, "Rebase workflow ended unexpectedly")


async def rebase_with_resolution(
    repo_path: Path | str,
    target_branch: str,
    max_retries: int = 3,
    *,
    model: ResolutionModel | None = None,
    llm_config: LLMConfig | None = None,
    git_config: GitConfig | None = None,
    prompts: dict[str, str] | None = None,
) -> RebaseOutcome:
    """Rebase the checked-out branch of repo_path onto target_branch.

    Conflicts are resolved by the model batch by batch, for at most
    max_retries batches. The return value always describes a finished
    state: either the rebase completed or it was aborted.

    Args:
        repo_path: Working copy to rebase
        target_branch: Branch on the remote to rebase onto
        max_retries: Resolve-and-continue cycles before giving up
        model: Resolution model; built from llm_config when omitted
        llm_config: Model settings
        git_config: Remote, timeout and cycle detection settings
        prompts: The 'resolver' prompt section from config
    """
    git_config = git_config or GitConfig()
    engine = create_engine(
        Path(repo_path),
        llm_config=llm_config,
        prompts=prompts,
        model=model,
        remote=git_config.remote,
        timeout=git_config.timeout,
    )
    session = create_session(
        engine,
        target_branch,
        max_retries=max_retries,
        detect_cycles=git_config.detect_cycles,
    )
    return await run_rebase(session)
