"""Entry points for UI and CLI callers.

Every function takes the repository path explicitly; nothing is kept
between calls.
"""

from pathlib import Path

from rebasekit.core.config import LLMConfig
from rebasekit.core.log import logger
from rebasekit.git.gateway import GitCommandError, GitGateway
from rebasekit.resolution.engine import create_engine
from rebasekit.resolution.file_resolver import ResolutionModel
from rebasekit.resolution.models import ConflictAnalysis, ResolutionResult
from rebasekit.workflow.rebase import rebase_with_resolution


async def resolve_file_conflict(
    repo_path: Path | str,
    file_path: str,
    current_branch: str,
    incoming_branch: str,
    *,
    model: ResolutionModel | None = None,
    llm_config: LLMConfig | None = None,
    prompts: dict[str, str] | None = None,
) -> ResolutionResult:
    """Resolve one file without writing it.

    A file that cannot be read comes back as an unresolved result.
    """
    engine = create_engine(
        Path(repo_path), llm_config=llm_config, prompts=prompts, model=model
    )
    results = await engine.resolve_files(
        [file_path], current_branch, incoming_branch
    )
    return results[0]


async def analyze_conflict(
    repo_path: Path | str,
    file_path: str,
    *,
    model: ResolutionModel | None = None,
    llm_config: LLMConfig | None = None,
    prompts: dict[str, str] | None = None,
) -> ConflictAnalysis | None:
    """Structured explanation of a conflict, or None if unavailable."""
    engine = create_engine(
        Path(repo_path), llm_config=llm_config, prompts=prompts, model=model
    )
    try:
        file = engine.read_conflicted_file(file_path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warn(f"Failed to read file: {file_path}", error=str(e))
        return None
    return await engine.resolver.analyze(file)


def abort_rebase(repo_path: Path | str) -> bool:
    """Abort a rebase in progress; True when the repository is clean."""
    return GitGateway(Path(repo_path)).rebase_abort().ok


def is_rebase_in_progress(repo_path: Path | str) -> bool:
    """False for a path that is not a git repository."""
    try:
        return GitGateway(Path(repo_path)).rebase_in_progress()
    except GitCommandError:
        return False


def get_conflicted_files(repo_path: Path | str) -> list[str]:
    """Unmerged paths; empty when the repository cannot be read."""
    try:
        return GitGateway(Path(repo_path)).conflicted_files()
    except GitCommandError as e:
        logger.warn("Could not list conflicted files", error=str(e))
        return []


__all__ = [
    "rebase_with_resolution",
    "resolve_file_conflict",
    "analyze_conflict",
    "abort_rebase",
    "is_rebase_in_progress",
    "get_conflicted_files",
]
