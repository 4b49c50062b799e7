"""Build runtime objects for a command from loaded configuration."""

from pathlib import Path

from rebasekit.core.config import State
from rebasekit.resolution.backup import BackupManager
from rebasekit.resolution.engine import ResolutionEngine, create_engine


def engine_for(state: State, repo: Path | None = None) -> ResolutionEngine:
    """ResolutionEngine for repo (default: config.git.repo_path)."""
    config = state.config
    return create_engine(
        repo or config.git.repo_path,
        llm_config=config.llm,
        prompts=config.prompts.get('resolver'),
        remote=config.git.remote,
        timeout=config.git.timeout,
    )


def backups_for(
    state: State, engine: ResolutionEngine
) -> BackupManager | None:
    if not state.config.backup.enabled:
        return None
    return BackupManager(
        engine.gateway, branch_template=state.config.backup.branch_template
    )
