"""Resolve command - resolve one conflicted file."""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import CliPositionalArg

from rebasekit.core.log import logger


class ResolveCommand(BaseModel):
    """Resolve a single conflicted file with the model.

    Prints the resolved content, or with --write stores it and stages
    the file. Does not continue the rebase.
    """

    file: CliPositionalArg[str] = Field(
        description="Path of the conflicted file, relative to the repo"
    )
    repo: Path | None = Field(
        default=None,
        description="Working copy (default: config.git.repo_path)",
    )
    write: bool = Field(
        default=False,
        description="Write the resolution to disk and git add it",
    )
    analyze: bool = Field(
        default=False,
        description="Also log the model's analysis of the conflict",
    )

    async def run_workflow(self, state: "State") -> int:
        from rebasekit.command.context import engine_for
        from rebasekit.git.gateway import GitCommandError

        engine = engine_for(state, self.repo)
        try:
            current = engine.gateway.current_branch()
        except GitCommandError as e:
            logger.error(f"Cannot read repository: {e}")
            return 1

        results = await engine.resolve_files(
            [self.file], current, state.config.git.target_branch
        )
        result = results[0]

        if self.analyze and result.resolved:
            analysis = await engine.resolver.analyze(
                engine.read_conflicted_file(self.file)
            )
            if analysis is not None:
                logger.info(
                    f"{analysis.conflict_type} conflict, "
                    f"recommended: {analysis.recommended_strategy}",
                    explanation=analysis.explanation,
                    complexity=analysis.complexity,
                )

        if not result.resolved:
            logger.error(f"{self.file}: {result.error}")
            return 1
        if not self.write:
            print(result.content, end="")
            return 0

        applied = engine.apply_resolutions([result])[0]
        if not applied.resolved:
            logger.error(f"{self.file}: {applied.error}")
            return 1
        logger.info(f"Resolved and staged {self.file}")
        return 0
