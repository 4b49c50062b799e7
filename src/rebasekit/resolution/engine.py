"""Resolve, apply and verify: the core shared by both workflows."""

import asyncio
from pathlib import Path

from rebasekit.core.config import LLMConfig
from rebasekit.core.log import logger
from rebasekit.core.result import GitStatus
from rebasekit.git.gateway import GitCommandError, GitGateway
from rebasekit.model.resolver import ConflictModel
from rebasekit.resolution.file_resolver import (
    FileConflictResolver,
    ResolutionModel,
)
from rebasekit.resolution.markers import (
    detect_language,
    has_unresolved_markers,
    take_side,
)
from rebasekit.resolution.models import (
    ApplyResult,
    ConflictedFile,
    ResolutionPreview,
    ResolutionResult,
)


class ResolutionEngine:
    """One implementation of resolve/apply for headless and review runs.

    Model calls for a batch run concurrently, bounded by max_parallel.
    Everything that touches the working tree or index runs serially.
    """

    def __init__(
        self,
        gateway: GitGateway,
        resolver: FileConflictResolver,
        max_parallel: int = 4,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.max_parallel = max(1, max_parallel)

    def read_conflicted_file(self, path: str) -> ConflictedFile:
        """Read a file from disk; never cached.

        Raises:
            OSError: If the file cannot be read
        """
        return ConflictedFile(
            path=path,
            content=self.gateway.read_file(path),
            language=detect_language(path),
        )

    def rebase_in_progress(self) -> bool:
        return self.gateway.rebase_in_progress()

    async def _resolve_one(
        self,
        path: str,
        current_branch: str,
        incoming_branch: str,
        semaphore: asyncio.Semaphore,
    ) -> ResolutionResult:
        try:
            file = self.read_conflicted_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warn(
                f"Failed to read file: {path}", file=path, error=str(e)
            )
            return ResolutionResult.failure(
                path, f"Failed to read file: {path}"
            )
        async with semaphore:
            return await self.resolver.resolve(
                file, current_branch, incoming_branch
            )

    async def resolve_files(
        self,
        paths: list[str],
        current_branch: str,
        incoming_branch: str,
    ) -> list[ResolutionResult]:
        """Resolve every path; results keep the order of paths."""
        semaphore = asyncio.Semaphore(self.max_parallel)
        with logger.span(
            "resolve batch", files=paths, max_parallel=self.max_parallel
        ):
            return list(await asyncio.gather(*(
                self._resolve_one(
                    path, current_branch, incoming_branch, semaphore
                )
                for path in paths
            )))

    def apply_resolutions(
        self, results: list[ResolutionResult]
    ) -> list[ResolutionResult]:
        """Write and stage resolved results one at a time.

        A write or stage failure replaces that file's result with an
        unresolved one carrying the error. Unresolved inputs pass
        through untouched.
        """
        applied = []
        for result in results:
            if not result.resolved:
                applied.append(result)
                continue
            try:
                self.gateway.write_file(result.file, result.content)
                self.gateway.add(result.file)
            except (OSError, GitCommandError) as e:
                logger.error(
                    f"Failed to apply resolution for {result.file}",
                    file=result.file,
                    error=str(e),
                )
                applied.append(ResolutionResult.failure(
                    result.file, f"Failed to apply resolution: {e}"
                ))
                continue
            logger.debug(f"Staged {result.file}", file=result.file)
            applied.append(result)
        return applied

    def _classify(self, preview: ResolutionPreview) -> str:
        if preview.resolved_content == preview.ours_content:
            return "ours"
        if preview.resolved_content == preview.theirs_content:
            return "theirs"
        return "merged"

    async def _preview_one(
        self,
        path: str,
        current_branch: str,
        incoming_branch: str,
        analyze: bool,
        semaphore: asyncio.Semaphore,
    ) -> ResolutionPreview:
        language = detect_language(path)
        try:
            file = self.read_conflicted_file(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warn(
                f"Failed to read file: {path}", file=path, error=str(e)
            )
            return ResolutionPreview(
                file_path=path,
                language=language,
                ours_content="",
                theirs_content="",
                original_content="",
                resolved_content="",
                approved=False,
                error=f"Failed to read file: {path}",
            )

        try:
            ours = take_side(file.content, "ours")
            theirs = take_side(file.content, "theirs")
        except ValueError:
            ours = theirs = file.content

        async with semaphore:
            result = await self.resolver.resolve(
                file, current_branch, incoming_branch
            )
            analysis = (
                await self.resolver.analyze(file) if analyze else None
            )

        preview = ResolutionPreview(
            file_path=path,
            language=file.language,
            ours_content=ours,
            theirs_content=theirs,
            original_content=file.content,
            resolved_content=result.content or "",
            approved=result.resolved,
            analysis=analysis,
            error=result.error,
        )
        if result.resolved:
            preview.resolution = self._classify(preview)
        return preview

    async def build_previews(
        self,
        paths: list[str],
        current_branch: str,
        incoming_branch: str,
        analyze: bool = False,
    ) -> list[ResolutionPreview]:
        """Proposed resolutions for review, in the order of paths.

        Previews the model could not produce come back unapproved
        with error set.
        """
        semaphore = asyncio.Semaphore(self.max_parallel)
        with logger.span("build previews", files=paths):
            return list(await asyncio.gather(*(
                self._preview_one(
                    path, current_branch, incoming_branch, analyze, semaphore
                )
                for path in paths
            )))

    def apply_previews(
        self, previews: list[ResolutionPreview]
    ) -> ApplyResult:
        """Write and stage approved previews; skip the rest.

        When every approved preview applied, tries rebase --continue
        once. Whether that finishes the rebase is for the caller to
        check.
        """
        applied, failed, skipped = [], [], []
        for preview in previews:
            if not preview.approved:
                skipped.append(preview.file_path)
                continue
            if has_unresolved_markers(preview.resolved_content):
                logger.warn(
                    f"Refusing to apply {preview.file_path}: "
                    f"conflict markers remain",
                    file=preview.file_path,
                )
                failed.append(preview.file_path)
                continue
            try:
                self.gateway.write_file(
                    preview.file_path, preview.resolved_content
                )
                self.gateway.add(preview.file_path)
            except (OSError, GitCommandError) as e:
                logger.error(
                    f"Failed to apply {preview.file_path}",
                    file=preview.file_path,
                    error=str(e),
                )
                failed.append(preview.file_path)
                continue
            applied.append(preview.file_path)

        if failed:
            return ApplyResult(
                success=False,
                message=f"Failed to apply {len(failed)} resolution(s)",
                applied=applied,
                failed=failed,
                skipped=skipped,
            )

        outcome = self.gateway.rebase_continue()
        if outcome.status not in (GitStatus.SUCCESS, GitStatus.NO_OP):
            logger.info(
                f"rebase --continue after apply: {outcome.status}",
                status=outcome.status.value,
                detail=outcome.detail,
            )
        return ApplyResult(
            success=True,
            message=f"Successfully resolved {len(applied)} conflict(s)",
            applied=applied,
            failed=failed,
            skipped=skipped,
        )


def create_engine(
    repo_path: Path,
    llm_config: LLMConfig | None = None,
    prompts: dict[str, str] | None = None,
    model: ResolutionModel | None = None,
    remote: str = "origin",
    timeout: int | None = None,
) -> ResolutionEngine:
    """Wire gateway, model and resolver for one working copy.

    Args:
        repo_path: Working copy to operate on
        llm_config: Model settings; defaults apply when omitted
        prompts: The 'resolver' prompt section from config
        model: Ready-made resolution model, used instead of building
            a ConflictModel from llm_config
        remote: Remote the target branch lives on
        timeout: Seconds before a git command is killed
    """
    llm_config = llm_config or LLMConfig()
    gateway = GitGateway(repo_path, remote=remote, timeout=timeout)
    if model is None:
        model = ConflictModel(llm_config, prompts)
    return ResolutionEngine(
        gateway,
        FileConflictResolver(model),
        max_parallel=llm_config.max_parallel,
    )
