"""Resolve a single conflicted file with one optional retry."""

import traceback
from typing import Protocol

from rebasekit.core.log import logger
from rebasekit.model.resolver import parse_analysis
from rebasekit.resolution.markers import (
    has_conflict_markers,
    has_unresolved_markers,
    strip_code_fence,
)
from rebasekit.resolution.models import (
    ConflictAnalysis,
    ConflictedFile,
    ResolutionResult,
)

AI_FAILED = "AI resolution failed"
MARKERS_REMAIN = "AI could not fully resolve conflict markers"


class ResolutionModel(Protocol):
    """What FileConflictResolver needs from a model wrapper."""

    directive: str
    retry_directive: str

    async def resolve(
        self,
        file_path: str,
        language: str,
        current_branch: str,
        incoming_branch: str,
        conflicted_content: str,
        directive: str,
    ) -> str | None: ...

    async def analyze(
        self, file_path: str, conflicted_content: str
    ) -> str | None: ...


def _log_model_error(purpose: str, file: ConflictedFile, e: Exception):
    logger.error(
        f"Model {purpose} raised for {file.path}",
        _exc_info=e,
        file=file.path,
        error=str(e),
    )
    logger.debug(
        "Exception traceback",
        traceback="".join(
            traceback.format_exception(type(e), e, e.__traceback__)
        ),
    )


def _finish(raw: str, original: str) -> str:
    content = strip_code_fence(raw).strip()
    if original.endswith("\n") and content:
        content += "\n"
    return content


class FileConflictResolver:
    """Turns a conflicted file into a ResolutionResult.

    The model gets one attempt with the normal directive and, if
    markers survive, exactly one more with the forceful one. Model
    failures become unresolved results; nothing here raises.
    """

    def __init__(self, model: ResolutionModel):
        self.model = model

    async def _attempt(
        self,
        file: ConflictedFile,
        current_branch: str,
        incoming_branch: str,
        directive: str,
    ) -> str | None:
        try:
            raw = await self.model.resolve(
                file_path=file.path,
                language=file.language,
                current_branch=current_branch,
                incoming_branch=incoming_branch,
                conflicted_content=file.content,
                directive=directive,
            )
        except Exception as e:
            _log_model_error("resolve", file, e)
            return None
        if raw is None:
            return None
        return _finish(raw, file.content)

    async def resolve(
        self,
        file: ConflictedFile,
        current_branch: str,
        incoming_branch: str,
    ) -> ResolutionResult:
        if not has_conflict_markers(file.content):
            logger.debug(
                f"{file.path} has no conflict markers, keeping as is",
                file=file.path,
            )
            return ResolutionResult.success(file.path, file.content)

        content = await self._attempt(
            file, current_branch, incoming_branch, self.model.directive
        )
        if not content:
            logger.warn(f"{AI_FAILED} for {file.path}", file=file.path)
            return ResolutionResult.failure(file.path, AI_FAILED)

        if has_unresolved_markers(content):
            logger.info(
                f"Markers remain in {file.path}, retrying once",
                file=file.path,
            )
            content = await self._attempt(
                file,
                current_branch,
                incoming_branch,
                self.model.retry_directive,
            )
            if not content or has_unresolved_markers(content):
                logger.warn(
                    f"{MARKERS_REMAIN} in {file.path}", file=file.path
                )
                return ResolutionResult.failure(file.path, MARKERS_REMAIN)

        logger.info(f"Resolved {file.path}", file=file.path)
        return ResolutionResult.success(file.path, content)

    async def analyze(self, file: ConflictedFile) -> ConflictAnalysis | None:
        try:
            raw = await self.model.analyze(file.path, file.content)
        except Exception as e:
            _log_model_error("analyze", file, e)
            return None
        if raw is None:
            return None
        try:
            return parse_analysis(raw)
        except ValueError as e:
            logger.warn(
                f"Could not parse analysis for {file.path}: {e}",
                file=file.path,
            )
            return None
