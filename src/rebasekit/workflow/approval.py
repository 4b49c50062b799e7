"""Interactive review of AI resolutions before they are applied.

The workflow starts in ERROR (a rebase stopped on conflicts) and
offers two ways forward:

    ERROR → GENERATING → REVIEW_PLAN → APPLYING → RESULT   (auto fix)
    ERROR → MANUAL → RESULT                                (by hand)

abort() is available from every step except RESULT. Every step
that finishes something emits one event for the front end to render.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel

from rebasekit.core.log import logger
from rebasekit.git.gateway import GitCommandError
from rebasekit.resolution.backup import BackupManager
from rebasekit.resolution.engine import ResolutionEngine
from rebasekit.resolution.models import (
    ApplyResult,
    BackupBranch,
    ConflictDetails,
    ResolutionPreview,
)

NO_APPROVALS = "No resolutions approved. Please approve at least one file."
MANUAL_SUCCESS = "Conflicts resolved manually. Rebase completed."
MANUAL_PENDING = (
    "Rebase still in progress. Please complete the rebase manually."
)
ABORT_SUCCESS = "Rebase aborted. Repository restored to previous state."


class ApprovalStep(StrEnum):
    ERROR = "error"
    GENERATING = "generating"
    REVIEW_PLAN = "review_plan"
    APPLYING = "applying"
    MANUAL = "manual"
    RESULT = "result"


class InvalidTransitionError(RuntimeError):
    """An action was requested in a step that does not allow it."""

    def __init__(self, action: str, step: ApprovalStep):
        self.action = action
        self.step = step
        super().__init__(f"Cannot {action} in step '{step}'")


class PreviewsReady(BaseModel):
    kind: Literal["previews-ready"] = "previews-ready"
    previews: list[ResolutionPreview]
    backup: BackupBranch | None = None


class WorkflowResult(BaseModel):
    kind: Literal["applied-result", "manual-verify-result", "abort-result"]
    success: bool
    message: str
    apply: ApplyResult | None = None


WorkflowEvent = PreviewsReady | WorkflowResult


def detect_conflict(
    engine: ResolutionEngine,
    base_branch: str,
    error_message: str = "",
    session_id: str | None = None,
) -> ConflictDetails:
    """Describe the conflict currently stopping a rebase in the repo.

    Raises:
        GitCommandError: If the repository cannot be inspected
    """
    gateway = engine.gateway
    return ConflictDetails(
        session_id=session_id or uuid4().hex[:12],
        repo_path=str(gateway.workdir),
        base_branch=base_branch,
        current_branch=gateway.current_branch(),
        conflicted_files=gateway.conflicted_files(),
        error_message=error_message,
    )


class ApprovalWorkflow:
    """Gate AI resolutions behind a human reviewer.

    Shares ResolutionEngine with the headless path; the only
    difference is that approval comes from set_approval() instead of
    being implied.
    """

    def __init__(
        self,
        details: ConflictDetails,
        engine: ResolutionEngine,
        backups: BackupManager | None = None,
        listener: Callable[[WorkflowEvent], None] | None = None,
    ):
        self.details = details
        self.engine = engine
        self.backups = backups
        self.listener = listener

        self.step = ApprovalStep.ERROR
        self.previews: list[ResolutionPreview] = []
        self.backup: BackupBranch | None = None
        self.result: WorkflowResult | None = None
        self.events: list[WorkflowEvent] = []

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    def _require(self, action: str, *steps: ApprovalStep) -> None:
        if self.step not in steps:
            raise InvalidTransitionError(action, self.step)

    def _move(self, step: ApprovalStep) -> None:
        logger.debug(
            f"Approval step {self.step} → {step}",
            session=self.details.session_id,
        )
        self.step = step

    def _emit(self, event: WorkflowEvent) -> WorkflowEvent:
        self.events.append(event)
        if isinstance(event, WorkflowResult):
            self.result = event
            logger.info(
                f"{event.kind}: {event.message}",
                session=self.details.session_id,
                success=event.success,
            )
        if self.listener is not None:
            self.listener(event)
        return event

    def _finish(
        self,
        kind: str,
        success: bool,
        message: str,
        apply: ApplyResult | None = None,
    ) -> WorkflowResult:
        self._move(ApprovalStep.RESULT)
        return self._emit(WorkflowResult(
            kind=kind, success=success, message=message, apply=apply
        ))

    @property
    def approved_count(self) -> int:
        return sum(1 for p in self.previews if p.approved)

    @property
    def can_apply(self) -> bool:
        return (
            self.step == ApprovalStep.REVIEW_PLAN
            and self.approved_count > 0
        )

    # --------------------------------------------------------
    # Auto-fix path
    # --------------------------------------------------------

    async def _generate(self, analyze: bool) -> list[ResolutionPreview]:
        if self.backups is not None:
            self.backup = self.backups.create_backup(self.details.session_id)
            if self.backup is None:
                logger.warn(
                    "Continuing without a backup branch",
                    session=self.details.session_id,
                )

        files = self.details.conflicted_files
        if not files:
            files = self.engine.gateway.conflicted_files()
            self.details.conflicted_files = files

        return await self.engine.build_previews(
            files,
            self.details.current_branch,
            self.details.base_branch,
            analyze=analyze,
        )

    async def auto_fix(self, analyze: bool = False) -> WorkflowEvent:
        """Back up, then generate a preview for every conflicted file.

        If generation fails the workflow returns to ERROR, where the
        user can retry, resolve manually or abort.

        Returns:
            PreviewsReady, or an applied-result failure
        """
        self._require("auto-fix", ApprovalStep.ERROR)
        self._move(ApprovalStep.GENERATING)

        try:
            self.previews = await self._generate(analyze)
        except Exception as e:
            logger.error(
                "Generating resolutions failed",
                _exc_info=e,
                session=self.details.session_id,
            )
            self._move(ApprovalStep.ERROR)
            return self._emit(WorkflowResult(
                kind="applied-result",
                success=False,
                message=f"Failed to generate resolutions: {e}",
            ))

        self._move(ApprovalStep.REVIEW_PLAN)
        return self._emit(
            PreviewsReady(previews=self.previews, backup=self.backup)
        )

    def set_approval(self, file_path: str, approved: bool) -> None:
        """Toggle one preview.

        Raises:
            InvalidTransitionError: Outside REVIEW_PLAN
            KeyError: If no preview exists for file_path
            ValueError: When approving a preview the model failed on
        """
        self._require("change approval", ApprovalStep.REVIEW_PLAN)
        for preview in self.previews:
            if preview.file_path == file_path:
                if approved and preview.error is not None:
                    raise ValueError(
                        f"Cannot approve {file_path}: {preview.error}"
                    )
                preview.approved = approved
                return
        raise KeyError(file_path)

    def apply(self) -> WorkflowResult:
        """Write approved previews; delete the backup only on success."""
        self._require("apply", ApprovalStep.REVIEW_PLAN)
        if self.approved_count == 0:
            return self._finish("applied-result", False, NO_APPROVALS)

        self._move(ApprovalStep.APPLYING)
        result = self.engine.apply_previews(self.previews)
        if result.success and self.backups is not None and self.backup:
            self.backups.delete_backup(self.details.session_id)
        elif not result.success and self.backup is not None:
            logger.warn(
                f"Apply failed; backup kept at {self.backup.name}",
                session=self.details.session_id,
                branch=self.backup.name,
            )
        return self._finish(
            "applied-result", result.success, result.message, apply=result
        )

    # --------------------------------------------------------
    # Manual path
    # --------------------------------------------------------

    def start_manual(self) -> None:
        self._require("resolve manually", ApprovalStep.ERROR)
        self._move(ApprovalStep.MANUAL)

    def confirm_manual(self, acknowledged: bool) -> WorkflowResult:
        """Accept the user's claim only once the rebase has finished.

        A rejected claim leaves the workflow in MANUAL so the user can
        finish and confirm again, or abort.

        Raises:
            ValueError: If the user did not tick the acknowledgement
        """
        self._require("confirm manual resolution", ApprovalStep.MANUAL)
        if not acknowledged:
            raise ValueError(
                "Confirm that the conflicts were resolved and the "
                "rebase completed"
            )

        try:
            in_progress = self.engine.rebase_in_progress()
        except GitCommandError as e:
            return self._emit(WorkflowResult(
                kind="manual-verify-result",
                success=False,
                message=f"Rebase status check failed: {e}",
            ))
        if in_progress:
            return self._emit(WorkflowResult(
                kind="manual-verify-result",
                success=False,
                message=MANUAL_PENDING,
            ))
        return self._finish("manual-verify-result", True, MANUAL_SUCCESS)

    # --------------------------------------------------------
    # Escape hatch
    # --------------------------------------------------------

    def abort(self) -> WorkflowResult:
        """rebase --abort; the backup branch, if any, is kept."""
        self._require(
            "abort",
            ApprovalStep.ERROR,
            ApprovalStep.GENERATING,
            ApprovalStep.REVIEW_PLAN,
            ApprovalStep.APPLYING,
            ApprovalStep.MANUAL,
        )
        outcome = self.engine.gateway.rebase_abort()
        if outcome.ok:
            return self._finish("abort-result", True, ABORT_SUCCESS)
        return self._finish(
            "abort-result", False, f"Failed to abort rebase: {outcome.detail}"
        )


__all__ = [
    "ApprovalWorkflow",
    "ApprovalStep",
    "InvalidTransitionError",
    "PreviewsReady",
    "WorkflowResult",
    "WorkflowEvent",
    "detect_conflict",
]
