"""Per-rebase session state passed through the workflow graph."""

from __future__ import annotations

import hashlib
from enum import StrEnum
from pathlib import Path
from uuid import uuid4

from pydantic import ConfigDict, Field

from rebasekit.core.base import BaseState
from rebasekit.core.log import logger
from rebasekit.git.gateway import GitGateway
from rebasekit.resolution.engine import ResolutionEngine
from rebasekit.resolution.models import RebaseOutcome, ResolutionResult


class RebasePhase(StrEnum):
    """Where a headless rebase run currently is."""

    PENDING = "pending"
    FETCHING = "fetching"
    REBASING = "rebasing"
    RESOLVING = "resolving"
    CONTINUING = "continuing"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


class RebaseSession(BaseState):
    """Everything one rebase run owns.

    One session drives one working copy; nothing here is global, so
    several sessions (on different repositories) can run in the same
    process.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(default_factory=lambda: uuid4().hex[:12])
    repo_path: Path
    target_branch: str
    max_retries: int = 3
    detect_cycles: bool = True

    gateway: GitGateway
    engine: ResolutionEngine

    current_branch: str = ""
    retries: int = 0
    phase: RebasePhase = RebasePhase.PENDING
    resolutions: list[ResolutionResult] = Field(default_factory=list)
    batch_signatures: set[str] = Field(default_factory=set)
    cancelled: bool = False

    @property
    def incoming_ref(self) -> str:
        return self.gateway.remote_ref(self.target_branch)

    def cancel(self) -> None:
        """Stop before the next batch; the run then aborts cleanly."""
        logger.info("Rebase cancellation requested", session=self.session_id)
        self.cancelled = True

    def enter(self, phase: RebasePhase) -> None:
        if phase != self.phase:
            logger.debug(
                f"Rebase phase {self.phase} → {phase}",
                session=self.session_id,
                phase=phase.value,
            )
        self.phase = phase

    def batch_signature(self, files: list[str]) -> str:
        """Hash of the file set and its conflicted content."""
        digest = hashlib.sha256()
        for path in sorted(files):
            digest.update(path.encode())
            try:
                digest.update(self.gateway.read_file(path).encode())
            except (OSError, UnicodeDecodeError):
                digest.update(b"\0unreadable")
        return digest.hexdigest()

    def abort(self) -> None:
        """rebase --abort, swallowing failure."""
        outcome = self.gateway.rebase_abort()
        logger.info(
            f"Rebase abort: {outcome.status}",
            session=self.session_id,
            status=outcome.status.value,
        )

    def finish(self, success: bool, message: str) -> RebaseOutcome:
        """Build the final outcome and settle the phase."""
        if success:
            self.enter(RebasePhase.COMPLETED)
        elif self.phase not in (RebasePhase.ABORTED, RebasePhase.FAILED):
            self.enter(RebasePhase.FAILED)

        resolved = sum(1 for r in self.resolutions if r.resolved)
        failed = len(self.resolutions) - resolved
        outcome = RebaseOutcome(
            success=success,
            message=message,
            conflicts_resolved=resolved,
            conflicts_failed=failed,
            resolutions=tuple(self.resolutions),
        )
        log = logger.info if success else logger.error
        log(
            message,
            session=self.session_id,
            success=success,
            conflicts_resolved=resolved,
            conflicts_failed=failed,
        )
        return outcome
