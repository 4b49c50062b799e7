"""Data types shared by the resolver, the engine and both workflows."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ConflictedFile(BaseModel):
    """A file with conflict markers, as read from the working tree."""

    path: str
    content: str
    language: str = "text"


class ConflictAnalysis(BaseModel):
    """What each side of a conflict was trying to do.

    Models answer in camelCase; both spellings validate.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_branch_intent: str = Field(alias="currentBranchIntent")
    incoming_branch_intent: str = Field(alias="incomingBranchIntent")
    conflict_type: Literal["compatible", "semantic", "structural"] = Field(
        alias="conflictType"
    )
    recommended_strategy: Literal[
        "merge_both", "prefer_current", "prefer_incoming", "manual"
    ] = Field(alias="recommendedStrategy")
    explanation: str = ""
    complexity: Literal["simple", "moderate", "complex"] = "moderate"


class ResolutionResult(BaseModel):
    """Outcome of resolving one file."""

    file: str
    resolved: bool
    content: str | None = None
    error: str | None = None
    analysis: ConflictAnalysis | None = None

    @model_validator(mode='after')
    def _check_consistency(self) -> ResolutionResult:
        if self.resolved:
            if self.content is None:
                raise ValueError("resolved result requires content")
            if self.error is not None:
                raise ValueError("resolved result cannot carry an error")
        else:
            if self.error is None:
                raise ValueError("unresolved result requires an error")
            if self.content is not None:
                raise ValueError("unresolved result cannot carry content")
        return self

    @classmethod
    def success(cls, file: str, content: str) -> ResolutionResult:
        return cls(file=file, resolved=True, content=content)

    @classmethod
    def failure(cls, file: str, error: str) -> ResolutionResult:
        return cls(file=file, resolved=False, error=error)


class ResolutionPreview(BaseModel):
    """A proposed resolution awaiting human review."""

    file_path: str
    language: str
    ours_content: str
    theirs_content: str
    original_content: str
    resolved_content: str
    resolution: Literal["ours", "theirs", "merged"] = "merged"
    approved: bool = True
    analysis: ConflictAnalysis | None = None
    error: str | None = None


class RebaseOutcome(BaseModel):
    """Final report of a headless rebase run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str
    conflicts_resolved: int = 0
    conflicts_failed: int = 0
    resolutions: tuple[ResolutionResult, ...] = ()


class BackupBranch(BaseModel):
    """Branch pointing at the pre-rebase tip of the user's branch."""

    name: str
    session_id: str
    commit: str


class ApplyResult(BaseModel):
    """Result of writing approved previews to the working tree."""

    success: bool
    message: str
    applied: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)


class ConflictDetails(BaseModel):
    """Everything the review workflow knows when a rebase stops."""

    session_id: str
    repo_path: str
    base_branch: str
    current_branch: str
    conflicted_files: list[str] = Field(default_factory=list)
    error_message: str = ""


__all__ = [
    "ConflictedFile",
    "ConflictAnalysis",
    "ResolutionResult",
    "ResolutionPreview",
    "RebaseOutcome",
    "BackupBranch",
    "ApplyResult",
    "ConflictDetails",
]
