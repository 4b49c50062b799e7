"""Review command - terminal front end for the approval workflow."""

from pathlib import Path

from pydantic import BaseModel, Field

from rebasekit.core.log import logger


def _ask(question: str, choices: str) -> str:
    """Prompt until the answer is one of choices (first is default)."""
    while True:
        answer = input(f"{question} [{choices}] ").strip().lower()
        if not answer:
            return choices[0]
        if answer[0] in choices.lower():
            return answer[0]


class ReviewCommand(BaseModel):
    """Review AI resolutions for a rebase stopped on conflicts.

    Choose auto-fix to generate previews and approve them file by
    file, manual to finish the rebase yourself, or abort to restore
    the branch. A backup branch is created before anything is written.
    """

    repo: Path | None = Field(
        default=None,
        description="Working copy (default: config.git.repo_path)",
    )
    yes: bool = Field(
        default=False,
        description="Auto-fix and apply every resolved file without asking",
    )
    analyze: bool = Field(
        default=False,
        description="Ask the model for an analysis of each conflict",
    )

    def _show_previews(self, previews) -> None:
        for preview in previews:
            if preview.error:
                print(f"  ✗ {preview.file_path}: {preview.error}")
                continue
            print(f"  ✓ {preview.file_path} ({preview.resolution})")
            if preview.analysis is not None:
                print(f"      {preview.analysis.explanation}")

    def _review(self, workflow) -> None:
        for preview in workflow.previews:
            if preview.error is not None:
                continue
            print(f"\n--- {preview.file_path} (resolved) ---")
            print(preview.resolved_content)
            answer = _ask(f"Apply {preview.file_path}?", "yn")
            workflow.set_approval(preview.file_path, answer == "y")

    def _manual(self, workflow) -> int:
        workflow.start_manual()
        print(
            "Resolve the conflicts in your editor, `git add` the files "
            "and run `git rebase --continue` until the rebase finishes."
        )
        while True:
            answer = _ask(
                "Done (conflicts resolved, rebase completed)?", "da"
            )
            if answer == "a":
                return 0 if workflow.abort().success else 1
            result = workflow.confirm_manual(acknowledged=True)
            print(result.message)
            if result.success:
                return 0

    async def run_workflow(self, state: "State") -> int:
        """Run the approval workflow in the terminal.

        Returns:
            Exit code (0=success, 1=failure)
        """
        from rebasekit.command.context import backups_for, engine_for
        from rebasekit.git.gateway import GitCommandError
        from rebasekit.workflow.approval import (
            ApprovalWorkflow,
            WorkflowResult,
            detect_conflict,
        )

        engine = engine_for(state, self.repo)
        try:
            in_progress = engine.rebase_in_progress()
        except GitCommandError as e:
            logger.error(f"Cannot read repository: {e}")
            return 1
        if not in_progress:
            logger.info("No rebase in progress; nothing to review")
            return 0

        details = detect_conflict(engine, state.config.git.target_branch)
        workflow = ApprovalWorkflow(
            details, engine, backups=backups_for(state, engine)
        )

        print(
            f"Rebase of {details.current_branch} onto "
            f"{details.base_branch} stopped on conflicts:"
        )
        for path in details.conflicted_files:
            print(f"  {path}")

        choice = "a" if self.yes else _ask(
            "[a]uto-fix, [m]anual, a[b]ort?", "amb"
        )
        if choice == "b":
            result = workflow.abort()
            print(result.message)
            return 0 if result.success else 1
        if choice == "m":
            return self._manual(workflow)

        event = await workflow.auto_fix(analyze=self.analyze)
        if isinstance(event, WorkflowResult):
            print(event.message)
            return 1
        self._show_previews(event.previews)

        if not self.yes:
            self._review(workflow)
            choice = _ask(
                f"[a]pply {workflow.approved_count} approved file(s), "
                f"a[b]ort the rebase?",
                "ab",
            )
            if choice == "b":
                result = workflow.abort()
                print(result.message)
                if workflow.backup is not None:
                    print(f"Backup kept at {workflow.backup.name}")
                return 0 if result.success else 1

        result = workflow.apply()
        print(result.message)
        if workflow.backup is not None and not result.success:
            print(f"Backup kept at {workflow.backup.name}")
        return 0 if result.success else 1
