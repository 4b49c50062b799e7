"""Backup branches taken before AI edits reach the working tree."""

from rebasekit.core.log import logger
from rebasekit.git.gateway import GitCommandError, GitGateway
from rebasekit.resolution.models import BackupBranch


class BackupManager:
    """Creates and removes the per-session backup branch.

    Backups are best effort: a failure is logged and reported as
    None/False, never raised, so it cannot block a resolution.
    """

    def __init__(
        self,
        gateway: GitGateway,
        branch_template: str = "backup_kit/{session_id}",
    ):
        self.gateway = gateway
        self.branch_template = branch_template

    def branch_name(self, session_id: str) -> str:
        return self.branch_template.format(session_id=session_id)

    def _backup_point(self) -> str:
        # Mid-rebase, HEAD is a partly rebased commit; ORIG_HEAD is
        # the branch tip from before the rebase started.
        if self.gateway.rebase_in_progress():
            try:
                return self.gateway.rev_parse("ORIG_HEAD")
            except GitCommandError:
                logger.debug("ORIG_HEAD missing, backing up HEAD instead")
        return self.gateway.rev_parse("HEAD")

    def create_backup(self, session_id: str) -> BackupBranch | None:
        name = self.branch_name(session_id)
        try:
            commit = self._backup_point()
            self.gateway.create_branch(name, commit)
        except GitCommandError as e:
            logger.warn(
                f"Could not create backup branch {name}",
                branch=name,
                error=str(e),
            )
            return None
        logger.info(
            f"Created backup branch {name} at {commit[:12]}",
            branch=name,
            commit=commit,
        )
        return BackupBranch(name=name, session_id=session_id, commit=commit)

    def delete_backup(self, session_id: str) -> bool:
        name = self.branch_name(session_id)
        try:
            self.gateway.delete_branch(name)
        except GitCommandError as e:
            logger.warn(
                f"Could not delete backup branch {name}",
                branch=name,
                error=str(e),
            )
            return False
        logger.info(f"Deleted backup branch {name}", branch=name)
        return True
