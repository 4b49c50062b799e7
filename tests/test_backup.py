"""Tests for backup branch creation and deletion."""

from rebasekit.git.gateway import GitGateway
from rebasekit.resolution.backup import BackupManager


def test_backup_points_at_head_outside_rebase(make_repos):
    repos = make_repos(base={"a.txt": "a\n"}, feature=[{"a.txt": "b\n"}])
    gateway = GitGateway(repos.work)
    manager = BackupManager(gateway)

    backup = manager.create_backup("s1")

    assert backup is not None
    assert backup.name == "backup_kit/s1"
    assert backup.session_id == "s1"
    assert backup.commit == gateway.rev_parse("HEAD")
    assert gateway.branch_exists("backup_kit/s1")


def test_backup_during_rebase_points_at_original_tip(two_file_conflict):
    """Mid-rebase, the backup is the branch tip from before the rebase."""
    repos = two_file_conflict
    tip = repos.git("rev-parse", "feature")
    gateway = GitGateway(repos.work)
    gateway.fetch("main")
    gateway.rebase("origin/main")
    assert gateway.rebase_in_progress()

    backup = BackupManager(gateway).create_backup("s2")

    assert backup.commit == tip
    assert gateway.rev_parse("HEAD") != tip


def test_backup_replaces_stale_branch(make_repos):
    repos = make_repos(base={"a.txt": "a\n"}, feature=[{"a.txt": "b\n"}])
    gateway = GitGateway(repos.work)
    gateway.create_branch("backup_kit/s3", "HEAD~1")

    backup = BackupManager(gateway).create_backup("s3")

    assert backup.commit == gateway.rev_parse("HEAD")


def test_custom_template(make_repos):
    repos = make_repos(base={"a.txt": "a\n"})
    gateway = GitGateway(repos.work)
    manager = BackupManager(gateway, branch_template="safety/{session_id}")

    assert manager.create_backup("x").name == "safety/x"
    assert gateway.branch_exists("safety/x")


def test_backup_failure_returns_none(make_repos):
    """An invalid branch name is logged, not raised."""
    repos = make_repos(base={"a.txt": "a\n"})
    manager = BackupManager(
        GitGateway(repos.work), branch_template="bad..name/{session_id}"
    )

    assert manager.create_backup("s4") is None


def test_delete_backup(make_repos):
    repos = make_repos(base={"a.txt": "a\n"})
    gateway = GitGateway(repos.work)
    manager = BackupManager(gateway)
    manager.create_backup("s5")

    assert manager.delete_backup("s5")
    assert not gateway.branch_exists("backup_kit/s5")


def test_delete_missing_backup_returns_false(make_repos):
    repos = make_repos(base={"a.txt": "a\n"})

    assert not BackupManager(GitGateway(repos.work)).delete_backup("none")
