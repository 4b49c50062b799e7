"""End-to-end tests for the headless rebase graph."""

import asyncio

import pytest
from conftest import FakeModel
from pydantic import ValidationError
from pydantic_graph import End, GraphRunContext

from rebasekit.core.config import GitConfig
from rebasekit.git.gateway import GitCommandError
from rebasekit.resolution.engine import create_engine
from rebasekit.workflow.nodes.resolve_batch import ResolveBatch
from rebasekit.workflow.rebase import (
    create_session,
    rebase_with_resolution,
    run_rebase,
)
from rebasekit.workflow.session import RebasePhase

STILL_CONFLICTED = "<<<<<<< HEAD\na\n=======\nb\n>>>>>>> x\n"


def rebase(repos, model, max_retries=3, target="main", **kwargs):
    return asyncio.run(rebase_with_resolution(
        repos.work, target, max_retries=max_retries, model=model, **kwargs
    ))


def test_clean_rebase_is_fast_path(make_repos):
    repos = make_repos(
        base={"a.ts": "a\n", "b.ts": "b\n"},
        main={"a.ts": "a2\n"},
        feature=[{"b.ts": "b2\n"}],
    )
    model = FakeModel()

    outcome = rebase(repos, model)

    assert outcome.success
    assert outcome.message == "Rebase completed without conflicts"
    assert outcome.conflicts_resolved == 0
    assert outcome.resolutions == ()
    assert model.calls == []


def test_fetch_failure_is_fatal(make_repos):
    repos = make_repos(base={"a.ts": "a\n"})
    model = FakeModel()

    outcome = rebase(repos, model, target="no-such-branch")

    assert not outcome.success
    assert outcome.message.startswith("Failed to fetch no-such-branch")
    assert outcome.resolutions == ()
    assert model.calls == []


def test_two_files_resolve_and_rebase_completes(two_file_conflict):
    """a.ts and b.ts resolve, stage and the continue finishes."""
    repos = two_file_conflict
    model = FakeModel(replies={
        "a.ts": ["export const a = 23;\n"],
        "b.ts": ["```ts\nexport const b = 23;\n```"],
    })

    outcome = rebase(repos, model)

    assert outcome.success
    assert outcome.conflicts_resolved == 2
    assert outcome.conflicts_failed == 0
    assert outcome.message == "Rebase completed. Resolved 2 conflict(s)."
    assert not repos.in_rebase()
    assert (repos.work / "a.ts").read_text() == "export const a = 23;\n"
    assert (repos.work / "b.ts").read_text() == "export const b = 23;\n"
    assert repos.git("branch", "--show-current") == "feature"
    assert repos.git("log", "-1", "--format=%s") == "feature 1"


def test_one_failed_file_aborts_batch(two_file_conflict):
    """b.ts keeps markers after the retry: abort, nothing staged."""
    repos = two_file_conflict
    model = FakeModel(replies={
        "a.ts": ["export const a = 23;\n"],
        "b.ts": [STILL_CONFLICTED, STILL_CONFLICTED],
    })

    outcome = rebase(repos, model)

    assert not outcome.success
    assert outcome.conflicts_failed == 1
    assert outcome.conflicts_resolved == 1
    assert outcome.message == "Failed to resolve 1 conflict(s). Rebase aborted."
    assert len(model.calls_for("b.ts")) == 2
    assert not repos.in_rebase()
    assert repos.staged() == []
    assert repos.git("status", "--porcelain") == ""
    assert (repos.work / "a.ts").read_text() == "export const a = 3;\n"


def test_zero_retries_never_calls_model(two_file_conflict):
    repos = two_file_conflict
    model = FakeModel()

    outcome = rebase(repos, model, max_retries=0)

    assert not outcome.success
    assert outcome.message == "Rebase could not complete after max retries"
    assert model.calls == []
    assert not repos.in_rebase()


def test_conflicts_in_several_waves(make_repos):
    """Each feature commit conflicts on its own; both waves resolve."""
    repos = make_repos(
        base={"a.ts": "a1\n", "b.ts": "b1\n"},
        main={"a.ts": "a2\n", "b.ts": "b2\n"},
        feature=[{"a.ts": "a3\n"}, {"b.ts": "b3\n"}],
    )
    model = FakeModel(replies={"a.ts": ["a23\n"], "b.ts": ["b23\n"]})

    outcome = rebase(repos, model)

    assert outcome.success
    assert outcome.conflicts_resolved == 2
    assert [r.file for r in outcome.resolutions] == ["a.ts", "b.ts"]
    assert not repos.in_rebase()


def test_retry_budget_exhausted_aborts(make_repos):
    """One batch allowed, two waves needed: abort with retries error."""
    repos = make_repos(
        base={"a.ts": "a1\n", "b.ts": "b1\n"},
        main={"a.ts": "a2\n", "b.ts": "b2\n"},
        feature=[{"a.ts": "a3\n"}, {"b.ts": "b3\n"}],
    )
    tip = repos.git("rev-parse", "HEAD")
    model = FakeModel(replies={"a.ts": ["a23\n"], "b.ts": ["b23\n"]})

    outcome = rebase(repos, model, max_retries=1)

    assert not outcome.success
    assert outcome.message == "Rebase could not complete after max retries"
    assert model.calls_for("b.ts") == []
    assert not repos.in_rebase()
    assert repos.git("rev-parse", "HEAD") == tip


def test_stage_failure_aborts_batch(two_file_conflict, monkeypatch):
    repos = two_file_conflict
    engine = create_engine(repos.work, model=FakeModel())
    real_add = engine.gateway.add

    def add(path):
        if path == "b.ts":
            raise GitCommandError(["add", "--", path], 128, "", "locked")
        real_add(path)

    monkeypatch.setattr(engine.gateway, "add", add)
    session = create_session(engine, "main")

    outcome = asyncio.run(run_rebase(session))

    assert not outcome.success
    assert outcome.message == (
        "Failed to stage 1 resolved file(s). Rebase aborted."
    )
    assert outcome.conflicts_failed == 1
    assert session.phase == RebasePhase.ABORTED
    assert not repos.in_rebase()
    assert repos.staged() == []


def test_dirty_tree_is_environment_error(make_repos):
    repos = make_repos(
        base={"a.ts": "a\n"},
        main={"a.ts": "a2\n"},
        feature=[{"a.ts": "a3\n"}],
    )
    (repos.work / "a.ts").write_text("uncommitted\n")

    outcome = rebase(repos, FakeModel())

    assert not outcome.success
    assert outcome.message.startswith("Rebase failed")
    assert not repos.in_rebase()
    assert (repos.work / "a.ts").read_text() == "uncommitted\n"


def test_cancelled_session_aborts_before_resolving(two_file_conflict):
    repos = two_file_conflict
    model = FakeModel()
    session = create_session(create_engine(repos.work, model=model), "main")
    session.cancel()

    outcome = asyncio.run(run_rebase(session))

    assert not outcome.success
    assert outcome.message == "Rebase cancelled. Rebase aborted."
    assert model.calls == []
    assert not repos.in_rebase()


def test_repeated_batch_is_aborted(stopped_rebase):
    """A batch identical to an earlier one is not resolved again."""
    repos = stopped_rebase
    model = FakeModel()
    session = create_session(create_engine(repos.work, model=model), "main")
    files = ["a.ts", "b.ts"]
    session.batch_signatures.add(session.batch_signature(files))

    node = ResolveBatch(files=files)
    result = asyncio.run(node.run(GraphRunContext(state=session, deps=None)))

    assert isinstance(result, End)
    assert not result.data.success
    assert "same conflicts" in result.data.message
    assert model.calls == []
    assert not repos.in_rebase()


def test_cycle_detection_can_be_disabled(two_file_conflict):
    repos = two_file_conflict

    outcome = rebase(
        repos,
        FakeModel(),
        git_config=GitConfig(detect_cycles=False),
    )

    assert outcome.success


def test_outcome_is_frozen(two_file_conflict):
    outcome = rebase(two_file_conflict, FakeModel())

    with pytest.raises(ValidationError):
        outcome.success = False


def test_raising_model_returns_failed_outcome(two_file_conflict):
    """A model that raises fails its files; the run still ends cleanly."""
    repos = two_file_conflict

    class Unreachable(FakeModel):
        async def resolve(self, file_path, *args, **kwargs):
            self.calls.append((file_path, kwargs.get("directive")))
            raise ConnectionError("provider down")

    model = Unreachable()

    outcome = rebase(repos, model)

    assert not outcome.success
    assert outcome.conflicts_failed == 2
    assert outcome.message == "Failed to resolve 2 conflict(s). Rebase aborted."
    assert len(model.calls) == 2
    assert not repos.in_rebase()
    assert (repos.work / "a.ts").read_text() == "export const a = 3;\n"
