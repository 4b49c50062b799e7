"""Tests for the shared resolve/apply engine."""

import asyncio

from conftest import FakeModel

from rebasekit.git.gateway import GitCommandError, GitGateway
from rebasekit.resolution.engine import ResolutionEngine
from rebasekit.resolution.file_resolver import FileConflictResolver
from rebasekit.resolution.models import ResolutionPreview, ResolutionResult

MARKERS = "<<<<<<< HEAD\nx\n=======\ny\n>>>>>>> z\n"


def make_engine(repos, model=None, max_parallel=4):
    gateway = GitGateway(repos.work)
    resolver = FileConflictResolver(model or FakeModel())
    return ResolutionEngine(gateway, resolver, max_parallel=max_parallel)


def preview(path, content, approved=True):
    return ResolutionPreview(
        file_path=path,
        language="typescript",
        ours_content="",
        theirs_content="",
        original_content="",
        resolved_content=content,
        approved=approved,
    )


def test_read_conflicted_file_is_fresh(stopped_rebase):
    """Every read goes to disk."""
    engine = make_engine(stopped_rebase)
    first = engine.read_conflicted_file("a.ts")
    (stopped_rebase.work / "a.ts").write_text("changed\n")

    second = engine.read_conflicted_file("a.ts")

    assert first.language == "typescript"
    assert "<<<<<<<" in first.content
    assert second.content == "changed\n"


def test_resolve_files_keeps_order(stopped_rebase):
    engine = make_engine(stopped_rebase)

    results = asyncio.run(engine.resolve_files(
        ["b.ts", "a.ts"], "feature", "main"
    ))

    assert [r.file for r in results] == ["b.ts", "a.ts"]
    assert all(r.resolved for r in results)


def test_resolve_files_bounds_concurrency(stopped_rebase):
    """No more than max_parallel model calls run at once."""
    active = 0
    peak = 0

    class SlowModel(FakeModel):
        async def resolve(self, *args, **kwargs):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return await super().resolve(*args, **kwargs)

    engine = make_engine(stopped_rebase, SlowModel(), max_parallel=1)

    asyncio.run(engine.resolve_files(["a.ts", "b.ts"], "feature", "main"))

    assert peak == 1


def test_resolve_missing_file_fails_that_file_only(stopped_rebase):
    engine = make_engine(stopped_rebase)

    results = asyncio.run(engine.resolve_files(
        ["a.ts", "missing.ts"], "feature", "main"
    ))

    assert results[0].resolved
    assert not results[1].resolved
    assert results[1].error == "Failed to read file: missing.ts"


def test_apply_resolutions_writes_and_stages(stopped_rebase):
    engine = make_engine(stopped_rebase)

    applied = engine.apply_resolutions([
        ResolutionResult.success("a.ts", "export const a = 23;\n"),
        ResolutionResult.success("b.ts", "export const b = 23;\n"),
    ])

    assert all(r.resolved for r in applied)
    assert engine.gateway.conflicted_files() == []
    assert (stopped_rebase.work / "a.ts").read_text() == (
        "export const a = 23;\n"
    )


def test_apply_resolutions_stage_failure_marks_file(stopped_rebase):
    """A failing git add turns the result into a failure."""
    engine = make_engine(stopped_rebase)
    real_add = engine.gateway.add

    def add(path):
        if path == "b.ts":
            raise GitCommandError(["add", "--", path], 128, "", "locked")
        real_add(path)

    engine.gateway.add = add

    applied = engine.apply_resolutions([
        ResolutionResult.success("a.ts", "a\n"),
        ResolutionResult.success("b.ts", "b\n"),
    ])

    assert applied[0].resolved
    assert not applied[1].resolved
    assert "locked" in applied[1].error


def test_build_previews_classifies_resolution(stopped_rebase):
    """FakeModel answers with the ours side, so previews say 'ours'."""
    engine = make_engine(stopped_rebase)

    previews = asyncio.run(engine.build_previews(
        ["a.ts", "b.ts"], "feature", "main"
    ))

    assert [p.file_path for p in previews] == ["a.ts", "b.ts"]
    first = previews[0]
    assert first.approved
    assert first.resolution == "ours"
    assert first.ours_content == "export const a = 2;\n"
    assert first.theirs_content == "export const a = 3;\n"
    assert "<<<<<<<" in first.original_content


def test_build_previews_merged_and_failed(stopped_rebase):
    model = FakeModel(replies={
        "a.ts": ["export const a = 23;\n"],
        "b.ts": [None],
    })
    engine = make_engine(stopped_rebase, model)

    a, b = asyncio.run(engine.build_previews(
        ["a.ts", "b.ts"], "feature", "main"
    ))

    assert a.resolution == "merged"
    assert a.approved
    assert not b.approved
    assert b.error == "AI resolution failed"


def test_build_previews_with_analysis(stopped_rebase):
    analysis = (
        '{"currentBranchIntent": "a", "incomingBranchIntent": "b", '
        '"conflictType": "compatible", "recommendedStrategy": '
        '"merge_both", "explanation": "e", "complexity": "simple"}'
    )
    model = FakeModel(analysis=analysis)
    engine = make_engine(stopped_rebase, model)

    previews = asyncio.run(engine.build_previews(
        ["a.ts"], "feature", "main", analyze=True
    ))

    assert previews[0].analysis.recommended_strategy == "merge_both"
    assert model.analyze_calls == ["a.ts"]


def test_apply_previews_skips_unapproved(stopped_rebase):
    engine = make_engine(stopped_rebase)

    result = engine.apply_previews([
        preview("a.ts", "export const a = 23;\n"),
        preview("b.ts", "export const b = 23;\n", approved=False),
    ])

    assert result.success
    assert result.applied == ["a.ts"]
    assert result.skipped == ["b.ts"]
    # b.ts untouched and still conflicted, so the rebase cannot finish
    assert "<<<<<<<" in (stopped_rebase.work / "b.ts").read_text()
    assert engine.rebase_in_progress()


def test_apply_previews_refuses_markers(stopped_rebase):
    engine = make_engine(stopped_rebase)

    result = engine.apply_previews([preview("a.ts", MARKERS)])

    assert not result.success
    assert result.failed == ["a.ts"]


def test_apply_previews_all_approved_finishes_rebase(stopped_rebase):
    """With every file applied the speculative continue completes."""
    engine = make_engine(stopped_rebase)

    result = engine.apply_previews([
        preview("a.ts", "export const a = 23;\n"),
        preview("b.ts", "export const b = 23;\n"),
    ])

    assert result.success
    assert result.message == "Successfully resolved 2 conflict(s)"
    assert not engine.rebase_in_progress()
