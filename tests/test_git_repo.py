"""Tests for the git engine against real throwaway repositories."""

from __future__ import annotations

import asyncio
import shutil

import pytest

from cloudsmith_sync.core.errors import GitError
from cloudsmith_sync.engines.git.locks import RepositoryLocks
from cloudsmith_sync.engines.git.refs import RefKind
from cloudsmith_sync.engines.git.repo import GitRepository, _run, sync_and_open

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not installed")


@needs_git
class TestSyncAndOpen:
    @pytest.mark.asyncio
    async def test_clones_on_first_use(self, upstream, tmp_path):
        path = tmp_path / "work" / "widgets"
        repo = await sync_and_open(str(upstream.path), path)
        assert isinstance(repo, GitRepository)
        assert (path / ".git").is_dir()
        assert (path / "composer.json").is_file()

    @pytest.mark.asyncio
    async def test_fetches_on_subsequent_use(self, upstream, tmp_path):
        path = tmp_path / "widgets"
        await sync_and_open(str(upstream.path), path)
        new_head = upstream.commit_file("README.md", "hello\n")
        upstream.git("tag", "1.1.0")

        repo = await sync_and_open(str(upstream.path), path)
        branch = await repo.resolve("refs/heads/main")
        tag = await repo.resolve("refs/tags/1.1.0")
        assert branch.commit == new_head
        assert tag.commit == new_head

    @pytest.mark.asyncio
    async def test_clone_failure_raises_git_error(self, tmp_path):
        with pytest.raises(GitError, match="git command failed"):
            await sync_and_open(str(tmp_path / "does-not-exist"), tmp_path / "clone")


@needs_git
class TestResolveAndCheckout:
    @pytest.fixture
    async def repo(self, upstream, tmp_path):
        return await sync_and_open(str(upstream.path), tmp_path / "widgets")

    @pytest.mark.asyncio
    async def test_resolve_branch(self, repo, upstream):
        ref = await repo.resolve("refs/heads/main")
        assert ref.kind is RefKind.BRANCH
        assert ref.short_name == "main"
        assert ref.commit == upstream.head("main")

    @pytest.mark.asyncio
    async def test_resolve_tag(self, repo, upstream):
        ref = await repo.resolve("refs/tags/1.0.0")
        assert ref.kind is RefKind.TAG
        assert ref.short_name == "1.0.0"
        assert ref.commit == upstream.head("1.0.0^{commit}")

    @pytest.mark.asyncio
    async def test_resolve_unknown_ref(self, repo):
        with pytest.raises(GitError, match="reference not found: refs/heads/nope"):
            await repo.resolve("refs/heads/nope")

    @pytest.mark.asyncio
    async def test_checkout_branch_moves_to_remote_tip(self, repo, upstream, tmp_path):
        upstream.git("checkout", "-q", "-b", "feature")
        tip = upstream.commit_file("feature.txt", "x\n")
        repo = await sync_and_open(str(upstream.path), repo.path)

        ref = await repo.resolve("refs/heads/feature")
        await repo.checkout(ref)
        assert await repo.head_commit() == tip
        assert (await repo.git("rev-parse", "--abbrev-ref", "HEAD")).strip() == "feature"
        assert (repo.path / "feature.txt").is_file()

    @pytest.mark.asyncio
    async def test_checkout_branch_after_force_push(self, repo, upstream):
        first = await repo.resolve("refs/heads/main")
        await repo.checkout(first)

        upstream.git("reset", "-q", "--hard", "HEAD~1")
        rewritten = upstream.commit_file("other.txt", "rewritten\n")
        repo = await sync_and_open(str(upstream.path), repo.path)

        ref = await repo.resolve("refs/heads/main")
        await repo.checkout(ref)
        assert await repo.head_commit() == rewritten

    @pytest.mark.asyncio
    async def test_checkout_tag_detaches_head(self, repo):
        ref = await repo.resolve("refs/tags/1.0.0")
        await repo.checkout(ref)
        assert await repo.head_commit() == ref.commit
        assert (await repo.git("rev-parse", "--abbrev-ref", "HEAD")).strip() == "HEAD"

    @pytest.mark.asyncio
    async def test_deleted_tag_still_resolves_after_fetch(self, repo, upstream):
        upstream.git("tag", "-d", "1.0.0")
        repo = await sync_and_open(str(upstream.path), repo.path)
        ref = await repo.resolve("refs/tags/1.0.0")
        assert ref.kind is RefKind.TAG

    @pytest.mark.asyncio
    async def test_reset_hard_discards_changes(self, repo):
        await repo.checkout(await repo.resolve("refs/heads/main"))
        (repo.path / "composer.json").write_text("{}")
        (repo.path / "stray.txt").write_text("junk")
        assert not await repo.is_clean()

        await repo.reset_hard()
        assert await repo.is_clean()
        assert not (repo.path / "stray.txt").exists()

    @pytest.mark.asyncio
    async def test_tracked_files(self, repo):
        (repo.path / "untracked.txt").write_text("x")
        files = await repo.tracked_files()
        assert sorted(files) == ["composer.json", "src/Widget.php"]


class TestRepositoryLocks:
    @pytest.mark.asyncio
    async def test_same_path_is_serialized(self, tmp_path):
        locks = RepositoryLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold(tmp_path / "repo"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_different_paths_run_in_parallel(self, tmp_path):
        locks = RepositoryLocks()
        inside_a = asyncio.Event()
        release_a = asyncio.Event()

        async def hold_a() -> None:
            async with locks.hold(tmp_path / "a"):
                inside_a.set()
                await release_a.wait()

        task = asyncio.create_task(hold_a())
        await inside_a.wait()
        # b proceeds while a is still held.
        async with locks.hold(tmp_path / "b"):
            assert locks.locked(tmp_path / "a")
        release_a.set()
        await task

    @pytest.mark.asyncio
    async def test_equivalent_paths_share_a_lock(self, tmp_path):
        locks = RepositoryLocks()
        (tmp_path / "x").mkdir()
        async with locks.hold(tmp_path / "x"):
            assert locks.locked(tmp_path / "x" / ".." / "x")

    @pytest.mark.asyncio
    async def test_released_on_error(self, tmp_path):
        locks = RepositoryLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold(tmp_path):
                raise RuntimeError("boom")
        assert not locks.locked(tmp_path)


@pytest.mark.skipif(shutil.which("sleep") is None, reason="sleep binary not installed")
class TestRun:
    @pytest.mark.asyncio
    async def test_cancel_kills_child_process(self, monkeypatch):
        procs = []
        spawn = asyncio.create_subprocess_exec

        async def capture(*args, **kwargs):
            proc = await spawn(*args, **kwargs)
            procs.append(proc)
            return proc

        monkeypatch.setattr(asyncio, "create_subprocess_exec", capture)
        task = asyncio.create_task(_run(["sleep", "5"]))
        while not procs:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert procs[0].returncode is not None

    @needs_git
    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_git_error(self, tmp_path):
        with pytest.raises(GitError, match="exit"):
            await _run(["git", "-C", str(tmp_path / "missing"), "status"])
