"""Working-copy management — clone/fetch, ref resolution, checkout, reset."""

from __future__ import annotations

import asyncio
import contextlib
import os
from pathlib import Path

import structlog

from cloudsmith_sync.core.errors import GitError
from cloudsmith_sync.engines.git.refs import RefKind, ResolvedRef, classify_ref

log = structlog.get_logger("cloudsmith_sync.git")

REMOTE = "origin"


async def sync_and_open(remote_url: str, path: Path) -> GitRepository:
    """Return a working copy of *remote_url* at *path*, cloning on first use.

    An existing clone has its origin URL refreshed and is fetched with
    tags.  Nothing is pruned, so a branch or tag that was just deleted
    upstream still resolves when its deletion push is processed.
    """
    if (path / ".git").is_dir():
        repo = GitRepository(path)
        await repo.git("remote", "set-url", REMOTE, remote_url)
        await repo.git("fetch", "--force", "--tags", REMOTE)
        log.info("git.fetched", remote=remote_url, path=str(path))
        return repo

    path.parent.mkdir(parents=True, exist_ok=True)
    await _run(["git", "clone", "--origin", REMOTE, "--", remote_url, str(path)])
    log.info("git.cloned", remote=remote_url, path=str(path))
    return GitRepository(path)


class GitRepository:
    """A local working copy driven through the ``git`` CLI."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def __repr__(self) -> str:
        return f"GitRepository({str(self.path)!r})"

    async def git(self, *args: str) -> str:
        return await _run(["git", "-C", str(self.path), *args])

    # ── refs ───────────────────────────────────────────────────────────────

    async def resolve(self, ref: str) -> ResolvedRef:
        """Resolve a pushed symbolic ref to a commit in this working copy."""
        kind, short_name = classify_ref(ref)
        if kind is RefKind.TAG:
            full = f"refs/tags/{short_name}"
        else:
            full = f"refs/remotes/{REMOTE}/{short_name}"
        try:
            commit = await self.git("rev-parse", "--verify", "--quiet", f"{full}^{{commit}}")
        except GitError as exc:
            raise GitError(f"reference not found: {ref}") from exc
        return ResolvedRef(kind=kind, short_name=short_name, commit=commit.strip())

    async def checkout(self, ref: ResolvedRef) -> None:
        if ref.is_branch:
            await self.checkout_branch(ref)
        else:
            await self.checkout_tag(ref)

    async def checkout_branch(self, ref: ResolvedRef) -> None:
        """Point the local branch at the remote tip and check it out."""
        await self.git(
            "checkout",
            "--force",
            "-B",
            ref.short_name,
            "--track",
            f"refs/remotes/{REMOTE}/{ref.short_name}",
        )
        await self.git("reset", "--hard", ref.commit)
        log.debug("git.checkout_branch", branch=ref.short_name, commit=ref.commit)

    async def checkout_tag(self, ref: ResolvedRef) -> None:
        """Detach HEAD at the tag's commit."""
        await self.git("checkout", "--force", "--detach", ref.commit)
        log.debug("git.checkout_tag", tag=ref.short_name, commit=ref.commit)

    # ── working tree ───────────────────────────────────────────────────────

    async def reset_hard(self) -> None:
        """Discard every modification relative to the checked-out commit."""
        await self.git("reset", "--hard")
        await self.git("clean", "-fd")

    async def is_clean(self) -> bool:
        return not (await self.git("status", "--porcelain")).strip()

    async def head_commit(self) -> str:
        return (await self.git("rev-parse", "HEAD")).strip()

    async def tracked_files(self) -> list[str]:
        out = await self.git("ls-files", "-z")
        return [name for name in out.split("\0") if name]


async def _run(cmd: list[str]) -> str:
    """Run a git command and return stdout, raising GitError on failure."""
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=env,
        )
    except OSError as exc:
        raise GitError(f"cannot run git: {exc}") from exc
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        raise
    if proc.returncode != 0:
        raise GitError(
            f"git command failed (exit {proc.returncode}): {stderr.decode().strip()}"
        )
    return stdout.decode()
