"""Push-to-publish pipeline — webhook in, Composer package out.

One run per delivery::

    validate → resolve repository → sync → resolve ref → checkout
      → derive version → delete existing → (stop if ref deleted)
      → mutate composer.json → pack → upload → reset working copy

The working copy is shared between runs for the same repository, so
everything from sync to reset happens under that repository's lock, and the
reset runs on every path once the working copy is open.  This module is the
only place where failures are turned into HTTP statuses.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, assert_never

import structlog

from cloudsmith_sync.core.config import Config, RepositoryConfig, git_url_to_directory
from cloudsmith_sync.core.errors import (
    RegistryError,
    RegistryRejectedError,
    RepositoryNotConfiguredError,
    SyncError,
)
from cloudsmith_sync.engines.artifact.packager import artifact_name, pack
from cloudsmith_sync.engines.composer.manifest import (
    Source,
    load_manifest,
    mutate_manifest,
    package_name,
    split_package_name,
)
from cloudsmith_sync.engines.composer.version import NotPublishable, derive_version
from cloudsmith_sync.engines.git.locks import RepositoryLocks
from cloudsmith_sync.engines.git.refs import ResolvedRef
from cloudsmith_sync.engines.git.repo import GitRepository, sync_and_open
from cloudsmith_sync.engines.registry.publisher import Publisher
from cloudsmith_sync.webhooks.github import Event, GitHubWebhook, WebhookError
from cloudsmith_sync.webhooks.models import PingPayload, PushPayload

log = structlog.get_logger("cloudsmith_sync.pipeline")

ACCEPTED_EVENTS = frozenset({Event.PUSH, Event.PING})

SyncFn = Callable[[str, Path], Awaitable[GitRepository]]
T = TypeVar("T")


@dataclass(frozen=True)
class PushEvent:
    ref: str
    remote_url: str
    deleted: bool = False
    clone_url: str | None = None

    @classmethod
    def from_payload(cls, payload: PushPayload) -> PushEvent:
        return cls(
            ref=payload.ref,
            remote_url=payload.repository.ssh_url,
            deleted=payload.deleted,
            clone_url=payload.repository.clone_url,
        )

    @property
    def candidate_urls(self) -> tuple[str, ...]:
        if self.clone_url and self.clone_url != self.remote_url:
            return (self.remote_url, self.clone_url)
        return (self.remote_url,)


@dataclass(frozen=True)
class PipelineOutcome:
    """HTTP-style result of one delivery."""

    status_code: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @classmethod
    def pong(cls, hook_id: int) -> PipelineOutcome:
        return cls(201, f"pong ({hook_id})")

    @classmethod
    def done(cls) -> PipelineOutcome:
        return cls(204)

    @classmethod
    def skipped(cls, package: str, ref_name: str, reason: object) -> PipelineOutcome:
        return cls(200, f"Skipping {package}@{ref_name} due to {reason}...")

    @classmethod
    def failed(cls, exc: BaseException) -> PipelineOutcome:
        return cls(500, str(exc) or type(exc).__name__)


class PipelineOrchestrator:
    """Runs the pipeline for a delivery; collaborators are injected."""

    def __init__(
        self,
        config: Config,
        webhook: GitHubWebhook,
        publisher: Publisher,
        *,
        locks: RepositoryLocks | None = None,
        sync: SyncFn = sync_and_open,
    ) -> None:
        self._config = config
        self._webhook = webhook
        self._publisher = publisher
        self._locks = locks or RepositoryLocks()
        self._sync = sync

    # ── entry points ───────────────────────────────────────────────────────

    async def handle(self, headers: Mapping[str, str], body: bytes) -> PipelineOutcome:
        """Validate a raw webhook delivery and dispatch it."""
        try:
            payload = self._webhook.parse(headers, body, ACCEPTED_EVENTS)
        except WebhookError as exc:
            log.info("pipeline.rejected", status=exc.status_code, reason=str(exc))
            return PipelineOutcome(exc.status_code, str(exc))

        if isinstance(payload, PingPayload):
            log.info("pipeline.ping", hook_id=payload.hook_id)
            return PipelineOutcome.pong(payload.hook_id)
        if isinstance(payload, PushPayload):
            return await self.run(PushEvent.from_payload(payload))
        assert_never(payload)

    async def run(self, event: PushEvent) -> PipelineOutcome:
        """Run the pipeline for one push."""
        bound = log.bind(ref=event.ref, remote=event.remote_url, deleted=event.deleted)
        try:
            repo_cfg = self._lookup_repository(event)
        except RepositoryNotConfiguredError:
            bound.info("pipeline.unconfigured")
            return PipelineOutcome(422, "repository not configured")

        try:
            repo_path = self._config.get_repo_path(git_url_to_directory(repo_cfg.url))
            async with self._locks.hold(repo_path):
                outcome = await self._run_locked(event, repo_cfg, repo_path)
        except SyncError as exc:
            bound.error("pipeline.failed", error=str(exc), error_type=type(exc).__name__)
            return PipelineOutcome.failed(exc)
        except Exception as exc:
            bound.exception("pipeline.crashed")
            return PipelineOutcome.failed(exc)

        bound.info("pipeline.finished", status=outcome.status_code)
        return outcome

    # ── stages ─────────────────────────────────────────────────────────────

    def _lookup_repository(self, event: PushEvent) -> RepositoryConfig:
        for url in event.candidate_urls:
            try:
                return self._config.get_repository(url)
            except RepositoryNotConfiguredError:
                continue
        raise RepositoryNotConfiguredError(f"repository not configured: {event.remote_url}")

    async def _run_locked(
        self, event: PushEvent, repo_cfg: RepositoryConfig, repo_path: Path
    ) -> PipelineOutcome:
        repo = await self._sync(repo_cfg.url, repo_path)
        try:
            ref = await repo.resolve(event.ref)
            await repo.checkout(ref)
            return await self._publish(event, repo_cfg, repo, ref)
        finally:
            await self._cleanup(repo)

    async def _publish(
        self,
        event: PushEvent,
        repo_cfg: RepositoryConfig,
        repo: GitRepository,
        ref: ResolvedRef,
    ) -> PipelineOutcome:
        manifest = await _in_thread(load_manifest, repo.path)
        name = package_name(manifest)

        version = derive_version(ref.short_name, ref.kind)
        if isinstance(version, NotPublishable):
            log.info("pipeline.skipped", package=name, ref=ref.short_name, reason=version.reason)
            return PipelineOutcome.skipped(name, ref.short_name, version)

        owner, target = self._config.owner, self._config.target_repository
        await self._publisher.delete_if_exists(owner, target, name, version)
        if event.deleted:
            log.info("pipeline.ref_deleted", package=name, version=version.raw)
            return PipelineOutcome.done()

        source = None
        if repo_cfg.publish_source:
            source = Source(url=repo_cfg.url, reference=ref.commit)
        await _in_thread(mutate_manifest, repo.path, version, source)

        namespace, short = split_package_name(name)
        artifact = self._config.get_artifact_path(artifact_name(namespace, short, ref.commit))
        files = await repo.tracked_files()
        await _in_thread(pack, repo.path, files, artifact)

        try:
            receipt = await self._publisher.upload(owner, target, artifact)
        except RegistryRejectedError as exc:
            log.warning(
                "pipeline.upload_rejected", package=name, ref=ref.short_name, reason=str(exc)
            )
            return PipelineOutcome.skipped(name, ref.short_name, exc)
        except RegistryError as exc:
            raise RegistryError(f"uploading {name}@{ref.short_name} failed: {exc}") from exc
        finally:
            if not self._config.keep_artifacts:
                await _in_thread(artifact.unlink, missing_ok=True)

        log.info(
            "pipeline.published",
            package=name,
            version=version.raw,
            commit=ref.commit,
            slug=receipt.slug_perm,
        )
        return PipelineOutcome.done()

    async def _cleanup(self, repo: GitRepository) -> None:
        """Reset the working copy; finishes even if the request is cancelled."""
        task = asyncio.ensure_future(self._reset(repo))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            await task
            raise

    @staticmethod
    async def _reset(repo: GitRepository) -> None:
        try:
            await repo.reset_hard()
        except Exception:
            log.exception("pipeline.cleanup_failed", path=str(repo.path))


async def _in_thread(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """``asyncio.to_thread`` that, when cancelled, waits for the thread to finish.

    A worker thread cannot be interrupted, so the working copy must not be
    reset until it has stopped writing to it.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args, **kwargs))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.gather(task, return_exceptions=True)
        raise


def build_orchestrator(
    config: Config, publisher: Publisher, locks: RepositoryLocks | None = None
) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        config,
        GitHubWebhook(config.webhook_secret),
        publisher,
        locks=locks,
    )
