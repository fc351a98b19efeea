"""Dependency injection: collaborators are built once per app and read from app.state."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from cloudsmith_sync.core.config import Config
from cloudsmith_sync.engines.git.locks import RepositoryLocks
from cloudsmith_sync.engines.registry.cloudsmith_client import CloudsmithClient
from cloudsmith_sync.engines.registry.publisher import Publisher
from cloudsmith_sync.pipeline import PipelineOrchestrator, build_orchestrator


@dataclass
class Container:
    """Process-wide collaborators, constructed at startup."""

    config: Config
    client: CloudsmithClient
    orchestrator: PipelineOrchestrator

    async def close(self) -> None:
        await self.client.close()


def build_container(config: Config, client: CloudsmithClient | None = None) -> Container:
    client = client or CloudsmithClient(
        config.api_key,
        api_url=config.api_url,
        upload_url=config.upload_url,
    )
    orchestrator = build_orchestrator(config, Publisher(client), RepositoryLocks())
    return Container(config=config, client=client, orchestrator=orchestrator)


# ---------------------------------------------------------------------------
# Getters (for Depends())
# ---------------------------------------------------------------------------


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return get_container(request).orchestrator
