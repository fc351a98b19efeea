"""Async Cloudsmith API client: package listing, deletion and Composer uploads."""

from __future__ import annotations

import asyncio
import hashlib
import os
from pathlib import Path
from typing import Any

import httpx
import structlog

from cloudsmith_sync.core.config import DEFAULT_API_URL, DEFAULT_UPLOAD_URL

log = structlog.get_logger("cloudsmith_sync.registry")

_PAGE_SIZE = 100
_MAX_PAGES = 10


class CloudsmithClient:
    """Thin async wrapper around the Cloudsmith REST API (v1).

    HTTP errors surface as :class:`httpx.HTTPStatusError`; transport problems
    as :class:`httpx.TransportError`.  Classifying them is the caller's job.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        api_url: str = DEFAULT_API_URL,
        upload_url: str = DEFAULT_UPLOAD_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_key = api_key or os.environ.get("CLOUDSMITH_API_KEY")
        headers: dict[str, str] = {"Accept": "application/json"}
        if resolved_key:
            headers["X-Api-Key"] = resolved_key
        self._upload_url = upload_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(30.0, write=300.0),
            transport=transport,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> CloudsmithClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── packages ───────────────────────────────────────────────────────────

    async def list_packages(self, owner: str, repo: str, query: str) -> list[dict[str, Any]]:
        """Return every package in *owner/repo* matching a Cloudsmith search query."""
        packages: list[dict[str, Any]] = []
        for page in range(1, _MAX_PAGES + 1):
            resp = await self._client.get(
                f"/packages/{owner}/{repo}/",
                params={"query": query, "page": page, "page_size": _PAGE_SIZE},
            )
            if resp.status_code == 404 and page > 1:
                # Cloudsmith answers 404 for a page past the end.
                break
            resp.raise_for_status()
            batch = resp.json()
            packages.extend(batch)
            if len(batch) < _PAGE_SIZE:
                break
        else:
            log.warning(
                "registry.list_truncated",
                owner=owner,
                repo=repo,
                query=query,
                pages=_MAX_PAGES,
                packages=len(packages),
            )
        return packages

    async def delete_package(self, owner: str, repo: str, slug_perm: str) -> bool:
        """Delete one package; returns False if it was already gone."""
        resp = await self._client.delete(f"/packages/{owner}/{repo}/{slug_perm}/")
        if resp.status_code == 404:
            return False
        resp.raise_for_status()
        log.info("registry.package_deleted", owner=owner, repo=repo, slug=slug_perm)
        return True

    # ── uploads ────────────────────────────────────────────────────────────

    async def upload_file(self, owner: str, repo: str, path: Path) -> str:
        """Upload a raw file and return its Cloudsmith file identifier."""
        content = await asyncio.to_thread(path.read_bytes)
        resp = await self._client.put(
            f"{self._upload_url}/{owner}/{repo}/{path.name}",
            content=content,
            headers={
                "Content-Sha256": hashlib.sha256(content).hexdigest(),
                "Content-Type": "application/zip",
            },
        )
        resp.raise_for_status()
        identifier = resp.json().get("identifier")
        if not identifier:
            raise httpx.HTTPStatusError(
                "upload response carried no file identifier",
                request=resp.request,
                response=resp,
            )
        return identifier

    async def create_composer_package(
        self, owner: str, repo: str, file_identifier: str
    ) -> dict[str, Any]:
        """Turn an uploaded file into a Composer package."""
        resp = await self._client.post(
            f"/packages/{owner}/{repo}/upload/composer/",
            json={"package_file": file_identifier},
        )
        resp.raise_for_status()
        return resp.json()

    async def upload_composer_package(self, owner: str, repo: str, path: Path) -> dict[str, Any]:
        file_identifier = await self.upload_file(owner, repo, path)
        package = await self.create_composer_package(owner, repo, file_identifier)
        log.info(
            "registry.package_uploaded",
            owner=owner,
            repo=repo,
            file=path.name,
            slug=package.get("slug_perm"),
        )
        return package
