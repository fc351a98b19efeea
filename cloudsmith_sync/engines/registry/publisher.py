"""Publisher — delete-if-exists and upload, with failure classification."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import structlog

from cloudsmith_sync.core.errors import RegistryError, RegistryRejectedError
from cloudsmith_sync.engines.composer.version import PackageVersion
from cloudsmith_sync.engines.registry.cloudsmith_client import CloudsmithClient

log = structlog.get_logger("cloudsmith_sync.registry")

# Statuses meaning "the registry will never accept this upload as is".
_REJECTED_STATUSES = frozenset({400, 409, 422})


@dataclass(frozen=True)
class RegistryReceipt:
    identifier: str | None
    slug_perm: str | None
    name: str | None
    version: str | None
    self_html_url: str | None = None

    @classmethod
    def from_package(cls, package: dict[str, Any]) -> RegistryReceipt:
        return cls(
            identifier=package.get("identifier_perm") or package.get("identifier"),
            slug_perm=package.get("slug_perm"),
            name=package.get("name"),
            version=package.get("version"),
            self_html_url=package.get("self_html_url"),
        )


class Publisher:
    """Registry operations used by the pipeline.

    Both operations are idempotent from the pipeline's point of view:
    deleting an absent package is a no-op, and an upload that collides with
    an existing package is reported as a rejection rather than a failure.
    """

    def __init__(self, client: CloudsmithClient) -> None:
        self._client = client

    async def delete_if_exists(
        self, owner: str, repo: str, package_name: str, version: PackageVersion
    ) -> int:
        """Delete every package matching *package_name* at *version*.

        Best-effort: registry failures are logged, not raised.  Returns the
        number of packages removed.
        """
        # The registry may store either form, and its query matches literally.
        wanted_versions = dict.fromkeys([version.raw, version.normalized])
        try:
            slugs: dict[str, None] = {}
            for wanted in wanted_versions:
                for pkg in await self._client.list_packages(owner, repo, f'version:"{wanted}"'):
                    if not _matches_name(pkg, package_name):
                        continue
                    if pkg.get("version") not in wanted_versions:
                        continue
                    slug = pkg.get("slug_perm") or pkg.get("slug")
                    if slug:
                        slugs[slug] = None
            deleted = 0
            for slug in slugs:
                if await self._client.delete_package(owner, repo, slug):
                    deleted += 1
        except httpx.HTTPError as exc:
            log.warning(
                "registry.delete_failed",
                package=package_name,
                version=version.raw,
                error=_describe(exc),
            )
            return 0
        log.info(
            "registry.delete_if_exists",
            package=package_name,
            version=version.raw,
            deleted=deleted,
        )
        return deleted

    async def upload(self, owner: str, repo: str, artifact_path: Path) -> RegistryReceipt:
        """Upload an artifact as a Composer package.

        Raises RegistryRejectedError when the registry refuses the package
        (duplicate, invalid metadata) and RegistryError for anything else.
        """
        try:
            package = await self._client.upload_composer_package(owner, repo, artifact_path)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in _REJECTED_STATUSES:
                raise RegistryRejectedError(_describe(exc)) from exc
            raise RegistryError(_describe(exc)) from exc
        except httpx.HTTPError as exc:
            raise RegistryError(_describe(exc)) from exc
        except OSError as exc:
            raise RegistryError(f"cannot read artifact {artifact_path}: {exc}") from exc
        return RegistryReceipt.from_package(package)


def _matches_name(package: dict[str, Any], package_name: str) -> bool:
    name = package.get("name")
    if name == package_name:
        return True
    namespace = package.get("namespace")
    return bool(namespace) and f"{namespace}/{name}" == package_name


def _describe(exc: httpx.HTTPError) -> str:
    """Human-readable error text, preferring the registry's own ``detail``."""
    if isinstance(exc, httpx.HTTPStatusError):
        detail: Any = None
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("fields")
        status = exc.response.status_code
        return f"registry returned {status}: {detail}" if detail else f"registry returned {status}"
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
