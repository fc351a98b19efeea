"""composer.json reading and in-place mutation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cloudsmith_sync.core.errors import ManifestError
from cloudsmith_sync.engines.composer.version import PackageVersion

MANIFEST_NAME = "composer.json"


@dataclass(frozen=True)
class Source:
    """Provenance block: where and at which commit a package was built."""

    url: str
    reference: str
    type: str = "git"

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "type": self.type, "reference": self.reference}


def load_manifest(repo_path: Path) -> dict[str, Any]:
    """Read ``composer.json`` from a working copy."""
    path = repo_path / MANIFEST_NAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ManifestError(f"{MANIFEST_NAME} not found in {repo_path}") from exc
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ManifestError(f"cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object")
    return data


def package_name(manifest: dict[str, Any]) -> str:
    name = manifest.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{MANIFEST_NAME} has no package name")
    return name.strip()


def mutate_manifest(
    repo_path: Path,
    version: PackageVersion,
    source: Source | None = None,
) -> dict[str, Any]:
    """Embed *version* (and *source*, if given) into ``composer.json`` on disk.

    Leaves the working tree dirty; the caller must reset it.  Returns the
    written manifest.
    """
    manifest = load_manifest(repo_path)
    package_name(manifest)

    manifest["version"] = version.raw
    manifest["version_normalized"] = version.normalized
    if source is not None:
        manifest["source"] = source.to_dict()

    path = repo_path / MANIFEST_NAME
    try:
        path.write_text(
            json.dumps(manifest, indent=4, ensure_ascii=False) + "\n", encoding="utf-8"
        )
    except OSError as exc:
        raise ManifestError(f"cannot write {path}: {exc}") from exc
    return manifest


def split_package_name(name: str) -> tuple[str, str]:
    """Split ``vendor/package`` into ``("vendor", "package")``."""
    namespace, sep, package = name.partition("/")
    if not sep or not namespace or not package or "/" in package:
        raise ManifestError(f"package name {name!r} is not of the form vendor/package")
    return namespace, package
