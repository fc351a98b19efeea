"""Composer engine: version derivation and composer.json mutation."""

from cloudsmith_sync.engines.composer.manifest import (
    Source,
    load_manifest,
    mutate_manifest,
    package_name,
    split_package_name,
)
from cloudsmith_sync.engines.composer.version import (
    NotPublishable,
    PackageVersion,
    derive_version,
)

__all__ = [
    "NotPublishable",
    "PackageVersion",
    "Source",
    "derive_version",
    "load_manifest",
    "mutate_manifest",
    "package_name",
    "split_package_name",
]
