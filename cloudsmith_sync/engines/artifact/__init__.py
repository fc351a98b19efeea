"""Artifact engine: deterministic package archives."""

from cloudsmith_sync.engines.artifact.packager import artifact_name, pack

__all__ = ["artifact_name", "pack"]
