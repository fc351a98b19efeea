"""Git engine: working-copy sync, ref resolution and checkout."""

from cloudsmith_sync.engines.git.locks import RepositoryLocks
from cloudsmith_sync.engines.git.refs import RefKind, ResolvedRef, classify_ref
from cloudsmith_sync.engines.git.repo import GitRepository, sync_and_open

__all__ = [
    "GitRepository",
    "RefKind",
    "RepositoryLocks",
    "ResolvedRef",
    "classify_ref",
    "sync_and_open",
]
