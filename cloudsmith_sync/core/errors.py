"""Pipeline exception hierarchy."""


class SyncError(Exception):
    """Base pipeline exception."""


class RepositoryNotConfiguredError(SyncError):
    """Pushed repository is not tracked (-> HTTP 422)."""


class InfrastructureError(SyncError):
    """Git, filesystem or packaging failure (-> HTTP 500)."""


class GitError(InfrastructureError):
    """A git command exited non-zero or a ref could not be resolved."""


class ManifestError(InfrastructureError):
    """composer.json is missing, malformed, or lacks a package name."""


class PackagingError(InfrastructureError):
    """The artifact archive could not be written."""


class RegistryError(SyncError):
    """Registry request failed (-> HTTP 500)."""


class RegistryRejectedError(RegistryError):
    """Registry permanently refused the package (-> skip, HTTP 200)."""
