"""Static service configuration: registry target, tracked repositories, paths.

Loaded once at startup from a TOML file::

    owner = "acme"
    target_repository = "composer"
    repo_dir = "/var/lib/cloudsmith-sync/repos"
    artifact_dir = "/var/lib/cloudsmith-sync/artifacts"

    [[repositories]]
    url = "git@github.com:acme/widgets.git"
    publish_source = true

Secrets may be kept out of the file via ``CLOUDSMITH_SYNC_API_KEY`` and
``CLOUDSMITH_SYNC_WEBHOOK_SECRET``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from cloudsmith_sync.core.errors import RepositoryNotConfiguredError

DEFAULT_CONFIG_PATH = "cloudsmith-sync.toml"
DEFAULT_API_URL = "https://api.cloudsmith.io/v1"
DEFAULT_UPLOAD_URL = "https://upload.cloudsmith.io"


class ConfigError(ValueError):
    """Configuration file is missing a key or has a value of the wrong type."""


@dataclass(frozen=True)
class RepositoryConfig:
    url: str
    publish_source: bool = False


@dataclass(frozen=True)
class Config:
    owner: str
    target_repository: str
    repositories: tuple[RepositoryConfig, ...] = ()
    api_key: str = ""
    webhook_secret: str = ""
    repo_dir: Path = Path("repos")
    artifact_dir: Path = Path("artifacts")
    keep_artifacts: bool = False
    api_url: str = DEFAULT_API_URL
    upload_url: str = DEFAULT_UPLOAD_URL
    _by_url: dict[str, RepositoryConfig] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for repo in self.repositories:
            self._by_url[normalize_remote_url(repo.url)] = repo

    def get_repository(self, remote_url: str) -> RepositoryConfig:
        """Look up a tracked repository by its remote URL."""
        repo = self._by_url.get(normalize_remote_url(remote_url))
        if repo is None:
            raise RepositoryNotConfiguredError(f"repository not configured: {remote_url}")
        return repo

    def get_repo_path(self, dir_name: str) -> Path:
        return self.repo_dir / dir_name

    def get_artifact_path(self, name: str) -> Path:
        return self.artifact_dir / name


def normalize_remote_url(url: str) -> str:
    """Canonical form used for config matching (no trailing slash or ``.git``)."""
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]
    return url


def git_url_to_directory(url: str) -> str:
    """Map a git remote URL to a relative ``host/owner/repo`` directory.

    Handles:
      - git@github.com:owner/repo.git
      - ssh://git@github.com/owner/repo.git
      - https://github.com/owner/repo(.git)
      - /srv/git/repo and file:///srv/git/repo (host ``localhost``)

    Raises ValueError if the URL cannot be parsed.
    """
    url = normalize_remote_url(url)

    if "://" in url:
        parts = urlsplit(url)
        host = parts.hostname or ("localhost" if parts.scheme == "file" else "")
        path = parts.path
    elif url.startswith("/"):
        host, path = "localhost", url
    elif "@" in url and ":" in url:
        # scp-like syntax: user@host:path
        user_host, _, path = url.partition(":")
        host = user_host.rsplit("@", 1)[-1]
    else:
        raise ValueError(f"cannot parse git URL: {url!r}")

    segments = [s for s in path.split("/") if s]
    if not host or not segments or any(s in (".", "..") for s in segments):
        raise ValueError(f"cannot parse git URL: {url!r}")
    return "/".join([host.lower(), *segments])


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config(path: str | Path | None = None) -> Config:
    """Read the TOML config file; ``CLOUDSMITH_SYNC_CONFIG`` names it by default."""
    config_path = Path(path or os.environ.get("CLOUDSMITH_SYNC_CONFIG", DEFAULT_CONFIG_PATH))
    try:
        with config_path.open("rb") as fh:
            data = tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file not found: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {config_path}: {exc}") from exc
    return parse_config(data, base_dir=config_path.parent)


def parse_config(data: dict[str, Any], base_dir: Path | None = None) -> Config:
    """Build a :class:`Config` from already-decoded TOML data.

    Relative ``repo_dir``/``artifact_dir`` are resolved against *base_dir*.
    """
    base = base_dir or Path.cwd()

    repositories = []
    for i, raw in enumerate(data.get("repositories", [])):
        if not isinstance(raw, dict):
            raise ConfigError(f"repositories[{i}] must be a table")
        repositories.append(
            RepositoryConfig(
                url=_require_str(raw, "url", prefix=f"repositories[{i}]."),
                publish_source=_bool(raw, "publish_source", prefix=f"repositories[{i}]."),
            )
        )

    return Config(
        owner=_require_str(data, "owner"),
        target_repository=_require_str(data, "target_repository"),
        repositories=tuple(repositories),
        api_key=os.environ.get("CLOUDSMITH_SYNC_API_KEY") or _str(data, "api_key"),
        webhook_secret=(
            os.environ.get("CLOUDSMITH_SYNC_WEBHOOK_SECRET") or _str(data, "webhook_secret")
        ),
        repo_dir=_path(base, _str(data, "repo_dir", "repos")),
        artifact_dir=_path(base, _str(data, "artifact_dir", "artifacts")),
        keep_artifacts=_bool(data, "keep_artifacts"),
        api_url=_str(data, "api_url", DEFAULT_API_URL).rstrip("/"),
        upload_url=_str(data, "upload_url", DEFAULT_UPLOAD_URL).rstrip("/"),
    )


def _require_str(data: dict[str, Any], key: str, prefix: str = "") -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{prefix}{key} is required and must be a non-empty string")
    return value.strip()


def _str(data: dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string")
    return value


def _bool(data: dict[str, Any], key: str, prefix: str = "") -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{prefix}{key} must be a boolean")
    return value


def _path(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else base / p
