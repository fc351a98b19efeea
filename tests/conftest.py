"""Shared pytest fixtures for cloudsmith-sync tests."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from cloudsmith_sync.core.config import Config, RepositoryConfig

COMPOSER_JSON = {
    "name": "acme/widgets",
    "description": "Widgets for everyone",
    "type": "library",
    "require": {"php": ">=8.1"},
}


class Upstream:
    """A throwaway non-bare repository used as the remote in git tests."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", "-C", str(self.path), *args],
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    def commit_file(self, name: str, content: str, message: str = "update") -> str:
        target = self.path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        self.git("add", name)
        self.git("commit", "-q", "-m", message)
        return self.git("rev-parse", "HEAD")

    def head(self, ref: str = "HEAD") -> str:
        return self.git("rev-parse", ref)


@pytest.fixture(autouse=True)
def _git_identity(monkeypatch, tmp_path):
    """Keep git hermetic: fixed identity, no user/system config."""
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    monkeypatch.setenv("CLOUDSMITH_SYNC_LOG_FORMAT", "console")


@pytest.fixture
def upstream(tmp_path) -> Upstream:
    """Remote repo with composer.json on ``main`` and a ``1.0.0`` tag."""
    path = tmp_path / "upstream"
    path.mkdir()
    subprocess.run(["git", "init", "-q", "-b", "main", str(path)], check=True)
    repo = Upstream(path)
    repo.commit_file("composer.json", json.dumps(COMPOSER_JSON, indent=4) + "\n", "init")
    repo.commit_file("src/Widget.php", "<?php\nclass Widget {}\n", "add widget")
    repo.git("tag", "1.0.0")
    return repo


@pytest.fixture
def config(tmp_path, upstream) -> Config:
    return Config(
        owner="acme",
        target_repository="composer",
        repositories=(RepositoryConfig(url=str(upstream.path), publish_source=True),),
        repo_dir=tmp_path / "repos",
        artifact_dir=tmp_path / "artifacts",
    )
