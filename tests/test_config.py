"""Tests for config loading and remote-URL helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from cloudsmith_sync.core.config import (
    DEFAULT_API_URL,
    Config,
    ConfigError,
    RepositoryConfig,
    git_url_to_directory,
    load_config,
    normalize_remote_url,
    parse_config,
)
from cloudsmith_sync.core.errors import RepositoryNotConfiguredError

MINIMAL = {"owner": "acme", "target_repository": "composer"}

CONFIG_TOML = """
owner = "acme"
target_repository = "composer"
api_key = "file-key"
webhook_secret = "file-secret"
repo_dir = "state/repos"
artifact_dir = "/tmp/artifacts"
keep_artifacts = true

[[repositories]]
url = "git@github.com:acme/widgets.git"
publish_source = true

[[repositories]]
url = "https://github.com/acme/gadgets"
"""


@pytest.fixture(autouse=True)
def _no_secret_env(monkeypatch):
    monkeypatch.delenv("CLOUDSMITH_SYNC_API_KEY", raising=False)
    monkeypatch.delenv("CLOUDSMITH_SYNC_WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("CLOUDSMITH_SYNC_CONFIG", raising=False)


class TestLoadConfig:
    def test_loads_file(self, tmp_path):
        path = tmp_path / "cloudsmith-sync.toml"
        path.write_text(CONFIG_TOML)

        config = load_config(path)
        assert config.owner == "acme"
        assert config.target_repository == "composer"
        assert config.api_key == "file-key"
        assert config.webhook_secret == "file-secret"
        assert config.repo_dir == tmp_path / "state" / "repos"
        assert config.artifact_dir == Path("/tmp/artifacts")
        assert config.keep_artifacts is True
        assert config.api_url == DEFAULT_API_URL
        assert config.repositories == (
            RepositoryConfig("git@github.com:acme/widgets.git", publish_source=True),
            RepositoryConfig("https://github.com/acme/gadgets", publish_source=False),
        )

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.toml"
        path.write_text(CONFIG_TOML)
        monkeypatch.setenv("CLOUDSMITH_SYNC_CONFIG", str(path))
        assert load_config().owner == "acme"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("owner = ")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_config(path)

    def test_secrets_from_environment_win(self, tmp_path, monkeypatch):
        path = tmp_path / "c.toml"
        path.write_text(CONFIG_TOML)
        monkeypatch.setenv("CLOUDSMITH_SYNC_API_KEY", "env-key")
        monkeypatch.setenv("CLOUDSMITH_SYNC_WEBHOOK_SECRET", "env-secret")

        config = load_config(path)
        assert config.api_key == "env-key"
        assert config.webhook_secret == "env-secret"


class TestParseConfig:
    def test_defaults(self, tmp_path):
        config = parse_config(MINIMAL, base_dir=tmp_path)
        assert config.repositories == ()
        assert config.api_key == ""
        assert config.webhook_secret == ""
        assert config.repo_dir == tmp_path / "repos"
        assert config.artifact_dir == tmp_path / "artifacts"
        assert config.keep_artifacts is False

    def test_strips_trailing_slash_from_urls(self, tmp_path):
        data = {**MINIMAL, "api_url": "http://localhost:8000/v1/", "upload_url": "http://up/"}
        config = parse_config(data, base_dir=tmp_path)
        assert config.api_url == "http://localhost:8000/v1"
        assert config.upload_url == "http://up"

    @pytest.mark.parametrize("missing", ["owner", "target_repository"])
    def test_required_keys(self, missing):
        data = dict(MINIMAL)
        del data[missing]
        with pytest.raises(ConfigError, match=missing):
            parse_config(data)

    @pytest.mark.parametrize(
        "extra, match",
        [
            ({"owner": "  "}, "owner"),
            ({"keep_artifacts": "yes"}, "keep_artifacts must be a boolean"),
            ({"repo_dir": 5}, "repo_dir must be a string"),
            ({"repositories": ["git@github.com:a/b.git"]}, r"repositories\[0\] must be a table"),
            ({"repositories": [{"publish_source": True}]}, r"repositories\[0\]\.url"),
            (
                {"repositories": [{"url": "x", "publish_source": 1}]},
                r"repositories\[0\]\.publish_source",
            ),
        ],
    )
    def test_invalid_values(self, extra, match):
        with pytest.raises(ConfigError, match=match):
            parse_config({**MINIMAL, **extra})


class TestGetRepository:
    @pytest.fixture
    def config(self):
        return Config(
            owner="acme",
            target_repository="composer",
            repositories=(RepositoryConfig("git@github.com:acme/widgets.git", True),),
        )

    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:acme/widgets.git",
            "git@github.com:acme/widgets",
            "git@github.com:acme/widgets.git/",
            " git@github.com:acme/widgets.git ",
        ],
    )
    def test_matches_equivalent_urls(self, config, url):
        assert config.get_repository(url).publish_source is True

    def test_unknown_repository(self, config):
        with pytest.raises(RepositoryNotConfiguredError, match="not configured"):
            config.get_repository("git@github.com:acme/other.git")

    def test_paths(self, config):
        assert config.get_repo_path("github.com/acme/widgets") == Path(
            "repos/github.com/acme/widgets"
        )
        assert config.get_artifact_path("a.zip") == Path("artifacts/a.zip")


class TestRemoteUrls:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("git@github.com:acme/widgets.git", "git@github.com:acme/widgets"),
            ("https://github.com/acme/widgets/", "https://github.com/acme/widgets"),
            ("https://github.com/acme/widgets", "https://github.com/acme/widgets"),
        ],
    )
    def test_normalize_remote_url(self, url, expected):
        assert normalize_remote_url(url) == expected

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("git@github.com:acme/widgets.git", "github.com/acme/widgets"),
            ("ssh://git@github.com/acme/widgets.git", "github.com/acme/widgets"),
            ("https://GitHub.com/acme/widgets", "github.com/acme/widgets"),
            ("https://github.com/acme/widgets.git", "github.com/acme/widgets"),
            ("ssh://git@git.example.com:2222/team/widgets.git", "git.example.com/team/widgets"),
            ("/srv/git/widgets", "localhost/srv/git/widgets"),
            ("file:///srv/git/widgets.git", "localhost/srv/git/widgets"),
        ],
    )
    def test_git_url_to_directory(self, url, expected):
        assert git_url_to_directory(url) == expected

    @pytest.mark.parametrize(
        "url",
        ["", "widgets", "https://github.com", "git@github.com:", "/srv/../etc", "https:///a/b"],
    )
    def test_git_url_to_directory_rejects(self, url):
        with pytest.raises(ValueError, match="cannot parse git URL"):
            git_url_to_directory(url)
