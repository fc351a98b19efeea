"""Publish Composer packages to Cloudsmith from GitHub push webhooks."""

__version__ = "0.3.0"
