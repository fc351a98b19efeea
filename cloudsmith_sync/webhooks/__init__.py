"""Inbound webhook verification and payload models."""

from cloudsmith_sync.webhooks.github import (
    Event,
    EventNotFoundError,
    GitHubWebhook,
    HMACVerificationError,
    MissingEventHeaderError,
    MissingSignatureHeaderError,
    PayloadParseError,
    WebhookError,
    sign,
)
from cloudsmith_sync.webhooks.models import PingPayload, PushPayload, WebhookPayload

__all__ = [
    "Event",
    "EventNotFoundError",
    "GitHubWebhook",
    "HMACVerificationError",
    "MissingEventHeaderError",
    "MissingSignatureHeaderError",
    "PayloadParseError",
    "PingPayload",
    "PushPayload",
    "WebhookError",
    "WebhookPayload",
    "sign",
]
