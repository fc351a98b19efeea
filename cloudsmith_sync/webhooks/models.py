"""GitHub webhook payload schemas (only the fields the pipeline reads)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class PingHook(_Payload):
    id: int
    type: str | None = None


class PingPayload(_Payload):
    hook_id: int
    zen: str | None = None
    hook: PingHook | None = None


class PushRepository(_Payload):
    full_name: str
    ssh_url: str
    clone_url: str | None = None
    html_url: str | None = None


class PushPayload(_Payload):
    ref: str
    before: str | None = None
    after: str | None = None
    created: bool = False
    deleted: bool = False
    forced: bool = False
    repository: PushRepository


WebhookPayload = PingPayload | PushPayload
