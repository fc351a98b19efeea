"""GitHub webhook verification and payload parsing."""

from __future__ import annotations

import enum
import hashlib
import hmac
from collections.abc import Collection, Mapping

import pydantic

from cloudsmith_sync.webhooks.models import PingPayload, PushPayload, WebhookPayload

EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_HEADER = "X-Hub-Signature"
SIGNATURE_256_HEADER = "X-Hub-Signature-256"
DELIVERY_HEADER = "X-GitHub-Delivery"


class Event(str, enum.Enum):
    PING = "ping"
    PUSH = "push"


_PAYLOAD_TYPES: dict[Event, type[PingPayload] | type[PushPayload]] = {
    Event.PING: PingPayload,
    Event.PUSH: PushPayload,
}


class WebhookError(Exception):
    """Base class for rejected deliveries; carries the HTTP status to answer with."""

    status_code = 500


class MissingEventHeaderError(WebhookError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__(f"missing {EVENT_HEADER} header")


class MissingSignatureHeaderError(WebhookError):
    status_code = 400

    def __init__(self) -> None:
        super().__init__(f"missing {SIGNATURE_HEADER} header")


class HMACVerificationError(WebhookError):
    status_code = 403

    def __init__(self) -> None:
        super().__init__("HMAC verification failed")


class EventNotFoundError(WebhookError):
    status_code = 422

    def __init__(self, event: str) -> None:
        super().__init__(f"event not defined to be parsed: {event}")


class PayloadParseError(WebhookError):
    status_code = 400


class GitHubWebhook:
    """Validates GitHub deliveries against a shared secret.

    With an empty secret, signatures are not checked.
    """

    def __init__(self, secret: str = "") -> None:
        self._secret = secret.encode()

    def parse(
        self,
        headers: Mapping[str, str],
        body: bytes,
        events: Collection[Event],
    ) -> WebhookPayload:
        """Verify and decode one delivery.

        Checks run in order: event header present, event accepted, signature
        present and valid, payload decodes.  *headers* must be
        case-insensitive (Starlette's ``Headers`` is).
        """
        event_name = headers.get(EVENT_HEADER)
        if not event_name:
            raise MissingEventHeaderError()

        try:
            event = Event(event_name)
        except ValueError:
            raise EventNotFoundError(event_name) from None
        if event not in events:
            raise EventNotFoundError(event_name)

        if self._secret:
            self._verify(headers, body)

        try:
            return _PAYLOAD_TYPES[event].model_validate_json(body)
        except pydantic.ValidationError as exc:
            raise PayloadParseError(f"invalid {event.value} payload: {exc}") from exc

    def _verify(self, headers: Mapping[str, str], body: bytes) -> None:
        # Prefer the SHA-256 signature; fall back to legacy SHA-1.
        signature = headers.get(SIGNATURE_256_HEADER)
        algorithm = hashlib.sha256
        prefix = "sha256="
        if not signature:
            signature = headers.get(SIGNATURE_HEADER)
            algorithm = hashlib.sha1
            prefix = "sha1="
        if not signature:
            raise MissingSignatureHeaderError()

        expected = prefix + hmac.new(self._secret, body, algorithm).hexdigest()
        if not hmac.compare_digest(signature.strip(), expected):
            raise HMACVerificationError()


def sign(secret: str, body: bytes, algorithm: str = "sha256") -> str:
    """Compute the signature header value GitHub would send for *body*."""
    digest = hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()
    return f"{algorithm}={digest}"
