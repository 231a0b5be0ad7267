"""Internal helpers shared by the webhook handlers and workflows."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING

from relaykit.core.errors import UnknownProviderError
from relaykit.models.webhook import WebhookResponse

if TYPE_CHECKING:
    from relaykit.providers.base import ProviderAdapter


def resolve_adapter(adapters: Mapping[str, ProviderAdapter], provider: str) -> ProviderAdapter:
    try:
        return adapters[provider]
    except KeyError:
        raise UnknownProviderError(provider) from None


def not_found(provider: str) -> WebhookResponse:
    return WebhookResponse(status_code=404, body=f"unknown provider: {provider}")


def forbidden() -> WebhookResponse:
    return WebhookResponse(status_code=403, body="invalid signature")


def server_error() -> WebhookResponse:
    return WebhookResponse(status_code=500, body="temporary failure")
