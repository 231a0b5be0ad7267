"""Telnyx provider configuration."""

from __future__ import annotations

from pydantic import BaseModel, SecretStr


class TelnyxConfig(BaseModel):
    """Telnyx provider configuration.

    Attributes:
        public_key: Base64 Ed25519 public key for webhook signature
            verification (Mission Control Portal > Keys & Credentials).
            Without it webhooks cannot be authenticated and must be
            restricted by network policy.
        signature_tolerance_seconds: Maximum accepted age of a signed
            webhook. ``None`` disables the check.
        messaging_profile_id: Messaging profile purchased numbers are
            attached to. When unset, attachment is a no-op.
        connection_id: Voice connection assigned on purchase.
    """

    api_key: SecretStr
    public_key: str | None = None
    signature_tolerance_seconds: int | None = 300
    messaging_profile_id: str | None = None
    connection_id: str | None = None
    timeout: float = 10.0
    api_base: str = "https://api.telnyx.com/v2"
