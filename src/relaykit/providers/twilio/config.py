"""Twilio provider configuration."""

from __future__ import annotations

from pydantic import BaseModel, SecretStr


class TwilioConfig(BaseModel):
    """Twilio provider configuration.

    Attributes:
        messaging_service_sid: Messaging Service that purchased numbers are
            attached to and that outbound messages are sent through. When
            unset, attachment is a no-op and messages use ``From``.
        sms_url: Inbound webhook URL set on purchased numbers.
        status_callback_url: Delivery-status webhook URL for outbound messages.
    """

    account_sid: str
    auth_token: SecretStr
    messaging_service_sid: str | None = None
    sms_url: str | None = None
    status_callback_url: str | None = None
    timeout: float = 10.0
    api_base: str = "https://api.twilio.com/2010-04-01"
    messaging_api_base: str = "https://messaging.twilio.com/v1"

    @property
    def account_url(self) -> str:
        return f"{self.api_base}/Accounts/{self.account_sid}"

    @property
    def messages_url(self) -> str:
        return f"{self.account_url}/Messages.json"
