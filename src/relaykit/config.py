"""Process-level settings loaded from the environment."""

from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from relaykit.models.policy import RetryPolicy
from relaykit.providers.telnyx.config import TelnyxConfig
from relaykit.providers.twilio.config import TwilioConfig


class RelayKitSettings(BaseSettings):
    """Settings for a RelayKit deployment.

    Every field can be set with a ``RELAYKIT_``-prefixed environment
    variable (``RELAYKIT_TWILIO_ACCOUNT_SID``, ``RELAYKIT_DATABASE_DSN`` ...)
    or from a ``.env`` file. Environment variables take precedence.

    A vendor is enabled when its credentials are present.
    ``public_base_url`` is the externally visible scheme and host used to
    rebuild signed webhook URLs behind a proxy.
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAYKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    default_region: str = "US"
    database_dsn: str | None = None
    http_timeout: float = 10.0
    public_base_url: str | None = None

    twilio_account_sid: str | None = None
    twilio_auth_token: SecretStr | None = None
    twilio_messaging_service_sid: str | None = None
    twilio_sms_url: str | None = None
    twilio_status_callback_url: str | None = None

    telnyx_api_key: SecretStr | None = None
    telnyx_public_key: str | None = None
    telnyx_messaging_profile_id: str | None = None
    telnyx_connection_id: str | None = None
    telnyx_signature_tolerance_seconds: int | None = 300

    attach_max_retries: int = 3
    attach_base_delay_seconds: float = 1.0

    def twilio_config(self) -> TwilioConfig | None:
        if not (self.twilio_account_sid and self.twilio_auth_token):
            return None
        return TwilioConfig(
            account_sid=self.twilio_account_sid,
            auth_token=self.twilio_auth_token,
            messaging_service_sid=self.twilio_messaging_service_sid,
            sms_url=self.twilio_sms_url,
            status_callback_url=self.twilio_status_callback_url,
            timeout=self.http_timeout,
        )

    def telnyx_config(self) -> TelnyxConfig | None:
        if self.telnyx_api_key is None:
            return None
        return TelnyxConfig(
            api_key=self.telnyx_api_key,
            public_key=self.telnyx_public_key,
            signature_tolerance_seconds=self.telnyx_signature_tolerance_seconds,
            messaging_profile_id=self.telnyx_messaging_profile_id,
            connection_id=self.telnyx_connection_id,
            timeout=self.http_timeout,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.attach_max_retries,
            base_delay_seconds=self.attach_base_delay_seconds,
        )
