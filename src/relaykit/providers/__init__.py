"""Telephony provider adapters."""

from relaykit.providers.base import ProviderAdapter
from relaykit.providers.mock import MockProvider
from relaykit.providers.telnyx import TelnyxConfig, TelnyxProvider
from relaykit.providers.twilio import TwilioConfig, TwilioProvider

__all__ = [
    "MockProvider",
    "ProviderAdapter",
    "TelnyxConfig",
    "TelnyxProvider",
    "TwilioConfig",
    "TwilioProvider",
]
