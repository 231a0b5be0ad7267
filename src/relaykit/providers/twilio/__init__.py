"""Twilio provider."""

from relaykit.providers.twilio.config import TwilioConfig
from relaykit.providers.twilio.provider import TwilioProvider, map_twilio_status

__all__ = ["TwilioConfig", "TwilioProvider", "map_twilio_status"]
