"""Telnyx provider."""

from relaykit.providers.telnyx.config import TelnyxConfig
from relaykit.providers.telnyx.provider import TelnyxProvider, map_telnyx_status

__all__ = ["TelnyxConfig", "TelnyxProvider", "map_telnyx_status"]
