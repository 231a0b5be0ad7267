"""Serve the RelayKit HTTP API configured from the environment.

Vendors are enabled by their credentials, e.g.:

    export RELAYKIT_TWILIO_ACCOUNT_SID=AC...
    export RELAYKIT_TWILIO_AUTH_TOKEN=...
    export RELAYKIT_TWILIO_SMS_URL=https://sms.example.com/webhooks/twilio/inbound
    export RELAYKIT_TELNYX_API_KEY=KEY...
    export RELAYKIT_TELNYX_PUBLIC_KEY=...
    export RELAYKIT_DATABASE_DSN=postgresql://localhost/relaykit
    export RELAYKIT_PUBLIC_BASE_URL=https://sms.example.com

Point the vendor consoles at ``/webhooks/{provider}/inbound`` and
``/webhooks/{provider}/status``.

Run with:
    pip install 'relaykit[all]'
    python examples/sms_gateway.py
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from relaykit import RelayKit, RelayKitSettings
from relaykit.web import create_app

logging.basicConfig(level=logging.INFO)


async def main() -> None:
    settings = RelayKitSettings()
    kit = await RelayKit.from_settings(settings)
    app = create_app(kit, public_base_url=settings.public_base_url)

    config = uvicorn.Config(app, host="0.0.0.0", port=8000)
    await uvicorn.Server(config).serve()


if __name__ == "__main__":
    asyncio.run(main())
