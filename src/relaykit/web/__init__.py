"""HTTP surface for RelayKit. Requires the ``web`` extra."""

try:
    from relaykit.web.app import PurchaseRequest, SendRequest, create_app, status_code_for
except ImportError as exc:
    raise ImportError(
        "fastapi is required for relaykit.web. Install it with: pip install relaykit[web]"
    ) from exc

__all__ = ["PurchaseRequest", "SendRequest", "create_app", "status_code_for"]
