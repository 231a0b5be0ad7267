"""Core workflows: inbound routing, status reconciliation, provisioning, sending."""
