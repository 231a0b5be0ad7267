"""RelayKit data models."""

from relaykit.models.enums import (
    MessageDirection,
    MessageStatus,
    NumberType,
    can_transition,
    forward_sources,
)
from relaykit.models.message import Message
from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberCapabilities,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.policy import RetryPolicy
from relaykit.models.webhook import (
    InboundPayload,
    StatusPayload,
    WebhookRequest,
    WebhookResponse,
)

__all__ = [
    "AvailableNumberCandidate",
    "InboundPayload",
    "Message",
    "MessageDirection",
    "MessageStatus",
    "NumberCapabilities",
    "NumberSearchCriteria",
    "NumberType",
    "OwnedNumber",
    "RetryPolicy",
    "StatusPayload",
    "WebhookRequest",
    "WebhookResponse",
    "can_transition",
    "forward_sources",
]
