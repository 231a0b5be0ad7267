"""RelayKit - async multi-provider SMS messaging and number provisioning."""

from relaykit._version import __version__
from relaykit.config import RelayKitSettings
from relaykit.core.errors import (
    AttachmentFailed,
    Forbidden,
    InvalidCriteria,
    InvalidInput,
    InvalidPhoneNumber,
    MalformedPayload,
    NumberAlreadyOwned,
    NumberUnavailable,
    ProviderError,
    ProviderUnavailable,
    RecipientOptedOut,
    RelayKitError,
    SendRejected,
    StoreError,
    Unauthorized,
    UnknownProviderError,
)
from relaykit.core.framework import RelayKit
from relaykit.core.inbound import InboundMessageRouter
from relaykit.core.keywords import ComplianceKeyword, detect_keyword
from relaykit.core.outbound import MessageSender
from relaykit.core.provisioning import NumberProvisioner
from relaykit.core.reconciler import StatusReconciler
from relaykit.core.retry import retry_with_backoff
from relaykit.models import (
    AvailableNumberCandidate,
    InboundPayload,
    Message,
    MessageDirection,
    MessageStatus,
    NumberCapabilities,
    NumberSearchCriteria,
    NumberType,
    OwnedNumber,
    RetryPolicy,
    StatusPayload,
    WebhookRequest,
    WebhookResponse,
    can_transition,
)
from relaykit.phone import is_valid_phone, normalize_phone, to_e164
from relaykit.providers import (
    MockProvider,
    ProviderAdapter,
    TelnyxConfig,
    TelnyxProvider,
    TwilioConfig,
    TwilioProvider,
)
from relaykit.store.base import MessageStore
from relaykit.store.memory import InMemoryStore

__all__ = [
    "AttachmentFailed",
    "AvailableNumberCandidate",
    "ComplianceKeyword",
    "Forbidden",
    "InMemoryStore",
    "InboundMessageRouter",
    "InboundPayload",
    "InvalidCriteria",
    "InvalidInput",
    "InvalidPhoneNumber",
    "MalformedPayload",
    "Message",
    "MessageDirection",
    "MessageSender",
    "MessageStatus",
    "MessageStore",
    "MockProvider",
    "NumberAlreadyOwned",
    "NumberCapabilities",
    "NumberProvisioner",
    "NumberSearchCriteria",
    "NumberType",
    "NumberUnavailable",
    "OwnedNumber",
    "ProviderAdapter",
    "ProviderError",
    "ProviderUnavailable",
    "RecipientOptedOut",
    "RelayKit",
    "RelayKitError",
    "RelayKitSettings",
    "RetryPolicy",
    "SendRejected",
    "StatusPayload",
    "StatusReconciler",
    "StoreError",
    "TelnyxConfig",
    "TelnyxProvider",
    "TwilioConfig",
    "TwilioProvider",
    "Unauthorized",
    "UnknownProviderError",
    "WebhookRequest",
    "WebhookResponse",
    "__version__",
    "can_transition",
    "detect_keyword",
    "is_valid_phone",
    "normalize_phone",
    "retry_with_backoff",
    "to_e164",
]
