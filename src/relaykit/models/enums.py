"""All string enums for RelayKit."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class MessageDirection(StrEnum):
    INBOUND = "in"
    OUTBOUND = "out"


@unique
class MessageStatus(StrEnum):
    QUEUED = "queued"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    RECEIVED = "received"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


@unique
class NumberType(StrEnum):
    LOCAL = "local"
    TOLL_FREE = "toll_free"
    MOBILE = "mobile"


_TERMINAL = frozenset({MessageStatus.DELIVERED, MessageStatus.FAILED, MessageStatus.RECEIVED})

# Happy-path order; FAILED and RECEIVED sit outside it.
_RANK = {
    MessageStatus.QUEUED: 0,
    MessageStatus.SENT: 1,
    MessageStatus.DELIVERED: 2,
}


def can_transition(current: MessageStatus, new: MessageStatus) -> bool:
    """Return True if moving from *current* to *new* is a forward transition.

    ``queued -> sent -> delivered`` on the happy path, ``queued|sent -> failed``
    on rejection. ``received`` is terminal and never a target. Equal states
    are a no-op and therefore not a transition.
    """
    if current == new or current.is_terminal:
        return False
    if new == MessageStatus.RECEIVED:
        return False
    if new == MessageStatus.FAILED:
        return True
    return _RANK[new] > _RANK[current]


def forward_sources(new: MessageStatus) -> frozenset[MessageStatus]:
    """Statuses from which *new* is reachable. Used for conditional updates."""
    return frozenset(s for s in MessageStatus if can_transition(s, new))
