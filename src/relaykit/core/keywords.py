"""Carrier compliance keyword detection for inbound SMS."""

from __future__ import annotations

import re
from enum import StrEnum, unique


@unique
class ComplianceKeyword(StrEnum):
    STOP = "stop"
    START = "start"
    HELP = "help"


# Checked in order; an opt-out anywhere in the body wins over START or HELP.
_PATTERNS: list[tuple[ComplianceKeyword, re.Pattern[str]]] = [
    (
        ComplianceKeyword.STOP,
        re.compile(r"\b(stop|stopall|unsubscribe|cancel|end|quit)\b", re.IGNORECASE),
    ),
    (ComplianceKeyword.START, re.compile(r"\b(start|unstop)\b", re.IGNORECASE)),
    (ComplianceKeyword.HELP, re.compile(r"\bhelp\b", re.IGNORECASE)),
]

OPT_OUT_KEYWORDS = frozenset({ComplianceKeyword.STOP, ComplianceKeyword.START})


def detect_keyword(body: str | None) -> ComplianceKeyword | None:
    """Return the compliance keyword found in *body*, if any.

    Keywords match as whole words anywhere in the message, ignoring case:
    ``"STOP please"`` is an opt-out, ``"unstoppable"`` is not.
    """
    if not body:
        return None
    for keyword, pattern in _PATTERNS:
        if pattern.search(body):
            return keyword
    return None
