"""Phone number normalization utilities.

Every lookup by number must go through ``to_e164``/``normalize_phone`` first:
stored numbers are always canonical E.164, so comparing a raw vendor value
against them silently misses.
"""

from __future__ import annotations

import phonenumbers

from relaykit.core.errors import InvalidPhoneNumber


def _digits(raw: str) -> str:
    # Also folds non-ASCII digits (full-width, Arabic-Indic, ...) to ASCII.
    return phonenumbers.normalize_digits_only(raw)


def to_e164(raw: str | None, default_region: str = "US") -> str | None:
    """Convert common phone inputs to E.164, or ``None`` if invalid.

    Args:
        raw: Phone number in any common format.
        default_region: ISO 3166-1 alpha-2 code used for numbers without a
            leading ``+``. Only ``US`` has national rules; other regions
            accept international digit strings only.

    Example:
        >>> to_e164("(555) 123-4567")
        '+15551234567'
        >>> to_e164("+44 20 7946 0958")
        '+442079460958'
        >>> to_e164("123") is None
        True
    """
    text = str(raw or "").strip()
    if not text:
        return None

    digits = _digits(text)
    if text.startswith("+"):
        return f"+{digits}" if digits else None

    if default_region.upper() == "US":
        if len(digits) == 10:
            return f"+1{digits}"
        if len(digits) == 11 and digits.startswith("1"):
            return f"+{digits}"

    if len(digits) >= 11:
        return f"+{digits}"
    return None


def normalize_phone(raw: str | None, default_region: str = "US") -> str:
    """Like ``to_e164`` but raises ``InvalidPhoneNumber`` instead of returning None."""
    e164 = to_e164(raw, default_region)
    if e164 is None:
        raise InvalidPhoneNumber(raw)
    return e164


def is_valid_phone(raw: str | None, default_region: str = "US") -> bool:
    """Check if a phone number can be normalized."""
    return to_e164(raw, default_region) is not None


def national_prefix_matches(e164: str, country: str, prefix: str | None) -> bool:
    """True if *e164* starts with the calling code of *country* plus *prefix*.

    Used to drop vendor search results outside the requested area/exchange.
    An unknown country or empty prefix matches everything.
    """
    if not prefix:
        return True
    calling_code = phonenumbers.country_code_for_region(country.upper())
    if not calling_code:
        return True
    return e164.startswith(f"+{calling_code}{prefix}")
