"""Match-key normalization for names and phone numbers."""
from __future__ import annotations

import re
import unicodedata
from typing import Optional

_NON_DIGIT = re.compile(r"\D+")


def normalize_phone(raw: Optional[str]) -> str:
    """Keep digits and a single leading ``+`` from a phone number."""

    if not raw:
        return ""
    stripped = raw.strip()
    digits = _NON_DIGIT.sub("", stripped)
    if stripped.startswith("+") and digits:
        return f"+{digits}"
    return digits


def normalize_name(name: Optional[str]) -> str:
    """Return a case-insensitive comparison key for a name."""

    if not name:
        return ""
    return unicodedata.normalize("NFKC", name).strip().casefold()


def names_match(left: Optional[str], right: Optional[str]) -> bool:
    """Compare two names ignoring case and surrounding whitespace."""

    return normalize_name(left) == normalize_name(right)


def phone_match_key(raw: Optional[str], length: int = 8) -> str:
    """Return the trailing ``length`` digits used to group phone numbers.

    Country prefixes and formatting are ignored. Numbers with fewer digits
    than ``length`` produce an empty key and never group.
    """

    digits = _NON_DIGIT.sub("", raw or "")
    if len(digits) < length:
        return ""
    return digits[-length:]


def name_match_key(name: Optional[str]) -> str:
    """Lowercase, accent-free key used to group business and client names."""

    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", name.lower())
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return " ".join(stripped.split())


__all__ = [
    "name_match_key",
    "names_match",
    "normalize_name",
    "normalize_phone",
    "phone_match_key",
]
