"""Data normalization utilities for contact matching and display."""

import re
import unicodedata
from typing import Optional


RU_TRUNK_PREFIX = "8"
RU_COUNTRY_CODE = "7"
RU_NUMBER_LENGTH = 11


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize phone to a canonical "+<digits>" form.

    - Strip every non-digit character
    - 11 digits starting with 8 (domestic trunk prefix): 8 → 7
    - Prefix with "+"

    Examples:
        "+7 (926) 123-45-67" → "+79261234567"
        "89261234567"        → "+79261234567"

    Idempotent: normalize_phone(normalize_phone(p)) == normalize_phone(p).

    Returns:
        Canonical phone or None if the input has no digits
    """
    if not phone:
        return None

    digits = re.sub(r"\D", "", phone)
    if not digits:
        return None

    if len(digits) == RU_NUMBER_LENGTH and digits.startswith(RU_TRUNK_PREFIX):
        digits = RU_COUNTRY_CODE + digits[1:]

    return f"+{digits}"


def format_phone(phone: Optional[str]) -> str:
    """
    Format a phone for display.

    Russian numbers render as "+7 (926) 123-45-67"; anything else falls back
    to the canonical form, or the raw input when it has no digits.
    """
    if not phone:
        return ""

    normalized = normalize_phone(phone)
    if not normalized:
        return phone.strip()

    digits = normalized[1:]
    if len(digits) == RU_NUMBER_LENGTH and digits.startswith(RU_COUNTRY_CODE):
        return f"+7 ({digits[1:4]}) {digits[4:7]}-{digits[7:9]}-{digits[9:11]}"
    return normalized


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    normalized = email.strip().lower()
    return normalized or None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize name by stripping whitespace and collapsing multiple spaces.

    Args:
        name: Raw name input

    Returns:
        Cleaned name or None if empty
    """
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def first_word(name: Optional[str]) -> str:
    """First whitespace-separated word of a name ("" if none)."""
    normalized = normalize_name(name)
    if not normalized:
        return ""
    return normalized.split(" ", 1)[0]


def normalize_search_text(value: Optional[str]) -> Optional[str]:
    """
    Normalize free-text for search matching.

    - NFC-compose (a decomposed "ё" equals the precomposed one)
    - Casefold (works for Cyrillic, unlike SQLite's lower())
    - Collapse whitespace

    Letters are kept as typed: "ё" and "е", "й" and "и" stay distinct.
    """
    if not value:
        return None
    collapsed = " ".join(value.split())
    if not collapsed:
        return None
    return unicodedata.normalize("NFC", collapsed).casefold()
