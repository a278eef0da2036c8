"""
Input validation and normalization for the booking flow.
Phone numbers, client names, dates and times arriving from clients.
"""

import re
import logging
from datetime import date
from typing import Optional, Union

from core.utils_datetime import MINUTES_PER_DAY, format_hhmm, parse_hhmm
from domain.errors import InputInvalidError


logger = logging.getLogger(__name__)


# ============================================================================
# Phone Number Normalization
# ============================================================================

BRAZIL_COUNTRY_CODE = "55"

NON_DIGITS = re.compile(r'\D')


def normalize_phone(phone: Optional[str]) -> str:
    """
    Normalize a Brazilian phone number to digits with country code.

    Rules:
        - 13 digits starting with 55 (country code + area + mobile): kept
        - 12 digits starting with 55 (country code + area + landline): kept
        - 11 digits (area + mobile) or 10 digits (area + landline): 55 prepended,
          even when the area code itself is 55

    Args:
        phone: Raw phone input, any punctuation allowed

    Returns:
        Normalized digits, e.g. ``5511987654321``

    Raises:
        InputInvalidError: If the number has any other length
    """
    if not phone:
        raise InputInvalidError("Phone number is required", {"field": "phone"})

    digits = NON_DIGITS.sub('', phone)

    if len(digits) in (12, 13) and digits.startswith(BRAZIL_COUNTRY_CODE):
        return digits
    if len(digits) in (10, 11):
        return BRAZIL_COUNTRY_CODE + digits

    raise InputInvalidError(
        "Phone number must have area code and number",
        {"field": "phone", "digits": len(digits)},
    )


def phones_match(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two phone inputs after normalization; invalid input never matches."""
    try:
        return normalize_phone(a) == normalize_phone(b)
    except InputInvalidError:
        return False


# ============================================================================
# Name Sanitization
# ============================================================================

# Characters to remove from names
NAME_INVALID_CHARS = re.compile(r'[<>{}|\[\]\\^`~@#$%&*+=]')

MULTIPLE_WHITESPACE = re.compile(r'\s+')

# Only digits and punctuation
DIGITS_ONLY_NAME = re.compile(r'^[0-9\s\-\.]+$')


def capitalize_words(text: str) -> str:
    """Lower-case everything, then upper-case the first letter of each word."""
    return re.sub(r'(^|\s)(\S)', lambda m: m.group(1) + m.group(2).upper(), text.lower())


def sanitize_name(name: Optional[str], max_length: int = 100) -> str:
    """
    Clean up a client name for storage.

    Invalid characters are dropped, whitespace collapsed and each word
    capitalized.

    Raises:
        InputInvalidError: If nothing usable is left
    """
    if not name:
        raise InputInvalidError("Name is required", {"field": "name"})

    sanitized = NAME_INVALID_CHARS.sub('', name)
    sanitized = MULTIPLE_WHITESPACE.sub(' ', sanitized).strip()

    if not sanitized or DIGITS_ONLY_NAME.match(sanitized):
        raise InputInvalidError("Name is not valid", {"field": "name"})

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length].rsplit(' ', 1)[0]  # Don't cut mid-word

    return capitalize_words(sanitized)


# ============================================================================
# Date & Time Parsing
# ============================================================================

def parse_booking_date(value: Union[str, date]) -> date:
    """
    Parse an ISO ``YYYY-MM-DD`` date.

    Raises:
        InputInvalidError: If the value is not a date
    """
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise InputInvalidError(f"Invalid date: {value!r}", {"field": "date"}) from None


def parse_booking_time(value: Union[str, int]) -> int:
    """
    Parse an ``HH:mm`` start time into minutes since midnight.

    Raises:
        InputInvalidError: If the value is not a time within the day
    """
    try:
        minutes = parse_hhmm(value)
    except (AttributeError, ValueError):
        raise InputInvalidError(f"Invalid time: {value!r}", {"field": "time"}) from None
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InputInvalidError(f"Invalid time: {value!r}", {"field": "time"})
    return minutes


def normalize_time(value: Union[str, int]) -> str:
    """Canonical zero-padded ``HH:mm`` form of a start time."""
    return format_hhmm(parse_booking_time(value))


def validate_birth_date(value: Optional[date], today: Optional[date] = None) -> Optional[date]:
    """
    Reject birth dates in the future or more than 130 years back.

    Raises:
        InputInvalidError: If the date is implausible
    """
    if value is None:
        return None
    today = today or date.today()
    if value > today or today.year - value.year > 130:
        raise InputInvalidError("Birth date is not valid", {"field": "birth_date"})
    return value
