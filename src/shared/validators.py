"""Validation utilities for the expense ledger application."""

import re
import base64
import binascii
from typing import Any, Optional
from datetime import datetime
from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError


MAX_AMOUNT = Decimal('999999.99')


def validate_currency_code(code: str) -> str:
    """
    Validate a 3-letter currency code.

    Args:
        code: Currency code to validate

    Returns:
        Upper-cased currency code

    Raises:
        ValidationError: If the code is not three letters
    """
    if not code or not isinstance(code, str):
        raise ValidationError("Currency is required")

    code = code.strip().upper()

    if not re.fullmatch(r'[A-Z]{3}', code):
        raise ValidationError("Currency must be a 3-letter code")

    return code


def validate_amount(amount: Any) -> Decimal:
    """
    Validate monetary amount.

    Args:
        amount: Amount to validate

    Returns:
        Validated amount as Decimal

    Raises:
        ValidationError: If amount is invalid
    """
    if amount is None or amount == '':
        raise ValidationError("Amount is required")

    try:
        decimal_amount = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid amount format")

    if not decimal_amount.is_finite():
        raise ValidationError("Invalid amount format")

    if decimal_amount < 0:
        raise ValidationError("Amount cannot be negative")

    if decimal_amount > MAX_AMOUNT:
        raise ValidationError("Amount is too large")

    return decimal_amount


def validate_date(date_str: str) -> str:
    """
    Validate date format (ISO 8601: YYYY-MM-DD).

    Args:
        date_str: Date string to validate

    Returns:
        Validated date string

    Raises:
        ValidationError: If date is invalid
    """
    if not date_str:
        raise ValidationError("Date is required")

    try:
        datetime.strptime(date_str, '%Y-%m-%d')
        return date_str
    except (ValueError, TypeError):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD")


def validate_time(time_str: str) -> str:
    """
    Validate 24h clock time (HH:MM).

    Args:
        time_str: Time string to validate

    Returns:
        Validated time string

    Raises:
        ValidationError: If time is invalid
    """
    if not time_str:
        raise ValidationError("Time is required")

    try:
        datetime.strptime(time_str, '%H:%M')
        return time_str
    except (ValueError, TypeError):
        raise ValidationError("Invalid time format. Use HH:MM")


def validate_base64_image(base64_string: str) -> str:
    """
    Validate base64-encoded image.

    Args:
        base64_string: Base64-encoded string, optionally a data URL

    Returns:
        Validated base64 payload without the data URL header

    Raises:
        ValidationError: If base64 string is invalid
    """
    if not base64_string:
        raise ValidationError("Image data is required")

    # Remove data URI prefix if present
    if ',' in base64_string:
        header, base64_string = base64_string.split(',', 1)
        # Validate it's an image
        if not header.startswith('data:image/'):
            raise ValidationError("Invalid image format")

    # Validate base64 format
    try:
        base64.b64decode(base64_string, validate=True)
        return base64_string
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 encoding")


def validate_display_name(name: str) -> str:
    """
    Validate the user's display name.

    Args:
        name: Name to validate

    Returns:
        Trimmed name

    Raises:
        ValidationError: If the name is empty or too long
    """
    name = sanitize_string(name or '', max_length=100)

    if not name:
        raise ValidationError("Name is required")

    return name


def sanitize_string(value: str, max_length: Optional[int] = None) -> str:
    """
    Sanitize string input by removing surrounding whitespace.

    Args:
        value: String to sanitize
        max_length: Optional maximum length

    Returns:
        Sanitized string

    Raises:
        ValidationError: If string is invalid
    """
    if not isinstance(value, str):
        raise ValidationError("Value must be a string")

    # Remove leading/trailing whitespace
    value = value.strip()

    if max_length and len(value) > max_length:
        raise ValidationError(f"Value exceeds maximum length of {max_length}")

    return value
