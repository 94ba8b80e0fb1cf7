"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
All of them run before any store access so malformed requests never reach
the database.

Security Considerations:
- Input validation prevents injection attacks
- Only http/https destinations are ever stored
- Length limits prevent DoS attacks
"""

import re
from typing import Optional
from urllib.parse import urlparse

from qrlinks.core.exceptions import InvalidInputError, InvalidURLError

MAX_URL_LENGTH = 2048
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_DISPLAY_NAME_LENGTH = 50
MIN_PASSWORD_LENGTH = 6

MIN_QR_SIZE = 128
MAX_QR_SIZE = 1024
ERROR_CORRECTION_LEVELS = ("L", "M", "Q", "H")

_SCHEME_RE = re.compile(r'^[a-z][a-z0-9+.-]*://', re.IGNORECASE)
_HEX_COLOR_RE = re.compile(r'^#[0-9A-F]{6}$', re.IGNORECASE)
_EMAIL_RE = re.compile(r'^[\w.+-]+@[\w-]+(\.[\w-]+)*\.[A-Za-z]{2,}$')


def sanitize_short_code(short_code: str) -> Optional[str]:
    """
    Sanitize and validate identifier format.

    Identifiers should only contain base62 characters: [0-9a-zA-Z]
    This prevents injection attacks and ensures consistency.

    Args:
        short_code: The identifier taken from the request path

    Returns:
        Sanitized identifier if valid, None otherwise
    """
    if not short_code or not isinstance(short_code, str):
        return None

    short_code = short_code.strip()

    if len(short_code) > 20:
        return None

    if not re.match(r'^[0-9a-zA-Z]+$', short_code):
        return None

    return short_code


def validate_url_length(url: str, max_length: int = MAX_URL_LENGTH) -> bool:
    """
    Validate URL length to prevent DoS attacks.

    Args:
        url: The URL to validate
        max_length: Maximum allowed length (default: 2048 per RFC 7230)

    Returns:
        True if URL length is valid, False otherwise
    """
    return bool(url) and len(url) <= max_length


def sanitize_url(url: str) -> str:
    """
    Trim a destination URL and default its scheme to https.

    An explicit non-http scheme is left in place so validation rejects it.

    Example:
        sanitize_url("  example.com ") -> "https://example.com"
        sanitize_url("HTTP://example.com") -> "HTTP://example.com"
        sanitize_url("ftp://example.com") -> "ftp://example.com"
    """
    url = url.strip()
    if not _SCHEME_RE.match(url):
        url = "https://" + url
    return url


def is_valid_url(url: str) -> bool:
    """
    Validate URL format.

    Checks that the URL is absolute, uses http/https and names a host with
    a well-formed port. Prevents javascript:, file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if not validate_url_length(url):
        return False

    if any(ch.isspace() for ch in url):
        return False

    try:
        result = urlparse(url)
        if result.scheme.lower() not in {'http', 'https'}:
            return False
        if not result.netloc or not result.hostname:
            return False
        # Raises ValueError for non-numeric or out of range ports
        result.port
    except ValueError:
        return False

    return True


def normalize_destination_url(url: Optional[str]) -> str:
    """
    Sanitize then validate a destination URL.

    Returns:
        The sanitized URL

    Raises:
        InvalidURLError: If the URL is missing or does not validate
    """
    if url is None or not str(url).strip():
        raise InvalidURLError("", reason="URL is required")

    sanitized = sanitize_url(str(url))
    if not is_valid_url(sanitized):
        raise InvalidURLError(
            sanitized,
            reason="Invalid URL format. URL must use http:// or https:// and have a valid host"
        )
    return sanitized


def validate_optional_text(field: str, value: Optional[str], max_length: int) -> Optional[str]:
    """Strip optional display text; empty strings collapse to None."""
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise InvalidInputError(field, f"must be at most {max_length} characters")
    return value or None


def validate_size(size: int) -> int:
    if isinstance(size, bool) or not isinstance(size, int):
        raise InvalidInputError("size", "must be an integer")
    if not MIN_QR_SIZE <= size <= MAX_QR_SIZE:
        raise InvalidInputError("size", f"must be between {MIN_QR_SIZE} and {MAX_QR_SIZE}")
    return size


def validate_error_correction_level(level: str) -> str:
    level = (level or "").upper()
    if level not in ERROR_CORRECTION_LEVELS:
        raise InvalidInputError(
            "error_correction_level",
            f"must be one of {', '.join(ERROR_CORRECTION_LEVELS)}"
        )
    return level


def validate_hex_color(field: str, color: str) -> str:
    if not color or not _HEX_COLOR_RE.match(color):
        raise InvalidInputError(field, "must be a hex color like #1A2B3C")
    return color


def normalize_email(email: str) -> str:
    """Lowercase and validate an email address."""
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise InvalidInputError("email", "Please enter a valid email")
    return email
