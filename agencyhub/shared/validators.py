"""Shared validation utilities"""

import html
import re
from typing import Optional
from urllib.parse import urlparse

EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

# Headers the dispatcher always sets itself
RESERVED_WEBHOOK_HEADERS = {"content-type", "content-length", "host"}


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not re.match(EMAIL_PATTERN, email):
        raise ValueError("Invalid email format")

    return email


def sanitize_text(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    """
    Trim and HTML-escape free text that ends up in timelines and audit records.
    Returns None if input is None.
    """
    if value is None:
        return None
    value = value.strip()
    if len(value) > max_length:
        raise ValueError(f"Must be at most {max_length} characters")
    return html.escape(value, quote=True)


def validate_webhook_url(url: str) -> str:
    """Only absolute http(s) URLs with a host are accepted as webhook targets"""
    parsed = urlparse(url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Webhook URL must be an absolute http(s) URL")
    return url.strip()


def validate_webhook_headers(headers: Optional[dict]) -> dict:
    if not headers:
        return {}
    cleaned = {}
    for key, value in headers.items():
        if not isinstance(key, str) or not key.strip():
            raise ValueError("Header names must be non-empty strings")
        if key.strip().lower() in RESERVED_WEBHOOK_HEADERS:
            raise ValueError(f"Header '{key}' is managed by the dispatcher")
        cleaned[key.strip()] = str(value)
    return cleaned
