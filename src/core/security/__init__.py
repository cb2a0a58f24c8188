"""
Security helpers.

Provides redaction of credentials from anything that ends up in logs:
    - sanitize_url(): Remove auth tokens and userinfo from logged URLs
    - sanitize_error_message(): Remove tokens and auth headers from messages
    - mask_token(): Diagnostic rendering of a credential
"""

from core.security.redaction import (
    SENSITIVE_PARAMS,
    SENSITIVE_PATTERNS,
    mask_token,
    sanitize_error_message,
    sanitize_url,
)

__all__ = [
    "sanitize_url",
    "sanitize_error_message",
    "mask_token",
    "SENSITIVE_PARAMS",
    "SENSITIVE_PATTERNS",
]
