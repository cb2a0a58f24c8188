"""
Credential redaction for log output and error messages.

GitHub tokens must never reach a log file. Callers already avoid logging the
token field, these helpers catch tokens that leak through error text, URLs or
echoed request headers.
"""

import re
from typing import Optional
from urllib.parse import urlparse

# ---------------------------------------------------------------------------
# URL Sanitization (for logging)
# ---------------------------------------------------------------------------

# Query parameters that may contain sensitive tokens
SENSITIVE_PARAMS = {
    "token",
    "access_token",
    "client_secret",
    "api_key",
    "apikey",
    "key",
    "secret",
    "password",
    "auth",
    "authorization",
}


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters and userinfo from a URL.

    Args:
        url: URL that may contain sensitive parameters

    Returns:
        URL with sensitive parameters replaced with [REDACTED]
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url  # Return as-is if parsing fails

    if parsed.password or parsed.username:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        parsed = parsed._replace(netloc=f"[REDACTED]@{host}")

    if parsed.query:
        sanitized_params = []
        for param in parsed.query.split("&"):
            if "=" in param:
                key, _ = param.split("=", 1)
                if key.lower() in SENSITIVE_PARAMS:
                    sanitized_params.append(f"{key}=[REDACTED]")
                    continue
            sanitized_params.append(param)
        parsed = parsed._replace(query="&".join(sanitized_params))

    return parsed.geturl()


# ---------------------------------------------------------------------------
# Error Message Sanitization
# ---------------------------------------------------------------------------

# Patterns that may contain sensitive data in error messages
SENSITIVE_PATTERNS = [
    # Classic and fine-grained GitHub tokens
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"), "[REDACTED_TOKEN]"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]{20,}\b"), "[REDACTED_TOKEN]"),
    (re.compile(r'token=[^&\s"\']+', re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r'password=[^&\s"\']+', re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r'secret=[^&\s"\']+', re.IGNORECASE), "secret=[REDACTED]"),
    (
        re.compile(r"authorization[\"']?\s*[:=]\s*[\"']?(?:bearer|token|basic)?\s*[^\s\"',}]+", re.IGNORECASE),
        "authorization: [REDACTED]",
    ),
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.]+", re.IGNORECASE), "bearer [REDACTED]"),
]

_URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def sanitize_error_message(msg: str, max_length: Optional[int] = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.

    Args:
        msg: Error message that may contain sensitive data
        max_length: Maximum length of returned message (None disables truncation)

    Returns:
        Sanitized and truncated error message
    """
    if not msg:
        return msg

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    for match in _URL_PATTERN.finditer(msg):
        original_url = match.group(0)
        sanitized = sanitize_url(original_url)
        if sanitized != original_url:
            msg = msg.replace(original_url, sanitized)

    if max_length is not None and len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg


def mask_token(token: Optional[str]) -> str:
    """
    Render a credential for diagnostics without exposing it.

    Keeps a recognizable prefix and the last four characters:
    ``ghp_abcdef...wxyz`` -> ``ghp_****wxyz``.
    """
    if not token:
        return "<none>"
    prefix = ""
    for known in ("github_pat_", "ghp_", "gho_", "ghu_", "ghs_", "ghr_"):
        if token.startswith(known):
            prefix = known
            break
    if len(token) - len(prefix) <= 8:
        return f"{prefix}****"
    return f"{prefix}****{token[-4:]}"
