"""
Input validation and log sanitization.

Provides:
- Asset name validation (path traversal prevention for cache file names)
- Source URL validation (scheme allowlist)
- URL sanitization (token removal for logs)
- Error message sanitization
"""

import re
from typing import Set, Tuple
from urllib.parse import urlparse, urlunparse


# ---------------------------------------------------------------------------
# Asset names
# ---------------------------------------------------------------------------

# Prefix reserved for in-flight temp files inside the cache directory
TEMP_PREFIX = "."
PART_SUFFIX = ".part"

# Temp files are named TEMP_PREFIX + name + "." + 8 random chars + PART_SUFFIX
# and must still fit in a 255-byte file name
TEMP_RANDOM_LENGTH = 8
MAX_NAME_LENGTH = 255 - len(TEMP_PREFIX) - 1 - TEMP_RANDOM_LENGTH - len(PART_SUFFIX)


def validate_asset_name(name: str) -> Tuple[bool, str]:
    """
    Validate an asset name for use as a flat cache file name.

    Args:
        name: Asset name to validate

    Returns:
        (is_valid, error_message)
        - (True, "") if valid
        - (False, "error description") if invalid

    Examples:
        >>> validate_asset_name("fixture.bin")
        (True, "")

        >>> validate_asset_name("../etc/passwd")
        (False, "Name must not contain path separators: ../etc/passwd")
    """
    if not name:
        return False, "Empty name"

    if "\x00" in name:
        return False, "Name must not contain NUL characters"

    if "/" in name or "\\" in name:
        return False, f"Name must not contain path separators: {name}"

    if name in (".", ".."):
        return False, f"Name must not be a relative path component: {name}"

    if name.startswith(TEMP_PREFIX):
        return False, f"Name must not start with '{TEMP_PREFIX}': {name}"

    if len(name.encode("utf-8")) > MAX_NAME_LENGTH:
        return False, f"Name longer than {MAX_NAME_LENGTH} bytes"

    return True, ""


# ---------------------------------------------------------------------------
# Source URLs
# ---------------------------------------------------------------------------

# Schemes the downloader knows how to fetch
ALLOWED_SCHEMES: Set[str] = {"https", "http", "file"}


def validate_source_url(url: str) -> Tuple[bool, str]:
    """
    Validate an asset source URL.

    Args:
        url: URL to validate

    Returns:
        (is_valid, error_message)

    Examples:
        >>> validate_source_url("https://example.test/fixture.bin")
        (True, "")

        >>> validate_source_url("ftp://example.test/fixture.bin")
        (False, "Unsupported scheme: ftp")
    """
    if not url:
        return False, "Empty URL"

    try:
        parsed = urlparse(url)
    except Exception as e:
        return False, f"Invalid URL format: {e}"

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return False, f"Unsupported scheme: {parsed.scheme or '<none>'}"

    if scheme == "file":
        if not parsed.path:
            return False, "No path in file URL"
        return True, ""

    if not parsed.hostname:
        return False, "No hostname in URL"

    return True, ""


# ---------------------------------------------------------------------------
# URL Sanitization (for logging)
# ---------------------------------------------------------------------------

# Query parameters that may contain sensitive tokens
SENSITIVE_PARAMS = {
    "sig",
    "signature",
    "sv",
    "se",
    "st",
    "sp",
    "sr",
    "spr",  # Azure SAS
    "x-amz-signature",
    "x-amz-credential",
    "x-amz-security-token",  # AWS
    "token",
    "access_token",
    "api_key",
    "apikey",
    "key",
    "secret",
    "password",
    "pwd",
    "auth",
    "authorization",
}


def sanitize_url(url: str) -> str:
    """
    Remove sensitive query parameters and userinfo from URL.

    Preserves the path and structure for debugging while removing
    tokens that could grant access if exposed in logs.

    Args:
        url: URL that may contain sensitive parameters

    Returns:
        URL with sensitive parameters replaced with [REDACTED]
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except Exception:
        return url

    if parsed.password:
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        parsed = parsed._replace(netloc=f"{parsed.username}:[REDACTED]@{host}")

    if not parsed.query:
        return urlunparse(parsed)

    sanitized_params = []
    for param in parsed.query.split("&"):
        if "=" in param:
            key, value = param.split("=", 1)
            if key.lower() in SENSITIVE_PARAMS:
                sanitized_params.append(f"{key}=[REDACTED]")
            else:
                sanitized_params.append(param)
        else:
            sanitized_params.append(param)

    sanitized_query = "&".join(sanitized_params)
    return urlunparse(parsed._replace(query=sanitized_query))


# ---------------------------------------------------------------------------
# Error Message Sanitization
# ---------------------------------------------------------------------------

# Patterns that may contain sensitive data in error messages
SENSITIVE_PATTERNS = [
    (re.compile(r'sig=[^&\s"\']+', re.IGNORECASE), "sig=[REDACTED]"),
    (re.compile(r'token=[^&\s"\']+', re.IGNORECASE), "token=[REDACTED]"),
    (re.compile(r'key=[^&\s"\']+', re.IGNORECASE), "key=[REDACTED]"),
    (re.compile(r'password=[^&\s"\']+', re.IGNORECASE), "password=[REDACTED]"),
    (re.compile(r'secret=[^&\s"\']+', re.IGNORECASE), "secret=[REDACTED]"),
    (
        re.compile(r'x-amz-signature=[^&\s"\']+', re.IGNORECASE),
        "x-amz-signature=[REDACTED]",
    ),
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.]+", re.IGNORECASE), "bearer [REDACTED]"),
]

_URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.

    Args:
        msg: Error message that may contain sensitive data
        max_length: Maximum length of returned message

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

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg
