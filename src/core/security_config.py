"""Log redaction and error exposure rules for the FreezeFrame API.

This module centralizes:
- Credential-like keys that must never reach the logs
- Image payload keys whose (large, base64) values are summarized instead
- Which error response fields each environment may expose
"""

# Credential-like keys; matching is by substring so "gemini_api_key" and
# "x-api-key" are both covered by "api_key"/"api-key".
SENSITIVE_KEYS: set[str] = {
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "api-key",
    "apikey",
    "bearer",
    "cookie",
    "credential",
}

# Keys carrying image data URLs. Their values are replaced by a size summary.
PAYLOAD_KEYS: set[str] = {
    "image",
    "originalimage",
    "original_image",
    "screenshot",
    "thumbnails",
}

# Production-only error response fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
    "code",
}

# Development adds diagnostics on top of the production set
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Get allowed error response fields based on environment."""
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a key should be considered sensitive and redacted."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def is_payload_key(key: str) -> bool:
    """Check if a key holds an image payload that should be summarized."""
    return key.lower() in PAYLOAD_KEYS


def summarize_payload(value: object) -> str:
    """Describe an image payload without including it."""
    if isinstance(value, str):
        return f"[{len(value)} chars]"
    if isinstance(value, list):
        return f"[{len(value)} items]"
    return "[payload]"
