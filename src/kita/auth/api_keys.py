"""Static API key checks for machine clients (WordPress embeds, staff tools)."""

from __future__ import annotations

import hmac

import structlog

logger = structlog.get_logger()

API_KEY_HEADER = "X-API-Key"


def verify_api_key(provided: str | None, expected: str, key_name: str = "api_key") -> bool:
    """
    Constant-time comparison of a presented key against the configured one.

    An unconfigured (empty) expected key rejects every request.
    """
    if not provided:
        return False
    if not expected:
        logger.error("api_key_not_configured", key_name=key_name)
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())
