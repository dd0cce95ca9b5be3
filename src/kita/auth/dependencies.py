"""FastAPI API-key dependencies."""

from __future__ import annotations

from fastapi import Security
from fastapi.security import APIKeyHeader

from kita.auth.api_keys import API_KEY_HEADER, verify_api_key
from kita.config import get_settings
from kita.errors import AuthenticationError

_api_key_header = APIKeyHeader(name=API_KEY_HEADER, auto_error=False)


async def require_public_api_key(
    api_key: str | None = Security(_api_key_header),
) -> None:
    """Gate endpoints consumed by the public website embeds."""
    if not verify_api_key(api_key, get_settings().public_api_key, key_name="public_api_key"):
        raise AuthenticationError


async def require_admin_api_key(
    api_key: str | None = Security(_api_key_header),
) -> None:
    """Gate staff-only endpoints."""
    if not verify_api_key(api_key, get_settings().admin_api_key, key_name="admin_api_key"):
        raise AuthenticationError
