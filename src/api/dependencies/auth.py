"""
API Key authentication dependency.

Controlled by API_AUTH_ENABLED. When enabled, scheduler endpoints require
an X-API-Key header equal to API_KEY.
"""

import os
import secrets
from typing import Optional

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false").lower() == "true"
API_KEY = os.getenv("API_KEY", "")

api_key_header = APIKeyHeader(
    name="X-API-Key",
    auto_error=False,
    description="API key (required when API_AUTH_ENABLED=true)",
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "ApiKey"},
    )


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> Optional[str]:
    """
    Check the X-API-Key header.

    Returns:
        The API key if valid, None if auth is disabled

    Raises:
        HTTPException: 401 if auth is enabled and the key is missing or wrong
    """
    if not API_AUTH_ENABLED:
        return None

    if not api_key:
        raise _unauthorized("Missing API key. Provide X-API-Key header.")

    # An unset API_KEY rejects everything rather than accepting an empty key
    if not API_KEY or not secrets.compare_digest(api_key, API_KEY):
        raise _unauthorized("Invalid API key")

    return api_key
