"""Shared API dependencies."""

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from critical_inline.core.config import settings

api_token_header = APIKeyHeader(name=settings.api_token_header, auto_error=False)


def verify_api_token(token: str | None = Security(api_token_header)) -> str:
    """Check the static build token when one is configured; open access otherwise."""

    expected = settings.api_token
    if not expected:
        return ""

    if token in {expected, f"Bearer {expected}"}:
        return token or ""

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API token")


def get_auth_dependency(token: str = Depends(verify_api_token)) -> str:
    return token
