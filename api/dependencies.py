"""
Dependency Injection Functions
==============================

FastAPI dependencies for the callback app.
"""

from fastapi import HTTPException, status

from auth_provider import AuthProviderProtocol


def get_auth_provider() -> AuthProviderProtocol:
    """
    Dependency to get the auth provider from app state.

    Raises:
        HTTPException: 503 if no provider is configured
    """
    from api.main import app_state

    provider = app_state.get("auth_provider")
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auth provider not configured."
        )
    return provider
