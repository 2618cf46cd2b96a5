"""
OAuth Callback Endpoint
=======================

The provider redirects here after the user consents (or declines). On
success the query string carries `code`; on failure `error` and
`error_description`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import get_auth_provider
from auth_provider import AuthProviderProtocol
from exceptions import OAuthError


logger = logging.getLogger(__name__)

router = APIRouter()


class CallbackResponse(BaseModel):
    """Body returned to the browser tab after a successful exchange."""
    status: str = Field(description="Always 'signed_in'")
    user_id: Optional[str] = Field(None, description="Signed-in user id")
    message: str = Field(description="Text for the browser tab")


@router.get("/callback", response_model=CallbackResponse)
async def oauth_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    auth_provider: AuthProviderProtocol = Depends(get_auth_provider),
):
    """
    Exchange the authorisation code for a session.

    Raises:
        OAuthError: The provider reported an error or sent no code (400)
        AuthProviderError: The exchange was rejected (401)
    """
    if error:
        logger.warning(f"OAuth provider returned {error}: {error_description}")
        raise OAuthError(error, error_description)

    if not code:
        raise OAuthError("missing_code", "No authorization code in callback")

    session = await auth_provider.exchange_code_for_session(code)
    user_id = session.user.id if session.user else None
    logger.info(f"OAuth code exchanged for user {user_id}")

    return CallbackResponse(
        status="signed_in",
        user_id=user_id,
        message="Signed in. You can close this tab and return to SubTrack.",
    )
