"""
Callback Error Middleware
=========================

Turns SubTrack exceptions raised while completing an OAuth sign-in into JSON
error bodies the browser tab can show.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from exceptions import (
    SubTrackError,
    AuthProviderError,
    OAuthError,
    ConfigurationError,
)
from config import get_settings


logger = logging.getLogger(__name__)


# Looked up along the exception's MRO, so subclasses inherit their parent's code
CALLBACK_STATUS_CODES = {
    OAuthError: status.HTTP_400_BAD_REQUEST,
    AuthProviderError: status.HTTP_401_UNAUTHORIZED,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error: SubTrackError) -> int:
    for cls in type(error).__mro__:
        if cls in CALLBACK_STATUS_CODES:
            return CALLBACK_STATUS_CODES[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def error_handler_middleware(request: Request, call_next):
    """
    Convert errors from the callback routes into JSON responses.

    Provider and OAuth failures keep their message, since that is what the
    user needs to see to retry. Anything unexpected is logged with its
    traceback and reported without details unless `api_debug` is set.
    """
    try:
        return await call_next(request)

    except SubTrackError as e:
        code = status_for(e)
        log = logger.error if code >= 500 else logger.warning
        log(f"{request.url.path} failed with {code}: {e.message}")
        return JSONResponse(status_code=code, content=e.to_dict())

    except Exception as e:
        logger.exception(f"Unhandled error on {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error_type": "InternalServerError",
                "message": "Sign-in could not be completed",
                "details": {"error": str(e)} if get_settings().api_debug else {},
            },
        )
