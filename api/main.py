"""
OAuth Callback Application
==========================

A small FastAPI app that receives the OAuth provider's redirect and
completes the PKCE code exchange. The exchange makes the auth provider emit
SIGNED_IN, which the login flow's auth-state listener picks up; this app
never navigates or provisions anything itself.

The CLI runs it in-process (see `cli.serve_callback`) so the exchange uses
the same provider client, and therefore the same PKCE verifier, that
started the flow.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI

from api.middleware.error_handler import error_handler_middleware
from api.routes import health, oauth
from auth_provider import create_auth_provider, create_supabase_client
from config import get_settings
from exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# Global application state - stores the auth provider shared with the CLI
app_state: Dict[str, Any] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create an auth provider from settings unless one was injected.

    When Supabase is not configured the provider stays None and the health
    check reports the service as not ready.
    """
    settings = get_settings()
    app_state["settings"] = settings

    if app_state.get("auth_provider") is None:
        try:
            client = await create_supabase_client(settings)
            app_state["auth_provider"] = create_auth_provider(client)
        except ConfigurationError as e:
            logger.error(f"Callback API started without an auth provider: {e.message}")
            app_state["auth_provider"] = None

    logger.info(f"OAuth callback listening on {settings.callback_url}")

    yield

    app_state.clear()
    logger.info("OAuth callback server stopped")


app = FastAPI(
    title="SubTrack Auth Callback",
    description="Completes OAuth sign-in for the SubTrack login flow.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# Global error handling middleware
app.middleware("http")(error_handler_middleware)

app.include_router(health.router, tags=["health"])
app.include_router(oauth.router, prefix="/auth", tags=["auth"])
