"""
Health Check Endpoint
=====================
"""

from datetime import datetime, timezone
from enum import Enum

from fastapi import APIRouter
from pydantic import BaseModel, Field


router = APIRouter()


class HealthStatus(str, Enum):
    """Overall callback service health."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthCheckResponse(BaseModel):
    status: HealthStatus = Field(description="Overall health status")
    auth_provider_configured: bool = Field(description="Whether code exchange is possible")
    timestamp: str = Field(description="ISO 8601 timestamp of the health check")


@router.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Report whether the callback can complete sign-ins."""
    from api.main import app_state

    configured = app_state.get("auth_provider") is not None
    return HealthCheckResponse(
        status=HealthStatus.HEALTHY if configured else HealthStatus.UNHEALTHY,
        auth_provider_configured=configured,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
