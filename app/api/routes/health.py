# app/api/routes/health.py
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.core.config import get_settings


router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """
    Response schema for the health check endpoint.
    """

    status: str = Field(
        ...,
        description="Overall health status of the Mentorship Portal API.",
        examples=["ok"],
    )
    app_name: str = Field(
        ...,
        description="Human-friendly name of the running application.",
        examples=["Mentorship Portal"],
    )
    environment: str = Field(
        ...,
        description="Current deployment environment (local/dev/stage/prod).",
        examples=["local"],
    )
    timezone: str = Field(
        ...,
        description="Timezone in which session dates and times are displayed.",
        examples=["America/New_York"],
    )
    timestamp_utc: datetime = Field(
        ...,
        description="Server-side timestamp (UTC) at which this health check was generated.",
        examples=["2025-01-01T10:30:00Z"],
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check for the Mentorship Portal API",
    description=(
        "Lightweight endpoint to verify that the backend is up and responding.\n\n"
        "Typical use-cases:\n"
        "- Container / VM health probes\n"
        "- Uptime monitoring & alerting\n"
        "- Quick smoke-test after deployments\n"
    ),
    responses={
        200: {
            "description": "Service is healthy and responding as expected.",
            "content": {
                "application/json": {
                    "example": {
                        "status": "ok",
                        "app_name": "Mentorship Portal",
                        "environment": "local",
                        "timezone": "America/New_York",
                        "timestamp_utc": "2025-01-01T10:30:00Z",
                    }
                }
            },
        }
    },
)
async def health_check() -> HealthResponse:
    """
    Returns the current health status of the service.

    Does **not** call BaseQL, so it stays green while the data provider is
    degraded.
    """
    settings = get_settings()
    return HealthResponse(
        status="ok",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        timezone=settings.APP_TIMEZONE,
        timestamp_utc=datetime.now(tz=timezone.utc),
    )
