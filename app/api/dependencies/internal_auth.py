# app/api/dependencies/internal_auth.py
import secrets
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import get_settings

_LOCAL_ENVS = ("local", "test")


def _reject() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing internal API key.",
    )


async def verify_internal_api_key(
    internal_api_key: Optional[str] = Header(
        default=None,
        alias="X-Internal-Api-Key",
        description="Internal API key required for /internal endpoints in non-local environments.",
    ),
) -> None:
    """
    Guard for the scheduler-facing /internal endpoints.

    Rules
    -----
    - APP_ENV in ("local", "test"):
        - INTERNAL_API_KEY unset -> open (convenient for local runs).
        - INTERNAL_API_KEY set   -> header must match.
    - Any other APP_ENV:
        - INTERNAL_API_KEY unset -> 500 (misconfigured deployment).
        - header missing or different -> 401.
    """
    settings = get_settings()
    env = (settings.APP_ENV or "local").lower()
    expected = settings.INTERNAL_API_KEY

    if not expected:
        if env in _LOCAL_ENVS:
            return
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_KEY not configured for this environment.",
        )

    if not internal_api_key or not secrets.compare_digest(internal_api_key, expected):
        raise _reject()
