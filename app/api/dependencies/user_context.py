# app/api/dependencies/user_context.py
from typing import Optional

from fastapi import Header, HTTPException, status

from app.schemas.user import UserContext, UserType


async def get_user_context(
    user_email: Optional[str] = Header(
        default=None,
        alias="X-User-Email",
        description="Email of the signed-in user, set by the authenticating proxy.",
    ),
    user_type: Optional[str] = Header(
        default=None,
        alias="X-User-Type",
        description="student / mentor / staff.",
    ),
    contact_id: Optional[str] = Header(
        default=None,
        alias="X-User-Contact-Id",
        description="Airtable contact id of the user, when known.",
    ),
    full_name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> UserContext:
    """
    Build the caller's identity from proxy headers.

    Authentication itself happens upstream; a request without both headers
    never reached us through the proxy and is rejected with 401.
    """
    if not user_email or not user_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Email / X-User-Type headers.",
        )

    try:
        parsed_type = UserType(user_type.strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown user type '{user_type}'.",
        ) from None

    return UserContext(
        email=user_email.strip(),
        user_type=parsed_type,
        contact_id=contact_id or None,
        full_name=full_name or None,
    )
