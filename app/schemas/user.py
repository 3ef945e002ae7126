# app/schemas/user.py
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel


class UserType(str, Enum):
    STUDENT = "student"
    MENTOR = "mentor"
    STAFF = "staff"


class UserContext(CamelModel):
    """
    The caller, as identified by the authenticating proxy in front of the API.
    """

    email: str = Field(..., examples=["mentor@example.org"])
    user_type: UserType = Field(..., examples=["mentor"])
    contact_id: str | None = Field(
        None,
        description="Airtable contact id of the caller, when known.",
    )
    full_name: str | None = None
