# app/schemas/contact.py
from pydantic import Field, field_validator

from app.schemas.base import AirtableRecord, none_as_empty_list


class Contact(AirtableRecord):
    """
    A person known to the program (student, mentor, staff, ...).
    """

    id: str = Field(..., description="Airtable record id.", examples=["recContact01"])
    full_name: str | None = Field(None, examples=["Ada Lovelace"])
    email: str | None = Field(None, examples=["ada@example.org"])
    type: str | None = Field(
        None,
        description="Student / Mentor / Staff / Faculty / External / Leadership.",
    )


class TeamMember(AirtableRecord):
    id: str
    status: str | None = Field(
        None,
        description="Active / Invited / Requested / Withdrawn / Left Team / Inactive / Denied.",
    )
    type: str | None = Field(None, description="Member / Lead.")
    contact: list[Contact] = Field(default_factory=list)

    @field_validator("contact", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    @property
    def contact_record(self) -> Contact | None:
        return self.contact[0] if self.contact else None


class Team(AirtableRecord):
    id: str
    team_name: str | None = Field(None, examples=["Team Aurora"])
    members: list[TeamMember] = Field(default_factory=list)

    @field_validator("members", mode="before")
    @classmethod
    def empty_links(cls, value):
        return none_as_empty_list(value)

    def member_contacts(self) -> list[Contact]:
        """
        Contacts of the team's members, skipping members without a linked contact.
        """
        return [m.contact_record for m in self.members if m.contact_record is not None]
