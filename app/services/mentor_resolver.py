# app/services/mentor_resolver.py
from __future__ import annotations

from pydantic import Field

from app.schemas.base import CamelModel
from app.schemas.contact import Contact
from app.schemas.session import ParticipantRole, ParticipantStatus, Session

INACTIVE_PARTICIPANT_STATUSES = frozenset(
    {
        ParticipantStatus.CANCELLED,
        ParticipantStatus.DECLINED,
        ParticipantStatus.NO_SHOW,
    }
)


class MentorParticipant(CamelModel):
    """
    A mentor of a session, resolved from whichever data shape the record uses.
    """

    id: str
    role: ParticipantRole
    contact: Contact
    is_lead: bool = Field(..., description="True for the Lead Mentor.")
    legacy: bool = Field(False, description="Synthesized from the legacy mentor link.")


def _same_email(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    return left.strip().casefold() == right.strip().casefold()


def get_mentor_participants(session: Session) -> list[MentorParticipant]:
    """
    Active mentors of a session, lead first and then by name.

    Resolution order
    ----------------
    1) Mentor rows of `sessionParticipants`, minus Cancelled / Declined /
       No-Show rows.
    2) When that leaves nothing, the legacy `mentor` link, with the first
       contact as lead.
    """
    mentors = [
        MentorParticipant(
            id=p.id,
            role=p.role,
            contact=p.contact_record or Contact(id=""),
            is_lead=p.role is ParticipantRole.LEAD_MENTOR,
        )
        for p in session.session_participants
        if p.role is not None
        and p.role is not ParticipantRole.MENTEE
        and p.status not in INACTIVE_PARTICIPANT_STATUSES
    ]
    if mentors:
        # Lead first, then case-insensitive name; ties keep input order.
        mentors.sort(key=lambda m: (not m.is_lead, (m.contact.full_name or "").casefold()))
        return mentors

    return [
        MentorParticipant(
            id=f"legacy-{contact.id}",
            role=ParticipantRole.LEAD_MENTOR if index == 0 else ParticipantRole.SUPPORTING_MENTOR,
            contact=contact,
            is_lead=index == 0,
            legacy=True,
        )
        for index, contact in enumerate(session.mentor)
    ]


def get_lead_mentor(session: Session) -> Contact | None:
    mentors = get_mentor_participants(session)
    for mentor in mentors:
        if mentor.is_lead:
            return mentor.contact
    return mentors[0].contact if mentors else None


def is_current_user_mentor(session: Session, email: str | None) -> bool:
    """
    True when `email` belongs to an active participant of the session, or,
    for records without participants, to the legacy mentor link.
    """
    if not email:
        return False

    if session.session_participants:
        return any(
            p.status in (None, ParticipantStatus.ACTIVE)
            and p.role is not ParticipantRole.MENTEE
            and p.contact_record is not None
            and _same_email(p.contact_record.email, email)
            for p in session.session_participants
        )

    return any(_same_email(contact.email, email) for contact in session.mentor)


def is_team_member(session: Session, email: str | None) -> bool:
    team = session.team_record
    if team is None or not email:
        return False
    return any(_same_email(contact.email, email) for contact in team.member_contacts())
