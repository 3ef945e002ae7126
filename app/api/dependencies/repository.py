# app/api/dependencies/repository.py
import logging

from fastapi import HTTPException, status

from app.services.baseql_client import BaseQLClientError, get_baseql_client
from app.services.mentorship_repository import MentorshipRepository

logger = logging.getLogger(__name__)


def get_repository() -> MentorshipRepository:
    """
    Repository over the shared BaseQL client. Tests override this dependency
    with an in-memory fake.
    """
    try:
        client = get_baseql_client()
    except BaseQLClientError as exc:
        logger.error("BaseQL client unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc
    return MentorshipRepository(client)
