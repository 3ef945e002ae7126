# app/api/dependencies/clock.py
from datetime import datetime, timezone


def get_now() -> datetime:
    """
    Current UTC instant. Tests override this dependency to pin "now".
    """
    return datetime.now(tz=timezone.utc)
