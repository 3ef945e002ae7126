# app/main.py
from fastapi import FastAPI

from app.api.routes import health, internal, sessions, tasks
from app.core.config import get_settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    """
    Application factory for the Mentorship Portal API.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Backend for the mentorship program portal: sessions with their derived\n"
            "phase, feedback and preparation eligibility, recurring session series,\n"
            "tasks, role-based capabilities and reminder planning, on top of\n"
            "Airtable data served through BaseQL."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(tasks.router)
    app.include_router(internal.router)

    return app


app = create_app()
