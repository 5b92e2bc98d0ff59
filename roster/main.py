import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roster.api.v1.courses.router import router as courses_router
from roster.api.v1.settings.router import router as settings_router
from roster.api.v1.students.router import router as students_router
from roster.api.v1.tenants.router import router as tenants_router
from roster.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Roster Backend")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(courses_router)
    app.include_router(students_router)
    app.include_router(settings_router)
    app.include_router(tenants_router)

    return app


app = create_app()
