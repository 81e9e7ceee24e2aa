from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tasktracker.api.errors import register_exception_handlers
from tasktracker.api.health import router as health_router
from tasktracker.api.tasks import router as tasks_router
from tasktracker.core.auth import (
    Actor,
    ActorAuthMiddleware,
    GoogleIdentityVerifier,
    IdentityVerifier,
)
from tasktracker.core.config import Settings, get_settings
from tasktracker.core.logging import TraceContextMiddleware, configure_logging, get_logger
from tasktracker.db.bootstrap import initialize_database
from tasktracker.db.engine import create_engine_from_settings

logger = get_logger("tasktracker.main")


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    return GoogleIdentityVerifier(
        client_id=settings.google_client_id,
        allowed_emails=settings.allowed_emails,
    )


def create_app(*, identity_verifier: IdentityVerifier | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.db_auto_init:
            initialize_database(database_url=settings.database_url)
        engine = create_engine_from_settings(settings)
        app.state.engine = engine
        logger.info(
            "app.started",
            env=settings.app_env,
            cors_allow_origins=settings.cors_allow_origins,
        )
        try:
            yield
        finally:
            app.state.engine = None
            engine.dispose()
            logger.info("app.stopped")

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.add_middleware(
        ActorAuthMiddleware,
        verifier=identity_verifier or build_identity_verifier(settings),
        service_api_key=settings.service_api_key,
        service_actor=Actor(
            email=settings.service_actor_email,
            name=settings.service_actor_name,
        ),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(TraceContextMiddleware)
    app.include_router(health_router)
    app.include_router(tasks_router, prefix="/api")
    return app


app = create_app()
