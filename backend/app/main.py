"""FastAPI application factory for the account merge engine."""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.accounts.models import AccountsBase
from backend.app.audit.models import AuditBase
from backend.app.auth.models import AuthBase
from backend.app.auth.utils import JWTManager
from backend.app.config import AppConfig, load_config
from backend.app.dedupe.review import ReviewBase
from backend.app.dedupe.router import router as dedupe_router

LOGGER = logging.getLogger(__name__)

_METADATA = (AuthBase.metadata, AccountsBase.metadata, AuditBase.metadata, ReviewBase.metadata)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, the default
            configuration defined in config.yaml is used.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or load_config()
    app = FastAPI(title="Account Merge Engine API", version=resolved_config.service.version)
    app.state.app_config = resolved_config

    engine: AsyncEngine = create_async_engine(
        resolved_config.database.url, echo=resolved_config.database.echo, future=True
    )
    app.state.engine = engine
    app.state.session_factory = async_sessionmaker(engine, expire_on_commit=False)
    app.state.jwt_manager = JWTManager(resolved_config.auth.jwt)

    @app.on_event("startup")
    async def _init_schema() -> None:
        async with engine.begin() as connection:
            for metadata in _METADATA:
                await connection.run_sync(metadata.create_all)
        LOGGER.info("Database schema ready", extra={"database_url": engine.url.render_as_string()})

    @app.on_event("shutdown")
    async def _dispose_engine() -> None:
        await engine.dispose()

    allowed_origins = resolved_config.cors.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {
            "status": "ok",
            "service": resolved_config.service.name,
            "version": resolved_config.service.version,
        }

    app.include_router(dedupe_router)

    return app


__all__ = ["create_app"]
