from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from fir_acl.authz import (
    AuthorizationService,
    AuthzError,
    Conflict,
    EffectivePermissionCalculator,
    Forbidden,
    InvalidRequest,
    NotFound,
    PermissionEditor,
    PrincipalResolver,
    Unavailable,
    load_permission_index,
)
from fir_acl.db.init_db import init_db
from fir_acl.db.session import create_db_engine, create_session_factory
from fir_acl.db.store import SqlAlchemyAuthzStore
from fir_acl.logging_config import configure_app_logging
from fir_acl.routers import firs, health, permissions
from fir_acl.settings import Settings, get_settings

logger = logging.getLogger(__name__)


_STATUS_BY_ERROR: tuple[tuple[type[AuthzError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (Unavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (Conflict, status.HTTP_409_CONFLICT),
    (InvalidRequest, status.HTTP_400_BAD_REQUEST),
)


async def authz_error_handler(request: Request, exc: AuthzError) -> JSONResponse:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return JSONResponse(status_code=code, content={"detail": str(exc)})
    logger.error("Unmapped authorization error path=%s: %r", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        cfg = settings or get_settings()
        configure_app_logging(cfg.log_level)
        logger.info("App startup beginning")

        index = load_permission_index(cfg.resolved_permissions_path())
        logger.info("Loaded %d permissions from %s", len(index), cfg.resolved_permissions_path())

        engine = create_db_engine(cfg.resolved_db_url())
        session_factory = create_session_factory(engine)
        main_admin_cids = cfg.resolved_main_admin_cids()
        init_db(engine, session_factory, index, main_admin_cids)
        logger.info("Database initialized (tables ensured + seed if needed)")

        store = SqlAlchemyAuthzStore(session_factory)
        authz = AuthorizationService(
            PrincipalResolver(store, main_admin_cids=main_admin_cids),
            EffectivePermissionCalculator(index),
            cache_ttl_seconds=cfg.authz_cache_ttl_seconds,
            cache_max_entries=cfg.authz_cache_max_entries,
        )
        app.state.session_factory = session_factory
        app.state.authz = authz
        app.state.editor = PermissionEditor(store, index, authz)

        yield

        # Shutdown
        engine.dispose()

    app = FastAPI(lifespan=lifespan)
    app.add_exception_handler(AuthzError, authz_error_handler)

    app.include_router(health.router)
    app.include_router(permissions.router)
    app.include_router(firs.router)

    return app


app = create_app()
