"""
Application factory for the mill ledger HTTP API.

``create_app`` wires configuration, the database session factory, the
clock and the routers into a FastAPI instance.  Tests pass their own
session factory and a ``DeterministicClock``; production callers pass
nothing and the engine is built from ``config.database``.
"""

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session, sessionmaker

from mill_api.errors import register_exception_handlers
from mill_api.routers import lots, production, scrap
from mill_config import MillConfig, get_active_config
from mill_kernel.db.engine import get_session_factory, init_engine_from_url
from mill_kernel.db.immutability import register_immutability_listeners
from mill_kernel.domain.clock import Clock, SystemClock
from mill_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("api.app")

REQUEST_ID_HEADER = "X-Request-Id"


def create_app(
    config: MillConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Build the FastAPI application."""
    config = config or get_active_config()
    configure_logging(level=config.logging.level)

    if session_factory is None:
        db = config.database
        init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
        session_factory = get_session_factory()
    register_immutability_listeners()

    app = FastAPI(title=config.api.title, version="1.0.0")
    app.state.config = config
    app.state.session_factory = session_factory
    app.state.clock = clock or SystemClock()

    if config.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(config.api.cors_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=[REQUEST_ID_HEADER],
        )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        correlation_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        started = time.perf_counter()
        with LogContext.bind(
            correlation_id=correlation_id,
            company_id=request.headers.get("X-Company-Id"),
            actor_id=request.headers.get("X-User-Id"),
        ):
            response = await call_next(request)
            logger.info(
                "request_completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
        response.headers[REQUEST_ID_HEADER] = correlation_id
        return response

    register_exception_handlers(app, debug=config.api.debug)

    app.include_router(lots.router)
    app.include_router(production.router)
    app.include_router(scrap.router)

    @app.get("/health")
    def health():
        return {"status": "ok", "version": app.version}

    logger.info(
        "app_created",
        extra={"title": config.api.title, "debug": config.api.debug},
    )
    return app
