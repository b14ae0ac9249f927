"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from cashpoint_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from cashpoint_gateway.api.v1 import agents, cash, ussd
from cashpoint_gateway.domain.exceptions import DomainException
from cashpoint_gateway.infrastructure.observability.logging import setup_logging
from cashpoint_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain errors as structured codes for the app channel"""
    logging.warning(
        f"{exc.code}: {exc}",
        extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": str(exc)}},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Cashpoint Gateway",
        description="Cash agent matching, cash-in/cash-out transactions and USSD banking",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(agents.router, prefix="/v1", tags=["agents"])
    app.include_router(cash.router, prefix="/v1", tags=["cash"])
    app.include_router(ussd.router, prefix="/v1", tags=["ussd"])

    return app


app = create_app()
