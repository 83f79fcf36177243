"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from rental_engine.api import internal
from rental_engine.api.dependencies import get_request_id
from rental_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from rental_engine.api.v1 import payments, rentals, vehicles
from rental_engine.domain.exceptions import DomainException
from rental_engine.infrastructure.observability.logging import setup_logging
from rental_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)

logger = logging.getLogger(__name__)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Upstream failure",
            extra={
                "request_id": get_request_id(request),
                "code": exc.code,
                "detail": exc.message,
                "path": request.url.path,
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": exc.code, "detail": exc.message},
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Rental Engine",
        description="Vehicle rental booking, payment and receipt service",
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
    app.include_router(rentals.router, prefix="/v1", tags=["rentals"])
    app.include_router(vehicles.router, prefix="/v1", tags=["vehicles"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(internal.router, prefix="/internal", tags=["internal"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("rental_engine.api.main:app", host="0.0.0.0", port=8000)
