"""FastAPI application factory"""

import uvicorn
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from debt_settlement.api.middleware import RequestIDMiddleware, MetricsMiddleware
from debt_settlement.api.v1 import contracts, settlements
from debt_settlement.infrastructure.observability.logging import setup_logging
from debt_settlement.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Debt Settlement Service",
        description="Installment debt settlement and refund rollback for member debt contracts",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(contracts.router, prefix="/v1", tags=["contracts"])
    app.include_router(settlements.router, prefix="/v1", tags=["settlements"])

    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn (the `debt-settlement` console script)"""
    uvicorn.run(
        "debt_settlement.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
