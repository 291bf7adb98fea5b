"""FastAPI application entry point."""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from customer_intel.api.responses import register_exception_handlers
from customer_intel.api.routes import router
from customer_intel.api.security import SECURITY_HEADERS, get_client_ip
from customer_intel.config import get_settings
from customer_intel.state.customers import CustomerRepository
from customer_intel.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    repository: CustomerRepository = app.state.repository
    snapshot = await repository.snapshot()
    logger.info("application_starting", customers=len(snapshot))

    yield

    logger.info("application_shutting_down")


def create_app(repository: CustomerRepository | None = None) -> FastAPI:
    """
    Build the application around ``repository``.

    When no repository is given one is created, seeded with the demo
    customers unless ``seed_on_startup`` is disabled.
    """
    settings = get_settings()

    if repository is None:
        repository = (
            CustomerRepository.with_seed_data()
            if settings.seed_on_startup
            else CustomerRepository()
        )

    app = FastAPI(
        title=settings.app_name,
        description="Customer records with derived health scores and portfolio statistics",
        version="0.1.0",
        lifespan=lifespan,
    )
    # Set eagerly so the app works without the lifespan running
    app.state.repository = repository

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)

        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            client_ip=get_client_ip(request),
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        return response

    register_exception_handlers(app)
    app.include_router(router, prefix="/api", tags=["customers"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "customer-intel"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Customer Intelligence API",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "customer_intel.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
