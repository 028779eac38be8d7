import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.routing import APIRoute
from starlette.middleware.base import BaseHTTPMiddleware

from garmentflow.api.deps import ServiceContainer
from garmentflow.api.errors import domain_error_handler
from garmentflow.api.main import api_router
from garmentflow.core.config import settings
from garmentflow.core.observability import (
    get_logger,
    set_actor_id,
    set_correlation_id,
    setup_structured_logging,
)
from garmentflow.domain.shared.exceptions import DomainError

logger = get_logger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Middleware for request correlation and access logging."""

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        set_correlation_id(correlation_id)

        actor_id = request.headers.get("X-Actor-Id", "")
        if actor_id:
            set_actor_id(actor_id)

        start_time = time.time()
        method = request.method
        path = request.url.path

        logger.info(
            "Request started",
            method=method,
            path=path,
            correlation_id=correlation_id,
            actor_id=actor_id,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            response.headers["X-Correlation-ID"] = correlation_id

            logger.info(
                "Request completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_seconds=duration,
                correlation_id=correlation_id,
            )
            return response

        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                "Request failed",
                method=method,
                path=path,
                duration_seconds=duration,
                correlation_id=correlation_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise


def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager configuring logging on startup."""
    setup_structured_logging()
    logger.info(
        "Application started",
        project_name=settings.PROJECT_NAME,
        environment=settings.ENVIRONMENT,
        api_version=settings.API_V1_STR,
        per_roll_work_items=settings.PER_ROLL_WORK_ITEMS,
    )
    try:
        yield
    finally:
        logger.info("Shutting down application")


def create_app(container: ServiceContainer | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Repositories and services to serve; a fresh in-memory
            container is created when omitted
    """
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="""
        GarmentFlow - Garment Production Workflow API

        Tracks lots of garments through their sewing operations: template
        driven work item creation, dependency-aware readiness, operator
        assignment with supervisor approval, bundle split/merge and live
        lot progress.
        """,
        version="0.1.0",
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        generate_unique_id_function=custom_generate_unique_id,
        lifespan=lifespan,
    )
    application.state.container = container or ServiceContainer()

    application.add_middleware(ObservabilityMiddleware)
    application.add_exception_handler(DomainError, domain_error_handler)
    application.include_router(api_router, prefix=settings.API_V1_STR)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
