from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agentoffice import __version__
from agentoffice.api.routes import chat, execution, health
from agentoffice.application.factory import OfficeServices, build_services

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI startup/shutdown events."""
    services: OfficeServices = app.state.services
    await services.startup()
    await logger.ainfo(
        "fastapi.startup",
        message="Agent Office API starting...",
        default_mode=services.settings.mode.value,
    )
    yield
    await logger.ainfo("fastapi.shutdown", message="Agent Office API shutting down...")
    await services.shutdown()


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": f"Invalid request body: {detail}"})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error("fastapi.unhandled_error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


def create_app(services: Optional[OfficeServices] = None) -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title="Agent Office API",
        description="Mission execution and event streaming for the agent office dashboard",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.services = services or build_services()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure based on environment
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    # Include routers
    app.include_router(execution.router, prefix="/api", tags=["execution"])
    app.include_router(chat.router, prefix="/api", tags=["chat"])
    app.include_router(health.router, tags=["health"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=3000)
